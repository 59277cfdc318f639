from __future__ import annotations

import math

from ..core.agent import Agent, VariationFactors
from ..core.config import VariationConfig
from ..utils.math2d import TWO_PI, clamp_value


def wave(t: float, phase: float, frequency: float) -> float:
    """Smooth periodic signal in [0, 1]."""
    return 0.5 * (math.sin(TWO_PI * frequency * t + phase) + 1.0)


def multiplier(amplitude: float, wave_value: float) -> float:
    amplitude = clamp_value(amplitude, 0.0, 1.0)
    return (1.0 - amplitude) + amplitude * wave_value


def rule_multipliers(agent: Agent, sim_time: float, variation: VariationConfig) -> VariationFactors:
    """
    Per-rule force multipliers for ``agent`` at simulated time ``sim_time``.

    Each rule gets its own fixed offset on top of the agent's random phase so the
    rules drift in and out of step with one another, and agents drift apart from
    each other. Disabled modulation yields exactly 1.0 for every rule.
    """
    if not variation.enabled:
        return VariationFactors()
    t = sim_time - agent.created_at
    frequency = variation.frequency
    amplitude = variation.amplitude
    phase = agent.phase
    return VariationFactors(
        cohesion=multiplier(amplitude, wave(t, phase + variation.cohesion_offset, frequency)),
        separation=multiplier(amplitude, wave(t, phase + variation.separation_offset, frequency)),
        alignment=multiplier(amplitude, wave(t, phase + variation.alignment_offset, frequency)),
    )
