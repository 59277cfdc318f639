from __future__ import annotations

import math

from pygame.math import Vector2
from pytest import approx

from flocksim.sim.core.agent import VariationFactors, create_agent
from flocksim.sim.core.config import AgentSettings, VariationConfig
from flocksim.sim.systems.variation import multiplier, rule_multipliers, wave


def _agent(phase=0.0, created_at=0.0):
    return create_agent(0, Vector2(), Vector2(1.0, 0.0), AgentSettings(), phase=phase, created_at=created_at)


def test_disabled_variation_is_identity():
    factors = rule_multipliers(_agent(phase=1.3), 250.0, VariationConfig(enabled=False, amplitude=1.0))
    assert factors == VariationFactors(1.0, 1.0, 1.0)


def test_zero_amplitude_is_identity():
    config = VariationConfig(enabled=True, amplitude=0.0)
    for t in (0.0, 17.0, 333.3):
        factors = rule_multipliers(_agent(phase=0.7), t, config)
        assert (factors.cohesion, factors.separation, factors.alignment) == (1.0, 1.0, 1.0)


def test_full_amplitude_stays_in_unit_range():
    config = VariationConfig(enabled=True, amplitude=1.0, frequency=0.013)
    agent = _agent(phase=2.1)
    for step in range(200):
        factors = rule_multipliers(agent, step * 3.7, config)
        for value in (factors.cohesion, factors.separation, factors.alignment):
            assert 0.0 <= value <= 1.0


def test_rules_use_distinct_offsets():
    config = VariationConfig(enabled=True, amplitude=1.0)
    factors = rule_multipliers(_agent(), 0.0, config)

    assert factors.cohesion == approx(0.5 * (math.sin(0.4 * math.pi) + 1.0))
    assert factors.separation == approx(0.5 * (math.sin(1.2 * math.pi) + 1.0))
    assert factors.alignment == approx(0.5)
    assert len({factors.cohesion, factors.separation, factors.alignment}) == 3


def test_time_is_measured_from_creation():
    config = VariationConfig(enabled=True, amplitude=0.8, frequency=0.01)
    newborn = rule_multipliers(_agent(created_at=40.0), 40.0, config)
    founder = rule_multipliers(_agent(), 0.0, config)
    assert newborn == founder


def test_multiplier_clamps_amplitude():
    assert multiplier(2.0, 0.25) == approx(0.25)
    assert multiplier(-1.0, 0.25) == 1.0
    assert wave(0.0, -math.pi / 2, 1.0) == approx(0.0)
