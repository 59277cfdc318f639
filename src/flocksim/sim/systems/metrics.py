from __future__ import annotations

import math
from typing import Sequence, Tuple

from ..core.agent import Agent
from ..types.metrics import TickMetrics
from .pipeline import TickStats


def positional_variance(agents: Sequence[Agent]) -> float:
    """Mean squared distance of the agents from their centroid."""
    count = len(agents)
    if count == 0:
        return 0.0
    mean_x = sum(agent.position.x for agent in agents) / count
    mean_y = sum(agent.position.y for agent in agents) / count
    total = 0.0
    for agent in agents:
        dx = agent.position.x - mean_x
        dy = agent.position.y - mean_y
        total += dx * dx + dy * dy
    return total / count


def flock_stats(agents: Sequence[Agent]) -> Tuple[float, float]:
    """Average speed and polarization (length of the mean unit heading, 0..1)."""
    count = len(agents)
    if count == 0:
        return 0.0, 0.0
    speed_sum = 0.0
    heading_x = 0.0
    heading_y = 0.0
    for agent in agents:
        speed = math.hypot(agent.velocity.x, agent.velocity.y)
        speed_sum += speed
        if speed > 0.0:
            heading_x += agent.velocity.x / speed
            heading_y += agent.velocity.y / speed
    return speed_sum / count, math.hypot(heading_x, heading_y) / count


def create_metrics(
    tick: int,
    sim_time: float,
    agents: Sequence[Agent],
    stats: TickStats,
    duration_ms: float,
) -> TickMetrics:
    average_speed, polarization = flock_stats(agents)
    return TickMetrics(
        tick=tick,
        sim_time=sim_time,
        population=len(agents),
        neighbor_checks=stats.neighbor_checks,
        neighbor_links=stats.neighbor_links,
        average_speed=average_speed,
        polarization=polarization,
        spread=positional_variance(agents),
        tick_duration_ms=duration_ms,
    )
