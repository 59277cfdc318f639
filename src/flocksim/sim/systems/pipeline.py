from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..core.agent import Agent
from ..core.config import SimulationConfig
from ..core.spatial_grid import SpatialGrid
from . import integration, neighbors as neighbor_system, steering, variation

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickStats:
    dt: float = 0.0
    neighbor_checks: int = 0
    neighbor_links: int = 0
    applied: bool = False


def effective_dt(dt: float, max_dt: float) -> float:
    """Return the step to apply, or 0.0 when ``dt`` must be rejected."""
    if not math.isfinite(dt) or dt <= 0.0:
        return 0.0
    if math.isfinite(max_dt) and max_dt > 0.0:
        return min(dt, max_dt)
    return dt


def tick(
    agents: Sequence[Agent],
    dt: float,
    config: SimulationConfig,
    sim_time: float = 0.0,
    grid: SpatialGrid | None = None,
) -> TickStats:
    """
    Advance every agent in ``agents`` by one step of ``dt``.

    All neighbor sets and steering forces are computed from the state left by the
    previous tick before any agent is moved, so update order never matters.
    A non-positive or non-finite ``dt`` leaves every agent untouched.
    """
    step = effective_dt(dt, config.max_dt)
    if step <= 0.0:
        logger.debug("Rejected tick with dt=%r", dt)
        return TickStats()

    stats = TickStats(dt=step, applied=True)
    if grid is not None:
        grid.rebuild(agents)
    candidates: List[Tuple[int, Agent]] = []
    world = config.world

    for agent in agents:
        stats.neighbor_checks += neighbor_system.find_neighbors(agent, agents, grid, candidates)
        stats.neighbor_links += len(agent.neighbors)
        agent.forces = steering.compute_forces(agent, world, config.rules, config.boundary, config.place)
        agent.variation = variation.rule_multipliers(agent, sim_time, config.variation)

    for agent in agents:
        integration.integrate(agent, agent.forces, agent.variation, step)

    return stats
