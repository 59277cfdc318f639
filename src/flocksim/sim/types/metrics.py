from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    sim_time: float
    population: int
    neighbor_checks: int
    neighbor_links: int
    average_speed: float
    polarization: float
    spread: float
    tick_duration_ms: float = 0.0
