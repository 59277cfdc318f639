from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from pygame.math import Vector2

from .config import AgentSettings


@dataclass(slots=True)
class SteeringForces:
    cohesion: Vector2 = field(default_factory=Vector2)
    separation: Vector2 = field(default_factory=Vector2)
    alignment: Vector2 = field(default_factory=Vector2)
    boundary: Vector2 = field(default_factory=Vector2)


@dataclass(slots=True)
class VariationFactors:
    cohesion: float = 1.0
    separation: float = 1.0
    alignment: float = 1.0


@dataclass(slots=True, eq=False)
class Agent:
    id: int
    position: Vector2
    velocity: Vector2
    max_speed: float = 4.0
    min_speed: float = 3.0
    detection_range: float = 150.0
    fov_left: float = math.pi
    fov_right: float = math.pi
    separation_coefficient: float = 1.0
    cohere_coefficient: float = 1.0
    align_coefficient: float = 1.0
    phase: float = 0.0
    created_at: float = 0.0
    # Recomputed from scratch every tick.
    neighbors: List["Agent"] = field(default_factory=list)
    neighbor_distances: Dict[int, float] = field(default_factory=dict)
    forces: SteeringForces = field(default_factory=SteeringForces)
    variation: VariationFactors = field(default_factory=VariationFactors)

    @property
    def neighbor_ids(self) -> FrozenSet[int]:
        return frozenset(other.id for other in self.neighbors)

    def apply_settings(self, settings: AgentSettings) -> None:
        self.max_speed = settings.max_speed
        self.min_speed = settings.min_speed
        self.detection_range = settings.detection_range
        self.fov_left, self.fov_right = settings.half_angles()
        self.separation_coefficient = settings.separation_coefficient
        self.cohere_coefficient = settings.cohere_coefficient
        self.align_coefficient = settings.align_coefficient


def create_agent(
    agent_id: int,
    position: Vector2,
    velocity: Vector2,
    settings: AgentSettings,
    phase: float = 0.0,
    created_at: float = 0.0,
) -> Agent:
    agent = Agent(
        id=agent_id,
        position=Vector2(position),
        velocity=Vector2(velocity),
        phase=phase,
        created_at=created_at,
    )
    agent.apply_settings(settings.sanitized())
    return agent
