from __future__ import annotations

import math

from pygame.math import Vector2

from ..core.agent import Agent, SteeringForces, VariationFactors
from ..utils.math2d import rescale_xy


def clamp_speed(x: float, y: float, min_speed: float, max_speed: float) -> tuple[float, float]:
    """Rescale (x, y) into [min_speed, max_speed]; a zero vector stays zero."""
    max_speed = max(0.0, max_speed)
    min_speed = min(max(0.0, min_speed), max_speed)
    speed = math.hypot(x, y)
    if speed > max_speed:
        return rescale_xy(x, y, max_speed)
    if 0.0 < speed < min_speed:
        return rescale_xy(x, y, min_speed)
    return x, y


def integrate(agent: Agent, forces: SteeringForces, factors: VariationFactors, dt: float) -> None:
    vel_x = (
        agent.velocity.x
        + forces.cohesion.x * factors.cohesion
        + forces.separation.x * factors.separation
        + forces.alignment.x * factors.alignment
        + forces.boundary.x
    )
    vel_y = (
        agent.velocity.y
        + forces.cohesion.y * factors.cohesion
        + forces.separation.y * factors.separation
        + forces.alignment.y * factors.alignment
        + forces.boundary.y
    )
    if vel_x == 0.0 and vel_y == 0.0:
        # Forces cancelled the velocity exactly; keep the previous heading.
        vel_x, vel_y = rescale_xy(agent.velocity.x, agent.velocity.y, min(agent.min_speed, agent.max_speed))
    else:
        vel_x, vel_y = clamp_speed(vel_x, vel_y, agent.min_speed, agent.max_speed)
    agent.velocity.update(vel_x, vel_y)
    agent.position.update(
        agent.position.x + vel_x * dt,
        agent.position.y + vel_y * dt,
    )


def total_force(forces: SteeringForces, factors: VariationFactors) -> Vector2:
    return (
        forces.cohesion * factors.cohesion
        + forces.separation * factors.separation
        + forces.alignment * factors.alignment
        + forces.boundary
    )
