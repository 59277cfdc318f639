from __future__ import annotations

from typing import Dict, List

from pygame.math import Vector2

from ..core.agent import Agent, SteeringForces
from ..core.config import BoundaryConfig, BoundaryPolicy, PlaceConfig, RuleConfig, WorldConfig


def cohesion(agent: Agent, neighbors: List[Agent], rules: RuleConfig) -> Vector2:
    """Steer toward the mean position of the neighbors."""
    coefficient = agent.cohere_coefficient
    if coefficient <= 0.0 or not neighbors or rules.cohesion_factor <= 0.0:
        return Vector2()
    sum_x = 0.0
    sum_y = 0.0
    for other in neighbors:
        sum_x += other.position.x
        sum_y += other.position.y
    inv = 1.0 / len(neighbors)
    scale = coefficient / rules.cohesion_factor
    return Vector2(
        (sum_x * inv - agent.position.x) * scale,
        (sum_y * inv - agent.position.y) * scale,
    )


def separation(
    agent: Agent,
    neighbors: List[Agent],
    neighbor_distances: Dict[int, float],
    rules: RuleConfig,
) -> Vector2:
    """
    Push away from neighbors closer than ``separation_distance``.

    Each close neighbor contributes the unit direction away from it weighted by
    ``(S - d) / S``, so the push grows monotonically as d shrinks. Contributions
    are summed, not averaged, so crowding compounds. Coincident neighbors
    (d == 0) are skipped.

    Weighting the raw displacement instead would peak at d == S / 2 (about
    S / 4 in magnitude) and fade toward zero for very close neighbors. Here a
    single neighbor pushes with at most 1.0, so tune ``separation_coefficient``
    against that scale rather than against displacement-weighted values.
    """
    coefficient = agent.separation_coefficient
    limit = rules.separation_distance
    if coefficient <= 0.0 or not neighbors or limit <= 0.0:
        return Vector2()
    pos_x = agent.position.x
    pos_y = agent.position.y
    accum_x = 0.0
    accum_y = 0.0
    for other in neighbors:
        distance = neighbor_distances.get(other.id)
        if distance is None or not 0.0 < distance < limit:
            continue
        scale = (limit - distance) / (limit * distance)
        accum_x -= (other.position.x - pos_x) * scale
        accum_y -= (other.position.y - pos_y) * scale
    return Vector2(accum_x * coefficient, accum_y * coefficient)


def alignment(agent: Agent, neighbors: List[Agent], rules: RuleConfig) -> Vector2:
    """Steer toward the mean velocity of the neighbors."""
    coefficient = agent.align_coefficient
    if coefficient <= 0.0 or not neighbors or rules.alignment_factor <= 0.0:
        return Vector2()
    sum_x = 0.0
    sum_y = 0.0
    for other in neighbors:
        sum_x += other.velocity.x
        sum_y += other.velocity.y
    inv = 1.0 / len(neighbors)
    scale = coefficient / rules.alignment_factor
    return Vector2(
        (sum_x * inv - agent.velocity.x) * scale,
        (sum_y * inv - agent.velocity.y) * scale,
    )


def _edge_push(distance: float, margin: float, max_force: float, policy: BoundaryPolicy) -> float:
    if distance >= margin:
        return 0.0
    if policy is BoundaryPolicy.FIXED:
        return max_force
    ease = 1.0 - max(0.0, distance) / margin
    return max_force * ease * ease


def boundary_containment(
    position: Vector2,
    max_speed: float,
    world: WorldConfig,
    boundary: BoundaryConfig,
) -> Vector2:
    margin = boundary.margin
    if margin <= 0.0:
        return Vector2()
    x = position.x
    y = position.y
    if margin <= x <= world.width - margin and margin <= y <= world.height - margin:
        return Vector2()

    policy = BoundaryPolicy(boundary.policy)
    if policy is BoundaryPolicy.FIXED:
        max_force = boundary.fixed_force
    else:
        max_force = max(0.0, max_speed) * boundary.force_fraction

    push_x = _edge_push(x, margin, max_force, policy) - _edge_push(world.width - x, margin, max_force, policy)
    push_y = _edge_push(y, margin, max_force, policy) - _edge_push(world.height - y, margin, max_force, policy)
    return Vector2(push_x, push_y)


def tend_to_place(position: Vector2, world: WorldConfig, place: PlaceConfig) -> Vector2:
    if not place.enabled or place.factor <= 0.0:
        return Vector2()
    center_x = world.width * 0.5
    center_y = world.height * 0.5
    offset_x = center_x - position.x
    offset_y = center_y - position.y
    radius = min(world.width, world.height) * place.radius_fraction
    if offset_x * offset_x + offset_y * offset_y <= radius * radius:
        return Vector2()
    return Vector2(offset_x / place.factor, offset_y / place.factor)


def compute_forces(
    agent: Agent,
    world: WorldConfig,
    rules: RuleConfig,
    boundary: BoundaryConfig,
    place: PlaceConfig,
) -> SteeringForces:
    neighbors = agent.neighbors
    containment = boundary_containment(agent.position, agent.max_speed, world, boundary)
    if place.enabled:
        containment += tend_to_place(agent.position, world, place)
    return SteeringForces(
        cohesion=cohesion(agent, neighbors, rules),
        separation=separation(agent, neighbors, agent.neighbor_distances, rules),
        alignment=alignment(agent, neighbors, rules),
        boundary=containment,
    )
