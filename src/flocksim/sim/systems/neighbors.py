from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from ..core.agent import Agent
from ..core.spatial_grid import SpatialGrid
from ..utils.math2d import signed_angle_xy


def in_field_of_view(agent: Agent, offset_x: float, offset_y: float) -> bool:
    left = agent.fov_left
    right = agent.fov_right
    if left >= math.pi and right >= math.pi:
        return True
    velocity = agent.velocity
    angle = signed_angle_xy(velocity.x, velocity.y, offset_x, offset_y)
    return -left < angle < right


def find_neighbors(
    agent: Agent,
    population: Sequence[Agent],
    grid: SpatialGrid | None = None,
    candidates: List[Tuple[int, Agent]] | None = None,
) -> int:
    """
    Recompute ``agent.neighbors`` and ``agent.neighbor_distances`` against ``population``.

    Every agent within ``detection_range`` (inclusive) is distance-cached; only those
    also inside the field of view become neighbors. With a grid, candidates are
    pre-filtered by cell and visited in population order, so the result matches a
    full scan exactly. Returns the number of distance checks performed.
    """

    neighbors = agent.neighbors
    distances = agent.neighbor_distances
    neighbors.clear()
    distances.clear()
    detection_range = agent.detection_range
    pos_x = agent.position.x
    pos_y = agent.position.y

    if grid is not None:
        if candidates is None:
            candidates = []
        grid.collect_candidates(agent.position, detection_range, candidates)
        others = [other for _, other in candidates]
    else:
        others = population

    checks = 0
    for other in others:
        if other is agent:
            continue
        checks += 1
        offset_x = other.position.x - pos_x
        offset_y = other.position.y - pos_y
        distance = math.hypot(offset_x, offset_y)
        if distance > detection_range:
            continue
        distances[other.id] = distance
        if in_field_of_view(agent, offset_x, offset_y):
            neighbors.append(other)
    return checks
