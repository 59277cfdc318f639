from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

from pygame.math import Vector2

if TYPE_CHECKING:
    from .agent import Agent


class SpatialGrid:
    """Uniform bucket grid over agent positions.

    Buckets remember each agent's index in the population so callers can
    restore population order after a query.
    """

    def __init__(self, cell_size: float) -> None:
        if cell_size <= 0.0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List[Tuple[int, "Agent"]]] = {}
        self._active_keys: List[Tuple[int, int]] = []

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def insert(self, index: int, agent: "Agent") -> None:
        key = self._cell_key(agent.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append((index, agent))

    def rebuild(self, agents: Sequence["Agent"]) -> None:
        self.clear()
        for index, agent in enumerate(agents):
            self.insert(index, agent)

    def collect_candidates(self, position: Vector2, radius: float, out: List[Tuple[int, "Agent"]]) -> None:
        """
        Fill ``out`` with every (index, agent) whose cell overlaps the square around ``position``.

        Candidates are sorted by population index; no distance filtering is done here.
        """

        out.clear()
        if radius < 0.0 or not math.isfinite(radius):
            return
        base_x, base_y = self._cell_key(position)
        cell_range = int(math.ceil(radius / self._cell_size))
        cells = self._cells
        extend = out.extend
        span = 2 * cell_range + 1
        if span * span >= len(self._active_keys):
            # Query square covers more cells than are occupied; scan occupied buckets instead.
            for key in self._active_keys:
                extend(cells[key])
            out.sort(key=_index_key)
            return
        for dx in range(-cell_range, cell_range + 1):
            for dy in range(-cell_range, cell_range + 1):
                bucket = cells.get((base_x + dx, base_y + dy))
                if bucket:
                    extend(bucket)
        out.sort(key=_index_key)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(math.floor(position.x / self._cell_size)), int(math.floor(position.y / self._cell_size)))


def _index_key(entry: Tuple[int, "Agent"]) -> int:
    return entry[0]
