from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Tuple

from pygame.math import Vector2

if TYPE_CHECKING:
    from .agent import Agent

# (agent_id, x, y) captured when the agent was inserted.
_Entry = Tuple[int, float, float]


class SpatialGrid:
    """Uniform bucket grid over the plane, rebuilt from scratch every tick.

    With `cell_size` at least as large as a query radius, every point within
    that radius lies in the 3x3 block of cells around the query cell, so
    queries never miss a neighbor.
    """

    def __init__(self, cell_size: float) -> None:
        if not cell_size > 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List[_Entry]] = {}
        self._active_keys: List[Tuple[int, int]] = []
        self._size = 0

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def __len__(self) -> int:
        return self._size

    def build_neighbor_cell_offsets(self, radius: float) -> List[Tuple[int, int]]:
        cell_range = max(1, int(math.ceil(radius / self._cell_size)))
        return [(dx, dy) for dx in range(-cell_range, cell_range + 1) for dy in range(-cell_range, cell_range + 1)]

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()
        self._size = 0

    def insert(self, agent_id: int, position: Vector2) -> None:
        x = position.x
        y = position.y
        key = (int(x // self._cell_size), int(y // self._cell_size))
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append((agent_id, x, y))
        self._size += 1

    def rebuild(self, agents: Iterable["Agent"]) -> None:
        self.clear()
        for agent in agents:
            self.insert(agent.id, agent.position)

    def neighbors_within(self, position: Vector2, radius: float) -> "NeighborQuery":
        return NeighborQuery(self, position.x, position.y, radius)

    def collect_neighbors(
        self,
        position: Vector2,
        cell_offsets: List[Tuple[int, int]],
        radius_sq: float,
        out_ids: List[int],
        out_offsets: List[Vector2],
        out_dist_sq: List[float],
        exclude_id: int | None = None,
    ) -> None:
        """
        Fill the provided buffers with neighbor ids, their offsets from `position`
        and squared distances, reusing existing Vector2 instances in `out_offsets`.
        """

        out_ids.clear()
        count = 0
        base_x, base_y = self._cell_key(position)
        pos_x = position.x
        pos_y = position.y
        cells = self._cells
        append_id = out_ids.append

        for dx, dy in cell_offsets:
            bucket = cells.get((base_x + dx, base_y + dy))
            if not bucket:
                continue
            for agent_id, x, y in bucket:
                if agent_id == exclude_id:
                    continue
                offset_x = x - pos_x
                offset_y = y - pos_y
                dist_sq = offset_x * offset_x + offset_y * offset_y
                if dist_sq > radius_sq:
                    continue
                append_id(agent_id)
                if count < len(out_offsets):
                    out_offsets[count].update(offset_x, offset_y)
                else:
                    out_offsets.append(Vector2(offset_x, offset_y))
                if count < len(out_dist_sq):
                    out_dist_sq[count] = dist_sq
                else:
                    out_dist_sq.append(dist_sq)
                count += 1

        del out_offsets[count:]
        del out_dist_sq[count:]

    def occupied_cells(self) -> int:
        return len(self._active_keys)

    def max_cell_occupancy(self) -> int:
        cells = self._cells
        return max((len(cells[key]) for key in self._active_keys), default=0)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(position.x // self._cell_size), int(position.y // self._cell_size))


class NeighborQuery:
    """Lazy result of `SpatialGrid.neighbors_within`; iterating again re-runs the scan."""

    __slots__ = ("_grid", "_x", "_y", "_radius")

    def __init__(self, grid: SpatialGrid, x: float, y: float, radius: float) -> None:
        self._grid = grid
        self._x = x
        self._y = y
        self._radius = radius

    def __iter__(self) -> Iterator[int]:
        grid = self._grid
        cell_size = grid._cell_size
        base_x = int(self._x // cell_size)
        base_y = int(self._y // cell_size)
        cell_range = max(1, int(math.ceil(self._radius / cell_size)))
        radius_sq = self._radius * self._radius
        cells = grid._cells
        for dx in range(-cell_range, cell_range + 1):
            for dy in range(-cell_range, cell_range + 1):
                bucket = cells.get((base_x + dx, base_y + dy))
                if not bucket:
                    continue
                for agent_id, x, y in bucket:
                    offset_x = x - self._x
                    offset_y = y - self._y
                    if offset_x * offset_x + offset_y * offset_y <= radius_sq:
                        yield agent_id
