"""Axis-aligned bounding boxes in index space."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Iterator

from volrus.coord import Coord

I32_MAX = 2**31 - 1
I32_MIN = -(2**31)


@dataclass
class CoordBBox:
    """Inclusive integer bounding box; empty when ``min > max`` on any axis."""

    min: Coord
    max: Coord

    @classmethod
    def from_origin_and_dim(cls, origin: Coord, dim: Coord) -> CoordBBox:
        """Box spanning ``[origin, origin + dim - 1]``.

        Raises ValueError if any dimension is not positive.
        """
        if dim.x <= 0 or dim.y <= 0 or dim.z <= 0:
            raise ValueError("dim must be positive")
        return cls(origin, Coord(origin.x + dim.x - 1, origin.y + dim.y - 1, origin.z + dim.z - 1))

    @classmethod
    def empty(cls) -> CoordBBox:
        """An empty box that any expand() turns into a single voxel."""
        return cls(Coord(I32_MAX, I32_MAX, I32_MAX), Coord(I32_MIN, I32_MIN, I32_MIN))

    def is_empty(self) -> bool:
        return self.min.x > self.max.x or self.min.y > self.max.y or self.min.z > self.max.z

    def dim(self) -> Coord:
        """Extents of the box, or the origin if empty."""
        if self.is_empty():
            return Coord.origin()
        return Coord(
            self.max.x - self.min.x + 1,
            self.max.y - self.min.y + 1,
            self.max.z - self.min.z + 1,
        )

    def volume(self) -> int:
        """Number of voxels in the box."""
        if self.is_empty():
            return 0
        d = self.dim()
        return d.x * d.y * d.z

    def contains(self, c: Coord) -> bool:
        return (
            self.min.x <= c.x <= self.max.x
            and self.min.y <= c.y <= self.max.y
            and self.min.z <= c.z <= self.max.z
        )

    def __contains__(self, c: Coord) -> bool:
        return self.contains(c)

    def expand(self, c: Coord) -> None:
        """Grow the box to include ``c``."""
        self.min = self.min.min_comp(c)
        self.max = self.max.max_comp(c)

    def intersects(self, other: CoordBBox) -> bool:
        if self.is_empty() or other.is_empty():
            return False
        return (
            self.min.x <= other.max.x
            and self.max.x >= other.min.x
            and self.min.y <= other.max.y
            and self.max.y >= other.min.y
            and self.min.z <= other.max.z
            and self.max.z >= other.min.z
        )

    def intersection(self, other: CoordBBox) -> CoordBBox | None:
        """Overlap of two boxes, or None if they are disjoint."""
        result = CoordBBox(self.min.max_comp(other.min), self.max.min_comp(other.max))
        return None if result.is_empty() else result

    def translate(self, offset: Coord) -> None:
        """Shift the box in place by ``offset``."""
        self.min = self.min + offset
        self.max = self.max + offset

    def __iter__(self) -> Iterator[Coord]:
        """Yield every coordinate, x slowest and z fastest."""
        if self.is_empty():
            return
        for x, y, z in itertools.product(
            range(self.min.x, self.max.x + 1),
            range(self.min.y, self.max.y + 1),
            range(self.min.z, self.max.z + 1),
        ):
            yield Coord(x, y, z)

    def __str__(self) -> str:
        return f"[{self.min} .. {self.max}]"