"""Signed integer voxel coordinates."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True, slots=True)
class Coord:
    """Integer coordinate in index space.

    Ordering is lexicographic on (x, y, z).
    """

    x: int
    y: int
    z: int

    @classmethod
    def origin(cls) -> Coord:
        """The coordinate (0, 0, 0)."""
        return cls(0, 0, 0)

    def min_comp(self, other: Coord) -> Coord:
        """Component-wise minimum."""
        return Coord(min(self.x, other.x), min(self.y, other.y), min(self.z, other.z))

    def max_comp(self, other: Coord) -> Coord:
        """Component-wise maximum."""
        return Coord(max(self.x, other.x), max(self.y, other.y), max(self.z, other.z))

    def linf_distance(self, other: Coord) -> int:
        """Chebyshev (L-infinity) distance."""
        return max(abs(self.x - other.x), abs(self.y - other.y), abs(self.z - other.z))

    def l1_distance(self, other: Coord) -> int:
        """Manhattan (L1) distance."""
        return abs(self.x - other.x) + abs(self.y - other.y) + abs(self.z - other.z)

    def aligned(self, log2dim: int) -> Coord:
        """Round each component down to a multiple of ``2**log2dim``."""
        mask = ~((1 << log2dim) - 1)
        return Coord(self.x & mask, self.y & mask, self.z & mask)

    def offset_in_tile(self, log2dim: int) -> int:
        """Linear offset within a tile of side ``2**log2dim``, in ZYX order."""
        mask = (1 << log2dim) - 1
        lx = self.x & mask
        ly = self.y & mask
        lz = self.z & mask
        return (lx << (2 * log2dim)) | (ly << log2dim) | lz

    def to_f64(self) -> tuple[float, float, float]:
        """The coordinate as a tuple of floats."""
        return (float(self.x), float(self.y), float(self.z))

    def __add__(self, other: Coord) -> Coord:
        if not isinstance(other, Coord):
            return NotImplemented
        return Coord(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Coord) -> Coord:
        if not isinstance(other, Coord):
            return NotImplemented
        return Coord(self.x - other.x, self.y - other.y, self.z - other.z)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"