"""Uniform-scale index/world transform."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from volrus.coord import Coord

_I32_MAX = 2**31 - 1
_I32_MIN = -(2**31)


def _round_to_i32(value: float) -> int:
    """Round half away from zero and saturate to the 32-bit signed range.

    NaN maps to zero.
    """
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return _I32_MAX if value > 0 else _I32_MIN
    rounded = math.floor(abs(value) + 0.5)
    result = int(math.copysign(rounded, value))
    return max(_I32_MIN, min(_I32_MAX, result))


def _triple(values) -> tuple[float, float, float]:
    t = tuple(float(v) for v in values)
    if len(t) != 3:
        raise ValueError("expected three components")
    return t


@dataclass(frozen=True)
class VoxelTransform:
    """Uniform voxel size plus a world-space offset of index (0, 0, 0)."""

    voxel_size: float
    origin: tuple[float, float, float] = field(default=(0.0, 0.0, 0.0))

    def __post_init__(self) -> None:
        object.__setattr__(self, "voxel_size", float(self.voxel_size))
        object.__setattr__(self, "origin", _triple(self.origin))

    @classmethod
    def identity(cls) -> VoxelTransform:
        """Voxel size 1 with the origin at the world origin."""
        return cls(1.0)

    @classmethod
    def uniform(cls, voxel_size: float) -> VoxelTransform:
        """Uniform scale with no offset."""
        return cls(voxel_size)

    def index_to_world(self, coord: Coord) -> tuple[float, float, float]:
        """World-space position of an index-space coordinate."""
        s = self.voxel_size
        ox, oy, oz = self.origin
        return (coord.x * s + ox, coord.y * s + oy, coord.z * s + oz)

    def world_to_index(self, world) -> Coord:
        """Nearest index-space coordinate to a world-space position."""
        fx, fy, fz = self.world_to_index_f64(world)
        return Coord(_round_to_i32(fx), _round_to_i32(fy), _round_to_i32(fz))

    def world_to_index_f64(self, world) -> tuple[float, float, float]:
        """Continuous index-space position, without rounding."""
        inv = 1.0 / self.voxel_size
        wx, wy, wz = _triple(world)
        ox, oy, oz = self.origin
        return ((wx - ox) * inv, (wy - oy) * inv, (wz - oz) * inv)