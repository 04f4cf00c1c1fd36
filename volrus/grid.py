"""Sparse volume grids: leaf storage, index/world transforms and metadata."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterator

from volrus.affine import AffineMap
from volrus.bbox import CoordBBox
from volrus.coord import Coord
from volrus.transform import VoxelTransform

LEAF_LOG2DIM = 3
LEAF_DIM = 1 << LEAF_LOG2DIM
LEAF_SIZE = LEAF_DIM**3
MASK_WORDS = LEAF_SIZE // 64
VALUE_BYTES = 4
_ORIGIN_BYTES = 12


def _to_f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


class GridClass(IntEnum):
    """Semantic role of a grid."""

    UNKNOWN = 0
    LEVEL_SET = 1
    FOG_VOLUME = 2


@dataclass
class Leaf:
    """Dense 8x8x8 block of values with a 512-bit activity mask.

    ``active_mask`` holds eight 64-bit words; bit ``i`` marks voxel offset ``i``.
    """

    origin: Coord
    values: list[float]
    active_mask: list[int] = field(default_factory=lambda: [0] * MASK_WORDS)

    def __post_init__(self) -> None:
        if len(self.values) != LEAF_SIZE:
            raise ValueError(f"a leaf holds exactly {LEAF_SIZE} values")
        if len(self.active_mask) != MASK_WORDS:
            raise ValueError(f"a leaf mask holds exactly {MASK_WORDS} words")

    @staticmethod
    def _check(offset: int) -> None:
        if not 0 <= offset < LEAF_SIZE:
            raise IndexError(f"leaf offset out of range: {offset}")

    def get(self, offset: int) -> float:
        """Value stored at a linear offset, active or not."""
        self._check(offset)
        return self.values[offset]

    def set(self, offset: int, value: float) -> None:
        """Store a value and mark the voxel active."""
        self._check(offset)
        self.values[offset] = value
        self.active_mask[offset >> 6] |= 1 << (offset & 63)

    def is_active(self, offset: int) -> bool:
        self._check(offset)
        return bool((self.active_mask[offset >> 6] >> (offset & 63)) & 1)

    def active_count(self) -> int:
        """Number of active voxels in this leaf."""
        return sum(word.bit_count() for word in self.active_mask)

    def iter_active(self) -> Iterator[tuple[Coord, float]]:
        """Yield ``(coord, value)`` for every active voxel, in offset order."""
        ox, oy, oz = self.origin.x, self.origin.y, self.origin.z
        for word_idx, word in enumerate(self.active_mask):
            while word:
                low = word & -word
                word ^= low
                off = word_idx * 64 + low.bit_length() - 1
                coord = Coord(ox + (off >> 6), oy + ((off >> 3) & 7), oz + (off & 7))
                yield coord, self.values[off]


class Grid:
    """Sparse voxel volume with an index-to-world transform, name, class and metadata."""

    def __init__(self, background: float, voxel_size: float) -> None:
        self._background = background
        self._leaves: dict[Coord, Leaf] = {}
        self._affine = AffineMap.from_uniform_scale(voxel_size)
        self._transform = VoxelTransform.uniform(voxel_size)
        self.name = ""
        self.grid_class = GridClass.UNKNOWN
        self.metadata: dict[str, Any] = {}

    @classmethod
    def with_affine(cls, background: float, affine: AffineMap) -> Grid:
        """Empty grid using a full affine transform."""
        grid = cls(background, affine.voxel_size)
        grid.affine_map = affine
        return grid

    @classmethod
    def level_set(cls, voxel_size: float, half_width: float) -> Grid:
        """Empty signed-distance grid whose background is the band half-width in world units."""
        grid = cls(_to_f32(half_width * voxel_size), voxel_size)
        grid.name = "sdf"
        grid.grid_class = GridClass.LEVEL_SET
        return grid

    @property
    def background(self) -> float:
        """Value returned for voxels that were never set."""
        return self._background

    @property
    def transform(self) -> VoxelTransform:
        """Uniform-scale transform; assigning it also replaces the affine map."""
        return self._transform

    @transform.setter
    def transform(self, value: VoxelTransform) -> None:
        self._affine = AffineMap.from_voxel_transform(value)
        self._transform = value

    @property
    def affine_map(self) -> AffineMap:
        """Full affine transform; assigning it resets the uniform transform to its voxel size."""
        return self._affine

    @affine_map.setter
    def affine_map(self, value: AffineMap) -> None:
        self._transform = VoxelTransform.uniform(value.voxel_size)
        self._affine = value

    def get(self, coord: Coord) -> float:
        """Value at an index-space coordinate."""
        leaf = self.leaf(coord)
        if leaf is None:
            return self._background
        return leaf.get(coord.offset_in_tile(LEAF_LOG2DIM))

    def set(self, coord: Coord, value: float) -> None:
        """Store a value at an index-space coordinate and mark it active."""
        origin = coord.aligned(LEAF_LOG2DIM)
        leaf = self._leaves.get(origin)
        if leaf is None:
            leaf = Leaf(origin, [self._background] * LEAF_SIZE)
            self._leaves[origin] = leaf
        leaf.set(coord.offset_in_tile(LEAF_LOG2DIM), value)

    def get_world(self, pos) -> float:
        """Value at the voxel nearest to a world-space position."""
        return self.get(self._affine.world_to_index(pos))

    def set_world(self, pos, value: float) -> None:
        """Store a value at the voxel nearest to a world-space position."""
        self.set(self._affine.world_to_index(pos), value)

    def is_active(self, coord: Coord) -> bool:
        leaf = self.leaf(coord)
        return leaf is not None and leaf.is_active(coord.offset_in_tile(LEAF_LOG2DIM))

    def leaf(self, coord: Coord) -> Leaf | None:
        """The leaf containing ``coord``, or None if none is allocated."""
        return self._leaves.get(coord.aligned(LEAF_LOG2DIM))

    def leaves(self) -> Iterator[Leaf]:
        """Iterate over allocated leaves."""
        yield from self._leaves.values()

    def iter_active(self) -> Iterator[tuple[Coord, float]]:
        """Yield ``(coord, value)`` for every active voxel."""
        for leaf in self._leaves.values():
            yield from leaf.iter_active()

    def leaf_count(self) -> int:
        return len(self._leaves)

    def active_voxel_count(self) -> int:
        return sum(leaf.active_count() for leaf in self._leaves.values())

    def eval_min_max(self) -> tuple[float, float] | None:
        """Smallest and largest active value, or None if nothing is active."""
        it = self.iter_active()
        first = next(it, None)
        if first is None:
            return None
        lo = hi = first[1]
        for _, value in it:
            if value < lo:
                lo = value
            if value > hi:
                hi = value
        return lo, hi

    def active_bbox(self) -> CoordBBox | None:
        """Index-space bounds of the active voxels, or None if nothing is active."""
        bbox = CoordBBox.empty()
        found = False
        for coord, _ in self.iter_active():
            bbox.expand(coord)
            found = True
        return bbox if found else None

    def mem_bytes(self) -> int:
        """Estimated memory use: leaf values, masks and origins plus the grid object."""
        per_leaf = LEAF_SIZE * VALUE_BYTES + MASK_WORDS * 8 + _ORIGIN_BYTES
        return sys.getsizeof(self) + self.leaf_count() * per_leaf