"""Read-only grid linearized into one contiguous byte buffer.

The buffer holds a header followed by leaves sorted by origin, so that a
voxel lookup is a binary search over leaf origins.
"""

from __future__ import annotations

import struct
from bisect import bisect_left
from typing import Iterator

from volrus.affine import AffineMap
from volrus.coord import Coord
from volrus.grid import LEAF_LOG2DIM, Grid, GridClass
from volrus.nanolayout import (
    HEADER_SIZE,
    LEAF_SIZE,
    NANO_MAGIC,
    NANO_VERSION,
    NanoFormatError,
    NanoHeader,
    NanoLeaf,
    cmp_origin,
)

_ORIGIN_STRUCT = struct.Struct("<3i")


def _class_code(grid_class: GridClass) -> int:
    return int(grid_class)


def _class_from_code(code: int) -> GridClass:
    try:
        return GridClass(code)
    except ValueError:
        return GridClass.UNKNOWN


def _leaf_voxels(leaf: NanoLeaf) -> Iterator[tuple[Coord, float]]:
    ox, oy, oz = leaf.origin
    for word_idx, word in enumerate(leaf.active_mask):
        while word:
            low = word & -word
            word ^= low
            off = word_idx * 64 + low.bit_length() - 1
            coord = Coord(ox + (off >> 6), oy + ((off >> 3) & 7), oz + (off & 7))
            yield coord, leaf.values[off]


class NanoGrid:
    """Validated, immutable linearized grid buffer."""

    def __init__(self, data: bytes) -> None:
        data = bytes(data)
        header = NanoHeader.unpack(data)
        if header.magic != NANO_MAGIC:
            raise NanoFormatError(
                f"Invalid magic: expected {NANO_MAGIC!r}, got {header.magic!r}"
            )
        if header.version != NANO_VERSION:
            raise NanoFormatError(
                f"Unsupported version: expected {NANO_VERSION}, got {header.version}"
            )
        expected = HEADER_SIZE + LEAF_SIZE * header.leaf_count
        if len(data) < expected:
            raise NanoFormatError(
                f"Buffer too small: expected {expected} bytes, got {len(data)}"
            )
        origins = [
            _ORIGIN_STRUCT.unpack_from(data, HEADER_SIZE + i * LEAF_SIZE)
            for i in range(header.leaf_count)
        ]
        for i, (prev, curr) in enumerate(zip(origins, origins[1:]), start=1):
            if cmp_origin(prev, curr) >= 0:
                raise NanoFormatError(
                    f"Leaves not sorted: leaf {i - 1} origin {list(prev)} >= "
                    f"leaf {i} origin {list(curr)}"
                )
        self._data = data
        self._header = header
        self._origins = origins
        self._leaf_cache: dict[int, NanoLeaf] = {}

    @classmethod
    def from_grid(cls, grid: Grid) -> NanoGrid:
        """Linearize a grid, sorting its leaves by origin."""
        leaves = sorted(
            (
                NanoLeaf(
                    origin=(leaf.origin.x, leaf.origin.y, leaf.origin.z),
                    active_mask=tuple(leaf.active_mask),
                    values=tuple(leaf.values),
                )
                for leaf in grid.leaves()
            ),
            key=lambda nl: nl.origin,
        )

        bbox = grid.active_bbox()
        if bbox is None:
            bbox_min = bbox_max = (0, 0, 0)
        else:
            bbox_min = (bbox.min.x, bbox.min.y, bbox.min.z)
            bbox_max = (bbox.max.x, bbox.max.y, bbox.max.z)

        affine = grid.affine_map
        header = NanoHeader(
            grid_class=_class_code(grid.grid_class),
            voxel_size=affine.voxel_size,
            background=grid.background,
            leaf_count=len(leaves),
            bbox_min=bbox_min,
            bbox_max=bbox_max,
            affine_mat=affine.forward,
            affine_inv=affine.inverse,
        )
        data = header.pack() + b"".join(nl.pack() for nl in leaves)
        return cls(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> NanoGrid:
        """Validate and wrap a raw buffer.

        Raises NanoFormatError if the buffer is short, has a bad magic or
        version, or its leaves are not strictly sorted by origin.
        """
        return cls(data)

    def header(self) -> NanoHeader:
        return self._header

    def leaf(self, index: int) -> NanoLeaf:
        """Leaf at a position in the sorted leaf array.

        Raises IndexError if the index is out of range.
        """
        if not 0 <= index < len(self._origins):
            raise IndexError("leaf index out of bounds")
        leaf = self._leaf_cache.get(index)
        if leaf is None:
            leaf = NanoLeaf.unpack(self._data, HEADER_SIZE + index * LEAF_SIZE)
            self._leaf_cache[index] = leaf
        return leaf

    def leaf_count(self) -> int:
        return self._header.leaf_count

    def as_bytes(self) -> bytes:
        """The raw buffer."""
        return self._data

    def to_grid(self) -> Grid:
        """Rebuild a mutable grid holding the same active voxels."""
        hdr = self._header
        affine = AffineMap.from_matrices(hdr.affine_mat, hdr.affine_inv, hdr.voxel_size)
        grid = Grid.with_affine(hdr.background, affine)
        grid.grid_class = _class_from_code(hdr.grid_class)
        for coord, value in self.iter_active():
            grid.set(coord, value)
        return grid

    def _find_leaf(self, coord: Coord) -> NanoLeaf | None:
        o = coord.aligned(LEAF_LOG2DIM)
        target = (o.x, o.y, o.z)
        idx = bisect_left(self._origins, target)
        if idx < len(self._origins) and self._origins[idx] == target:
            return self.leaf(idx)
        return None

    def get(self, coord: Coord) -> float:
        """Value at a coordinate, or the background if no leaf covers it."""
        leaf = self._find_leaf(coord)
        if leaf is None:
            return self._header.background
        return leaf.values[coord.offset_in_tile(LEAF_LOG2DIM)]

    def is_active(self, coord: Coord) -> bool:
        leaf = self._find_leaf(coord)
        if leaf is None:
            return False
        off = coord.offset_in_tile(LEAF_LOG2DIM)
        return bool((leaf.active_mask[off >> 6] >> (off & 63)) & 1)

    def iter_active(self) -> Iterator[tuple[Coord, float]]:
        """Yield ``(coord, value)`` for every active voxel, leaf by leaf."""
        for index in range(self.leaf_count()):
            yield from _leaf_voxels(self.leaf(index))