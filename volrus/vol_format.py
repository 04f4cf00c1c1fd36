"""Reader and writer for the compact ``.vol`` binary grid format.

Layout (little-endian): a 32-byte header (magic ``VOLR``, version, grid class,
voxel size, background, leaf count, 4 reserved bytes), then per leaf its origin
(3 x i32), activity mask (8 x u64) and dense values (512 x f32).
"""

from __future__ import annotations

import os
import struct
from typing import BinaryIO

from volrus.coord import Coord
from volrus.grid import LEAF_SIZE, MASK_WORDS, Grid, GridClass

MAGIC = b"VOLR"
VERSION = 1

_HEADER = struct.Struct("<4sIIdfI4x")
_LEAF = struct.Struct(f"<3i{MASK_WORDS}Q{LEAF_SIZE}f")

HEADER_SIZE = _HEADER.size


class VolFormatError(ValueError):
    """Raised when data is not a valid ``.vol`` stream."""


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            raise VolFormatError("unexpected end of .vol data")
        buf += chunk
    return bytes(buf)


def write_vol(grid: Grid, stream: BinaryIO) -> None:
    """Write a grid to a binary stream."""
    stream.write(
        _HEADER.pack(
            MAGIC,
            VERSION,
            int(grid.grid_class),
            grid.transform.voxel_size,
            grid.background,
            grid.leaf_count(),
        )
    )
    for leaf in grid.leaves():
        o = leaf.origin
        stream.write(_LEAF.pack(o.x, o.y, o.z, *leaf.active_mask, *leaf.values))


def read_vol(stream: BinaryIO) -> Grid:
    """Read a grid from a binary stream.

    Raises VolFormatError on bad magic, version, grid class or truncated data.
    """
    magic, version, class_code, voxel_size, background, leaf_count = _HEADER.unpack(
        _read_exact(stream, HEADER_SIZE)
    )
    if magic != MAGIC:
        raise VolFormatError("not a .vol file (bad magic)")
    if version != VERSION:
        raise VolFormatError(f"unsupported .vol version: {version}")
    try:
        grid_class = GridClass(class_code)
    except ValueError:
        raise VolFormatError(f"unknown grid class: {class_code}") from None

    grid = Grid(background, voxel_size)
    grid.grid_class = grid_class

    for _ in range(leaf_count):
        fields = _LEAF.unpack(_read_exact(stream, _LEAF.size))
        origin = Coord(*fields[:3])
        mask = fields[3 : 3 + MASK_WORDS]
        values = fields[3 + MASK_WORDS :]
        grid.set(origin, values[0])
        leaf = grid.leaf(origin)
        leaf.values[:] = values
        leaf.active_mask[:] = mask
    return grid


def save_vol(grid: Grid, path: str | os.PathLike) -> None:
    """Write a grid to a ``.vol`` file."""
    with open(path, "wb") as fh:
        write_vol(grid, fh)


def load_vol(path: str | os.PathLike) -> Grid:
    """Read a grid from a ``.vol`` file."""
    with open(path, "rb") as fh:
        return read_vol(fh)