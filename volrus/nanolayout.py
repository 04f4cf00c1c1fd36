"""Binary layout of the linearized read-only grid buffer.

The buffer is ``[header][leaf 0][leaf 1]...`` with all fields little-endian
and laid out with natural alignment.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

NANO_MAGIC = b"NANO"
NANO_VERSION = 1

LEAF_VOXELS = 512
MASK_WORDS = 8

_HEADER_STRUCT = struct.Struct("<4sII4xdfI3i3i16d16d4x4x")
_LEAF_STRUCT = struct.Struct(f"<3i4x{MASK_WORDS}Q{LEAF_VOXELS}f")

HEADER_SIZE = _HEADER_STRUCT.size
LEAF_SIZE = _LEAF_STRUCT.size

Matrix4 = tuple[tuple[float, float, float, float], ...]

_IDENTITY: Matrix4 = tuple(
    tuple(1.0 if i == j else 0.0 for j in range(4)) for i in range(4)
)


class NanoFormatError(ValueError):
    """Raised when a buffer does not hold a valid linearized grid."""


def _matrix(rows) -> Matrix4:
    mat = tuple(tuple(float(v) for v in row) for row in rows)
    if len(mat) != 4 or any(len(row) != 4 for row in mat):
        raise ValueError("matrix must be 4x4")
    return mat


def _triple(values) -> tuple[int, int, int]:
    t = tuple(int(v) for v in values)
    if len(t) != 3:
        raise ValueError("expected three components")
    return t


@dataclass(frozen=True)
class NanoHeader:
    """Header at the start of the buffer."""

    grid_class: int = 0
    voxel_size: float = 1.0
    background: float = 0.0
    leaf_count: int = 0
    bbox_min: tuple[int, int, int] = (0, 0, 0)
    bbox_max: tuple[int, int, int] = (0, 0, 0)
    affine_mat: Matrix4 = _IDENTITY
    affine_inv: Matrix4 = _IDENTITY
    magic: bytes = NANO_MAGIC
    version: int = NANO_VERSION

    def __post_init__(self) -> None:
        object.__setattr__(self, "bbox_min", _triple(self.bbox_min))
        object.__setattr__(self, "bbox_max", _triple(self.bbox_max))
        object.__setattr__(self, "affine_mat", _matrix(self.affine_mat))
        object.__setattr__(self, "affine_inv", _matrix(self.affine_inv))
        if len(self.magic) != 4:
            raise ValueError("magic must be 4 bytes")

    def pack(self) -> bytes:
        """Serialize to exactly HEADER_SIZE bytes."""
        return _HEADER_STRUCT.pack(
            bytes(self.magic),
            self.version,
            self.grid_class,
            self.voxel_size,
            self.background,
            self.leaf_count,
            *self.bbox_min,
            *self.bbox_max,
            *(v for row in self.affine_mat for v in row),
            *(v for row in self.affine_inv for v in row),
        )

    @classmethod
    def unpack(cls, data: bytes) -> NanoHeader:
        """Decode a header from the start of ``data``.

        Raises NanoFormatError if the buffer is too short.
        """
        if len(data) < HEADER_SIZE:
            raise NanoFormatError("Buffer too small for NanoHeader")
        fields = _HEADER_STRUCT.unpack_from(data, 0)
        magic, version, grid_class, voxel_size, background, leaf_count = fields[:6]
        bbox_min = fields[6:9]
        bbox_max = fields[9:12]
        mat = fields[12:28]
        inv = fields[28:44]
        return cls(
            grid_class=grid_class,
            voxel_size=voxel_size,
            background=background,
            leaf_count=leaf_count,
            bbox_min=bbox_min,
            bbox_max=bbox_max,
            affine_mat=tuple(mat[r * 4 : r * 4 + 4] for r in range(4)),
            affine_inv=tuple(inv[r * 4 : r * 4 + 4] for r in range(4)),
            magic=magic,
            version=version,
        )


@dataclass(frozen=True)
class NanoLeaf:
    """One 8x8x8 leaf: origin, activity mask and dense values."""

    origin: tuple[int, int, int]
    active_mask: tuple[int, ...] = field(default=(0,) * MASK_WORDS)
    values: tuple[float, ...] = field(default=(0.0,) * LEAF_VOXELS)

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin", _triple(self.origin))
        mask = tuple(int(w) for w in self.active_mask)
        if len(mask) != MASK_WORDS:
            raise ValueError(f"active_mask must have {MASK_WORDS} words")
        values = tuple(float(v) for v in self.values)
        if len(values) != LEAF_VOXELS:
            raise ValueError(f"values must have {LEAF_VOXELS} entries")
        object.__setattr__(self, "active_mask", mask)
        object.__setattr__(self, "values", values)

    def pack(self) -> bytes:
        """Serialize to exactly LEAF_SIZE bytes."""
        return _LEAF_STRUCT.pack(*self.origin, *self.active_mask, *self.values)

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> NanoLeaf:
        """Decode a leaf starting at ``offset`` in ``data``.

        Raises NanoFormatError if the buffer is too short.
        """
        if offset < 0 or len(data) < offset + LEAF_SIZE:
            raise NanoFormatError("Buffer too small for NanoLeaf")
        fields = _LEAF_STRUCT.unpack_from(data, offset)
        return cls(
            origin=fields[0:3],
            active_mask=fields[3 : 3 + MASK_WORDS],
            values=fields[3 + MASK_WORDS :],
        )


def cmp_origin(a, b) -> int:
    """Compare two origins lexicographically: negative, zero or positive."""
    ta, tb = tuple(a), tuple(b)
    return (ta > tb) - (ta < tb)