"""Full 4x4 affine maps between index space and world space."""

from __future__ import annotations

import math
from dataclasses import dataclass

from volrus.coord import Coord
from volrus.transform import VoxelTransform, _round_to_i32, _triple

Matrix4 = tuple[tuple[float, float, float, float], ...]

IDENTITY_4X4: Matrix4 = tuple(
    tuple(1.0 if i == j else 0.0 for j in range(4)) for i in range(4)
)


def _matrix(rows) -> Matrix4:
    mat = tuple(tuple(float(v) for v in row) for row in rows)
    if len(mat) != 4 or any(len(row) != 4 for row in mat):
        raise ValueError("matrix must be 4x4")
    return mat


def invert_4x4(m) -> Matrix4:
    """Inverse of a 4x4 matrix by cofactor expansion.

    Raises ValueError if the matrix is singular.
    """
    m = _matrix(m)
    s0 = m[0][0] * m[1][1] - m[1][0] * m[0][1]
    s1 = m[0][0] * m[1][2] - m[1][0] * m[0][2]
    s2 = m[0][0] * m[1][3] - m[1][0] * m[0][3]
    s3 = m[0][1] * m[1][2] - m[1][1] * m[0][2]
    s4 = m[0][1] * m[1][3] - m[1][1] * m[0][3]
    s5 = m[0][2] * m[1][3] - m[1][2] * m[0][3]

    c5 = m[2][2] * m[3][3] - m[3][2] * m[2][3]
    c4 = m[2][1] * m[3][3] - m[3][1] * m[2][3]
    c3 = m[2][1] * m[3][2] - m[3][1] * m[2][2]
    c2 = m[2][0] * m[3][3] - m[3][0] * m[2][3]
    c1 = m[2][0] * m[3][2] - m[3][0] * m[2][2]
    c0 = m[2][0] * m[3][1] - m[3][0] * m[2][1]

    det = s0 * c5 - s1 * c4 + s2 * c3 + s3 * c2 - s4 * c1 + s5 * c0
    if not abs(det) > 1e-30:
        raise ValueError("Singular matrix in invert_4x4")
    k = 1.0 / det

    return (
        (
            (m[1][1] * c5 - m[1][2] * c4 + m[1][3] * c3) * k,
            (-m[0][1] * c5 + m[0][2] * c4 - m[0][3] * c3) * k,
            (m[3][1] * s5 - m[3][2] * s4 + m[3][3] * s3) * k,
            (-m[2][1] * s5 + m[2][2] * s4 - m[2][3] * s3) * k,
        ),
        (
            (-m[1][0] * c5 + m[1][2] * c2 - m[1][3] * c1) * k,
            (m[0][0] * c5 - m[0][2] * c2 + m[0][3] * c1) * k,
            (-m[3][0] * s5 + m[3][2] * s2 - m[3][3] * s1) * k,
            (m[2][0] * s5 - m[2][2] * s2 + m[2][3] * s1) * k,
        ),
        (
            (m[1][0] * c4 - m[1][1] * c2 + m[1][3] * c0) * k,
            (-m[0][0] * c4 + m[0][1] * c2 - m[0][3] * c0) * k,
            (m[3][0] * s4 - m[3][1] * s2 + m[3][3] * s0) * k,
            (-m[2][0] * s4 + m[2][1] * s2 - m[2][3] * s0) * k,
        ),
        (
            (-m[1][0] * c3 + m[1][1] * c1 - m[1][2] * c0) * k,
            (m[0][0] * c3 - m[0][1] * c1 + m[0][2] * c0) * k,
            (-m[3][0] * s3 + m[3][1] * s1 - m[3][2] * s0) * k,
            (m[2][0] * s3 - m[2][1] * s1 + m[2][2] * s0) * k,
        ),
    )


def _apply(mat: Matrix4, x: float, y: float, z: float) -> tuple[float, float, float]:
    r0, r1, r2 = mat[0], mat[1], mat[2]
    return (
        r0[0] * x + r0[1] * y + r0[2] * z + r0[3],
        r1[0] * x + r1[1] * y + r1[2] * z + r1[3],
        r2[0] * x + r2[1] * y + r2[2] * z + r2[3],
    )


@dataclass(frozen=True)
class AffineMap:
    """Row-major forward (index to world) and inverse matrices with cached voxel size."""

    forward: Matrix4
    inverse: Matrix4
    voxel_size: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "forward", _matrix(self.forward))
        object.__setattr__(self, "inverse", _matrix(self.inverse))
        object.__setattr__(self, "voxel_size", float(self.voxel_size))

    @classmethod
    def identity(cls) -> AffineMap:
        return cls(IDENTITY_4X4, IDENTITY_4X4, 1.0)

    @classmethod
    def from_uniform_scale(cls, voxel_size: float) -> AffineMap:
        """Uniform scale with no rotation or translation."""
        s = float(voxel_size)
        inv_s = 1.0 / s
        fwd = ((s, 0.0, 0.0, 0.0), (0.0, s, 0.0, 0.0), (0.0, 0.0, s, 0.0), (0.0, 0.0, 0.0, 1.0))
        inv = (
            (inv_s, 0.0, 0.0, 0.0),
            (0.0, inv_s, 0.0, 0.0),
            (0.0, 0.0, inv_s, 0.0),
            (0.0, 0.0, 0.0, 1.0),
        )
        return cls(fwd, inv, s)

    @classmethod
    def from_voxel_transform(cls, vt: VoxelTransform) -> AffineMap:
        """Equivalent map for a uniform-scale transform with an origin offset."""
        s = vt.voxel_size
        inv_s = 1.0 / s
        tx, ty, tz = vt.origin
        fwd = ((s, 0.0, 0.0, tx), (0.0, s, 0.0, ty), (0.0, 0.0, s, tz), (0.0, 0.0, 0.0, 1.0))
        inv = (
            (inv_s, 0.0, 0.0, -tx * inv_s),
            (0.0, inv_s, 0.0, -ty * inv_s),
            (0.0, 0.0, inv_s, -tz * inv_s),
            (0.0, 0.0, 0.0, 1.0),
        )
        return cls(fwd, inv, s)

    @classmethod
    def from_scale_rotate_translate(cls, scale, rotation, translate) -> AffineMap:
        """Forward matrix ``T * R * S``; voxel size is the length of its first column."""
        scale = _triple(scale)
        translate = _triple(translate)
        rot = tuple(tuple(float(v) for v in row) for row in rotation)
        if len(rot) != 3 or any(len(row) != 3 for row in rot):
            raise ValueError("rotation must be 3x3")
        rows = [
            tuple(r * s for r, s in zip(rot_row, scale)) + (t,)
            for rot_row, t in zip(rot, translate)
        ]
        rows.append((0.0, 0.0, 0.0, 1.0))
        fwd = _matrix(rows)
        inv = invert_4x4(fwd)
        col0 = math.sqrt(fwd[0][0] ** 2 + fwd[1][0] ** 2 + fwd[2][0] ** 2)
        return cls(fwd, inv, col0)

    @classmethod
    def from_matrices(cls, mat, inv, voxel_size: float) -> AffineMap:
        """Rebuild from precomputed forward and inverse matrices."""
        return cls(mat, inv, voxel_size)

    def index_to_world(self, coord: Coord) -> tuple[float, float, float]:
        """World-space position of an index-space coordinate."""
        return _apply(self.forward, float(coord.x), float(coord.y), float(coord.z))

    def world_to_index(self, world) -> Coord:
        """Nearest index-space coordinate to a world-space position."""
        fx, fy, fz = self.world_to_index_f64(world)
        return Coord(_round_to_i32(fx), _round_to_i32(fy), _round_to_i32(fz))

    def world_to_index_f64(self, world) -> tuple[float, float, float]:
        """Continuous index-space position, without rounding."""
        return _apply(self.inverse, *_triple(world))