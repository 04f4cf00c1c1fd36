"""Particles binned into leaf-sized buckets for spatial queries.

Each bucket covers an 8x8x8 block of voxels and holds every particle whose
position snaps to a voxel inside that block.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from volrus.affine import AffineMap
from volrus.bbox import CoordBBox
from volrus.coord import Coord
from volrus.grid import LEAF_DIM, LEAF_LOG2DIM


@dataclass
class Particle:
    """A particle with world-space position, velocity and a unique id."""

    position: tuple[float, float, float]
    velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    id: int = 0


@dataclass
class PointLeaf:
    """Bucket of particles for one tile-aligned leaf origin."""

    origin: Coord
    particles: list[Particle] = field(default_factory=list)

    def particle_count(self) -> int:
        return len(self.particles)

    def __iter__(self) -> Iterator[Particle]:
        return iter(self.particles)

    def __len__(self) -> int:
        return len(self.particles)


def _dist2(a, b) -> float:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    dz = a[2] - b[2]
    return dx * dx + dy * dy + dz * dz


class PointDataGrid:
    """Sparse grid of particles binned by leaf."""

    def __init__(self, voxel_size: float) -> None:
        self._leaves: dict[Coord, PointLeaf] = {}
        self._voxel_size = float(voxel_size)
        self._transform = AffineMap.from_uniform_scale(voxel_size)

    @classmethod
    def with_affine(cls, affine: AffineMap) -> PointDataGrid:
        """Empty point grid using a full affine transform."""
        grid = cls(affine.voxel_size)
        grid._transform = affine
        return grid

    @property
    def voxel_size(self) -> float:
        return self._voxel_size

    @property
    def affine_map(self) -> AffineMap:
        return self._transform

    def _voxel_coord_for(self, pos) -> Coord:
        return self._transform.world_to_index(pos)

    def _leaf_origin_for(self, pos) -> Coord:
        return self._voxel_coord_for(pos).aligned(LEAF_LOG2DIM)

    def insert(self, particle: Particle) -> None:
        """Add a particle to the bucket its position maps to."""
        origin = self._leaf_origin_for(particle.position)
        leaf = self._leaves.get(origin)
        if leaf is None:
            leaf = PointLeaf(origin)
            self._leaves[origin] = leaf
        leaf.particles.append(particle)

    def insert_batch(self, particles: Iterable[Particle]) -> None:
        for p in particles:
            self.insert(p)

    def remove(self, particle_id: int) -> Particle | None:
        """Remove the first particle with the given id and return it, or None."""
        for leaf in self._leaves.values():
            for idx, p in enumerate(leaf.particles):
                if p.id == particle_id:
                    last = leaf.particles.pop()
                    if idx < len(leaf.particles):
                        leaf.particles[idx] = last
                    return p
        return None

    def particle_count(self) -> int:
        return sum(len(leaf.particles) for leaf in self._leaves.values())

    def leaf_count(self) -> int:
        return len(self._leaves)

    def leaf_origins(self) -> set[Coord]:
        """Origins of all occupied buckets."""
        return set(self._leaves)

    def leaves(self) -> Iterator[PointLeaf]:
        yield from self._leaves.values()

    def particles_in_voxel(self, coord: Coord) -> list[Particle]:
        """Particles whose position snaps to the given voxel."""
        leaf = self._leaves.get(coord.aligned(LEAF_LOG2DIM))
        if leaf is None:
            return []
        return [p for p in leaf.particles if self._voxel_coord_for(p.position) == coord]

    def particles_in_radius(self, center, radius: float) -> list[Particle]:
        """Particles within ``radius`` (world units, inclusive) of ``center``."""
        r2 = radius * radius
        r_idx = int(math.ceil(radius / self._voxel_size)) + LEAF_DIM
        c = self._transform.world_to_index(center)
        lo = Coord(c.x - r_idx, c.y - r_idx, c.z - r_idx).aligned(LEAF_LOG2DIM)
        hi = Coord(c.x + r_idx, c.y + r_idx, c.z + r_idx).aligned(LEAF_LOG2DIM)
        result: list[Particle] = []
        for ox in range(lo.x, hi.x + 1, LEAF_DIM):
            for oy in range(lo.y, hi.y + 1, LEAF_DIM):
                for oz in range(lo.z, hi.z + 1, LEAF_DIM):
                    leaf = self._leaves.get(Coord(ox, oy, oz))
                    if leaf is None:
                        continue
                    result.extend(
                        p for p in leaf.particles if _dist2(p.position, center) <= r2
                    )
        return result

    def nearest_particle(self, pos) -> Particle | None:
        """Closest particle to a world-space position, or None if the grid is empty."""
        best: Particle | None = None
        best_d2 = math.inf
        for p in self.iter_particles():
            d2 = _dist2(p.position, pos)
            if best is None or d2 < best_d2:
                best, best_d2 = p, d2
        return best

    def iter_particles(self) -> Iterator[Particle]:
        """Every particle, bucket by bucket. Particles may be modified in place."""
        for leaf in self._leaves.values():
            yield from leaf.particles

    def active_bbox(self) -> CoordBBox | None:
        """Index-space bounds of all occupied buckets, or None if there are none."""
        if not self._leaves:
            return None
        bbox = CoordBBox.empty()
        for o in self._leaves:
            bbox.expand(o)
            bbox.expand(Coord(o.x + LEAF_DIM - 1, o.y + LEAF_DIM - 1, o.z + LEAF_DIM - 1))
        return bbox

    def rebin(self) -> None:
        """Redistribute all particles according to their current positions."""
        particles = list(self.iter_particles())
        self._leaves.clear()
        for p in particles:
            self.insert(p)