# volrus

Sparse volumetric grids for Python. Values are stored in tile-aligned 8×8×8 leaves.

## Modules

- `volrus.coord`: `Coord` is a frozen, ordered integer coordinate. It supports
  `+` and `-`, component-wise `min_comp` / `max_comp`, and `l1_distance` /
  `linf_distance`. `aligned(log2dim)` rounds down to a tile and
  `offset_in_tile(log2dim)` gives the offset in ZYX order.
- `volrus.bbox`: `CoordBBox` is an inclusive index-space box. It is empty when
  `min > max` on any axis. It has `from_origin_and_dim`, `empty`, `dim`,
  `volume`, `contains` (also `in`), `expand`, `intersects`, `intersection`
  and `translate`. Iterating over it yields every coordinate, with x slowest
  and z fastest.
- `volrus.transform`: `VoxelTransform` is a uniform voxel size plus a
  world-space origin. It provides `index_to_world`, `world_to_index`
  (rounds half away from zero) and `world_to_index_f64`.
- `volrus.affine`: `AffineMap` holds a row-major 4×4 forward matrix and its
  inverse, plus a cached voxel size. The constructors are `identity`,
  `from_uniform_scale`, `from_voxel_transform`, `from_scale_rotate_translate`
  (forward = T·R·S) and `from_matrices`. The module also has `invert_4x4`,
  which raises `ValueError` on a singular matrix.
- `volrus.grid`: `Grid` is a sparse grid of float values. It has these members:
  - a `background` value, a `name`, a `grid_class` (`GridClass.UNKNOWN`,
    `LEVEL_SET` or `FOG_VOLUME`) and a `metadata` dict;
  - index-space `get` / `set` and world-space `get_world` / `set_world`;
  - `is_active`, `leaf`, `leaves`, `iter_active`, `leaf_count` and
    `active_voxel_count`;
  - `eval_min_max` and `active_bbox`, which return `None` when nothing is
    active, and `mem_bytes`, a memory estimate.

  `Grid.with_affine` builds a grid on a full affine map. `Grid.level_set`
  builds an `"sdf"` level-set grid whose background is
  `half_width * voxel_size`. Assigning `grid.transform` also replaces the
  affine map, and assigning `grid.affine_map` resets the transform to its
  voxel size. `Leaf` is the 512-value block with an 8-word activity mask.
- `volrus.vol_format`: this module reads and writes the `.vol` binary format.
  The format is a 32-byte header (`VOLR`, version 1) followed by, for each
  leaf, its origin, its activity mask and its dense values. `write_vol` and
  `read_vol` work on binary streams. `save_vol` and `load_vol` work on paths.
  A bad magic, a bad version, an unknown grid class or truncated data raises
  `VolFormatError`.
- `volrus.nanolayout`: this module has `NanoHeader` and `NanoLeaf`, which
  `pack` to and `unpack` from the little-endian, naturally aligned layout of
  the linearized buffer. It also has `cmp_origin` and `NanoFormatError`.
- `volrus.nano`: `NanoGrid` is an immutable grid held in one buffer, with its
  leaves sorted by origin. The methods are:
  - `from_grid`, which builds it from a `Grid`;
  - `from_bytes`, which validates a buffer's length, magic and version and
    checks that the leaves are strictly sorted;
  - `header`, `leaf`, `leaf_count` and `as_bytes`;
  - `get` and `is_active`, which find the leaf by binary search;
  - `iter_active` and `to_grid`.
- `volrus.points`: `PointDataGrid` bins `Particle`s into leaf-sized
  `PointLeaf` buckets. It provides `insert`, `insert_batch`, `remove` (by id),
  `particle_count`, `leaf_count`, `leaf_origins`, `particles_in_voxel`,
  `particles_in_radius`, `nearest_particle`, `iter_particles`, `active_bbox`
  (covers whole buckets) and `rebin`. Call `rebin` after particle positions
  change.

## Installation

```
pip install .
```

## Example

```python
import io

from volrus.coord import Coord
from volrus.grid import Grid, GridClass
from volrus.nano import NanoGrid
from volrus.vol_format import read_vol, write_vol

grid = Grid(-1.0, 0.25)
grid.grid_class = GridClass.FOG_VOLUME
grid.set(Coord(0, 0, 0), 1.0)
grid.set_world((1.0, 2.0, 3.0), 7.0)   # snaps to index (4, 8, 12)

print(grid.get(Coord(4, 8, 12)))       # 7.0
print(grid.active_voxel_count())       # 2
print(grid.eval_min_max())             # (1.0, 7.0)

buffer = io.BytesIO()
write_vol(grid, buffer)
buffer.seek(0)
loaded = read_vol(buffer)

nano = NanoGrid.from_grid(loaded)
print(nano.get(Coord(0, 0, 0)))        # 1.0
print(nano.is_active(Coord(1, 1, 1)))  # False
```

Particles:

```python
from volrus.points import Particle, PointDataGrid

points = PointDataGrid(1.0)
points.insert(Particle(position=(0.0, 0.0, 0.0), id=1))
points.insert(Particle(position=(3.0, 0.0, 0.0), id=2))
print(points.nearest_particle((2.5, 0.0, 0.0)).id)   # 2
```

## What it does not do

The package stores and queries voxel and particle data only. Its scope has
these limits:

- It has no world-space vector type and no ray type.
- It does no ray casting, rendering or meshing.
- It has no level-set or filtering tools.
- It has no command-line interface.

## Running the tests

```
pip install ".[test]"
pytest
```