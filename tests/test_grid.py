import pytest

from volrus.affine import AffineMap
from volrus.bbox import CoordBBox
from volrus.coord import Coord
from volrus.grid import Grid, GridClass, Leaf, LEAF_SIZE
from volrus.transform import VoxelTransform


def test_grid_new_empty():
    g = Grid(0.0, 0.5)
    assert g.leaf_count() == 0
    assert g.active_voxel_count() == 0
    assert g.grid_class == GridClass.UNKNOWN
    assert g.name == ""


def test_grid_set_get_index_space():
    g = Grid(-1.0, 1.0)
    g.set(Coord(5, 5, 5), 42.0)
    assert g.get(Coord(5, 5, 5)) == 42.0
    assert g.get(Coord(0, 0, 0)) == -1.0


def test_grid_world_space_roundtrip():
    g = Grid(0.0, 0.25)
    g.set_world((1.0, 2.0, 3.0), 7.0)
    assert g.get(Coord(4, 8, 12)) == 7.0
    assert g.get_world((1.0, 2.0, 3.0)) == 7.0


def test_grid_level_set_constructor():
    g = Grid.level_set(0.1, 3.0)
    assert g.grid_class == GridClass.LEVEL_SET
    assert g.name == "sdf"
    assert abs(g.background - 0.3) < 1e-6


def test_grid_metadata():
    g = Grid(0.0, 1.0)
    g.name = "density"
    g.grid_class = GridClass.FOG_VOLUME
    assert g.name == "density"
    assert g.grid_class == GridClass.FOG_VOLUME


def test_metadata_dicts_are_per_grid():
    a = Grid(0.0, 1.0)
    b = Grid(0.0, 1.0)
    a.metadata["author"] = "Alice"
    assert a.metadata == {"author": "Alice"}
    assert b.metadata == {}


def test_grid_with_affine_constructor():
    g = Grid.with_affine(0.0, AffineMap.from_uniform_scale(0.25))
    g.set_world((1.0, 2.0, 3.0), 7.0)
    assert g.get(Coord(4, 8, 12)) == 7.0
    assert g.get_world((1.0, 2.0, 3.0)) == 7.0
    assert g.transform.voxel_size == 0.25


def test_grid_with_affine_rotated():
    rot = ((0.0, -1.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0))
    amap = AffineMap.from_scale_rotate_translate((1.0, 1.0, 1.0), rot, (0.0, 0.0, 0.0))
    g = Grid.with_affine(0.0, amap)
    g.set(Coord(1, 0, 0), 99.0)
    assert g.get_world((0.0, 1.0, 0.0)) == 99.0


def test_set_transform_updates_affine():
    g = Grid(0.0, 1.0)
    g.transform = VoxelTransform(0.5, (10.0, 20.0, 30.0))
    g.set_world((11.0, 22.0, 33.0), 5.0)
    assert g.get(Coord(2, 4, 6)) == 5.0
    assert g.affine_map.voxel_size == 0.5


def test_set_affine_map_updates_transform():
    g = Grid(0.0, 1.0)
    g.affine_map = AffineMap.from_uniform_scale(2.0)
    assert g.transform.voxel_size == 2.0
    assert g.transform.origin == (0.0, 0.0, 0.0)
    g.set_world((4.0, 6.0, 8.0), 3.0)
    assert g.get(Coord(2, 3, 4)) == 3.0


def test_eval_min_max_empty_grid():
    assert Grid(0.0, 1.0).eval_min_max() is None


def test_eval_min_max_single_voxel():
    g = Grid(0.0, 1.0)
    g.set(Coord(0, 0, 0), 42.0)
    assert g.eval_min_max() == (42.0, 42.0)


def test_eval_min_max_multiple_voxels():
    g = Grid(0.0, 1.0)
    g.set(Coord(0, 0, 0), -5.0)
    g.set(Coord(1, 1, 1), 10.0)
    g.set(Coord(2, 2, 2), 3.0)
    assert g.eval_min_max() == (-5.0, 10.0)


def test_active_bbox_empty_grid():
    assert Grid(0.0, 1.0).active_bbox() is None


def test_active_bbox_single_voxel():
    g = Grid(0.0, 1.0)
    g.set(Coord(5, 5, 5), 1.0)
    bbox = g.active_bbox()
    assert bbox.min == Coord(5, 5, 5)
    assert bbox.max == Coord(5, 5, 5)


def test_active_bbox_multiple_voxels():
    g = Grid(0.0, 1.0)
    g.set(Coord(1, 2, 3), 1.0)
    g.set(Coord(10, 20, 30), 2.0)
    assert g.active_bbox() == CoordBBox(Coord(1, 2, 3), Coord(10, 20, 30))


def test_mem_bytes_empty_grid_is_positive():
    assert Grid(0.0, 1.0).mem_bytes() > 0


def test_mem_bytes_with_leaves():
    empty = Grid(0.0, 1.0)
    g = Grid(0.0, 1.0)
    g.set(Coord(0, 0, 0), 1.0)
    g.set(Coord(8, 0, 0), 2.0)
    assert g.mem_bytes() > 4000
    assert g.mem_bytes() - empty.mem_bytes() == 2 * (512 * 4 + 64 + 12)


def test_leaf_allocation_and_activity():
    g = Grid(-2.0, 1.0)
    g.set(Coord(0, 0, 0), 1.0)
    g.set(Coord(7, 7, 7), 2.0)
    assert g.leaf_count() == 1
    assert g.active_voxel_count() == 2
    assert g.is_active(Coord(0, 0, 0))
    assert not g.is_active(Coord(1, 1, 1))
    assert g.get(Coord(1, 1, 1)) == -2.0
    assert not g.is_active(Coord(100, 0, 0))


def test_negative_coordinates_use_aligned_leaf():
    g = Grid(0.0, 1.0)
    g.set(Coord(-1, -1, -1), 4.0)
    leaf = g.leaf(Coord(-1, -1, -1))
    assert leaf.origin == Coord(-8, -8, -8)
    assert g.get(Coord(-1, -1, -1)) == 4.0
    assert g.leaf(Coord(50, 50, 50)) is None


def test_iter_active_yields_all_set_voxels():
    g = Grid(0.0, 1.0)
    expected = {Coord(0, 0, 0): 1.0, Coord(1, 2, 3): 2.0, Coord(130, 130, 130): 3.0}
    for c, v in expected.items():
        g.set(c, v)
    assert dict(g.iter_active()) == expected
    assert {leaf.origin for leaf in g.leaves()} == {Coord(0, 0, 0), Coord(128, 128, 128)}


def test_leaf_methods():
    leaf = Leaf(Coord(8, 0, 16), [0.0] * LEAF_SIZE)
    leaf.set(2 * 64 + 3 * 8 + 5, 9.0)
    assert leaf.get(2 * 64 + 3 * 8 + 5) == 9.0
    assert leaf.is_active(2 * 64 + 3 * 8 + 5)
    assert not leaf.is_active(0)
    assert leaf.active_count() == 1
    assert list(leaf.iter_active()) == [(Coord(10, 3, 21), 9.0)]


def test_leaf_offset_out_of_range():
    leaf = Leaf(Coord(0, 0, 0), [0.0] * LEAF_SIZE)
    with pytest.raises(IndexError):
        leaf.set(LEAF_SIZE, 1.0)
    with pytest.raises(IndexError):
        leaf.get(-1)


def test_leaf_rejects_wrong_value_count():
    with pytest.raises(ValueError):
        Leaf(Coord(0, 0, 0), [0.0] * 10)