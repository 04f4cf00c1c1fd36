import io
import struct

import pytest

from volrus.coord import Coord
from volrus.grid import Grid, GridClass
from volrus.vol_format import (
    HEADER_SIZE,
    VolFormatError,
    load_vol,
    read_vol,
    save_vol,
    write_vol,
)


def _roundtrip(grid):
    buf = io.BytesIO()
    write_vol(grid, buf)
    return read_vol(io.BytesIO(buf.getvalue()))


def _shell_grid():
    grid = Grid(1.5, 0.5)
    grid.grid_class = GridClass.LEVEL_SET
    for x in range(-10, 11):
        for y in range(-10, 11):
            for z in range(-10, 11):
                d = (x * x + y * y + z * z) ** 0.5 - 8.0
                if abs(d) < 1.5:
                    grid.set(Coord(x, y, z), d * 0.5)
    return grid


def test_roundtrip_shell():
    grid = _shell_grid()
    loaded = _roundtrip(grid)
    assert loaded.grid_class == grid.grid_class
    assert loaded.transform.voxel_size == grid.transform.voxel_size
    assert loaded.background == 1.5
    assert loaded.leaf_count() == grid.leaf_count()
    assert loaded.active_voxel_count() == grid.active_voxel_count()
    for coord, val in grid.iter_active():
        assert abs(loaded.get(coord) - val) < 1e-6


def test_roundtrip_empty_grid():
    grid = Grid(42.0, 1.0)
    buf = io.BytesIO()
    write_vol(grid, buf)
    assert len(buf.getvalue()) == HEADER_SIZE == 32
    loaded = read_vol(io.BytesIO(buf.getvalue()))
    assert loaded.leaf_count() == 0
    assert loaded.active_voxel_count() == 0
    assert loaded.background == 42.0


def test_roundtrip_specific_voxels():
    grid = Grid(-1.0, 0.25)
    grid.grid_class = GridClass.FOG_VOLUME
    grid.set(Coord(0, 0, 0), 1.0)
    grid.set(Coord(7, 7, 7), 2.0)
    grid.set(Coord(100, 200, 50), 3.14)
    loaded = _roundtrip(grid)
    assert loaded.grid_class == GridClass.FOG_VOLUME
    assert loaded.get(Coord(0, 0, 0)) == 1.0
    assert loaded.get(Coord(7, 7, 7)) == 2.0
    assert abs(loaded.get(Coord(100, 200, 50)) - 3.14) < 1e-6
    assert loaded.get(Coord(99, 99, 99)) == -1.0


def test_verify_magic_bytes():
    buf = io.BytesIO()
    write_vol(Grid(0.0, 1.0), buf)
    data = buf.getvalue()
    assert data[0:4] == b"VOLR"
    assert struct.unpack("<I", data[4:8])[0] == 1


def test_leaf_record_size():
    grid = Grid(0.0, 1.0)
    grid.set(Coord(0, 0, 0), 1.0)
    buf = io.BytesIO()
    write_vol(grid, buf)
    assert len(buf.getvalue()) == 32 + 12 + 64 + 512 * 4


def test_bad_magic_returns_error():
    with pytest.raises(VolFormatError, match="bad magic"):
        read_vol(io.BytesIO(b"NOPE" + b"_" * 28))


def test_bad_version_returns_error():
    data = b"VOLR" + struct.pack("<I", 99) + bytes(24)
    with pytest.raises(VolFormatError, match="version"):
        read_vol(io.BytesIO(data))


def test_unknown_grid_class_returns_error():
    data = b"VOLR" + struct.pack("<II", 1, 7) + bytes(20)
    with pytest.raises(VolFormatError, match="unknown grid class: 7"):
        read_vol(io.BytesIO(data))


def test_truncated_leaf_data_returns_error():
    grid = Grid(0.0, 1.0)
    grid.set(Coord(1, 1, 1), 5.0)
    buf = io.BytesIO()
    write_vol(grid, buf)
    with pytest.raises(VolFormatError):
        read_vol(io.BytesIO(buf.getvalue()[:-10]))


def test_truncated_header_returns_error():
    with pytest.raises(VolFormatError):
        read_vol(io.BytesIO(b"VOLR"))


def test_roundtrip_preserves_active_mask():
    grid = Grid(0.0, 1.0)
    grid.set(Coord(3, 3, 3), 10.0)
    assert grid.is_active(Coord(3, 3, 3))
    assert not grid.is_active(Coord(4, 4, 4))
    loaded = _roundtrip(grid)
    assert loaded.is_active(Coord(3, 3, 3))
    assert not loaded.is_active(Coord(4, 4, 4))
    assert loaded.active_voxel_count() == 1


def test_roundtrip_negative_origins():
    grid = Grid(0.0, 1.0)
    grid.set(Coord(-5, -10, -3), 77.0)
    loaded = _roundtrip(grid)
    assert loaded.get(Coord(-5, -10, -3)) == 77.0
    assert {leaf.origin for leaf in loaded.leaves()} == {Coord(-8, -16, -8)}


def test_file_roundtrip(tmp_path):
    grid = Grid(0.0, 1.0)
    grid.set(Coord(1, 2, 3), 99.0)
    path = tmp_path / "volrus_test.vol"
    save_vol(grid, path)
    loaded = load_vol(path)
    assert loaded.get(Coord(1, 2, 3)) == 99.0
    assert loaded.active_voxel_count() == 1