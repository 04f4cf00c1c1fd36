[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "volrus"
version = "0.1.0"
description = "Sparse volumetric grids: 8x8x8 leaf storage, affine transforms, a compact .vol format, linearized read-only grids and particle binning."
requires-python = ">=3.10"
dependencies = []
keywords = ["voxel", "volume", "sparse-grid", "level-set", "particles"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Visualization",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["volrus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
