"""Sparse voxel grids with index/world transforms, .vol I/O, linearized read-only grids and particle binning."""

__version__ = "0.1.0"