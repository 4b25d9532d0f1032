"""Nearest-neighbour index tables between a source axis and a target axis."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from models.target_grid import TargetGrid
from utils.exceptions import SamplingInvariantError


def build_axis_mapping(source_len: int, target_len: int) -> np.ndarray:
    """
    Map each source index to the nearest target index.

    Endpoints are aligned (source 0 -> target 0, source n-1 -> target m-1) and
    in-between indices are scaled linearly. Halfway cases round to the even
    integer (numpy.rint). The result is always nondecreasing.

    Args:
        source_len: Number of voxels on the source axis.
        target_len: Number of voxels on the target axis.

    Returns:
        int64 array of length source_len with values in [0, target_len - 1]
        (all zeros when either length is 0 or 1).
    """
    source_len = max(0, int(source_len))
    target_len = max(0, int(target_len))

    if source_len == 0 or target_len == 0:
        return np.zeros(source_len, dtype=np.int64)
    if source_len == target_len:
        return np.arange(source_len, dtype=np.int64)
    if target_len == 1 or source_len <= 1:
        return np.zeros(source_len, dtype=np.int64)

    ratio = np.arange(source_len, dtype=np.float64) / float(source_len - 1)
    mapped = np.rint(ratio * float(target_len - 1)).astype(np.int64)
    np.clip(mapped, 0, target_len - 1, out=mapped)
    return mapped


def build_grid_mappings(
    source_dims: Sequence[int], grid: TargetGrid
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Build the (X, Y, Z) mappings of a source volume of size (sx, sy, sz) onto grid."""
    sx, sy, sz = source_dims
    return (
        build_axis_mapping(sx, grid.x),
        build_axis_mapping(sy, grid.y),
        build_axis_mapping(sz, grid.z),
    )


def source_range_for_target(mapping: np.ndarray, target_index: int) -> Tuple[int, int]:
    """
    Return the half-open source range [start, stop) whose entries map to target_index.

    The mapping is nondecreasing, so the preimage of one target index is
    contiguous. An empty range (start == stop) means no source index lands there.
    """
    start = int(np.searchsorted(mapping, target_index, side="left"))
    stop = int(np.searchsorted(mapping, target_index, side="right"))
    return start, stop


def check_mapping_lengths(source_dims: Sequence[int], mappings: Sequence[np.ndarray]) -> None:
    """Raise SamplingInvariantError unless each mapping covers its source axis."""
    for axis, (size, mapping) in enumerate(zip(source_dims, mappings)):
        if len(mapping) != int(size):
            raise SamplingInvariantError(
                f"Mapping for axis {'XYZ'[axis]} has length {len(mapping)}, source axis has {size}"
            )
