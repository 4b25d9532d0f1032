"""Per-slice bounding boxes of mapped nonzero voxels."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from config.constants import BOUNDS_MIN_SENTINEL, EMPTY_SLICE_BOUNDS
from models.mask_volume import VolumeLike
from models.target_grid import TargetGrid
from services.axis_mapping import check_mapping_lengths
from utils.exceptions import MaskReadError

# Columns of a bounds table
MIN_X, MAX_X, MIN_Y, MAX_Y = 0, 1, 2, 3


def new_bounds_table(depth: int) -> np.ndarray:
    """Bounds table (depth, 4) with min fields at +inf sentinel and max fields at -1."""
    table = np.empty((max(0, int(depth)), 4), dtype=np.int64)
    table[:, [MIN_X, MIN_Y]] = BOUNDS_MIN_SENTINEL
    table[:, [MAX_X, MAX_Y]] = -1
    return table


def finalize_bounds(table: np.ndarray) -> np.ndarray:
    """Force untouched slices (max_x < 0) to the (-1, -1, -1, -1) sentinel, in place."""
    empty = table[:, MAX_X] < 0
    table[empty] = EMPTY_SLICE_BOUNDS
    return table


def merge_bounds(into: np.ndarray, other: np.ndarray) -> np.ndarray:
    """Union of two finalized or in-progress tables, written into `into`."""
    if into.shape != other.shape:
        raise ValueError(f"Bounds tables differ in shape: {into.shape} vs {other.shape}")
    other_valid = other[:, MAX_X] >= 0
    if not np.any(other_valid):
        return into
    into_empty = into[:, MAX_X] < 0
    # Empty rows of `into` may hold -1 mins once finalized; reset before taking minima.
    reset = into_empty & other_valid
    into[reset, MIN_X] = BOUNDS_MIN_SENTINEL
    into[reset, MIN_Y] = BOUNDS_MIN_SENTINEL
    rows = np.nonzero(other_valid)[0]
    into[rows, MIN_X] = np.minimum(into[rows, MIN_X], other[rows, MIN_X])
    into[rows, MIN_Y] = np.minimum(into[rows, MIN_Y], other[rows, MIN_Y])
    into[rows, MAX_X] = np.maximum(into[rows, MAX_X], other[rows, MAX_X])
    into[rows, MAX_Y] = np.maximum(into[rows, MAX_Y], other[rows, MAX_Y])
    return into


def update_bounds(table: np.ndarray, tx: np.ndarray, ty: np.ndarray, tz: np.ndarray) -> None:
    """Expand per-slice boxes with mapped target coordinates (unbuffered, repeats allowed)."""
    np.minimum.at(table[:, MIN_X], tz, tx)
    np.maximum.at(table[:, MAX_X], tz, tx)
    np.minimum.at(table[:, MIN_Y], tz, ty)
    np.maximum.at(table[:, MAX_Y], tz, ty)


def slice_bounds(table: Optional[np.ndarray], z: int) -> Tuple[int, int, int, int]:
    """Return (min_x, max_x, min_y, max_y) for slice z, or the empty sentinel."""
    if table is None or not 0 <= int(z) < table.shape[0]:
        return EMPTY_SLICE_BOUNDS
    row = table[int(z)]
    if row[MAX_X] < 0:
        return EMPTY_SLICE_BOUNDS
    return int(row[MIN_X]), int(row[MAX_X]), int(row[MIN_Y]), int(row[MAX_Y])


def mapped_present_coordinates(
    volume: VolumeLike, map_x: np.ndarray, map_y: np.ndarray, map_z: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Target coordinates of every nonzero source voxel, in linear (X fastest) order.

    np.nonzero on the (Z, Y, X) array enumerates voxels in C order, which is
    the same order as the volume's linear iteration.

    Raises:
        MaskReadError: the voxel array does not have the shape announced by
            dimensions() (and used to build the mappings).
    """
    arr = volume.as_array()
    expected = (len(map_z), len(map_y), len(map_x))
    if tuple(arr.shape) != expected:
        raise MaskReadError(
            str(getattr(volume, "source", "?")),
            f"volume shape {tuple(arr.shape)} does not match dimensions {expected} (Z,Y,X)",
        )
    zz, yy, xx = np.nonzero(arr)
    return map_x[xx], map_y[yy], map_z[zz]


def compute_bounds(
    volume: VolumeLike,
    map_x: np.ndarray,
    map_y: np.ndarray,
    map_z: np.ndarray,
    grid: TargetGrid,
) -> np.ndarray:
    """
    Per target z-slice bounding boxes of the mapped nonzero voxels of one mask.

    Cheaper than a vote pass when only the occupied extent is needed (e.g. to
    crop rendering to the region a mask covers).

    Returns:
        int64 table (grid.z, 4) with columns (min_x, max_x, min_y, max_y);
        empty slices hold (-1, -1, -1, -1).
    """
    table = new_bounds_table(grid.z)
    if grid.is_degenerate:
        return finalize_bounds(table)
    sx, sy, sz = volume.dimensions()
    check_mapping_lengths((sx, sy, sz), (map_x, map_y, map_z))
    if min(sx, sy, sz) <= 0 or len(map_x) == 0 or len(map_y) == 0 or len(map_z) == 0:
        return finalize_bounds(table)

    tx, ty, tz = mapped_present_coordinates(volume, map_x, map_y, map_z)
    if tx.size:
        update_bounds(table, tx, ty, tz)
    return finalize_bounds(table)
