"""Vote accumulation of one source mask into the shared target vote buffer."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from models.mask_volume import VolumeLike
from models.target_grid import TargetGrid
from services.axis_mapping import check_mapping_lengths
from services.bounds_extractor import mapped_present_coordinates, update_bounds
from utils.exceptions import SamplingInvariantError

logger = logging.getLogger(__name__)


def new_vote_buffer(grid: TargetGrid) -> np.ndarray:
    """Zeroed float32 vote buffer with one counter per target voxel."""
    return np.zeros(grid.voxel_count, dtype=np.float32)


def _check_invariants(
    grid: TargetGrid,
    vote_buffer: np.ndarray,
    mappings,
    bounds_out: Optional[np.ndarray],
) -> None:
    if vote_buffer.ndim != 1 or vote_buffer.shape[0] != grid.voxel_count:
        raise SamplingInvariantError(
            f"Vote buffer holds {vote_buffer.size} voxels, target grid "
            f"{(grid.x, grid.y, grid.z)} needs {grid.voxel_count}"
        )
    for size, mapping in zip((grid.x, grid.y, grid.z), mappings):
        if len(mapping) and (int(mapping.min()) < 0 or int(mapping.max()) >= size):
            raise SamplingInvariantError(f"Mapping values outside [0, {size - 1}]")
    if bounds_out is not None and bounds_out.shape != (grid.z, 4):
        raise SamplingInvariantError(
            f"Bounds table shape {bounds_out.shape} does not match ({grid.z}, 4)"
        )


def accumulate_votes(
    volume: VolumeLike,
    map_x: np.ndarray,
    map_y: np.ndarray,
    map_z: np.ndarray,
    vote_buffer: np.ndarray,
    grid: TargetGrid,
    bounds_out: Optional[np.ndarray] = None,
) -> bool:
    """
    Add one vote per nonzero source voxel at its mapped target voxel.

    Voxels are visited in linear order (X fastest, then Y, then Z). Several
    source voxels landing on the same target voxel each add 1.0. When
    bounds_out is given, the box of every touched target slice is expanded.

    Returns:
        False (nothing mutated) if the volume, a mapping or the grid is empty,
        True otherwise.

    Raises:
        SamplingInvariantError: buffer, mappings or bounds sized inconsistently
            with the grid or the volume.
        MaskReadError: the voxel array disagrees with volume.dimensions();
            the caller skips that mask.
    """
    if grid.is_degenerate:
        return False
    sx, sy, sz = volume.dimensions()
    if min(sx, sy, sz) <= 0:
        return False
    mappings = (map_x, map_y, map_z)
    if any(len(m) == 0 for m in mappings):
        return False

    check_mapping_lengths((sx, sy, sz), mappings)
    _check_invariants(grid, vote_buffer, mappings, bounds_out)

    tx, ty, tz = mapped_present_coordinates(volume, map_x, map_y, map_z)
    if tx.size == 0:
        return True

    linear = tx + grid.x * (ty + grid.y * tz)
    np.add.at(vote_buffer, linear, 1.0)
    if bounds_out is not None:
        update_bounds(bounds_out, tx, ty, tz)

    logger.debug("Sampled %d present voxels from %s", tx.size, getattr(volume, "source", "?"))
    return True
