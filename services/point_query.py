"""Which masks cover a given target voxel, using per-slice bounds of a finished heatmap."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

import numpy as np

from config.constants import POINT_QUERY_BUCKET_SIZE
from models.heatmap_result import HeatmapResult
from models.mask_volume import VolumeLike
from models.target_grid import TargetGrid
from services.axis_mapping import build_grid_mappings, source_range_for_target
from services.bounds_extractor import MAX_X, MAX_Y, MIN_X, MIN_Y

BucketKey = Tuple[int, int, int]  # (z, bucket_x, bucket_y)


class MaskPointIndex:
    """
    Spatial index over per-mask slice boxes.

    Each mask's box on a slice is registered in every XY bucket it overlaps,
    so a lookup only tests the few masks registered in the bucket of the point.
    """

    def __init__(
        self,
        grid: TargetGrid,
        mask_bounds: Sequence[Tuple[int, np.ndarray]],
        bucket_size: int = POINT_QUERY_BUCKET_SIZE,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.grid = grid
        self.bucket_size = max(1, int(bucket_size))
        self._bounds: Dict[int, np.ndarray] = {int(i): b for i, b in mask_bounds}
        self._buckets: Dict[BucketKey, List[int]] = defaultdict(list)
        self._build()

    @classmethod
    def from_result(cls, result: HeatmapResult, bucket_size: int = POINT_QUERY_BUCKET_SIZE) -> "MaskPointIndex":
        return cls(result.grid, result.mask_bounds, bucket_size)

    def _build(self) -> None:
        size = self.bucket_size
        for mask_index, table in self._bounds.items():
            occupied = np.nonzero(table[:, MAX_X] >= 0)[0]
            for z in occupied:
                row = table[z]
                for bx in range(int(row[MIN_X]) // size, int(row[MAX_X]) // size + 1):
                    for by in range(int(row[MIN_Y]) // size, int(row[MAX_Y]) // size + 1):
                        self._buckets[(int(z), bx, by)].append(mask_index)
        self.logger.debug(
            "Point index built: %d masks, %d buckets", len(self._bounds), len(self._buckets)
        )

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def candidates(self, x: int, y: int, z: int) -> List[int]:
        """Mask indices whose box on slice z contains (x, y), in mask order."""
        if not self.grid.contains(x, y, z):
            return []
        key = (int(z), int(x) // self.bucket_size, int(y) // self.bucket_size)
        hits = []
        for mask_index in self._buckets.get(key, ()):
            row = self._bounds[mask_index][int(z)]
            if row[MIN_X] <= x <= row[MAX_X] and row[MIN_Y] <= y <= row[MAX_Y]:
                hits.append(mask_index)
        return sorted(hits)

    def masks_at_point(self, x: int, y: int, z: int, masks: Sequence[VolumeLike]) -> List[int]:
        """
        Mask indices with at least one present source voxel mapped onto (x, y, z).

        Candidates from the bounds index are confirmed against the source
        voxels whose nearest target voxel is (x, y, z).
        """
        confirmed = []
        for mask_index in self.candidates(x, y, z):
            volume = masks[mask_index]
            map_x, map_y, map_z = build_grid_mappings(volume.dimensions(), self.grid)
            x0, x1 = source_range_for_target(map_x, x)
            y0, y1 = source_range_for_target(map_y, y)
            z0, z1 = source_range_for_target(map_z, z)
            if x0 == x1 or y0 == y1 or z0 == z1:
                continue
            if np.any(volume.as_array()[z0:z1, y0:y1, x0:x1]):
                confirmed.append(mask_index)
        return confirmed
