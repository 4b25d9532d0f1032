from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from models.target_grid import TargetGrid


class HeatmapStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"
    EMPTY = "empty"

    @property
    def is_terminal(self) -> bool:
        return self not in (HeatmapStatus.IDLE, HeatmapStatus.RUNNING)


@dataclass(frozen=True)
class SkippedMask:
    """A mask left out of the vote because it could not be sampled."""

    index: int
    source: str
    reason: str


def _frozen(array: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if array is None:
        return None
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class HeatmapResult:
    """
    Immutable snapshot published once per run.

    heat is a flat float32 array of length x*y*z (index x + X*(y + Y*z)) in
    [0, 1]; it is only present for completed runs. mask_count is the number of
    masks that actually contributed votes (the normalisation denominator).
    """

    status: HeatmapStatus
    grid: TargetGrid
    heat: Optional[np.ndarray] = None
    mask_count: int = 0
    masks_processed: int = 0
    total_masks: int = 0
    skipped: Tuple[SkippedMask, ...] = ()
    slice_bounds: Optional[np.ndarray] = None  # (Z, 4) union over contributing masks
    mask_bounds: Tuple[Tuple[int, np.ndarray], ...] = field(default=())  # (mask index, (Z, 4))
    error: Optional[str] = None

    @classmethod
    def completed(
        cls,
        grid: TargetGrid,
        heat: np.ndarray,
        *,
        mask_count: int,
        masks_processed: int,
        total_masks: int,
        skipped: Tuple[SkippedMask, ...] = (),
        slice_bounds: Optional[np.ndarray] = None,
        mask_bounds: Tuple[Tuple[int, np.ndarray], ...] = (),
    ) -> "HeatmapResult":
        return cls(
            status=HeatmapStatus.COMPLETED,
            grid=grid,
            heat=_frozen(heat),
            mask_count=int(mask_count),
            masks_processed=int(masks_processed),
            total_masks=int(total_masks),
            skipped=tuple(skipped),
            slice_bounds=_frozen(slice_bounds),
            mask_bounds=tuple((int(i), _frozen(b)) for i, b in mask_bounds),
        )

    @classmethod
    def canceled(
        cls,
        grid: TargetGrid,
        *,
        masks_processed: int,
        total_masks: int,
        skipped: Tuple[SkippedMask, ...] = (),
    ) -> "HeatmapResult":
        return cls(
            status=HeatmapStatus.CANCELED,
            grid=grid,
            masks_processed=int(masks_processed),
            total_masks=int(total_masks),
            skipped=tuple(skipped),
        )

    @classmethod
    def empty(cls, grid: TargetGrid, total_masks: int = 0, reason: Optional[str] = None) -> "HeatmapResult":
        return cls(status=HeatmapStatus.EMPTY, grid=grid, total_masks=int(total_masks), error=reason)

    @classmethod
    def failed(cls, grid: TargetGrid, error: str, *, masks_processed: int = 0, total_masks: int = 0) -> "HeatmapResult":
        return cls(
            status=HeatmapStatus.FAILED,
            grid=grid,
            masks_processed=int(masks_processed),
            total_masks=int(total_masks),
            error=str(error),
        )

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def heat_volume(self) -> Optional[np.ndarray]:
        """Heat reshaped (Z, Y, X); a read-only view of the flat array."""
        if self.heat is None:
            return None
        return self.heat.reshape(self.grid.shape_zyx)

    def heat_at(self, x: int, y: int, z: int) -> float:
        if self.heat is None:
            return 0.0
        return float(self.heat[self.grid.linear_index(x, y, z)])
