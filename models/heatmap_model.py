from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from config.constants import DEFAULT_HEATMAP_OPACITY, EMPTY_SLICE_BOUNDS
from models.heatmap_result import HeatmapResult, HeatmapStatus


class HeatmapModel:
    """
    Stores the heatmap currently shown (last completed build), its visibility
    and opacity. Pure model, no Qt and no rendering.
    """

    def __init__(self) -> None:
        self.result: Optional[HeatmapResult] = None
        self.enabled: bool = False
        self.opacity: float = DEFAULT_HEATMAP_OPACITY

    def set_result(self, result: HeatmapResult) -> None:
        """Replace the displayed heatmap; only completed results are accepted."""
        if result.status != HeatmapStatus.COMPLETED:
            raise ValueError(f"Cannot display a {result.status.value} heatmap.")
        self.result = result
        self.enabled = True

    def clear(self) -> None:
        self.result = None
        self.enabled = False

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled) and self.result is not None

    def set_opacity(self, opacity: float) -> None:
        self.opacity = float(np.clip(opacity, 0.0, 1.0))

    @property
    def mask_count(self) -> int:
        return self.result.mask_count if self.result is not None else 0

    def heat_volume(self) -> Optional[np.ndarray]:
        """Heat values (Z, Y, X), read-only."""
        if self.result is None:
            return None
        return self.result.heat_volume()

    def get_slice(self, z: int) -> Optional[np.ndarray]:
        volume = self.heat_volume()
        if volume is None:
            return None
        z = max(0, min(volume.shape[0] - 1, int(z)))
        return volume[z]

    def get_slice_bounds(self, z: int) -> Tuple[int, int, int, int]:
        """(min_x, max_x, min_y, max_y) of slice z over all contributing masks."""
        table = self.result.slice_bounds if self.result is not None else None
        if table is None or not 0 <= int(z) < table.shape[0]:
            return EMPTY_SLICE_BOUNDS
        min_x, max_x, min_y, max_y = (int(v) for v in table[int(z)])
        if max_x < 0:
            return EMPTY_SLICE_BOUNDS
        return min_x, max_x, min_y, max_y
