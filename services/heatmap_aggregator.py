"""
Service d'agrégation des masques en heatmap.

Flux :
1) Pour chaque masque (dans l'ordre) : tables de correspondance X/Y/Z vers la
   grille cible, puis vote de chaque voxel non nul dans un buffer partagé.
2) Après chaque masque : progression (%) puis point d'annulation.
3) En fin de parcours : normalisation par le nombre de masques contributeurs.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from models.heatmap_result import HeatmapResult, SkippedMask
from models.mask_volume import VolumeLike
from models.target_grid import TargetGrid
from services.axis_mapping import build_grid_mappings
from services.bounds_extractor import finalize_bounds, merge_bounds, new_bounds_table
from services.voxel_sampler import accumulate_votes, new_vote_buffer
from utils.exceptions import MaskReadError


class CancelToken(Protocol):
    @property
    def is_canceled(self) -> bool:
        ...


ProgressSink = Callable[[int], None]


class HeatmapAggregator:
    """Accumulate votes of several masks on one target grid and normalize them."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    def run(
        self,
        masks: Sequence[VolumeLike],
        grid: TargetGrid | Sequence[int],
        cancel_token: Optional[CancelToken] = None,
        progress_sink: Optional[ProgressSink] = None,
    ) -> HeatmapResult:
        """
        Build the heatmap of `masks` on `grid`.

        Args:
            masks: Source volumes, processed in order.
            grid: Target grid (x, y, z).
            cancel_token: Checked before the first mask and after each mask.
            progress_sink: Receives the integer percent after each mask.

        Returns:
            HeatmapResult with status completed, canceled or empty.

        Raises:
            SamplingInvariantError: internal sizing defect; the run is aborted.
        """
        grid = TargetGrid.from_dims(grid)
        masks = list(masks)
        total = len(masks)

        if total == 0:
            self.logger.info("Heatmap rejected: no masks")
            return HeatmapResult.empty(grid, 0, reason="no masks")
        if grid.is_degenerate:
            self.logger.info("Heatmap rejected: degenerate target grid %s", (grid.x, grid.y, grid.z))
            return HeatmapResult.empty(grid, total, reason="degenerate target grid")

        if cancel_token is not None and cancel_token.is_canceled:
            return HeatmapResult.canceled(grid, masks_processed=0, total_masks=total)

        votes = new_vote_buffer(grid)
        union_bounds = new_bounds_table(grid.z)
        mask_bounds: List[Tuple[int, np.ndarray]] = []
        skipped: List[SkippedMask] = []
        contributed = 0
        processed = 0

        self.logger.info(
            "Heatmap started: %d masks on grid (%d, %d, %d)", total, grid.x, grid.y, grid.z
        )

        for index, volume in enumerate(masks):
            source = str(getattr(volume, "source", index))
            bounds = new_bounds_table(grid.z)
            try:
                map_x, map_y, map_z = build_grid_mappings(volume.dimensions(), grid)
                sampled = accumulate_votes(volume, map_x, map_y, map_z, votes, grid, bounds)
            except MaskReadError as exc:
                self.logger.warning("Mask %d skipped (%s): %s", index, source, exc.reason)
                skipped.append(SkippedMask(index, source, exc.reason))
                sampled = None
            finally:
                release = getattr(volume, "release", None)
                if callable(release):
                    release()

            if sampled is False:
                self.logger.warning("Mask %d skipped (%s): empty volume or mapping", index, source)
                skipped.append(SkippedMask(index, source, "empty volume or mapping"))
            elif sampled:
                contributed += 1
                finalize_bounds(bounds)
                merge_bounds(union_bounds, bounds)
                mask_bounds.append((index, bounds))

            processed += 1
            if progress_sink is not None:
                progress_sink(processed * 100 // total)

            if cancel_token is not None and cancel_token.is_canceled:
                self.logger.info("Heatmap canceled after %d/%d masks", processed, total)
                return HeatmapResult.canceled(
                    grid, masks_processed=processed, total_masks=total, skipped=tuple(skipped)
                )

        if contributed:
            votes /= float(contributed)
        np.clip(votes, 0.0, 1.0, out=votes)
        finalize_bounds(union_bounds)

        self.logger.info(
            "Heatmap completed: %d/%d masks contributed, %d skipped",
            contributed,
            total,
            len(skipped),
        )
        return HeatmapResult.completed(
            grid,
            votes,
            mask_count=contributed,
            masks_processed=processed,
            total_masks=total,
            skipped=tuple(skipped),
            slice_bounds=union_bounds,
            mask_bounds=tuple(mask_bounds),
        )
