"""Controller Qt de la heatmap : démarrage, annulation et polling périodique du worker."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from config.constants import HEATMAP_POLL_INTERVAL_MS
from controllers.heatmap_run_controller import HeatmapRunController
from models.heatmap_model import HeatmapModel
from models.heatmap_result import HeatmapResult, HeatmapStatus
from models.mask_volume import VolumeLike
from models.target_grid import TargetGrid


class HeatmapController(QObject):
    """
    Drives a HeatmapRunController from the Qt event loop.

    Progress is polled on a fixed timer so the UI refresh rate does not depend
    on how fast masks are processed.
    """

    progress_changed = pyqtSignal(int, str)
    heatmap_ready = pyqtSignal(object)
    status_message = pyqtSignal(str)

    def __init__(
        self,
        *,
        heatmap_model: Optional[HeatmapModel] = None,
        run_controller: Optional[HeatmapRunController] = None,
        poll_interval_ms: int = HEATMAP_POLL_INTERVAL_MS,
        logger: Optional[logging.Logger] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.logger = logger or logging.getLogger(__name__)
        self.heatmap_model = heatmap_model or HeatmapModel()
        self.run_controller = run_controller or HeatmapRunController(logger=self.logger)

        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(int(poll_interval_ms))
        self._poll_timer.timeout.connect(self._on_poll_timer)

    # --- Commands -------------------------------------------------------------------
    def build_heatmap(self, masks: Sequence[VolumeLike], grid: TargetGrid | Sequence[int]) -> int:
        """Start a build (preempting any running one) and begin polling."""
        run_id = self.run_controller.start(masks, grid)
        self.progress_changed.emit(0, HeatmapStatus.RUNNING.value)
        self.status_message.emit(f"Heatmap : calcul sur {len(masks)} masque(s)...")
        if not self._poll_timer.isActive():
            self._poll_timer.start()
        return run_id

    def cancel_heatmap(self) -> None:
        self.run_controller.cancel()

    def shutdown(self) -> None:
        self._poll_timer.stop()
        self.run_controller.shutdown()

    @property
    def is_polling(self) -> bool:
        return self._poll_timer.isActive()

    # --- Polling --------------------------------------------------------------------
    def _on_poll_timer(self) -> None:
        percent, status = self.run_controller.poll_progress()
        self.progress_changed.emit(int(percent), status.value)
        if status == HeatmapStatus.RUNNING:
            return

        self._poll_timer.stop()
        result = self.run_controller.take_result()
        if result is not None:
            self._handle_result(result)

    def _handle_result(self, result: HeatmapResult) -> None:
        if result.status == HeatmapStatus.COMPLETED:
            self.heatmap_model.set_result(result)
            message = f"Heatmap terminée : {result.mask_count} masque(s) utilisé(s)"
            if result.skipped_count:
                message += f", {result.skipped_count} ignoré(s)"
        elif result.status == HeatmapStatus.CANCELED:
            message = (
                f"Heatmap annulée ({result.masks_processed}/{result.total_masks} masques traités)"
            )
        elif result.status == HeatmapStatus.EMPTY:
            message = "Heatmap : aucun masque ou grille cible vide"
        else:
            message = f"Heatmap échouée : {result.error}"
            self.logger.error(message)

        self.status_message.emit(message)
        self.heatmap_ready.emit(result)
