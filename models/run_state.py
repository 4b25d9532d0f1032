from __future__ import annotations

import threading
from typing import Tuple

from models.heatmap_result import HeatmapStatus


class CancellationToken:
    """Cooperative cancellation flag: set by the caller, read by the worker between masks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_canceled(self) -> bool:
        return self._event.is_set()


class RunState:
    """
    State shared between one heatmap worker and the polling caller.
    Progress and status are written by the worker and read by the caller;
    the cancellation token goes the other way.
    """

    def __init__(self, run_id: int, total_masks: int) -> None:
        self.run_id = int(run_id)
        self.total_masks = int(total_masks)
        self.token = CancellationToken()
        self._lock = threading.Lock()
        self._processed = 0
        self._percent = 0
        self._status = HeatmapStatus.RUNNING

    def report_progress(self, percent: int) -> None:
        """Called by the worker once per processed mask."""
        with self._lock:
            self._processed += 1
            self._percent = max(0, min(100, int(percent)))

    def finish(self, status: HeatmapStatus) -> None:
        with self._lock:
            self._status = status
            if status == HeatmapStatus.COMPLETED:
                self._percent = 100

    def request_cancel(self) -> None:
        self.token.cancel()

    @property
    def is_canceled(self) -> bool:
        return self.token.is_canceled

    @property
    def status(self) -> HeatmapStatus:
        with self._lock:
            return self._status

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    def snapshot(self) -> Tuple[int, HeatmapStatus]:
        with self._lock:
            return self._percent, self._status
