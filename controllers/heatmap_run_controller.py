"""Owns the single in-flight heatmap build and publishes its result to a polling caller."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional, Sequence, Tuple

from config.constants import HEATMAP_JOIN_TIMEOUT_S
from models.heatmap_result import HeatmapResult, HeatmapStatus
from models.mask_volume import VolumeLike
from models.run_state import RunState
from models.target_grid import TargetGrid
from services.heatmap_aggregator import HeatmapAggregator
from utils.async_worker import ThreadedAsyncWorker


class HeatmapRunController:
    """
    Start/cancel/poll front-end around HeatmapAggregator.

    One worker thread per run. The caller and the worker share only the run's
    cancellation token, its progress counter and the result slot; the vote
    buffer never leaves the worker until it is published as a read-only result.
    """

    def __init__(
        self,
        aggregator: Optional[HeatmapAggregator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.aggregator = aggregator or HeatmapAggregator()
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._run_ids = itertools.count(1)
        self._state: Optional[RunState] = None
        self._worker: Optional[ThreadedAsyncWorker] = None
        self._result: Optional[HeatmapResult] = None
        self._last_completed: Optional[HeatmapResult] = None

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #
    def start(self, masks: Sequence[VolumeLike], grid: TargetGrid | Sequence[int]) -> int:
        """
        Start a new build, cancelling and joining any running one first.

        Returns:
            The id of the new run.
        """
        grid = TargetGrid.from_dims(grid)
        masks = list(masks)

        self._stop_worker()

        state = RunState(next(self._run_ids), len(masks))
        worker = ThreadedAsyncWorker(f"heatmap_worker_{state.run_id}")
        with self._lock:
            self._result = None
            self._state = state
            self._worker = worker

        self.logger.info("Heatmap run %d requested (%d masks)", state.run_id, len(masks))
        worker.start()
        worker.enqueue_task(
            self._execute,
            callback=lambda outcome: self._publish(state, grid, outcome),
            args=(state, masks, grid),
        )
        return state.run_id

    def cancel(self) -> None:
        """Request cancellation of the running build; never blocks."""
        with self._lock:
            state = self._state
        if state is not None and state.status == HeatmapStatus.RUNNING:
            self.logger.info("Heatmap run %d cancel requested", state.run_id)
            state.request_cancel()

    def shutdown(self, timeout: float = HEATMAP_JOIN_TIMEOUT_S) -> None:
        """Cancel and join the worker (application exit)."""
        self._stop_worker(timeout)

    # ------------------------------------------------------------------ #
    # Polling
    # ------------------------------------------------------------------ #
    def poll_progress(self) -> Tuple[int, HeatmapStatus]:
        """Return (percent, status) of the current run, or (0, idle)."""
        with self._lock:
            state = self._state
            if state is None:
                return 0, HeatmapStatus.IDLE
            pending = self._result
            percent, status = state.snapshot()
        if status.is_terminal and pending is None:
            # Result already taken
            return percent, HeatmapStatus.IDLE
        return percent, status

    def take_result(self) -> Optional[HeatmapResult]:
        """Return the terminal result of the last run once; None while running or once taken."""
        with self._lock:
            result = self._result
            self._result = None
        return result

    @property
    def last_completed(self) -> Optional[HeatmapResult]:
        """Most recent completed heatmap; canceled or failed runs never replace it."""
        with self._lock:
            return self._last_completed

    @property
    def is_running(self) -> bool:
        with self._lock:
            state = self._state
        return state is not None and state.status == HeatmapStatus.RUNNING

    # ------------------------------------------------------------------ #
    # Worker side
    # ------------------------------------------------------------------ #
    def _execute(self, state: RunState, masks, grid: TargetGrid) -> HeatmapResult:
        return self.aggregator.run(
            masks,
            grid,
            cancel_token=state.token,
            progress_sink=state.report_progress,
        )

    def _publish(self, state: RunState, grid: TargetGrid, outcome) -> None:
        if isinstance(outcome, HeatmapResult):
            result = outcome
        else:
            # Internal defect (SamplingInvariantError or unexpected exception)
            self.logger.error(
                "Heatmap run %d failed: %s", state.run_id, outcome, exc_info=outcome
            )
            result = HeatmapResult.failed(
                grid,
                f"{type(outcome).__name__}: {outcome}",
                masks_processed=state.processed,
                total_masks=state.total_masks,
            )

        with self._lock:
            if self._state is state:
                self._result = result
            if result.status == HeatmapStatus.COMPLETED:
                self._last_completed = result
            # Status last: a poller seeing a terminal status always finds the result slot filled.
            state.finish(result.status)
        self.logger.info("Heatmap run %d finished: %s", state.run_id, result.status.value)

    def _stop_worker(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            state = self._state
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        if state is not None and state.status == HeatmapStatus.RUNNING:
            self.logger.info("Stopping heatmap run %d before a new one", state.run_id)
            state.request_cancel()
        worker.stop(timeout)
        if worker.is_alive():
            self.logger.warning("Heatmap worker %s did not stop within %ss", worker.name, timeout)
