import threading

import numpy as np
import pytest

from controllers.heatmap_run_controller import HeatmapRunController
from heatmap_test_utils import (
    GatedVolume,
    RecordingVolume,
    make_mask,
    wait_for_terminal,
    wait_until,
)
from models.heatmap_result import HeatmapStatus
from services.heatmap_aggregator import HeatmapAggregator
from services.mask_loader import MaskLoader
from utils.exceptions import SamplingInvariantError


class _BrokenAggregator(HeatmapAggregator):
    def run(self, masks, grid, cancel_token=None, progress_sink=None):
        raise SamplingInvariantError("vote buffer holds 3 voxels, grid needs 8")


@pytest.fixture
def controller():
    ctrl = HeatmapRunController()
    yield ctrl
    ctrl.shutdown(timeout=5.0)


def test_idle_controller_polls_idle_and_has_no_result(controller):
    assert controller.poll_progress() == (0, HeatmapStatus.IDLE)
    assert controller.take_result() is None
    controller.cancel()
    assert controller.last_completed is None


def test_completed_run_is_published_once(controller):
    masks = [make_mask((2, 2, 2), [(1, 1, 1)]) for _ in range(3)]

    controller.start(masks, (2, 2, 2))
    percent, status = wait_for_terminal(controller)

    assert (percent, status) == (100, HeatmapStatus.COMPLETED)
    result = controller.take_result()
    assert result.status == HeatmapStatus.COMPLETED
    assert result.heat_at(1, 1, 1) == 1.0
    assert controller.take_result() is None
    assert controller.poll_progress()[1] == HeatmapStatus.IDLE
    assert controller.last_completed is result
    assert not controller.is_running


def test_result_is_none_while_running(controller):
    gated = GatedVolume(make_mask((2, 2, 2), [(0, 0, 0)]))

    controller.start([gated], (2, 2, 2))
    assert gated.entered.wait(5.0)

    assert controller.poll_progress() == (0, HeatmapStatus.RUNNING)
    assert controller.take_result() is None
    assert controller.is_running

    gated.gate.set()
    wait_for_terminal(controller)
    assert controller.take_result().status == HeatmapStatus.COMPLETED


def test_cancel_after_k_of_n_masks_publishes_no_heat(controller):
    gated = GatedVolume(make_mask((2, 2, 2), [(0, 0, 0)]))
    tail = RecordingVolume(make_mask((2, 2, 2), [(0, 0, 0)]))
    masks = [make_mask((2, 2, 2), [(0, 0, 0)]), gated, tail, make_mask((2, 2, 2), [])]

    controller.start(masks, (2, 2, 2))
    assert gated.entered.wait(5.0)
    controller.cancel()
    gated.gate.set()

    percent, status = wait_for_terminal(controller)
    result = controller.take_result()

    assert status == HeatmapStatus.CANCELED
    assert percent == 50
    assert result.status == HeatmapStatus.CANCELED
    assert result.masks_processed == 2
    assert result.heat is None
    assert tail.read_count == 0
    assert controller.last_completed is None


def test_canceled_run_keeps_previous_completed_result(controller):
    controller.start([make_mask((2, 2, 2), [(0, 0, 0)])], (2, 2, 2))
    wait_for_terminal(controller)
    first = controller.take_result()

    gated = GatedVolume(make_mask((2, 2, 2), [(1, 1, 1)]))
    controller.start([gated, make_mask((2, 2, 2), [])], (2, 2, 2))
    assert gated.entered.wait(5.0)
    controller.cancel()
    gated.gate.set()
    wait_for_terminal(controller)

    assert controller.take_result().status == HeatmapStatus.CANCELED
    assert controller.last_completed is first
    assert first.heat_at(0, 0, 0) == 1.0


def test_new_run_cancels_and_joins_the_running_one(controller):
    gated = GatedVolume(make_mask((2, 2, 2), [(0, 0, 0)]))
    never_read = RecordingVolume(make_mask((2, 2, 2), [(0, 0, 0)]))
    controller.start([gated, never_read], (2, 2, 2))
    assert gated.entered.wait(5.0)
    first_state = controller._state

    second_masks = [make_mask((2, 2, 2), [(1, 1, 1)])]
    starter = threading.Thread(target=controller.start, args=(second_masks, (2, 2, 2)))
    starter.start()

    # start() blocks on the join until the old worker leaves its current mask
    wait_until(lambda: first_state.is_canceled)
    assert starter.is_alive()
    gated.gate.set()
    starter.join(5.0)
    assert not starter.is_alive()

    wait_for_terminal(controller)
    result = controller.take_result()

    assert first_state.status == HeatmapStatus.CANCELED
    assert never_read.read_count == 0
    assert result.status == HeatmapStatus.COMPLETED
    assert result.total_masks == 1
    assert result.heat_at(1, 1, 1) == 1.0
    assert result.heat_at(0, 0, 0) == 0.0


def test_internal_failure_is_published_and_controller_stays_usable():
    controller = HeatmapRunController(aggregator=_BrokenAggregator())
    try:
        controller.start([make_mask((2, 2, 2), [(0, 0, 0)])], (2, 2, 2))
        _, status = wait_for_terminal(controller)
        result = controller.take_result()

        assert status == HeatmapStatus.FAILED
        assert result.status == HeatmapStatus.FAILED
        assert "SamplingInvariantError" in result.error
        assert controller.last_completed is None

        controller.aggregator = HeatmapAggregator()
        controller.start([make_mask((2, 2, 2), [(0, 0, 0)])], (2, 2, 2))
        _, status = wait_for_terminal(controller)
        assert status == HeatmapStatus.COMPLETED
        assert controller.take_result().heat_at(0, 0, 0) == 1.0
    finally:
        controller.shutdown(timeout=5.0)


def test_empty_request_ends_with_empty_status(controller):
    controller.start([], (4, 4, 4))
    _, status = wait_for_terminal(controller)

    assert status == HeatmapStatus.EMPTY
    assert controller.take_result().status == HeatmapStatus.EMPTY


def test_run_ids_increase(controller):
    first = controller.start([make_mask((2, 2, 2), [])], (2, 2, 2))
    wait_for_terminal(controller)
    second = controller.start([make_mask((2, 2, 2), [])], (2, 2, 2))
    wait_for_terminal(controller)

    assert second == first + 1


def test_empty_mask_file_is_skipped_not_failed(controller, tmp_path):
    loader = MaskLoader()
    good = tmp_path / "good.npy"
    arr = np.zeros((2, 2, 2), dtype=np.uint8)
    arr[0, 0, 0] = 1
    np.save(good, arr)
    empty = tmp_path / "empty.npy"
    empty.write_bytes(b"")

    controller.start([loader.lazy(str(good)), loader.lazy(str(empty))], (2, 2, 2))
    percent, status = wait_for_terminal(controller)
    result = controller.take_result()

    assert (percent, status) == (100, HeatmapStatus.COMPLETED)
    assert result.mask_count == 1
    assert [s.source for s in result.skipped] == [str(empty)]
    assert result.heat_at(0, 0, 0) == 1.0
    assert controller.last_completed is result
