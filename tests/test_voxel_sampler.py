import numpy as np
import pytest

from heatmap_test_utils import MismatchedVolume, make_mask
from models.mask_volume import MaskVolume
from models.target_grid import TargetGrid
from services.axis_mapping import build_grid_mappings
from services.bounds_extractor import finalize_bounds, new_bounds_table, slice_bounds
from services.voxel_sampler import accumulate_votes, new_vote_buffer
from utils.exceptions import MaskReadError, SamplingInvariantError


def _sample(volume, grid, bounds=None):
    votes = new_vote_buffer(grid)
    mappings = build_grid_mappings(volume.dimensions(), grid)
    ok = accumulate_votes(volume, *mappings, votes, grid, bounds)
    return ok, votes


def test_identity_grid_votes_match_presence():
    rng = np.random.default_rng(7)
    arr = (rng.random((3, 4, 5)) > 0.6).astype(np.uint8) * 3
    volume = MaskVolume(arr)
    grid = TargetGrid(5, 4, 3)

    ok, votes = _sample(volume, grid)

    assert ok
    assert np.array_equal(votes.reshape(grid.shape_zyx), (arr != 0).astype(np.float32))


def test_vote_sum_counts_every_present_voxel_even_when_merged():
    rng = np.random.default_rng(11)
    arr = (rng.random((6, 9, 10)) > 0.5).astype(np.int16)
    volume = MaskVolume(arr)
    grid = TargetGrid(3, 2, 2)

    ok, votes = _sample(volume, grid)

    assert ok
    assert votes.sum() == np.count_nonzero(arr)
    assert votes.max() > 1.0


def test_label_value_does_not_change_vote_weight():
    arr = np.zeros((1, 1, 3), dtype=np.int32)
    arr[0, 0, :] = [1, 7, 255]
    grid = TargetGrid(3, 1, 1)

    ok, votes = _sample(MaskVolume(arr), grid)

    assert ok
    assert votes.tolist() == [1.0, 1.0, 1.0]


def test_linear_index_is_x_fastest():
    volume = make_mask((2, 3, 4), [(3, 2, 1)])
    grid = TargetGrid(4, 3, 2)

    _, votes = _sample(volume, grid)

    assert np.flatnonzero(votes).tolist() == [grid.linear_index(3, 2, 1)]
    assert grid.linear_index(3, 2, 1) == 3 + 4 * (2 + 3 * 1)


def test_votes_accumulate_across_calls():
    grid = TargetGrid(2, 2, 2)
    votes = new_vote_buffer(grid)
    volume = make_mask((2, 2, 2), [(1, 1, 1)])
    mappings = build_grid_mappings(volume.dimensions(), grid)

    accumulate_votes(volume, *mappings, votes, grid)
    accumulate_votes(volume, *mappings, votes, grid)

    assert votes[grid.linear_index(1, 1, 1)] == 2.0
    assert votes.sum() == 2.0


def test_bounds_are_updated_per_target_slice():
    volume = make_mask((4, 4, 4), [(0, 1, 0), (3, 2, 0), (1, 3, 3)])
    grid = TargetGrid(4, 4, 2)
    bounds = new_bounds_table(grid.z)

    ok, _ = _sample(volume, grid, bounds)
    finalize_bounds(bounds)

    assert ok
    # z mapping 4 -> 2 is [0, 0, 1, 1]
    assert slice_bounds(bounds, 0) == (0, 3, 1, 2)
    assert slice_bounds(bounds, 1) == (1, 1, 3, 3)


def test_empty_volume_axis_returns_failure_without_mutation():
    volume = MaskVolume(np.zeros((0, 3, 3), dtype=np.uint8))
    grid = TargetGrid(3, 3, 3)
    votes = new_vote_buffer(grid)
    votes[0] = 5.0

    mappings = build_grid_mappings(volume.dimensions(), grid)
    assert accumulate_votes(volume, *mappings, votes, grid) is False
    assert votes[0] == 5.0
    assert votes[1:].sum() == 0.0


def test_degenerate_grid_returns_failure():
    volume = make_mask((2, 2, 2), [(0, 0, 0)])
    grid = TargetGrid(2, 0, 2)
    mappings = build_grid_mappings(volume.dimensions(), grid)

    assert accumulate_votes(volume, *mappings, np.zeros(0, dtype=np.float32), grid) is False


def test_all_zero_mask_adds_no_votes():
    volume = make_mask((2, 2, 2), [])
    ok, votes = _sample(volume, TargetGrid(2, 2, 2))

    assert ok
    assert votes.sum() == 0.0


def test_vote_buffer_size_mismatch_is_an_invariant_error():
    volume = make_mask((2, 2, 2), [(0, 0, 0)])
    grid = TargetGrid(2, 2, 2)
    mappings = build_grid_mappings(volume.dimensions(), grid)

    with pytest.raises(SamplingInvariantError):
        accumulate_votes(volume, *mappings, np.zeros(7, dtype=np.float32), grid)


def test_mapping_length_mismatch_is_an_invariant_error():
    volume = make_mask((2, 2, 2), [(0, 0, 0)])
    grid = TargetGrid(2, 2, 2)
    map_x, map_y, map_z = build_grid_mappings((3, 2, 2), grid)

    with pytest.raises(SamplingInvariantError):
        accumulate_votes(volume, map_x, map_y, map_z, new_vote_buffer(grid), grid)


def test_mapping_built_for_another_grid_is_an_invariant_error():
    volume = make_mask((2, 2, 4), [(3, 0, 0)])
    grid = TargetGrid(2, 2, 2)
    mappings = build_grid_mappings(volume.dimensions(), TargetGrid(8, 2, 2))

    with pytest.raises(SamplingInvariantError):
        accumulate_votes(volume, *mappings, new_vote_buffer(grid), grid)


def test_bounds_table_shape_mismatch_is_an_invariant_error():
    volume = make_mask((2, 2, 2), [(0, 0, 0)])
    grid = TargetGrid(2, 2, 2)
    mappings = build_grid_mappings(volume.dimensions(), grid)

    with pytest.raises(SamplingInvariantError):
        accumulate_votes(volume, *mappings, new_vote_buffer(grid), grid, new_bounds_table(5))


def test_volume_smaller_than_its_dimensions_is_rejected_before_voting():
    grid = TargetGrid(2, 2, 2)
    volume = MismatchedVolume((3, 3, 3), np.ones((2, 2, 2), dtype=np.uint8))
    votes = new_vote_buffer(grid)

    with pytest.raises(MaskReadError):
        accumulate_votes(volume, *build_grid_mappings(volume.dimensions(), grid), votes, grid)
    assert not votes.any()
