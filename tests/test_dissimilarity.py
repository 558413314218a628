import numpy as np
import pytest

from cdaa_types import InputError, REGULATORS, TARGETS
from dissimilarity import (
    common_time_step,
    compute_dissimilarity,
    score_alignment,
    zero_order_hold,
)


def test_common_time_step_is_gcd_of_gaps():
    assert common_time_step([0, 3, 9, 24]) == 3
    assert common_time_step([1, 3, 7]) == 2
    assert common_time_step([0, 5]) == 5


def test_zero_order_hold_keeps_values_at_original_points():
    sn = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 0.0]])
    t = [0, 3, 9, 24]
    sn0, reps, dT = zero_order_hold(sn, t)

    assert dT == 3
    np.testing.assert_array_equal(reps, [1, 2, 5])
    np.testing.assert_array_equal(sn0[0], [1, 2, 2, 3, 3, 3, 3, 3])

    starts = np.concatenate([[0], np.cumsum(reps)[:-1]])
    np.testing.assert_array_equal(sn0[:, starts], sn)


def test_zero_order_hold_rejects_mismatched_axis():
    with pytest.raises(InputError):
        zero_order_hold(np.zeros((1, 2)), [0, 1, 2, 3])


def test_sign_flip_swaps_activation_and_inhibition(rng):
    x = rng.uniform(-1, 1, size=(4, 6))
    y = rng.uniform(-1, 1, size=(4, 6))

    disa, disi = score_alignment(x, y, n_shifts=2, window=4)
    disa_neg, disi_neg = score_alignment(-x, y, n_shifts=2, window=4)

    assert disa.shape == (4, 3)
    np.testing.assert_allclose(disa_neg, disi)
    np.testing.assert_allclose(disi_neg, disa)


def test_score_alignment_slides_target_side():
    reg = np.array([[1.0, 1.0, 0.0, 0.0]])
    tgt = np.array([[0.0, 1.0, 1.0, 0.0]])
    disa, disi = score_alignment(reg, tgt, n_shifts=2, window=2)
    np.testing.assert_allclose(disa, [[0.5, 0.0, 0.5]])
    np.testing.assert_allclose(disi, [[1.5, 2.0, 1.5]])


# Target search on a 4-step grid: 2 regulator steps, 2 target steps,
# hence 3 shift columns of which only the middle one is interior.
SN_BOUNDARY = np.array([
    [1.0, 1.0, 0.0, 0.0],    # gene of interest
    [1.0, 1.0, 0.0, 0.0],    # best fit at shift 0 only
    [0.0, 0.0, 1.0, 1.0],    # best fit at the last shift only
    [0.0, 1.0, 1.0, 0.0],    # activation at the interior shift
    [0.0, -1.0, -1.0, 0.0],  # inhibition at the interior shift
])
T_BOUNDARY = [0, 1, 2, 3, 4]
CAND_BOUNDARY = np.array([False, True, True, True, True])


def test_boundary_minimum_never_survives():
    result = compute_dissimilarity(
        SN_BOUNDARY, T_BOUNDARY, 2, 0, CAND_BOUNDARY, 0.4, TARGETS
    )
    np.testing.assert_array_equal(result.candidates, [False, False, False, True, True])
    np.testing.assert_array_equal(result.gene_indices, [3, 4])
    np.testing.assert_array_equal(result.activation, [True, False])
    assert result.table.shape == (2, 1)
    np.testing.assert_allclose(result.table[:, 0], [0.0, 0.0])
    assert result.dT == 1
    np.testing.assert_array_equal(result.delays, [1])
    np.testing.assert_array_equal(result.best_delay, [1, 1])


def test_threshold_is_strict():
    result = compute_dissimilarity(
        SN_BOUNDARY, T_BOUNDARY, 2, 0, CAND_BOUNDARY, 0.0, TARGETS
    )
    assert result.table.shape == (0, 1)
    assert not result.candidates.any()


def test_regulator_search_slides_gene_of_interest():
    sn = np.array([
        [1.0, 1.0, 0.0, 0.0],  # candidate regulator
        [0.0, 1.0, 1.0, 0.0],  # gene of interest
    ])
    result = compute_dissimilarity(
        sn, T_BOUNDARY, 2, 1, np.array([True, False]), 0.4, REGULATORS
    )
    np.testing.assert_array_equal(result.gene_indices, [0])
    np.testing.assert_array_equal(result.activation, [True])


def test_two_column_table_keeps_second_column():
    sn = np.array([
        [1.0, 0.0],   # gene of interest
        [0.0, 1.0],   # activated one interval later
        [0.0, -1.0],  # repressed one interval later
        [1.0, 0.0],   # moves together with no delay
    ])
    cand = np.array([False, True, True, True])
    result = compute_dissimilarity(sn, [0, 3, 6], 1, 0, cand, 0.4, TARGETS)

    assert result.dT == 3
    np.testing.assert_array_equal(result.gene_indices, [1, 2])
    np.testing.assert_array_equal(result.activation, [True, False])
    assert result.table.shape == (2, 1)
    np.testing.assert_array_equal(result.delays, [3])
    np.testing.assert_array_equal(result.best_delay, [3, 3])


def test_latest_minimum_decides_polarity():
    # 6-step grid, 3 regulator / 3 target steps: shifts 0..3, interior 1..2
    sn = np.array([
        [1.0, 0.0, 0.0, 0.0, 0.0, 0.0],   # gene of interest
        [0.0, 1.0, -1.0, 0.0, 1.0, 0.0],  # equal fit at shift 1 (act) and 2 (inh)
    ])
    result = compute_dissimilarity(
        sn, [0, 1, 2, 3, 4, 5, 6], 3, 0, np.array([False, True]), 0.4, TARGETS
    )
    assert result.table.shape == (1, 2)
    np.testing.assert_array_equal(result.activation, [False])
    np.testing.assert_array_equal(result.best_delay, [2])


def test_empty_candidate_pool_short_circuits():
    result = compute_dissimilarity(
        SN_BOUNDARY, T_BOUNDARY, 2, 0, np.zeros(5, dtype=bool), 0.4, TARGETS
    )
    assert result.table.shape == (0, 1)
    assert result.activation.shape == (0,)
    assert result.pairs() == []


def test_unknown_direction_is_rejected():
    with pytest.raises(InputError):
        compute_dissimilarity(
            SN_BOUNDARY, T_BOUNDARY, 2, 0, CAND_BOUNDARY, 0.4, "sideways"
        )
