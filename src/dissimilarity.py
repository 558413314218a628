#!/usr/bin/env python3
"""
dissimilarity.py

Alignment and dissimilarity scoring between a gene of interest (GOI)
and a pool of candidate regulators or targets.

The two adjacent stages are put on a common integer time grid whose
step dT is the greatest common divisor of all sampling gaps. Each
interval of the scaled change matrix is repeated gap / dT times
(zeroth-order hold), so that one shift always equals one dT.

The regulator-side pattern is compared against the target-side pattern
delayed by 0..n_shifts steps:

    activation score  = mean |reg - tgt|   (both move together)
    inhibition score  = mean |reg + tgt|   (they move oppositely)

At every shift the lower score wins and gives the polarity. A
candidate survives when its minimum dissimilarity lies inside the
shift range (not only at the first or last shift) and is below the
dissimilarity threshold. The boundary shifts are then trimmed from the
reported table.

Why this exists:
    - Regulators act with a delay, so co-expression at equal time
      points misses most interactions. Sliding one pattern against
      the other on a uniform grid turns the delay into a column index.
    - The same scoring serves both query directions; only the side
      that slides changes.
"""

from __future__ import annotations

# Import typing utilities for type hints
from typing import Sequence, Tuple

# Import numpy for numerical arrays and operations
import numpy as np

from cdaa_types import DissimilarityResult, InputError, REGULATORS, TARGETS


# ======================================================================
# COMMON TIME GRID
# ======================================================================

def common_time_step(t: Sequence[int]) -> int:
    """Greatest common divisor of all consecutive time gaps."""
    intervals = np.diff(np.asarray(t)).astype(int)
    if intervals.shape[0] == 0:
        raise InputError("At least two time points are required to build a time grid")
    if np.any(intervals <= 0):
        raise InputError("Time points must be strictly increasing")
    return int(np.gcd.reduce(intervals))


def zero_order_hold(sn: np.ndarray, t: Sequence[int]) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Re-express interval values on a uniform grid of step dT.

    Returns:
        (sn0, reps, dT): the expanded matrix, the number of grid steps of
        every original interval and the grid step itself.
    """
    sn_arr = np.asarray(sn, dtype=float)
    dT = common_time_step(t)

    # Grid steps covered by every original interval
    reps = np.diff(np.asarray(t)).astype(int) // dT

    if sn_arr.shape[1] != reps.shape[0]:
        raise InputError(
            f"Change matrix has {sn_arr.shape[1]} intervals but the time axis "
            f"defines {reps.shape[0]}"
        )

    return np.repeat(sn_arr, reps, axis=1), reps, dT


# ======================================================================
# SCORING
# ======================================================================

def score_alignment(
    regulator: np.ndarray,
    target: np.ndarray,
    n_shifts: int,
    window: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Activation and inhibition scores for every shift.

    The regulator-side pattern is fixed on steps [0, window) and the
    target-side pattern is taken on [n, n + window) for n = 0..n_shifts.
    Both inputs are 2-D and broadcast against each other row-wise.

    Returns:
        (disa, disi): arrays of shape (n_rows, n_shifts + 1).
    """
    reg = np.atleast_2d(np.asarray(regulator, dtype=float))
    tgt = np.atleast_2d(np.asarray(target, dtype=float))

    # Regulator side stays fixed on the first window steps
    reg_prt = reg[:, :window]
    disa = []
    disi = []
    for n in range(n_shifts + 1):
        # Target side delayed by n grid steps
        tgt_prt = tgt[:, n:n + window]
        disa.append(np.mean(np.abs(reg_prt - tgt_prt), axis=1))
        disi.append(np.mean(np.abs(reg_prt + tgt_prt), axis=1))

    return np.column_stack(disa), np.column_stack(disi)


def _trimmed_width(n_diss: int) -> int:
    return n_diss - 2 if n_diss > 2 else max(n_diss - 1, 0)


def compute_dissimilarity(
    sn: np.ndarray,
    t: Sequence[int],
    n_reg_intervals: int,
    goi_index: int,
    candidates: np.ndarray,
    threshold: float,
    direction: str,
) -> DissimilarityResult:
    """
    Build the dissimilarity table for one GOI and one candidate pool.

    Args:
        sn:
            Scaled change matrix restricted to the two stages
            (genes × intervals).
        t:
            Time points of the two stages (one more than intervals).
        n_reg_intervals:
            Number of intervals that belong to the regulator-side stage.
        goi_index:
            Row of sn holding the gene of interest.
        candidates:
            Boolean mask of candidate genes.
        threshold:
            Upper bound (exclusive) for an accepted minimum dissimilarity.
        direction:
            REGULATORS or TARGETS.

    Returns:
        DissimilarityResult for the surviving candidates.
    """
    if direction not in (REGULATORS, TARGETS):
        raise InputError(f"Unknown type of interaction: {direction!r}")

    sn_arr = np.asarray(sn, dtype=float)
    cand = np.asarray(candidates, dtype=bool)

    if cand.shape != (sn_arr.shape[0],):
        raise InputError(
            f"Candidate mask of length {cand.shape[0]} does not match {sn_arr.shape[0]} genes"
        )
    if not 0 <= goi_index < sn_arr.shape[0]:
        raise InputError(f"Gene of interest row {goi_index} is out of range")

    sn0, reps, dT = zero_order_hold(sn_arr, t)

    # Steps in the regulator's and target's stages
    nti_reg = int(np.sum(reps[:max(int(n_reg_intervals), 0)]))
    nti_tgt = int(np.sum(reps)) - nti_reg

    # Shift range and the width of the compared window
    n_shifts = min(nti_reg, nti_tgt)
    window = int(np.sum(reps)) - n_shifts
    n_diss = n_shifts + 1

    # Columns left after trimming and their delays in real time
    out_width = _trimmed_width(n_diss)
    delays = dT * np.arange(1, out_width + 1)

    # Nothing to score
    if not np.any(cand):
        return DissimilarityResult(
            table=np.zeros((0, out_width)),
            activation=np.zeros(0, dtype=bool),
            dT=dT,
            candidates=cand.copy(),
            delays=delays,
            best_delay=np.zeros(0, dtype=int),
        )

    goi_ptrn = sn0[goi_index][np.newaxis, :]
    cand_ptrn = sn0[cand]

    if direction == REGULATORS:
        disa, disi = score_alignment(cand_ptrn, goi_ptrn, n_shifts, window)
    else:
        disa, disi = score_alignment(goi_ptrn, cand_ptrn, n_shifts, window)

    # Interaction type and winning score at every shift
    int_types = disa < disi
    disst = np.where(int_types, disa, disi)

    # Keep candidates whose minimum is reached away from the boundary shifts
    min_diss = disst.min(axis=1)
    if n_diss > 1:
        inner_min = disst[:, 1:max(2, n_diss - 1)].min(axis=1)
        keep = (min_diss == inner_min) & (min_diss < threshold)
    else:
        keep = np.zeros(disst.shape[0], dtype=bool)

    # Candidate mask over all genes after filtering
    filtered = cand.copy()
    filtered[cand] = keep

    # Restrict the table to the survivors
    disst = disst[keep]
    int_types = int_types[keep]
    min_diss = min_diss[keep]

    if n_diss > 2:
        # Drop the first and last shift
        disst = disst[:, 1:-1]
        int_types = int_types[:, 1:-1]

        # Later columns at the minimum decide the interaction type
        int_type = int_types[:, 0].copy()
        best_col = np.zeros(disst.shape[0], dtype=int)
        for n in range(1, disst.shape[1]):
            at_min = disst[:, n] == min_diss
            int_type[at_min] = int_types[at_min, n]
            best_col[at_min] = n
    else:
        # Two shifts: only the first one is dropped
        disst = disst[:, 1:]
        int_type = int_types[:, 1] if int_types.shape[1] > 1 else np.zeros(0, dtype=bool)
        best_col = np.zeros(disst.shape[0], dtype=int)

    best_delay = delays[best_col] if delays.shape[0] else np.zeros(0, dtype=int)

    return DissimilarityResult(
        table=disst,
        activation=np.asarray(int_type, dtype=bool),
        dT=dT,
        candidates=filtered,
        delays=delays,
        best_delay=np.asarray(best_delay, dtype=int),
    )
