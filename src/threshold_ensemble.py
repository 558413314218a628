#!/usr/bin/env python3
"""
threshold_ensemble.py

Repeat the dissimilarity analysis at several denoising thresholds and
keep the interactions that recur.

Run 0 uses the scaled change matrix as is. Every further run quantizes
it to {-1, 0, 1} at one denoising threshold. An interaction with a
candidate is accepted when the candidate survives in strictly more than
half of the runs and all of those runs agree on its polarity.

Why this exists:
    - Small fluctuations in the scaled changes can flip a candidate in
      or out of a single table. Quantizing at a few cutoffs and voting
      keeps only interactions that do not hinge on such noise.
"""

from __future__ import annotations

# Import typing utilities for type hints
from typing import Dict, List, Optional, Sequence, Tuple

# Import numpy for numerical arrays and operations
import numpy as np

from cdaa_types import (
    ACTIVATOR,
    INHIBITOR,
    DissimilarityResult,
    InteractionRecord,
)
from dissimilarity import compute_dissimilarity
from expression_norm import threshold_change


def _polarity(is_activation: bool) -> str:
    return ACTIVATOR if is_activation else INHIBITOR


def vote_across_thresholds(
    runs: Sequence[DissimilarityResult],
    gene_ids: Sequence[str],
) -> List[InteractionRecord]:
    """
    Merge the survivors of several runs by majority vote.

    A single run is returned as is. Otherwise a candidate is kept when it
    appears in more than len(runs) / 2 runs with one polarity only.
    Records are ordered by first discovery and carry the delay of the
    first run that reported them.
    """
    if len(runs) == 0:
        return []

    if len(runs) == 1:
        return [
            InteractionRecord(gene_ids[idx], _polarity(act), delay)
            for idx, act, delay in runs[0].pairs()
        ]

    # Pool of (gene index) -> polarities seen, in order of discovery
    pool: Dict[int, List[bool]] = {}
    first_delay: Dict[int, int] = {}
    for run in runs:
        for idx, act, delay in run.pairs():
            if idx not in pool:
                pool[idx] = []
                first_delay[idx] = delay
            pool[idx].append(act)

    # Strict majority with a single polarity
    quorum = len(runs) / 2
    accepted = []
    for idx, polarities in pool.items():
        if len(polarities) > quorum and len(set(polarities)) == 1:
            accepted.append(
                InteractionRecord(gene_ids[idx], _polarity(polarities[0]), first_delay[idx])
            )
    return accepted


def run_threshold_ensemble(
    sn: np.ndarray,
    t: Sequence[int],
    n_reg_intervals: int,
    goi_index: int,
    candidates: np.ndarray,
    gene_ids: Sequence[str],
    direction: str,
    dissimilarity_threshold: float = 0.4,
    denoise_thresholds: Optional[Sequence[float]] = (0.2, 0.2),
) -> Tuple[List[Tuple[Optional[float], DissimilarityResult]], List[InteractionRecord]]:
    """
    Run the dissimilarity engine once per threshold and vote.

    Returns:
        (runs, interactions): every run labelled by its denoising
        threshold (None for the unthresholded run) and the voted list.
    """
    # The unthresholded run always comes first
    thresholds: List[Optional[float]] = [None] + list(denoise_thresholds or [])

    runs: List[Tuple[Optional[float], DissimilarityResult]] = []
    for thr in thresholds:
        # Quantize to {-1, 0, 1} for the denoised runs
        sn_run = sn if thr is None else threshold_change(sn, thr)
        result = compute_dissimilarity(
            sn_run,
            t,
            n_reg_intervals,
            goi_index,
            candidates,
            dissimilarity_threshold,
            direction,
        )
        runs.append((thr, result))

    interactions = vote_across_thresholds([r for _, r in runs], gene_ids)
    return runs, interactions
