#!/usr/bin/env python3
"""
cdaa_pipeline.py

Orchestration of a CDAA query.

The numerical modules are pure functions. This module wires them into
the three steps a user goes through:

    1) prepare_expression   normalize, drop constant genes
    2) classify_stages      (stage_classifier) assign stage labels
    3) infer_interactions   pick the candidate pool and stage pair for
                            the gene of interest and run the threshold
                            ensemble

Queries that make no biological sense (regulators of an earliest-stage
gene, targets of a non-TF or latest-stage gene) return an
InferenceResult with a not_applicable reason instead of raising.
"""

from __future__ import annotations

import warnings
from typing import Optional, Sequence, Tuple

import numpy as np

from cdaa_config import CDAAParams
from cdaa_types import (
    DegenerateInputWarning,
    ExpressionData,
    InferenceResult,
    InputError,
    NormalizedExpression,
    REGULATORS,
    STAGE_NAMES,
    StageAssignment,
    StageLayout,
    TARGETS,
)
from expression_norm import normalize_expression
from threshold_ensemble import run_threshold_ensemble


# ======================================================================
# QUERY PARAMETERS
# ======================================================================

def parse_direction(token: str) -> str:
    """Map 'regulators'/'targets' (or any word starting with r/t) to a direction."""
    text = str(token).strip().lower()
    if text.startswith("r"):
        return REGULATORS
    if text.startswith("t"):
        return TARGETS
    raise InputError(f"Unknown type of interaction: {token!r}")


def find_gene(gene_ids: Sequence[str], goi: str) -> int:
    """Row index of a gene identifier, matched case-insensitively."""
    wanted = str(goi).strip().lower()
    for idx, gene_id in enumerate(gene_ids):
        if gene_id.lower() == wanted:
            return idx
    raise InputError(f"Gene with identifier {goi} is not found in the supplied dataset")


def candidate_pool(
    labels: np.ndarray,
    is_tf: np.ndarray,
    layout: StageLayout,
    goi_index: int,
    direction: str,
) -> Tuple[Optional[np.ndarray], Optional[int], Optional[str]]:
    """
    Candidate mask and stage pair for one query.

    Returns:
        (candidates, earlier_stage, reason). When the query is not
        applicable, candidates and earlier_stage are None and reason
        explains why.
    """
    labels = np.asarray(labels)
    is_tf = np.asarray(is_tf, dtype=bool)
    stage = int(labels[goi_index])

    if direction == REGULATORS:
        if stage <= layout.first_stage:
            return None, None, "the gene is in the earliest stage"
        earlier = stage - 1
        return (labels == earlier) & is_tf, earlier, None

    if direction == TARGETS:
        if not is_tf[goi_index]:
            return None, None, "the gene is not assumed to be a Transcription Factor"
        if stage >= layout.last_stage:
            return None, None, "the gene is in the latest stage"
        return labels == stage + 1, stage, None

    raise InputError(f"Unknown type of interaction: {direction!r}")


# ======================================================================
# PIPELINE STEPS
# ======================================================================

def prepare_expression(
    data: ExpressionData,
    ddof: int = 1,
) -> Tuple[ExpressionData, NormalizedExpression]:
    """
    Normalize a time course and drop genes with constant expression.

    Returns the retained data together with its normalized matrices.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DegenerateInputWarning)
        normalized = normalize_expression(data.values, data.time, ddof=ddof)

    if not np.any(normalized.degenerate):
        return data, normalized

    dropped = [g for g, bad in zip(data.gene_ids, normalized.degenerate) if bad]
    print(
        f"[WARN] Excluding {len(dropped)} gene(s) with constant expression: "
        f"{', '.join(dropped[:10])}{' ...' if len(dropped) > 10 else ''}"
    )
    warnings.warn(
        f"{len(dropped)} gene(s) with constant expression were excluded",
        DegenerateInputWarning,
        stacklevel=2,
    )

    keep = ~normalized.degenerate
    kept = data.subset(keep)
    return kept, NormalizedExpression(
        g=normalized.g[keep],
        s=normalized.s[keep],
        sn=normalized.sn[keep],
        degenerate=np.zeros(int(keep.sum()), dtype=bool),
    )


def infer_interactions(
    data: ExpressionData,
    normalized: NormalizedExpression,
    stages: StageAssignment,
    layout: StageLayout,
    goi: str,
    direction: str,
    params: Optional[CDAAParams] = None,
) -> InferenceResult:
    """
    Predict regulators or targets of one gene of interest.

    Args:
        data:
            Expression data whose rows match normalized and stages.
        normalized:
            Output of prepare_expression.
        stages:
            Output of classify_stages for the same genes.
        layout:
            Stage borders used for classification.
        goi:
            Identifier of the gene of interest.
        direction:
            'regulators' or 'targets' (see parse_direction).
        params:
            Thresholds; defaults to CDAAParams().

    Returns:
        InferenceResult with the voted interaction list.
    """
    params = params or CDAAParams()
    direction = parse_direction(direction)
    goi_index = find_gene(data.gene_ids, goi)
    goi_id = data.gene_ids[goi_index]
    goi_stage = int(stages.labels[goi_index])

    candidates, earlier, reason = candidate_pool(
        stages.labels, data.is_tf, layout, goi_index, direction
    )
    if reason is not None:
        print(f"[INFO] Not possible to find {direction} of {goi_id}: {reason}.")
        return InferenceResult(
            goi=goi_id,
            direction=direction,
            goi_stage=goi_stage,
            not_applicable=reason,
        )

    interval_slice, time_slice, n_reg_intervals = layout.pair_window(earlier)

    print(
        f"[INFO] {goi_id} is in the {STAGE_NAMES[goi_stage]} stage; "
        f"scoring {int(candidates.sum())} candidate {direction} "
        f"(stages {earlier} -> {earlier + 1})."
    )

    runs, interactions = run_threshold_ensemble(
        normalized.sn[:, interval_slice],
        data.time[time_slice],
        n_reg_intervals,
        goi_index,
        candidates,
        data.gene_ids,
        direction,
        dissimilarity_threshold=params.dissimilarity_threshold,
        denoise_thresholds=params.denoise_thresholds,
    )

    return InferenceResult(
        goi=goi_id,
        direction=direction,
        goi_stage=goi_stage,
        interactions=interactions,
        runs=runs,
    )
