#!/usr/bin/env python3
"""
cdaa_types.py

Shared data containers and error types for the CDAA pipeline
(Clustering and Dissimilarity Alignment Analysis).

Every numerical module imports its containers from here so that the
normalizer, stage classifier, dissimilarity engine and threshold
ensemble all agree on shapes and meanings.

Containers:
    - ExpressionData:        raw genes × time matrix with TF flags
    - NormalizedExpression:  g, s and sn matrices plus a degenerate mask
    - StageLayout:           stage boundaries and the windows they imply
    - StageAssignment:       per-gene stage labels and clustering details
    - DissimilarityResult:   one dissimilarity table with polarities
    - InteractionRecord:     one predicted interaction
    - InferenceResult:       the outcome of a single GOI query
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np


STAGE_NAMES = {
    1: "Initiation",
    2: "Primary Response",
    3: "Secondary Response",
}

ACTIVATOR = "activator"
INHIBITOR = "inhibitor"

REGULATORS = "regulators"
TARGETS = "targets"


# ======================================================================
# ERRORS
# ======================================================================

class InputError(ValueError):
    """Malformed input: bad time points, shapes, identifiers or tokens."""


class DegenerateInputWarning(UserWarning):
    """A gene has constant expression and cannot be normalized."""


# ======================================================================
# EXPRESSION DATA
# ======================================================================

@dataclass(frozen=True)
class ExpressionData:
    """
    Raw expression time course.

    Attributes
    ----------
    gene_ids:
        One unique identifier per row.
    time:
        Integer sampling times, strictly increasing, one per column.
    values:
        Expression matrix of shape (n_genes, n_timepoints).
    is_tf:
        Transcription factor flag per gene. All True when no TF list
        is supplied.
    """

    gene_ids: Tuple[str, ...]
    time: np.ndarray
    values: np.ndarray
    is_tf: np.ndarray

    @classmethod
    def build(
        cls,
        gene_ids: Sequence[str],
        time: Sequence[float],
        values: Sequence[Sequence[float]],
        is_tf: Optional[Sequence[bool]] = None,
    ) -> "ExpressionData":
        """Validate inputs and construct an ExpressionData instance."""
        ids = tuple(str(g) for g in gene_ids)
        t_arr = np.asarray(time, dtype=float)
        v_arr = np.asarray(values, dtype=float)

        if v_arr.ndim != 2:
            raise InputError(
                f"Expression values must be a 2-D matrix, got shape {v_arr.shape}"
            )
        if v_arr.shape[0] != len(ids):
            raise InputError(
                f"Got {len(ids)} gene identifiers for {v_arr.shape[0]} expression rows"
            )
        if v_arr.shape[1] != t_arr.shape[0]:
            raise InputError(
                f"Got {t_arr.shape[0]} time points for {v_arr.shape[1]} expression columns"
            )
        if np.any(np.round(t_arr) != t_arr):
            raise InputError(
                "Time points must be integers; try converting them into minutes"
            )
        if t_arr.shape[0] > 1 and np.any(np.diff(t_arr) <= 0):
            raise InputError("Time points must be strictly increasing")

        # Missing cells arrive as NaN from the CSV reader
        bad_rows = ~np.all(np.isfinite(v_arr), axis=1)
        if np.any(bad_rows):
            missing = [g for g, bad in zip(ids, bad_rows) if bad]
            raise InputError(
                f"Expression values are missing or non-finite for "
                f"{len(missing)} gene(s): {', '.join(missing[:10])}"
            )

        lowered = [g.lower() for g in ids]
        if len(set(lowered)) != len(lowered):
            raise InputError("Gene identifiers must be unique")

        if is_tf is None:
            tf_arr = np.ones(len(ids), dtype=bool)
        else:
            tf_arr = np.asarray(is_tf, dtype=bool)
            if tf_arr.shape != (len(ids),):
                raise InputError(
                    f"Got {tf_arr.shape[0]} TF flags for {len(ids)} genes"
                )

        return cls(
            gene_ids=ids,
            time=t_arr.astype(int),
            values=v_arr,
            is_tf=tf_arr,
        )

    @property
    def n_genes(self) -> int:
        return len(self.gene_ids)

    @property
    def n_timepoints(self) -> int:
        return int(self.time.shape[0])

    def subset(self, mask: np.ndarray) -> "ExpressionData":
        """Return a copy restricted to the genes selected by a boolean mask."""
        mask = np.asarray(mask, dtype=bool)
        return ExpressionData(
            gene_ids=tuple(g for g, keep in zip(self.gene_ids, mask) if keep),
            time=self.time.copy(),
            values=self.values[mask].copy(),
            is_tf=self.is_tf[mask].copy(),
        )


@dataclass(frozen=True)
class NormalizedExpression:
    """
    Normalized matrices derived from one ExpressionData.

    g  - centered, unit-variance expression (genes × T)
    s  - time-scaled first differences of g (genes × T-1)
    sn - s divided row-wise by its maximum absolute value
    degenerate - True for genes with constant expression
    """

    g: np.ndarray
    s: np.ndarray
    sn: np.ndarray
    degenerate: np.ndarray


# ======================================================================
# STAGES
# ======================================================================

@dataclass(frozen=True)
class StageLayout:
    """
    Stage boundaries for one time course.

    b is the 1-based column index of the last Initiation time point and
    c the number of intervals in the Primary Response stage.
    """

    b: int
    c: int
    n_timepoints: int

    def __post_init__(self) -> None:
        if self.b < 0 or self.c < 0:
            raise InputError(f"Stage border values must be >= 0, got b={self.b}, c={self.c}")
        if self.n_timepoints < 2:
            raise InputError("At least two time points are required")
        if self.b > self.n_timepoints:
            raise InputError(
                f"Stage border b={self.b} lies beyond the last of "
                f"{self.n_timepoints} time points"
            )

    @property
    def has_initiation(self) -> bool:
        return self.b >= 2

    @property
    def has_secondary(self) -> bool:
        return self.b + self.c < self.n_timepoints

    @property
    def first_stage(self) -> int:
        return 1 if self.has_initiation else 2

    @property
    def last_stage(self) -> int:
        return 3 if self.has_secondary else 2

    @property
    def primary_start(self) -> int:
        """1-based time point where the Primary Response stage starts."""
        return max(self.b, 1)

    @property
    def primary_end(self) -> int:
        """1-based time point where the Primary Response stage ends."""
        return min(self.b + self.c, self.n_timepoints)

    def clustering_windows(self) -> List[Tuple[int, int]]:
        """
        Return (source_stage, n_columns) for every clustering step.

        Genes of source_stage are clustered on the first n_columns time
        points and the least active cluster moves to source_stage + 1.
        """
        if not self.has_initiation:
            # Every gene stays in Primary Response without a Secondary stage
            return [(2, self.primary_end)] if self.has_secondary else []
        windows = [(1, self.b)]
        if self.has_secondary:
            windows.append((2, self.b + self.c))
        return windows

    def pair_window(self, earlier_stage: int) -> Tuple[slice, slice, int]:
        """
        Interval slice, time slice and regulator interval count for the
        stage pair (earlier_stage, earlier_stage + 1).
        """
        if earlier_stage == 1:
            p1 = self.primary_end
            return slice(0, p1 - 1), slice(0, p1), self.b - 1
        if earlier_stage == 2:
            p0 = self.primary_start
            return (
                slice(p0 - 1, self.n_timepoints - 1),
                slice(p0 - 1, self.n_timepoints),
                self.primary_end - p0,
            )
        raise InputError(f"No later stage follows stage {earlier_stage}")


@dataclass(frozen=True)
class StageAssignment:
    """Result of stage classification. Built once all steps have run."""

    labels: np.ndarray
    centroids: List[Optional[np.ndarray]] = field(default_factory=list)
    cluster_indices: List[np.ndarray] = field(default_factory=list)
    least_active: List[int] = field(default_factory=list)
    windows: List[Tuple[int, int]] = field(default_factory=list)

    def counts(self) -> dict:
        """Number of genes per stage label."""
        return {
            int(stage): int(np.sum(self.labels == stage))
            for stage in sorted(STAGE_NAMES)
        }


# ======================================================================
# INTERACTIONS
# ======================================================================

@dataclass(frozen=True)
class DissimilarityResult:
    """
    One dissimilarity table.

    table rows follow the True entries of candidates in gene order.
    activation is True where the resolved polarity is activation.
    delays holds the real-time delay of every column of table.
    """

    table: np.ndarray
    activation: np.ndarray
    dT: int
    candidates: np.ndarray
    delays: np.ndarray
    best_delay: np.ndarray

    @property
    def gene_indices(self) -> np.ndarray:
        return np.flatnonzero(self.candidates)

    def pairs(self) -> List[Tuple[int, bool, int]]:
        """(gene index, is activation, best delay) for every surviving row."""
        return [
            (int(idx), bool(act), int(delay))
            for idx, act, delay in zip(self.gene_indices, self.activation, self.best_delay)
        ]


@dataclass(frozen=True)
class InteractionRecord:
    gene_id: str
    polarity: str
    delay: Optional[int] = None


@dataclass
class InferenceResult:
    """Outcome of a regulator or target query for one gene of interest."""

    goi: str
    direction: str
    goi_stage: int
    interactions: List[InteractionRecord] = field(default_factory=list)
    runs: List[Tuple[Optional[float], DissimilarityResult]] = field(default_factory=list)
    not_applicable: Optional[str] = None

    @property
    def applicable(self) -> bool:
        return self.not_applicable is None
