#!/usr/bin/env python3
"""
expression_norm.py

Normalization of expression time courses.

This module turns a raw genes × time matrix into the three matrices the
rest of the pipeline works with:

    g  = (g_raw - mean) / std           normalized expression
    s  = diff(g) / diff(t)              normalized change per time unit
    sn = s / max(|s|)                   change scaled to [-1, 1] per gene

The standard deviation uses the sample (N-1) divisor by default. Genes
with constant expression map to NaN rows and are reported through a
DegenerateInputWarning; they are never silently patched.

It also provides the cardinality histogram used to choose the Primary
Response border: for every interval, how many genes have their largest
absolute change in that interval.

Why this exists:
    - Stage classification and dissimilarity scoring both compare
      patterns across genes, so every gene has to live on the same
      scale first.
    - Keeping the normalization in one place guarantees that the
      border suggestion, the clustering and the alignment all see the
      exact same g, s and sn.

This module is I/O-free. It is used by:
    - src/cdaa_pipeline.py
    - src/stage_classifier.py
    - src/threshold_ensemble.py
"""

from __future__ import annotations

# Import warnings to report constant-expression genes
import warnings

# Import typing utilities for type hints
from typing import Sequence, Tuple

# Import numpy for numerical arrays and operations
import numpy as np

from cdaa_types import DegenerateInputWarning, InputError, NormalizedExpression


# ======================================================================
# CENTERING AND SCALING
# ======================================================================

def center_expr(m: np.ndarray) -> np.ndarray:
    """Subtract each row's mean from that row."""
    m_arr = np.asarray(m, dtype=float)
    return m_arr - m_arr.mean(axis=1, keepdims=True)


def norm_expr(g_raw: np.ndarray, ddof: int = 1) -> np.ndarray:
    """
    Center and scale expression patterns row by row.

    Args:
        g_raw:
            Expression matrix (genes × time points).
        ddof:
            Delta degrees of freedom for the standard deviation. The
            default of 1 gives the sample standard deviation.

    Returns:
        np.ndarray: Matrix of the same shape with zero-mean, unit-variance
        rows. Rows with zero variance are NaN.
    """
    g_arr = np.asarray(g_raw, dtype=float)

    # Centered patterns
    centered = center_expr(g_arr)

    # Row standard deviations, kept 2-D for broadcasting
    sd = np.std(g_arr, axis=1, ddof=ddof, keepdims=True)

    # Constant rows divide 0 by 0 and become NaN
    with np.errstate(divide="ignore", invalid="ignore"):
        g = centered / sd

    # Count rows that could not be scaled
    n_bad = int(np.sum(~np.all(np.isfinite(g), axis=1)))
    if n_bad:
        warnings.warn(
            f"{n_bad} gene(s) have constant expression and could not be normalized",
            DegenerateInputWarning,
            stacklevel=2,
        )

    return g


def norm_change(g: np.ndarray, t: Sequence[float]) -> np.ndarray:
    """
    Time-scaled first differences of normalized expression.

    Returns a genes × (T-1) matrix where column n holds
    (g[:, n+1] - g[:, n]) / (t[n+1] - t[n]).
    """
    # Convert inputs to float arrays
    g_arr = np.asarray(g, dtype=float)
    t_arr = np.asarray(t, dtype=float)

    # Validate the time axis against the matrix
    if t_arr.shape[0] < 2:
        raise InputError("At least two time points are required to compute changes")
    if g_arr.ndim != 2 or g_arr.shape[1] != t_arr.shape[0]:
        raise InputError(
            f"Expression matrix of shape {g_arr.shape} does not match "
            f"{t_arr.shape[0]} time points"
        )

    # Change per unit of time between consecutive samples
    return np.diff(g_arr, axis=1) / np.diff(t_arr)[np.newaxis, :]


def scale_change(s: np.ndarray) -> np.ndarray:
    """Divide every row of s by its maximum absolute value."""
    s_arr = np.asarray(s, dtype=float)

    # Largest absolute change per gene, kept 2-D for broadcasting
    max_abs = np.max(np.abs(s_arr), axis=1, keepdims=True)

    # Rows without any change stay NaN
    with np.errstate(divide="ignore", invalid="ignore"):
        return s_arr / max_abs


def threshold_change(sn: np.ndarray, thr: float) -> np.ndarray:
    """
    Quantize scaled changes to {-1, 0, 1} with a symmetric cutoff.

    Values above thr become 1, values below -thr become -1 and
    everything in between becomes 0.
    """
    sn_arr = np.asarray(sn, dtype=float)

    # +1 above the cutoff, -1 below its negative, 0 otherwise
    return (sn_arr > thr).astype(float) - (sn_arr < -thr).astype(float)


def normalize_expression(
    values: np.ndarray,
    time: Sequence[float],
    ddof: int = 1,
) -> NormalizedExpression:
    """Compute g, s and sn in one pass and flag degenerate genes."""
    g = norm_expr(values, ddof=ddof)
    s = norm_change(g, time)
    sn = scale_change(s)
    degenerate = ~np.all(np.isfinite(g), axis=1)
    return NormalizedExpression(g=g, s=s, sn=sn, degenerate=degenerate)


# ======================================================================
# BORDER SELECTION
# ======================================================================

def change_cardinalities(s: np.ndarray) -> np.ndarray:
    """
    Count, per interval, the genes whose largest absolute change falls
    into that interval. A gene with several equal maxima is counted in
    each of them. NaN rows are ignored.
    """
    abs_s = np.abs(np.asarray(s, dtype=float))

    # Drop degenerate genes
    finite = np.all(np.isfinite(abs_s), axis=1)
    abs_s = abs_s[finite]
    if abs_s.shape[0] == 0:
        return np.zeros(np.asarray(s).shape[1], dtype=int)

    # Mark every interval that holds a gene's largest change
    max_s = abs_s.max(axis=1, keepdims=True)
    return np.sum(abs_s == max_s, axis=0).astype(int)


def suggest_border(s: np.ndarray) -> Tuple[int, int]:
    """
    Suggest the Primary Response border b and interval count c.

    b is the 1-based index of the interval with the highest cardinality
    (the first one on ties) and c is always 1.
    """
    cardinalities = change_cardinalities(s)

    # np.argmax returns the first maximum; shift to a 1-based index
    b = int(np.argmax(cardinalities)) + 1
    return b, 1
