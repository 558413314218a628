#!/usr/bin/env python3
"""
expression_io.py

File readers and writers around the CDAA core.

Expression file format (.csv):
    - first row: an identifier header cell followed by sampling times
    - first column: gene identifiers
    - remaining cells: expression values

    Example:
        gene,1,3,6,24
        At1g23456,1.223,2.334,1.01,0.44
        At3g45678,0.523,3.224,2.91,2.14

Columns may arrive in any order; they are sorted by time on load.

TF list format (.csv): one gene identifier per line in the first column,
no header.

Centroids are stored as JSON so that a clustering chosen in one run can
be reused, unchanged, by later runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from cdaa_types import ExpressionData, InputError, InteractionRecord, StageAssignment


# ======================================================================
# EXPRESSION DATA
# ======================================================================

def read_expression_csv(path: Path, tf_path: Optional[Path] = None) -> ExpressionData:
    """
    Load an expression time course and, optionally, a TF list.

    Raises:
        FileNotFoundError: If a file is missing.
        InputError: If time points are not integers, values are not
            numeric, or gene identifiers repeat.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Expression file not found: {path}")

    df = pd.read_csv(path, index_col=0)
    if df.empty:
        raise InputError(f"Expression file {path} contains no data")

    # Time points come from the header
    try:
        times = pd.to_numeric(pd.Series(df.columns, dtype=str).str.strip())
    except ValueError as exc:
        raise InputError(f"Time point header of {path} is not numeric: {exc}") from exc

    try:
        values = df.apply(pd.to_numeric).to_numpy(dtype=float)
    except ValueError as exc:
        raise InputError(f"Expression values in {path} are not numeric: {exc}") from exc

    # Sort columns in case sampling points are given out of order
    order = np.argsort(times.to_numpy(), kind="stable")
    gene_ids = [str(g).strip() for g in df.index]

    is_tf = None
    if tf_path is not None:
        is_tf = assign_tfs(gene_ids, read_tf_list(tf_path))

    return ExpressionData.build(
        gene_ids=gene_ids,
        time=times.to_numpy()[order],
        values=values[:, order],
        is_tf=is_tf,
    )


def read_tf_list(path: Path) -> List[str]:
    """Read transcription factor identifiers from the first column of a file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"TF list file not found: {path}")

    df = pd.read_csv(path, header=None, usecols=[0], dtype=str, skip_blank_lines=True)
    return [s.strip() for s in df[0].dropna() if s.strip()]


def assign_tfs(gene_ids: Sequence[str], tf_ids: Sequence[str]) -> np.ndarray:
    """Flag genes found in the TF list (case-insensitive)."""
    tf_set = {t.lower() for t in tf_ids}
    return np.array([g.lower() in tf_set for g in gene_ids], dtype=bool)


# ======================================================================
# CENTROIDS
# ======================================================================

def save_centroids(
    path: Path,
    stages: StageAssignment,
    border: Tuple[int, int],
) -> None:
    """Write the centroids of every clustering step to JSON."""
    payload: Dict[str, Any] = {
        "border": [int(border[0]), int(border[1])],
        "windows": [[int(s), int(n)] for s, n in stages.windows],
        "centroids": [
            None if c is None else np.asarray(c, dtype=float).tolist()
            for c in stages.centroids
        ],
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)


def load_centroids(path: Path) -> Tuple[Tuple[int, int], List[Optional[np.ndarray]]]:
    """
    Read centroids written by save_centroids.

    Returns:
        (border, centroids): the (b, c) pair used for clustering and one
        centroid matrix (or None) per clustering step.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Centroid file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)

    try:
        b, c = payload["border"]
        centroids = [
            None if entry is None else np.asarray(entry, dtype=float)
            for entry in payload["centroids"]
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise InputError(f"Malformed centroid file {path}: {exc}") from exc

    return (int(b), int(c)), centroids


# ======================================================================
# RESULTS
# ======================================================================

def interactions_to_frame(records: Sequence[InteractionRecord]) -> pd.DataFrame:
    """Tabulate interaction records as gene_id, polarity, delay."""
    return pd.DataFrame(
        [{"gene_id": r.gene_id, "polarity": r.polarity, "delay": r.delay} for r in records],
        columns=["gene_id", "polarity", "delay"],
    )
