#!/usr/bin/env python3
"""
cdaa_plots.py

Figures for the CDAA pipeline.

Every function takes plain arrays produced by the core modules, writes
one figure file and closes it. Nothing here feeds back into the
computation.

Figures:
    - plot_change_histogram:     genes per interval of highest change
    - plot_stage_clusters:       centered patterns of every cluster,
                                 transcription factors highlighted
    - plot_dissimilarity_table:  heatmap of a dissimilarity table with
                                 delays in real time units
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from cdaa_types import DissimilarityResult
from expression_norm import center_expr


sns.set_style("whitegrid")

plt.rcParams["font.size"] = 11
plt.rcParams["axes.labelsize"] = 12
plt.rcParams["axes.titlesize"] = 13


def _save(fig: plt.Figure, out_path: Path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=300, bbox_inches="tight")
    plt.close(fig)
    print(f"  [SAVED] {out_path}")
    return out_path


def plot_change_histogram(
    cardinalities: Sequence[int],
    time_labels: Sequence[str],
    out_path: Path,
) -> Path:
    """
    Bar chart of cardinalities, one bar per interval.

    Bars sit between the time points that bound their interval, so the
    x tick labels are the sampling times.
    """
    counts = np.asarray(cardinalities, dtype=int)
    n_bars = counts.shape[0]
    total = max(int(counts.sum()), 1)

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.bar(np.arange(1, n_bars + 1), counts, width=1.0, edgecolor="black", color="steelblue")

    for r, count in enumerate(counts, start=1):
        ax.text(r, count + 0.01 * total, f"$G_{{{r}}}$", ha="center")

    ax.set_xlim(0.5, n_bars + 0.5)
    ax.set_xticks(np.arange(0.5, n_bars + 1.0))
    ax.set_xticklabels(list(time_labels)[: n_bars + 1])
    ax.set_title("Highest expression change")
    ax.set_xlabel("t")
    ax.set_ylabel("Cardinality")

    return _save(fig, out_path)


def plot_stage_clusters(
    g: np.ndarray,
    n_cols: int,
    idx: np.ndarray,
    is_tf: np.ndarray,
    time_labels: Sequence[str],
    out_dir: Path,
    prefix: str = "cluster",
    parent_cluster: Optional[int] = None,
) -> List[Path]:
    """
    One figure per cluster with the centered patterns of its genes.

    Genes with idx < 0 (not part of this clustering step) are ignored.
    Transcription factors are drawn in blue on top of the grey patterns.
    """
    gs = center_expr(np.asarray(g, dtype=float)[:, :n_cols])
    idx = np.asarray(idx)
    is_tf = np.asarray(is_tf, dtype=bool)
    x = np.arange(1, n_cols + 1)

    paths = []
    for n in sorted(set(idx[idx >= 0].tolist())):
        in_cluster = idx == n
        tf_in_cluster = in_cluster & is_tf

        fig, ax = plt.subplots(figsize=(6, 4))
        ax.plot(x, gs[in_cluster].T, color="0.65", linewidth=1.0)
        if np.any(tf_in_cluster):
            ax.plot(x, gs[tf_in_cluster].T, color="tab:blue", linewidth=1.2)

        label = f"{n + 1}" if parent_cluster is None else f"{parent_cluster + 1}.{n + 1}"
        ax.set_title(
            f"Cluster {label} (n_genes = {int(in_cluster.sum())}, "
            f"n_TF = {int(tf_in_cluster.sum())})"
        )
        ax.set_xticks(x)
        ax.set_xticklabels(list(time_labels)[:n_cols])
        ax.set_xlabel("t")

        paths.append(_save(fig, Path(out_dir) / f"{prefix}_{label}.png"))

    return paths


def plot_dissimilarity_table(
    result: DissimilarityResult,
    gene_ids: Sequence[str],
    title: str,
    out_path: Path,
) -> Optional[Path]:
    """
    Heatmap of a dissimilarity table.

    Rows are labelled 'gene - a' (activation) or 'gene - i' (inhibition),
    columns by delay. Returns None when there is nothing to draw.
    """
    if result.table.size == 0:
        print(f"  [INFO] Nothing to plot for '{title}' (no surviving candidates)")
        return None

    row_labels = [
        f"{gene_ids[i]} - {'a' if act else 'i'}"
        for i, act in zip(result.gene_indices, result.activation)
    ]

    height = max(2.5, 0.35 * len(row_labels) + 1.5)
    fig, ax = plt.subplots(figsize=(7, height))
    sns.heatmap(
        result.table,
        vmin=0.0,
        vmax=1.0,
        cmap="viridis",
        xticklabels=[str(d) for d in result.delays],
        yticklabels=row_labels,
        ax=ax,
    )
    ax.set_xlabel("Delay")
    ax.set_title(title)

    return _save(fig, out_path)
