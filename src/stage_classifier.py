#!/usr/bin/env python3
"""
stage_classifier.py

Assign every gene to an ordered developmental stage.

Stages:
    1 = Initiation
    2 = Primary Response
    3 = Secondary Response

Procedure:
    1) All genes start in the first stage of the layout (1, or 2 when the
       border b < 2 leaves no Initiation stage).
    2) For each clustering window of the layout, the genes of the source
       stage are clustered on their centered expression restricted to the
       window.
    3) The cluster with the smallest infinity norm of its centered
       patterns is the least active one; its genes move to the next stage.

Clustering either selects k clusters with restarted k-means (best of
n_restarts by inertia) or, when centroids from an earlier run are given,
assigns every gene to its nearest centroid in a single pass.

Why this exists:
    - Only genes sharing a stage, or adjacent stages, are compared in
      the dissimilarity analysis. The stage labels therefore decide
      which candidates a query sees at all.
    - Saving and reusing centroids lets a later query reproduce the
      labels without another round of random restarts.
"""

from __future__ import annotations

# Import typing utilities for type hints
from typing import List, Optional, Sequence, Tuple, Union

# Import numpy for numerical arrays and operations
import numpy as np

# Import scipy.cluster.vq for nearest-centroid assignment
from scipy.cluster.vq import vq

# Import scikit-learn's KMeans for restarted clustering
from sklearn.cluster import KMeans

from cdaa_types import InputError, StageAssignment, StageLayout
from expression_norm import center_expr


ClusterCounts = Union[int, Sequence[int], None]
CentroidSets = Optional[Sequence[Optional[np.ndarray]]]


# ======================================================================
# CLUSTERING PRIMITIVES
# ======================================================================

def cluster_stage_window(
    g: np.ndarray,
    n_cols: int,
    k: int,
    n_restarts: int = 1000,
    random_state: Optional[int] = 0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Cluster genes on the first n_cols time points of their patterns.

    k-means is restarted n_restarts times from k-means++ seeds and the
    run with the lowest total within-cluster squared distance is kept.

    Returns:
        (idx, centroids): cluster index per gene and the centroid matrix
        of shape (k, n_cols).
    """
    # Centered patterns restricted to the window
    gs = center_expr(np.asarray(g, dtype=float)[:, :n_cols])

    if gs.shape[0] == 0:
        raise InputError("Cannot cluster an empty set of genes")

    # k-means cannot produce more clusters than points
    k_eff = min(int(k), gs.shape[0])
    if k_eff < int(k):
        print(
            f"[WARN] Requested {k} clusters for {gs.shape[0]} genes; "
            f"using {k_eff} clusters instead."
        )

    # n_init restarts, best inertia kept
    km = KMeans(
        n_clusters=k_eff,
        n_init=int(n_restarts),
        random_state=random_state,
    )
    km.fit(gs)

    return km.labels_.astype(int), km.cluster_centers_


def assign_to_centroids(g: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Assign each gene to its nearest centroid without iterating.

    The window width is taken from the centroid matrix, so the same
    centroids always reproduce the same assignment for the same input.
    """
    c_arr = np.atleast_2d(np.asarray(centroids, dtype=float))
    n_cols = c_arr.shape[1]
    g_arr = np.asarray(g, dtype=float)

    if n_cols > g_arr.shape[1]:
        raise InputError(
            f"Centroids span {n_cols} time points but the data has only {g_arr.shape[1]}"
        )

    # Nearest centroid by Euclidean distance
    gs = center_expr(g_arr[:, :n_cols])
    idx, _ = vq(gs, c_arr)
    return idx.astype(int)


def least_active_cluster(gs: np.ndarray, idx: np.ndarray, n_clusters: int) -> int:
    """
    Index of the cluster with the smallest infinity norm.

    The norm of a cluster is numpy's matrix infinity norm (largest
    absolute row sum) of its row-centered patterns. Empty clusters are
    skipped and the first cluster wins ties. Returns -1 when every
    cluster is empty.
    """
    best_norm = np.inf
    best_cluster = -1
    for n in range(n_clusters):
        members = idx == n
        if not np.any(members):
            continue
        # Largest absolute row sum of the centered members
        cluster_norm = np.linalg.norm(center_expr(gs[members]), ord=np.inf)
        if cluster_norm < best_norm:
            best_norm = cluster_norm
            best_cluster = n
    return best_cluster


# ======================================================================
# STAGE CLASSIFICATION
# ======================================================================

def _per_step(value: ClusterCounts, n_steps: int) -> List[Optional[int]]:
    # Expand a scalar or short sequence of cluster counts to one per step
    if value is None:
        return [None] * n_steps
    if np.isscalar(value):
        return [int(value)] * n_steps
    values = [int(v) for v in value]
    return values + [None] * (n_steps - len(values))


def classify_stages(
    g: np.ndarray,
    layout: StageLayout,
    n_clusters: ClusterCounts = None,
    centroids: CentroidSets = None,
    n_restarts: int = 1000,
    random_state: Optional[int] = 0,
    default_n_clusters: int = 4,
) -> StageAssignment:
    """
    Assign stage labels to every gene.

    Args:
        g:
            Normalized expression (genes × time points). Must be finite;
            degenerate genes have to be excluded beforehand.
        layout:
            Stage borders for this time course.
        n_clusters:
            Cluster count per clustering step (or one count for all).
            Values below 1 fall back to default_n_clusters.
        centroids:
            Centroids from an earlier run, one matrix per step. A step
            with centroids is assigned deterministically instead of
            being re-clustered.
        n_restarts:
            Number of k-means restarts when clusters are selected.
        random_state:
            Seed for the k-means restarts.
        default_n_clusters:
            Cluster count used when none is given.

    Returns:
        StageAssignment with labels and the centroids of every step.

    Raises:
        InputError:
            If g contains non-finite values or does not match the layout.
    """
    g_arr = np.asarray(g, dtype=float)

    if g_arr.ndim != 2 or g_arr.shape[1] != layout.n_timepoints:
        raise InputError(
            f"Expression matrix of shape {g_arr.shape} does not match "
            f"{layout.n_timepoints} time points"
        )
    if not np.all(np.isfinite(g_arr)):
        raise InputError(
            "Expression matrix contains non-finite values; "
            "exclude constant-expression genes before stage classification"
        )

    windows = layout.clustering_windows()
    counts = _per_step(n_clusters, len(windows))
    known = list(centroids) if centroids is not None else []
    known += [None] * (len(windows) - len(known))

    # Every gene starts in the earliest stage present
    labels = np.full(g_arr.shape[0], layout.first_stage, dtype=int)
    step_centroid_list: List[Optional[np.ndarray]] = []
    cluster_indices: List[np.ndarray] = []
    least_active: List[int] = []

    for step, (source_stage, n_cols) in enumerate(windows):
        # Genes currently labelled with the stage this step splits
        members = labels == source_stage

        # A window without time points or a stage without genes is skipped
        if n_cols < 1 or not np.any(members):
            step_centroid_list.append(None)
            cluster_indices.append(np.full(g_arr.shape[0], -1, dtype=int))
            least_active.append(-1)
            continue

        g_stage = g_arr[members]
        step_centroids = known[step]

        if step_centroids is not None:
            # Reuse centroids from an earlier run
            step_centroids = np.atleast_2d(np.asarray(step_centroids, dtype=float))
            if step_centroids.shape[1] != n_cols:
                raise InputError(
                    f"Centroids for clustering step {step + 1} span "
                    f"{step_centroids.shape[1]} time points, expected {n_cols}"
                )
            idx = assign_to_centroids(g_stage, step_centroids)
        else:
            # Fall back to the default cluster count when none is given
            k = counts[step]
            if k is None or k < 1:
                k = default_n_clusters
            idx, step_centroids = cluster_stage_window(
                g_stage,
                n_cols,
                k,
                n_restarts=n_restarts,
                random_state=random_state,
            )

        # Activity of each cluster is measured on the centered window
        gs = center_expr(g_stage[:, :n_cols])
        quiet = least_active_cluster(gs, idx, step_centroids.shape[0])

        # Promote the least active cluster to the next stage
        promoted = np.zeros_like(members)
        promoted[members] = idx == quiet
        labels[promoted] = source_stage + 1

        # Cluster index per gene; -1 for genes outside this step
        idx_all = np.full(g_arr.shape[0], -1, dtype=int)
        idx_all[members] = idx

        step_centroid_list.append(step_centroids)
        cluster_indices.append(idx_all)
        least_active.append(quiet)

    return StageAssignment(
        labels=labels,
        centroids=step_centroid_list,
        cluster_indices=cluster_indices,
        least_active=least_active,
        windows=list(windows),
    )
