import numpy as np
import pytest

from cdaa_types import InputError, StageLayout
from stage_classifier import (
    assign_to_centroids,
    classify_stages,
    cluster_stage_window,
    least_active_cluster,
)


# Two active early genes, two genes switching at the third time point and
# two genes that stay flat over the first three time points.
G_STAGED = np.array([
    [-1.0, 1.0, 1.0, 1.0, 1.0],
    [-1.2, 1.2, 1.0, 1.0, 1.0],
    [0.0, 0.0, 2.0, 2.0, 2.0],
    [1.0, 1.0, 3.0, 3.0, 3.0],
    [0.0, 0.0, 0.0, 1.0, 2.0],
    [3.0, 3.0, 3.0, 0.0, 0.0],
])


def test_least_active_cluster_selects_flat_cluster():
    gs = np.array([
        [-1.0, 1.0],
        [1.0, -1.0],
        [5.0, 5.0],
        [2.0, 2.0],
        [0.5, -0.5],
    ])
    idx = np.array([0, 0, 1, 1, 2])
    assert least_active_cluster(gs, idx, 3) == 1


def test_least_active_cluster_first_wins_ties_and_skips_empty():
    gs = np.array([[1.0, 1.0], [0.0, 0.0], [3.0, -3.0]])
    idx = np.array([1, 2, 3])
    # cluster 0 is empty; clusters 1 and 2 are both flat
    assert least_active_cluster(gs, idx, 4) == 1


def test_cluster_stage_window_returns_centroids_of_window_width():
    idx, centroids = cluster_stage_window(G_STAGED, 2, 2, n_restarts=5, random_state=0)
    assert centroids.shape == (2, 2)
    assert idx[0] == idx[1]
    assert len(set(idx[2:].tolist())) == 1
    assert idx[0] != idx[2]


def test_cluster_stage_window_caps_k_at_gene_count(capsys):
    idx, centroids = cluster_stage_window(G_STAGED[:2], 2, 4, n_restarts=2)
    assert centroids.shape[0] == 2
    assert "[WARN]" in capsys.readouterr().out


def test_classify_stages_three_stages():
    layout = StageLayout(b=2, c=1, n_timepoints=5)
    stages = classify_stages(G_STAGED, layout, n_clusters=[2, 2], n_restarts=10)
    np.testing.assert_array_equal(stages.labels, [1, 1, 2, 2, 3, 3])
    assert stages.windows == [(1, 2), (2, 3)]
    assert stages.counts() == {1: 2, 2: 2, 3: 2}


def test_reused_centroids_reproduce_assignment():
    layout = StageLayout(b=2, c=1, n_timepoints=5)
    first = classify_stages(G_STAGED, layout, n_clusters=2, n_restarts=10)
    again = classify_stages(G_STAGED, layout, centroids=first.centroids)
    np.testing.assert_array_equal(first.labels, again.labels)
    for a, b in zip(first.cluster_indices, again.cluster_indices):
        np.testing.assert_array_equal(a, b)


def test_assign_to_centroids_is_nearest_centroid():
    centroids = np.array([[-1.0, 1.0], [0.0, 0.0]])
    idx = assign_to_centroids(G_STAGED, centroids)
    np.testing.assert_array_equal(idx, [0, 0, 1, 1, 1, 1])


def test_centroid_width_mismatch_is_rejected():
    layout = StageLayout(b=2, c=1, n_timepoints=5)
    with pytest.raises(InputError):
        classify_stages(G_STAGED, layout, centroids=[np.zeros((2, 3))])


def test_non_finite_rows_are_rejected():
    layout = StageLayout(b=2, c=1, n_timepoints=5)
    g = G_STAGED.copy()
    g[3, 1] = np.nan
    with pytest.raises(InputError):
        classify_stages(g, layout, n_clusters=2, n_restarts=2)


def test_missing_initiation_stage_labels_start_at_primary():
    layout = StageLayout(b=1, c=2, n_timepoints=5)
    assert layout.first_stage == 2
    stages = classify_stages(G_STAGED, layout, n_clusters=2, n_restarts=10)
    assert set(stages.labels.tolist()) == {2, 3}
    # genes flat on the first three time points are the quiet ones
    np.testing.assert_array_equal(stages.labels[4:], [3, 3])


def test_missing_secondary_stage_has_single_step():
    layout = StageLayout(b=3, c=2, n_timepoints=5)
    assert layout.last_stage == 2
    stages = classify_stages(G_STAGED, layout, n_clusters=2, n_restarts=10)
    assert len(stages.windows) == 1
    assert set(stages.labels.tolist()) <= {1, 2}


def test_zero_width_window_is_skipped():
    layout = StageLayout(b=0, c=0, n_timepoints=5)
    stages = classify_stages(G_STAGED, layout, n_clusters=2, n_restarts=2)
    np.testing.assert_array_equal(stages.labels, [2] * 6)
    assert stages.least_active == [-1]
    assert stages.centroids == [None]


@pytest.mark.parametrize("b,c", [(1, 4), (0, 5), (1, 9)])
def test_no_initiation_and_no_secondary_keeps_everyone_primary(b, c):
    layout = StageLayout(b=b, c=c, n_timepoints=5)
    assert layout.first_stage == 2
    assert layout.last_stage == 2
    assert layout.clustering_windows() == []

    stages = classify_stages(G_STAGED, layout, n_clusters=2, n_restarts=10)
    assert 3 not in stages.labels.tolist()
    np.testing.assert_array_equal(stages.labels, [2] * 6)
    assert stages.centroids == []


def test_border_beyond_last_time_point_is_rejected():
    with pytest.raises(InputError):
        StageLayout(b=7, c=1, n_timepoints=5)
    # b == T is the last valid border: Initiation spans the whole series
    layout = StageLayout(b=5, c=0, n_timepoints=5)
    assert layout.clustering_windows() == [(1, 5)]


def test_stage_assignment_is_immutable():
    layout = StageLayout(b=2, c=1, n_timepoints=5)
    stages = classify_stages(G_STAGED, layout, n_clusters=2, n_restarts=5)
    with pytest.raises(AttributeError):
        stages.labels = np.zeros(6, dtype=int)
