#!/usr/bin/env python3
"""
run_cdaa.py

Command-line driver for the CDAA pipeline.

The analysis is split into three sub-commands that are run in order,
each one printing the values needed by the next:

    border   Plot the histogram of highest expression change and suggest
             the Primary Response border b and interval count c.

                 python src/scripts/run_cdaa.py border --data expr.csv

    stages   Cluster each stage window, report stage sizes, plot the
             clusters and save the centroids for reuse.

                 python src/scripts/run_cdaa.py stages --data expr.csv \
                     --border 2 1 --clusters 4 4

    infer    Reuse the saved centroids, classify genes and predict
             regulators or targets of one gene of interest.

                 python src/scripts/run_cdaa.py infer --data expr.csv \
                     --goi At1g23456 --direction targets

Outputs go to results/cdaa/ and figures/cdaa/ under the project root
unless other paths are given.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# ----------------------------------------------------------------------
# Ensure src/ is on the Python path so that the CDAA modules can be imported
# ----------------------------------------------------------------------
CURRENT_DIR: Path = Path(__file__).resolve().parent
SRC_ROOT: Path = CURRENT_DIR.parent

if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from cdaa_config import CDAAParams, load_params_from_yaml  # type: ignore
from cdaa_pipeline import infer_interactions, prepare_expression  # type: ignore
from cdaa_plots import (  # type: ignore
    plot_change_histogram,
    plot_dissimilarity_table,
    plot_stage_clusters,
)
from cdaa_types import STAGE_NAMES, InputError, StageLayout  # type: ignore
from expression_io import (  # type: ignore
    interactions_to_frame,
    load_centroids,
    read_expression_csv,
    save_centroids,
)
from expression_norm import change_cardinalities, suggest_border  # type: ignore
from stage_classifier import classify_stages  # type: ignore


# ======================================================================
# PATH CONSTANTS
# ======================================================================

ROOT: Path = SRC_ROOT.parent

DEFAULT_CONFIG: Path = ROOT / "config" / "cdaa_parameters.yaml"
RESULTS_DIR: Path = ROOT / "results" / "cdaa"
FIG_DIR: Path = ROOT / "figures" / "cdaa"
CENTROIDS_JSON: Path = RESULTS_DIR / "stage_centroids.json"


# ======================================================================
# HELPERS
# ======================================================================

def load_params(args: argparse.Namespace) -> CDAAParams:
    """Load parameters from YAML and apply command-line overrides."""
    config_path = Path(args.config)
    if config_path.exists():
        params = load_params_from_yaml(config_path)
        print(f"[INFO] Loaded parameters from {config_path}")
    else:
        params = CDAAParams()
        print(f"[INFO] {config_path} not found; using default parameters")

    thresholds = getattr(args, "thresholds", None)
    if thresholds:
        params.dissimilarity_threshold = float(thresholds[0])
        params.denoise_thresholds = [float(v) for v in thresholds[1:]]

    restarts = getattr(args, "restarts", None)
    if restarts is not None:
        params.n_restarts = int(restarts)

    return params


def time_labels(time) -> List[str]:
    return [str(int(v)) for v in time]


# ======================================================================
# SUB-COMMANDS
# ======================================================================

def cmd_border(args: argparse.Namespace) -> int:
    params = load_params(args)

    print(f"[STEP] Loading expression data from: {args.data}")
    data = read_expression_csv(Path(args.data), args.tf)
    data, normalized = prepare_expression(data, ddof=params.std_ddof)

    cardinalities = change_cardinalities(normalized.s)
    plot_change_histogram(
        cardinalities,
        time_labels(data.time),
        Path(args.fig_dir) / "change_histogram.png",
    )

    b, c = suggest_border(normalized.s)
    print(f"\n[INFO] Suggested border for the Primary Response stage is b = {b}")
    print(f"       and number of intervals is c = {c}.")
    print(f"       Next: run_cdaa.py stages --data {args.data} --border {b} {c}")
    return 0


def cmd_stages(args: argparse.Namespace) -> int:
    params = load_params(args)

    print(f"[STEP] Loading expression data from: {args.data}")
    data = read_expression_csv(Path(args.data), args.tf)
    data, normalized = prepare_expression(data, ddof=params.std_ddof)

    b, c = args.border
    layout = StageLayout(b=b, c=c, n_timepoints=data.n_timepoints)

    print(f"[STEP] Clustering {data.n_genes} genes (b={b}, c={c})")
    stages = classify_stages(
        normalized.g,
        layout,
        n_clusters=args.clusters,
        n_restarts=params.n_restarts,
        random_state=params.random_state,
        default_n_clusters=params.default_n_clusters,
    )

    labels = time_labels(data.time)
    for step, ((source, n_cols), idx) in enumerate(zip(stages.windows, stages.cluster_indices)):
        if n_cols < 1 or not (idx >= 0).any():
            continue
        parent = stages.least_active[step - 1] if step > 0 else None
        plot_stage_clusters(
            normalized.g,
            n_cols,
            idx,
            data.is_tf,
            labels,
            Path(args.fig_dir),
            prefix=f"stage{source}_cluster",
            parent_cluster=parent,
        )

    print("\n[INFO] Stage sizes:")
    for stage, count in stages.counts().items():
        print(f"  {STAGE_NAMES[stage]:<20s} {count:6d}")

    save_centroids(Path(args.centroids_out), stages, (b, c))
    print(f"\n[DONE] Wrote centroids to: {args.centroids_out}")
    return 0


def cmd_infer(args: argparse.Namespace) -> int:
    params = load_params(args)

    print(f"[STEP] Loading expression data from: {args.data}")
    data = read_expression_csv(Path(args.data), args.tf)
    data, normalized = prepare_expression(data, ddof=params.std_ddof)

    (b, c), centroids = load_centroids(Path(args.centroids))
    layout = StageLayout(b=b, c=c, n_timepoints=data.n_timepoints)

    print(f"[STEP] Assigning stages from saved centroids (b={b}, c={c})")
    stages = classify_stages(
        normalized.g,
        layout,
        centroids=centroids,
        n_restarts=params.n_restarts,
        random_state=params.random_state,
        default_n_clusters=params.default_n_clusters,
    )

    print(f"[STEP] Inferring {args.direction} of {args.goi}")
    result = infer_interactions(
        data, normalized, stages, layout, args.goi, args.direction, params
    )

    if not result.applicable:
        print(f"\n[DONE] Not applicable: {result.not_applicable}")
        return 0

    for thr, run in result.runs:
        suffix = "no_thr" if thr is None else f"thr_{thr:g}"
        title = f"Dissimilarities for {result.goi} at " + (
            "no thr." if thr is None else f"thr. = {thr:g}"
        )
        plot_dissimilarity_table(
            run,
            data.gene_ids,
            title,
            Path(args.fig_dir) / f"dissimilarity_{result.goi}_{result.direction}_{suffix}.png",
        )

    label = "Regulators" if result.direction == "regulators" else "Targets"
    print(f"\n{label} predicted for {result.goi}:")
    for record in result.interactions:
        print(f"  {record.gene_id} - {record.polarity} (delay {record.delay})")
    if not result.interactions:
        print("  (none)")

    out_csv = Path(args.out_dir) / f"{result.goi}_{result.direction}.csv"
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    interactions_to_frame(result.interactions).to_csv(out_csv, index=False)
    print(f"\n[DONE] Wrote predictions to: {out_csv}")
    return 0


# ======================================================================
# ARGUMENT PARSING
# ======================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Infer regulatory interactions from transcriptome time courses."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data", required=True, help="Expression time course .csv")
    common.add_argument("--tf", default=None, help="Optional TF identifier list .csv")
    common.add_argument("--config", default=str(DEFAULT_CONFIG), help="Parameter YAML")
    common.add_argument("--fig-dir", default=str(FIG_DIR), help="Directory for figures")

    p_border = sub.add_parser("border", parents=[common], help="Suggest stage border")
    p_border.set_defaults(func=cmd_border)

    p_stages = sub.add_parser("stages", parents=[common], help="Cluster genes into stages")
    p_stages.add_argument("--border", type=int, nargs=2, required=True, metavar=("B", "C"))
    p_stages.add_argument(
        "--clusters",
        type=int,
        nargs="+",
        default=None,
        help="Clusters per clustering step (0 = default)",
    )
    p_stages.add_argument("--restarts", type=int, default=None, help="k-means restarts")
    p_stages.add_argument("--centroids-out", default=str(CENTROIDS_JSON))
    p_stages.set_defaults(func=cmd_stages)

    p_infer = sub.add_parser("infer", parents=[common], help="Predict regulators/targets")
    p_infer.add_argument("--centroids", default=str(CENTROIDS_JSON))
    p_infer.add_argument("--goi", required=True, help="Gene of interest identifier")
    p_infer.add_argument("--direction", required=True, help="'regulators' or 'targets'")
    p_infer.add_argument(
        "--thresholds",
        type=float,
        nargs="+",
        default=None,
        help="Dissimilarity threshold followed by denoising thresholds",
    )
    p_infer.add_argument("--out-dir", default=str(RESULTS_DIR))
    p_infer.set_defaults(func=cmd_infer)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (InputError, FileNotFoundError) as exc:
        print(f"[ERROR] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
