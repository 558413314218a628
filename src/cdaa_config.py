#!/usr/bin/env python3
"""
cdaa_config.py

Run parameters for the CDAA pipeline.

Defaults live in the CDAAParams dataclass; config/cdaa_parameters.yaml
can override any of them. Unknown keys are rejected so that a typo in
the YAML never silently falls back to a default.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List

import yaml


@dataclass
class CDAAParams:
    """
    Parameter container for one CDAA run.

    Attributes
    ----------
    dissimilarity_threshold:
        A candidate is reported only if its minimum dissimilarity is
        below this value.
    denoise_thresholds:
        Cutoffs used to quantize scaled changes to {-1, 0, 1} for the
        repeated, voted runs. An empty list disables voting.
    default_n_clusters:
        Number of clusters used when a stage has no count configured.
    n_restarts:
        k-means restarts per clustering step (best inertia is kept).
    random_state:
        Seed for the k-means restarts.
    std_ddof:
        Delta degrees of freedom of the standard deviation used in
        normalization (1 = sample standard deviation).
    """

    dissimilarity_threshold: float = 0.4
    denoise_thresholds: List[float] = field(default_factory=lambda: [0.2, 0.2])
    default_n_clusters: int = 4
    n_restarts: int = 1000
    random_state: int = 0
    std_ddof: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def params_from_mapping(mapping: Dict[str, Any]) -> CDAAParams:
    """Build CDAAParams from a plain dict, rejecting unknown keys."""
    allowed = {f.name for f in fields(CDAAParams)}
    unknown = set(mapping) - allowed
    if unknown:
        raise ValueError(f"Unknown CDAA parameter(s): {sorted(unknown)}")

    params = CDAAParams(**mapping)

    # Coerce numeric types coming from YAML
    params.dissimilarity_threshold = float(params.dissimilarity_threshold)
    params.denoise_thresholds = [float(v) for v in (params.denoise_thresholds or [])]
    params.default_n_clusters = int(params.default_n_clusters)
    params.n_restarts = int(params.n_restarts)
    params.random_state = int(params.random_state)
    params.std_ddof = int(params.std_ddof)

    if params.n_restarts < 1:
        raise ValueError("n_restarts must be at least 1")
    if params.default_n_clusters < 1:
        raise ValueError("default_n_clusters must be at least 1")

    return params


def load_params_from_yaml(config_path: Path) -> CDAAParams:
    """
    Load run parameters from a YAML file.

    The file may hold the parameters at top level or under a 'cdaa'
    section.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the content is not a mapping or has unknown keys.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"CDAA parameter YAML not found at: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        config = yaml.safe_load(fh) or {}

    if not isinstance(config, dict):
        raise ValueError(
            f"Top-level YAML content must be a mapping/dict, got {type(config).__name__}"
        )

    section = config.get("cdaa", config)
    if not isinstance(section, dict):
        raise ValueError("The 'cdaa' section of the YAML must be a mapping/dict")

    return params_from_mapping(section)
