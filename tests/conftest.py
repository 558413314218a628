"""Shared fixtures for the CDAA test suite."""

import numpy as np
import pytest

from cdaa_types import ExpressionData, StageLayout


E2E_TIME = [0, 3, 6, 12, 24]

E2E_VALUES = [
    [0.0, 10.0, 10.0, 10.0, 10.0],  # early switch-on regulator
    [0.0, 0.0, 10.0, 10.0, 10.0],   # target, one interval later
    [5.0, 5.0, 5.0, 5.0, 6.0],      # flat until the last interval
    [3.0, 3.0, 3.0, 3.0, 2.0],      # flat until the last interval
]


@pytest.fixture
def e2e_data():
    return ExpressionData.build(
        gene_ids=["G1", "G2", "G3", "G4"],
        time=E2E_TIME,
        values=E2E_VALUES,
    )


@pytest.fixture
def e2e_layout():
    return StageLayout(b=2, c=1, n_timepoints=len(E2E_TIME))


@pytest.fixture
def e2e_csv(tmp_path):
    path = tmp_path / "expression.csv"
    lines = ["gene," + ",".join(str(t) for t in E2E_TIME)]
    for gene, row in zip(["G1", "G2", "G3", "G4"], E2E_VALUES):
        lines.append(gene + "," + ",".join(f"{v:g}" for v in row))
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def rng():
    return np.random.default_rng(7)
