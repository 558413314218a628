import pytest

from cdaa_config import CDAAParams, load_params_from_yaml, params_from_mapping


def test_defaults():
    params = CDAAParams()
    assert params.dissimilarity_threshold == 0.4
    assert params.denoise_thresholds == [0.2, 0.2]
    assert params.n_restarts == 1000
    assert params.std_ddof == 1


def test_yaml_section_overrides_defaults(tmp_path):
    path = tmp_path / "params.yaml"
    path.write_text(
        "cdaa:\n"
        "  dissimilarity_threshold: 0.3\n"
        "  denoise_thresholds: [0.1]\n"
        "  n_restarts: 20\n"
    )
    params = load_params_from_yaml(path)
    assert params.dissimilarity_threshold == 0.3
    assert params.denoise_thresholds == [0.1]
    assert params.n_restarts == 20
    assert params.default_n_clusters == 4


def test_shipped_config_loads():
    from pathlib import Path

    root = Path(__file__).resolve().parents[1]
    params = load_params_from_yaml(root / "config" / "cdaa_parameters.yaml")
    assert params == CDAAParams()


def test_unknown_key_is_rejected():
    with pytest.raises(ValueError):
        params_from_mapping({"dissimilarity_treshold": 0.3})


def test_empty_denoise_list_is_allowed():
    assert params_from_mapping({"denoise_thresholds": None}).denoise_thresholds == []


def test_missing_yaml_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_params_from_yaml(tmp_path / "missing.yaml")
