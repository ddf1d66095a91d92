"""Tests for settings and the regions config loader."""
from __future__ import annotations

import json

import pytest

from riskboard.config import (
    INDICATOR_NAMES,
    REGIONAL_NAMES,
    PipelineConfig,
    Settings,
    load_region_config,
    validate_weights,
)
from riskboard.errors import ConfigurationError

GOOD_WEIGHTS = {"USA": 0.30, "Europe": 0.25, "China": 0.25, "India": 0.10, "Latin America": 0.10}


def _write(tmp_path, payload) -> str:
    path = tmp_path / "regions.json"
    path.write_text(json.dumps(payload))
    return str(path)


def _minimal_config(weights=None) -> dict:
    constant = {"source": "constant", "value": 1.0}
    return {
        "weights": weights or GOOD_WEIGHTS,
        "regions": {
            name: {
                "book_bill": 1.0,
                "defaults": 2.0,
                "indicators": {ind: constant for ind in INDICATOR_NAMES},
            }
            for name in REGIONAL_NAMES
        },
    }


def test_shipped_config_loads():
    config = load_region_config(Settings().regions_config_path)
    assert set(config.weights) == set(REGIONAL_NAMES)
    assert config.global_defaults == 2.0
    assert config.required_providers() == {"fred", "bls", "tradingeconomics"}
    latam_pmi = config.regions["Latin America"].indicators["pmi"]
    assert latam_pmi.source == "mean"
    assert latam_pmi.providers() == {"tradingeconomics"}


def test_pipeline_config_from_settings(tmp_path):
    settings = Settings(regions_config_path=_write(tmp_path, _minimal_config()))
    config = PipelineConfig.from_settings(settings)
    assert config.settings is settings
    assert config.regions.required_providers() == set()


def test_weights_must_sum_to_one():
    with pytest.raises(ConfigurationError, match="sum"):
        validate_weights({**GOOD_WEIGHTS, "USA": 0.35})


def test_weights_tolerate_float_noise():
    validate_weights({"USA": 0.1 + 0.2, "Europe": 0.1, "China": 0.2, "India": 0.2, "Latin America": 0.2})


def test_weights_missing_region():
    weights = dict(GOOD_WEIGHTS)
    del weights["India"]
    with pytest.raises(ConfigurationError, match="India"):
        validate_weights(weights)


def test_weights_unknown_region():
    with pytest.raises(ConfigurationError, match="Oceania"):
        validate_weights({**GOOD_WEIGHTS, "Oceania": 0.0})


def test_weights_negative():
    with pytest.raises(ConfigurationError, match="Negative"):
        validate_weights({**GOOD_WEIGHTS, "USA": -0.1, "Europe": 0.65})


def test_bad_weights_rejected_at_load(tmp_path):
    path = _write(tmp_path, _minimal_config({**GOOD_WEIGHTS, "China": 0.5}))
    with pytest.raises(ConfigurationError):
        load_region_config(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_region_config(tmp_path / "nope.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "regions.json"
    path.write_text("{weights:")
    with pytest.raises(ConfigurationError, match="valid JSON"):
        load_region_config(path)


def test_missing_indicator_source(tmp_path):
    payload = _minimal_config()
    del payload["regions"]["China"]["indicators"]["pmi"]
    with pytest.raises(ConfigurationError, match="China"):
        load_region_config(_write(tmp_path, payload))


def test_missing_region_block(tmp_path):
    payload = _minimal_config()
    del payload["regions"]["India"]
    with pytest.raises(ConfigurationError, match="India"):
        load_region_config(_write(tmp_path, payload))


def test_unknown_source_kind(tmp_path):
    payload = _minimal_config()
    payload["regions"]["USA"]["indicators"]["fci"] = {"source": "bloomberg"}
    with pytest.raises(ConfigurationError, match="Invalid regions config"):
        load_region_config(_write(tmp_path, payload))


def test_policy_without_neutral_default_rejected_at_load(tmp_path):
    payload = _minimal_config()
    payload["regions"]["Europe"]["indicators"]["hy_oas"] = {
        "source": "constant", "value": 400, "policy": "degrade_with_previous",
    }
    with pytest.raises(ConfigurationError, match="Europe hy_oas"):
        load_region_config(_write(tmp_path, payload))


def test_explicit_policy_with_neutral_default_accepted(tmp_path):
    payload = _minimal_config()
    payload["regions"]["USA"]["indicators"]["pmi"] = {
        "source": "constant", "value": 52, "policy": "degrade_with_default",
    }
    config = load_region_config(_write(tmp_path, payload))
    assert config.regions["USA"].indicators["pmi"].policy == "degrade_with_default"
