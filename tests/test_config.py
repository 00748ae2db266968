"""Tests for configuration loading and parameter resolution."""

import pytest
import yaml
from pydantic import ValidationError

from apscalc.core.config import (
    ApsConfig,
    SearchConfig,
    default_config,
    load_config,
    merge_config,
    save_config,
)
from apscalc.core.types import DamageType, SearchParams


def test_default_config_resolves(catalog):
    params = default_config().search.to_params(catalog)

    assert params.head_indices == (catalog.index_of("AP head"),)
    assert params.variable_module_indices == (
        catalog.index_of("Solid body"),
        catalog.index_of("Sabot body"),
    )
    assert len(params.fixed_module_counts) == len(catalog)
    assert params.damage_type == DamageType.KINETIC
    assert not params.uses_draw


def test_module_refs_by_name_or_index(catalog):
    cfg = SearchConfig(
        heads=["sabot head", catalog.index_of("AP head")],
        base="Base bleeder",
        fixed_modules={"Solid body": 2, catalog.index_of("Fuse"): 1},
        variable_modules=["Sabot body", "Sabot body"],
        damage_type="chemical",
    )

    params = cfg.to_params(catalog)

    assert params.head_indices == (catalog.index_of("Sabot head"), catalog.index_of("AP head"))
    assert params.base_index == catalog.index_of("Base bleeder")
    assert params.fixed_module_counts[catalog.index_of("Solid body")] == 2.0
    assert params.fixed_module_counts[catalog.index_of("Fuse")] == 1.0
    assert params.fixed_module_total == 3.0
    assert params.same_variable_module
    assert params.damage_type == DamageType.CHEMICAL


def test_unknown_module_raises(catalog):
    with pytest.raises(KeyError, match="Unknown module"):
        SearchConfig(heads=["Laser head"]).to_params(catalog)
    with pytest.raises(IndexError):
        SearchConfig(base=99).to_params(catalog)


@pytest.mark.parametrize(
    "field, value",
    [
        ("variable_modules", ["Solid body"]),
        ("fixed_modules", {"Solid body": -1}),
        ("max_gp", -1.0),
        ("max_length", 0.0),
        ("damage_type", "plasma"),
    ],
)
def test_invalid_search_config(field, value):
    with pytest.raises(ValidationError):
        SearchConfig(**{field: value})


def test_invalid_run_config():
    with pytest.raises(ValidationError):
        ApsConfig.model_validate({"run": {"workers": 0}})
    with pytest.raises(ValidationError):
        ApsConfig.model_validate({"run": {"log_level": "LOUD"}})


def test_merge_config_overrides_nested_fields():
    merged = merge_config(default_config(), {"search": {"max_gauge": 120.0}, "run": {"workers": 4}})

    assert merged.search.max_gauge == 120.0
    assert merged.search.min_gauge == default_config().search.min_gauge
    assert merged.run.workers == 4


def test_save_and_load_roundtrip(tmp_path, catalog):
    cfg = merge_config(
        default_config(),
        {"search": {"heads": ["Sabot head"], "fixed_modules": {"Solid body": 3}, "max_draw": 5000}},
    )
    path = tmp_path / "nested" / "search.yaml"

    save_config(cfg, path)
    loaded = load_config(path)

    assert loaded == cfg
    assert loaded.search.to_params(catalog) == cfg.search.to_params(catalog)


def test_load_partial_yaml(tmp_path):
    path = tmp_path / "search.yaml"
    path.write_text(yaml.safe_dump({"search": {"min_gauge": 50, "max_gauge": 60}}))

    cfg = load_config(path)

    assert cfg.search.min_gauge == 50.0
    assert cfg.search.heads == ["AP head"]
    assert cfg.run.workers == 1


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_search_params_validation():
    with pytest.raises(ValueError, match="exactly 2"):
        SearchParams(0, 1, (0,), (0.0, 0.0), (0, 1, 1))
    with pytest.raises(ValueError, match="non-negative"):
        SearchParams(0, 1, (0,), (0.0, -1.0), (0, 1))
    with pytest.raises(ValueError, match="outside fixed_module_counts"):
        SearchParams(0, 1, (0,), (0.0, 0.0), (0, 5))


def test_catalog_indexing(catalog):
    head = catalog[catalog.index_of("AP head")]
    bodies = catalog[:2]

    assert head.name == "AP head"
    assert isinstance(bodies, tuple)
    assert [m.name for m in bodies] == ["Solid body", "Sabot body"]
    assert catalog[-1].name == "Visible tracer"
