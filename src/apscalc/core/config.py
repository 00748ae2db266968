"""Configuration management with pydantic and YAML support.

Modules may be referenced by catalog name or by integer index, e.g.

    search:
      min_gauge: 100
      max_gauge: 120
      heads: ["AP head", "Sabot head"]
      base: Base bleeder
      fixed_modules: {"Solid body": 1}
      variable_modules: ["Solid body", "Sabot body"]
      max_gp: 2
      max_draw: 20000
      damage_type: kinetic
    run:
      workers: 4
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from ..ballistics.modules import ModuleCatalog, default_catalog
from .constants import MAX_MODULE_SLOTS
from .types import DamageType, SearchParams

ModuleRef = Union[int, str]


class SearchConfig(BaseModel):
    """Bounds of the shell search."""

    min_gauge: float = Field(default=18.0, ge=0, le=2000)
    max_gauge: float = Field(default=500.0, ge=0, le=2000)
    heads: list[ModuleRef] = Field(default_factory=lambda: ["AP head"])
    base: ModuleRef | None = None
    fixed_modules: dict[ModuleRef, float] = Field(default_factory=dict)
    variable_modules: list[ModuleRef] = Field(
        default_factory=lambda: ["Solid body", "Sabot body"], min_length=2, max_length=2
    )
    max_gp: float = Field(default=0.0, ge=0, le=MAX_MODULE_SLOTS)
    max_rg: float = Field(default=0.0, ge=0, le=MAX_MODULE_SLOTS)
    max_length: float = Field(default=8000.0, gt=0)
    max_draw: float = Field(default=0.0, ge=0)
    min_velocity: float = Field(default=0.0, ge=0)
    min_effective_range: float = Field(default=0.0, ge=0)
    target_ac: float = Field(default=8.0, ge=0)
    damage_type: Literal["kinetic", "chemical"] = "kinetic"
    labels: bool = True

    @field_validator("fixed_modules")
    @classmethod
    def _non_negative_counts(cls, v: dict[ModuleRef, float]) -> dict[ModuleRef, float]:
        for name, count in v.items():
            if count < 0:
                raise ValueError(f"fixed module count for {name!r} must be >= 0, got {count}")
        return v

    def to_params(self, catalog: ModuleCatalog | None = None) -> SearchParams:
        """Resolve module references against ``catalog`` and build SearchParams.

        Raises:
            KeyError: Unknown module name.
            IndexError: Module index outside the catalog.
        """
        catalog = catalog or default_catalog()
        fixed = catalog.zero_counts()
        for ref, count in self.fixed_modules.items():
            fixed[catalog.resolve(ref)] += count

        return SearchParams(
            min_gauge=self.min_gauge,
            max_gauge=self.max_gauge,
            head_indices=tuple(catalog.resolve(h) for h in self.heads),
            base_index=catalog.resolve(self.base) if self.base is not None else None,
            fixed_module_counts=tuple(fixed.tolist()),
            variable_module_indices=(
                catalog.resolve(self.variable_modules[0]),
                catalog.resolve(self.variable_modules[1]),
            ),
            max_gp=self.max_gp,
            max_rg=self.max_rg,
            max_length=self.max_length,
            max_draw=self.max_draw,
            min_velocity=self.min_velocity,
            min_effective_range=self.min_effective_range,
            target_ac=self.target_ac,
            damage_type=DamageType.parse(self.damage_type),
            labels=self.labels,
        )


class RunConfig(BaseModel):
    """Execution settings."""

    workers: int = Field(default=1, ge=1, le=256)
    check_unimodal: int = Field(default=0, ge=0, le=1000)
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "INFO"


class ApsConfig(BaseModel):
    """Root configuration object."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    run: RunConfig = Field(default_factory=RunConfig)


def load_config(path: str | Path) -> ApsConfig:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML config file.

    Returns:
        Parsed ApsConfig object.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return ApsConfig.model_validate(data or {})


def save_config(config: ApsConfig, path: str | Path) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration to save.
        path: Output path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)


def default_config() -> ApsConfig:
    """Return default configuration."""
    return ApsConfig()


def merge_config(base: ApsConfig, overrides: dict[str, Any]) -> ApsConfig:
    """Merge overrides into base configuration.

    Args:
        base: Base configuration.
        overrides: Dictionary of override values (nested like the YAML file).

    Returns:
        New configuration with overrides applied.
    """
    base_dict = base.model_dump()

    def deep_merge(d1: dict, d2: dict) -> dict:
        result = d1.copy()
        for k, v in d2.items():
            if k in result and isinstance(result[k], dict) and isinstance(v, dict):
                result[k] = deep_merge(result[k], v)
            else:
                result[k] = v
        return result

    merged = deep_merge(base_dict, overrides)
    return ApsConfig.model_validate(merged)
