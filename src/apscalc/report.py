"""Result formatting: JSON-ready dicts and a plain-text report."""

from __future__ import annotations

from typing import Any

from .ballistics.modules import ModuleCatalog, default_catalog
from .ballistics.shell import Shell
from .core.types import DamageType, SearchParams
from .search.runner import SearchResult


def shell_summary(shell: Shell, damage_type: DamageType) -> dict[str, Any]:
    """Figures of a scored shell, keyed by the report row names."""
    row: dict[str, Any] = {
        "gauge_mm": shell.gauge,
        "total_length_mm": shell.total_length,
        "length_without_casings_mm": shell.length_without_casings,
        "total_modules": shell.total_module_count,
        "gp_casings": shell.gp_casing_count,
        "rg_casings": shell.rg_casing_count,
        "modules": shell.module_counts(),
        "head": shell.head_module.name,
        "base": shell.base_module.name if shell.base_module is not None else None,
        "draw": shell.rail_draw,
        "recoil": shell.gp_recoil + shell.rail_draw,
        "velocity_mps": shell.velocity,
        "effective_range_m": shell.effective_range,
    }
    if damage_type == DamageType.KINETIC:
        row.update(
            raw_kd=shell.kinetic_damage,
            ap=shell.armor_pierce,
            effective_kd=shell.effective_kinetic_damage,
        )
        dps, per_volume, per_volume_belt = (
            shell.kinetic_dps,
            shell.kinetic_dps_per_volume,
            shell.kinetic_dps_per_volume_belt,
        )
    else:
        row.update(chemical_payload=shell.chem_damage)
        dps, per_volume, per_volume_belt = (
            shell.chem_dps,
            shell.chem_dps_per_volume,
            shell.chem_dps_per_volume_belt,
        )
    row.update(
        reload_s=shell.reload_time,
        volume=shell.volume,
        dps=dps,
        dps_per_volume=per_volume,
        dps_per_volume_belt=per_volume_belt,
    )
    return row


def params_summary(params: SearchParams, catalog: ModuleCatalog | None = None) -> dict[str, Any]:
    catalog = catalog or default_catalog()
    summary: dict[str, Any] = {
        "gauge_mm": [params.min_gauge, params.max_gauge],
        "heads": [catalog.name_of(i) for i in params.head_indices],
        "base": catalog.name_of(params.base_index) if params.base_index is not None else None,
        "fixed_modules": {
            catalog.name_of(i): c for i, c in enumerate(params.fixed_module_counts) if c
        },
        "variable_modules": sorted(
            {catalog.name_of(i) for i in params.variable_module_indices},
            key=catalog.index_of,
        ),
        "max_gp_casings": params.max_gp,
        "max_rg_casings": params.max_rg,
        "max_draw": params.max_draw,
        "max_length_mm": params.max_length,
        "min_velocity_mps": params.min_velocity,
        "min_effective_range_m": params.min_effective_range,
        "damage_type": params.damage_type.name.lower(),
    }
    if params.damage_type == DamageType.KINETIC:
        summary["target_ac"] = params.target_ac
    return summary


def result_to_dict(
    result: SearchResult, params: SearchParams, catalog: ModuleCatalog | None = None
) -> dict[str, Any]:
    return {
        "params": params_summary(params, catalog),
        "stats": result.stats.to_dict(),
        "cancelled": result.cancelled,
        "elapsed_s": result.elapsed_s,
        "top_shells": {
            label: shell_summary(shell, params.damage_type)
            for label, shell in result.top_shells().items()
        },
    }


_ROW_LABELS = {
    "gauge_mm": "Gauge (mm)",
    "total_length_mm": "Total length (mm)",
    "length_without_casings_mm": "Length without casings (mm)",
    "total_modules": "Total modules",
    "gp_casings": "GP casings",
    "rg_casings": "RG casings",
    "head": "Head",
    "draw": "Draw",
    "recoil": "Recoil",
    "velocity_mps": "Velocity (m/s)",
    "effective_range_m": "Effective range (m)",
    "raw_kd": "Raw KD",
    "ap": "AP",
    "effective_kd": "Eff. KD",
    "chemical_payload": "Chemical payload strength",
    "reload_s": "Reload (s)",
    "dps": "DPS",
    "dps_per_volume": "DPS per volume",
}


def _rows(row: dict[str, Any], catalog: ModuleCatalog) -> list[tuple[str, Any]]:
    out: list[tuple[str, Any]] = []
    for key, label in _ROW_LABELS.items():
        if key not in row:
            continue
        if key == "head":
            # Every catalog module gets a row so unlabeled columns line up
            out.extend((m.name, row["modules"].get(m.name, 0.0)) for m in catalog)
        out.append((label, row[key]))
    return out


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def format_report(
    result: SearchResult, params: SearchParams, catalog: ModuleCatalog | None = None
) -> str:
    """Plain-text report of the test parameters and the winning shells.

    With ``params.labels`` every value carries its row label; otherwise the
    row headers are printed once and each shell is a bare column of values.
    """
    catalog = catalog or default_catalog()
    lines = ["Test Parameters"]
    for key, value in params_summary(params, catalog).items():
        lines.append(f"{key}: {value}")

    lines.append("")
    stats = result.stats
    lines.append(f"{stats.comparisons} shells compared.")
    lines.append(f"{stats.reject_length} shells rejected due to length.")
    lines.append(f"{stats.reject_velocity} shells rejected due to velocity.")
    lines.append(f"{stats.reject_range} shells rejected due to range.")
    lines.append(f"{stats.total} total.")

    top = result.top_shells()
    summaries = {label: shell_summary(shell, params.damage_type) for label, shell in top.items()}

    if not params.labels and summaries:
        first = next(iter(summaries.values()))
        lines.append("")
        lines.append("Row Headers:")
        lines.extend(label for label, _ in _rows(first, catalog))

    for label, row in summaries.items():
        lines.append("")
        lines.append(label)
        for row_label, value in _rows(row, catalog):
            lines.append(f"{row_label}: {_fmt(value)}" if params.labels else _fmt(value))

    return "\n".join(lines) + "\n"
