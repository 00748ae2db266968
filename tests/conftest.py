"""Pytest configuration for apscalc.

Search tests run against the built-in catalog, except where a property is only
checkable with degenerate geometry; those use a catalog whose modules all have
zero length.
"""

from __future__ import annotations

import io
from dataclasses import replace

import pytest

from apscalc.ballistics.modules import DEFAULT_MODULES, ModuleCatalog, default_catalog
from apscalc.core.logging import StructuredLogger
from apscalc.core.types import SearchParams


@pytest.fixture
def catalog() -> ModuleCatalog:
    return default_catalog()


@pytest.fixture
def zero_length_catalog() -> ModuleCatalog:
    return ModuleCatalog(replace(m, max_length_mm=0.0) for m in DEFAULT_MODULES)


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger("test", output=io.StringIO(), min_level="ERROR")


@pytest.fixture
def make_params(catalog):
    """Factory for SearchParams against the default catalog.

    ``fixed`` maps module names to counts; ``heads``/``variable`` take names.
    Every other keyword is passed to SearchParams unchanged.
    """

    def _make(
        fixed: dict[str, float] | None = None,
        heads: tuple[str, ...] = ("AP head",),
        variable: tuple[str, str] = ("Solid body", "Sabot body"),
        base: str | None = None,
        **overrides,
    ) -> SearchParams:
        counts = [0.0] * len(catalog)
        for name, count in (fixed or {}).items():
            counts[catalog.index_of(name)] = count
        kwargs = dict(
            min_gauge=100.0,
            max_gauge=100.0,
            head_indices=tuple(catalog.index_of(h) for h in heads),
            fixed_module_counts=tuple(counts),
            variable_module_indices=tuple(catalog.index_of(v) for v in variable),
            base_index=catalog.index_of(base) if base is not None else None,
        )
        kwargs.update(overrides)
        return SearchParams(**kwargs)

    return _make
