"""Core module: types, constants, configuration, logging."""

from .types import DamageType, ModuleCount, SearchParams

__all__ = [
    "DamageType",
    "ModuleCount",
    "SearchParams",
]
