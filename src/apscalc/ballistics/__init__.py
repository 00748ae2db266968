"""Ballistic model: module catalog and the shell evaluation object."""

from .modules import DEFAULT_MODULES, Module, ModuleCatalog, ModuleType, default_catalog
from .shell import Shell, ShellStateError, gauge_coefficient, loader_volume

__all__ = [
    "DEFAULT_MODULES",
    "Module",
    "ModuleCatalog",
    "ModuleType",
    "default_catalog",
    "Shell",
    "ShellStateError",
    "gauge_coefficient",
    "loader_volume",
]
