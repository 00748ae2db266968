"""Shell module definitions and the indexable module catalog.

Every module contributes multiplicative modifiers to the shell it is part of
and occupies a length of ``min(gauge, max_length_mm)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import overload

import numpy as np


class ModuleType(str, Enum):
    HEAD = "head"
    BODY = "body"
    BASE = "base"


@dataclass(frozen=True)
class Module:
    """Static definition of one shell module.

    Attributes:
        name: Display name, unique within a catalog.
        module_type: Position the module may occupy.
        velocity_mod: Muzzle velocity multiplier.
        kinetic_damage_mod: Kinetic damage multiplier.
        armor_pierce_mod: Armor pierce multiplier.
        chem_mod: Chemical payload multiplier.
        accuracy_mod: Effective range multiplier.
        max_length_mm: Length cap; shorter gauges use the gauge as length.
        is_chem: Whether the module carries a chemical payload.
    """

    name: str
    module_type: ModuleType = ModuleType.BODY
    velocity_mod: float = 1.0
    kinetic_damage_mod: float = 1.0
    armor_pierce_mod: float = 1.0
    chem_mod: float = 1.0
    accuracy_mod: float = 1.0
    max_length_mm: float = 500.0
    is_chem: bool = False

    @property
    def can_be_head(self) -> bool:
        return self.module_type in (ModuleType.HEAD, ModuleType.BODY)

    def length(self, gauge: float) -> float:
        """Length (mm) of this module on a shell of the given gauge."""
        return min(float(gauge), self.max_length_mm)


class ModuleCatalog(Sequence[Module]):
    """Ordered, read-only registry of modules addressed by integer index."""

    def __init__(self, modules: Iterable[Module]) -> None:
        self._modules: tuple[Module, ...] = tuple(modules)
        self._by_name: dict[str, int] = {}
        for i, module in enumerate(self._modules):
            if module.name in self._by_name:
                raise ValueError(f"Duplicate module name in catalog: {module.name!r}")
            self._by_name[module.name] = i

    def __len__(self) -> int:
        return len(self._modules)

    @overload
    def __getitem__(self, index: int) -> Module: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Module, ...]: ...

    def __getitem__(self, index: int | slice) -> Module | tuple[Module, ...]:
        return self._modules[index]

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules)

    def __repr__(self) -> str:
        return f"ModuleCatalog({len(self)} modules)"

    def name_of(self, index: int) -> str:
        return self._modules[index].name

    def index_of(self, name: str) -> int:
        """Resolve a module name (case-insensitive fallback) to its index."""
        if name in self._by_name:
            return self._by_name[name]
        lowered = name.strip().lower()
        for key, idx in self._by_name.items():
            if key.lower() == lowered:
                return idx
        raise KeyError(f"Unknown module: {name!r}")

    def resolve(self, ref: int | str) -> int:
        """Accept either an index or a module name."""
        if isinstance(ref, str):
            return self.index_of(ref)
        index = int(ref)
        if not 0 <= index < len(self):
            raise IndexError(f"Module index {index} outside catalog of {len(self)} modules")
        return index

    # Property vectors, aligned with catalog indices

    @cached_property
    def max_lengths(self) -> np.ndarray:
        return np.array([m.max_length_mm for m in self._modules], dtype=np.float64)

    @cached_property
    def velocity_mods(self) -> np.ndarray:
        return np.array([m.velocity_mod for m in self._modules], dtype=np.float64)

    @cached_property
    def kinetic_damage_mods(self) -> np.ndarray:
        return np.array([m.kinetic_damage_mod for m in self._modules], dtype=np.float64)

    @cached_property
    def armor_pierce_mods(self) -> np.ndarray:
        return np.array([m.armor_pierce_mod for m in self._modules], dtype=np.float64)

    @cached_property
    def chem_mods(self) -> np.ndarray:
        return np.array([m.chem_mod for m in self._modules], dtype=np.float64)

    @cached_property
    def accuracy_mods(self) -> np.ndarray:
        return np.array([m.accuracy_mod for m in self._modules], dtype=np.float64)

    @cached_property
    def chem_mask(self) -> np.ndarray:
        return np.array([m.is_chem for m in self._modules], dtype=bool)

    def zero_counts(self) -> np.ndarray:
        return np.zeros(len(self._modules), dtype=np.float64)


DEFAULT_MODULES: tuple[Module, ...] = (
    # Bodies
    Module("Solid body", velocity_mod=1.1, kinetic_damage_mod=1.0, armor_pierce_mod=1.0),
    Module("Sabot body", velocity_mod=1.1, kinetic_damage_mod=0.8, armor_pierce_mod=1.4),
    Module("HE body", velocity_mod=1.0, kinetic_damage_mod=0.8, armor_pierce_mod=0.1, is_chem=True),
    Module("Frag body", velocity_mod=1.0, kinetic_damage_mod=0.8, armor_pierce_mod=0.1, is_chem=True),
    Module("Flak body", velocity_mod=1.0, kinetic_damage_mod=0.8, armor_pierce_mod=0.1, is_chem=True),
    Module("EMP body", velocity_mod=1.0, kinetic_damage_mod=0.8, armor_pierce_mod=0.1, is_chem=True),
    Module("Fuse", velocity_mod=1.0, kinetic_damage_mod=0.8, armor_pierce_mod=1.0, max_length_mm=100.0),
    Module("Fin body", velocity_mod=0.95, kinetic_damage_mod=1.0, armor_pierce_mod=1.0,
           accuracy_mod=1.3, max_length_mm=300.0),
    Module("Grav. compensator", velocity_mod=1.0, kinetic_damage_mod=1.0, armor_pierce_mod=1.0,
           max_length_mm=100.0),
    # Heads
    Module("AP head", ModuleType.HEAD, velocity_mod=1.6, kinetic_damage_mod=1.0, armor_pierce_mod=1.65),
    Module("Sabot head", ModuleType.HEAD, velocity_mod=1.6, kinetic_damage_mod=0.85,
           armor_pierce_mod=2.5),
    Module("Hollow point head", ModuleType.HEAD, velocity_mod=1.6, kinetic_damage_mod=1.2,
           armor_pierce_mod=1.0),
    Module("Squash head", ModuleType.HEAD, velocity_mod=1.45, kinetic_damage_mod=0.1,
           armor_pierce_mod=0.1, chem_mod=1.0, is_chem=True),
    Module("Shaped charge head", ModuleType.HEAD, velocity_mod=1.45, kinetic_damage_mod=0.1,
           armor_pierce_mod=0.1, chem_mod=1.0, is_chem=True),
    Module("HE head", ModuleType.HEAD, velocity_mod=1.45, kinetic_damage_mod=0.8,
           armor_pierce_mod=0.1, chem_mod=1.0, is_chem=True),
    Module("Frag head", ModuleType.HEAD, velocity_mod=1.45, kinetic_damage_mod=0.8,
           armor_pierce_mod=0.1, chem_mod=1.0, is_chem=True),
    # Bases
    Module("Base bleeder", ModuleType.BASE, velocity_mod=1.0, kinetic_damage_mod=1.0,
           armor_pierce_mod=1.0, accuracy_mod=1.15, max_length_mm=100.0),
    Module("Supercavitation base", ModuleType.BASE, velocity_mod=1.0, kinetic_damage_mod=1.0,
           armor_pierce_mod=1.0, accuracy_mod=1.0, max_length_mm=100.0),
    Module("Visible tracer", ModuleType.BASE, velocity_mod=1.0, kinetic_damage_mod=1.0,
           armor_pierce_mod=1.0, max_length_mm=100.0),
)

_DEFAULT_CATALOG: ModuleCatalog | None = None


def default_catalog() -> ModuleCatalog:
    """Return the built-in module catalog (shared, read-only)."""
    global _DEFAULT_CATALOG
    if _DEFAULT_CATALOG is None:
        _DEFAULT_CATALOG = ModuleCatalog(DEFAULT_MODULES)
    return _DEFAULT_CATALOG
