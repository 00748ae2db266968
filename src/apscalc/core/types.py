"""Core types for search parameters and enumerated candidates.

This module defines the canonical types that form the interface
between the permutation generator, the ballistic model and the search runner.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any


class DamageType(IntEnum):
    """Damage model used for scoring."""

    KINETIC = 0
    CHEMICAL = 1

    @classmethod
    def parse(cls, value: Any) -> DamageType:
        """Accept an enum member, its integer value or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in ("CHEM", "CHEMICAL"):
                return cls.CHEMICAL
            if key == "KINETIC":
                return cls.KINETIC
            raise ValueError(f"Unknown damage type: {value!r}")
        return cls(int(value))


@dataclass(frozen=True)
class ModuleCount:
    """One point of the enumeration space.

    Attributes:
        gauge: Shell diameter (mm).
        head_index: Catalog index of the head module.
        var0_count: Count added to the first variable module.
        var1_count: Count added to the second variable module.
        gp_count: Gunpowder casings, in steps of 0.01.
        rg_count: Railgun casings.
    """

    gauge: float
    head_index: int
    var0_count: float
    var1_count: float
    gp_count: float
    rg_count: float

    @property
    def variable_total(self) -> float:
        return self.var0_count + self.var1_count + self.gp_count + self.rg_count


@dataclass(frozen=True)
class SearchParams:
    """Immutable parameters for one search run.

    Attributes:
        min_gauge: Smallest gauge tested (mm), inclusive.
        max_gauge: Largest gauge tested (mm), inclusive.
        head_indices: Catalog indices of every module tried as the head.
        base_index: Catalog index of the special base module, or None.
        fixed_module_counts: Count per catalog index present on every shell.
        variable_module_indices: The two catalog indices whose counts vary.
            Passing the same index twice varies a single module.
        max_gp: Max gunpowder casings.
        max_rg: Max railgun casings.
        max_length: Max total shell length (mm).
        max_draw: Max rail draw. Zero selects the no-draw (GP only) search.
        min_velocity: Min muzzle velocity (m/s).
        min_effective_range: Min effective range (m).
        target_ac: Armor class of the target, kinetic scoring only.
        damage_type: Kinetic or chemical scoring.
        labels: Print row labels on every report line.
    """

    min_gauge: float
    max_gauge: float
    head_indices: tuple[int, ...]
    fixed_module_counts: tuple[float, ...]
    variable_module_indices: tuple[int, int]
    base_index: int | None = None
    max_gp: float = 0.0
    max_rg: float = 0.0
    max_length: float = 8000.0
    max_draw: float = 0.0
    min_velocity: float = 0.0
    min_effective_range: float = 0.0
    target_ac: float = 8.0
    damage_type: DamageType = DamageType.KINETIC
    labels: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "head_indices", tuple(int(i) for i in self.head_indices))
        object.__setattr__(
            self, "fixed_module_counts", tuple(float(c) for c in self.fixed_module_counts)
        )
        object.__setattr__(
            self, "variable_module_indices", tuple(int(i) for i in self.variable_module_indices)
        )
        object.__setattr__(self, "damage_type", DamageType.parse(self.damage_type))

        if len(self.variable_module_indices) != 2:
            raise ValueError(
                f"variable_module_indices must hold exactly 2 indices, "
                f"got {len(self.variable_module_indices)}"
            )
        if any(c < 0 for c in self.fixed_module_counts):
            raise ValueError(f"fixed_module_counts must be non-negative: {self.fixed_module_counts}")
        n_modules = len(self.fixed_module_counts)
        for idx in self.variable_module_indices:
            if not 0 <= idx < n_modules:
                raise ValueError(
                    f"variable module index {idx} outside fixed_module_counts (len {n_modules})"
                )

    @property
    def fixed_module_total(self) -> float:
        """Slots consumed by the fixed body modules."""
        return float(sum(self.fixed_module_counts))

    @property
    def same_variable_module(self) -> bool:
        return self.variable_module_indices[0] == self.variable_module_indices[1]

    @property
    def uses_draw(self) -> bool:
        """Whether any nonzero rail draw is permitted."""
        return self.max_draw > 0

    def with_changes(self, **changes: Any) -> SearchParams:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
