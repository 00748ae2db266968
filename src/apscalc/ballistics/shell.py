"""Shell evaluation object.

A ``Shell`` is a mutable record for one candidate configuration. Derived
fields are produced by ``compute_*`` steps that must run in dependency order:

    lengths -> modifiers / recoil / max draw / reload
            -> volume, velocity -> range, armor pierce, damage -> DPS

Every step records that it ran. Calling a step before its prerequisites raises
``ShellStateError``. Assigning ``rail_draw`` discards every draw-dependent
result, so a shell can be re-scored at a new draw without stale fields
(reset-then-recompute).

The formulas are a simplified ballistic model; their constants live in
``apscalc.core.constants``.
"""

from __future__ import annotations

import copy
import math

import numpy as np

from ..core import constants as C
from ..core.types import DamageType
from .modules import Module, ModuleCatalog, default_catalog

LENGTHS = "lengths"
MODIFIERS = "modifiers"
RECOIL = "recoil"
MAX_DRAW = "max_draw"
RELOAD = "reload"
VOLUME = "volume"
VELOCITY = "velocity"
RANGE = "range"
ARMOR_PIERCE = "armor_pierce"
KINETIC_DAMAGE = "kinetic_damage"
KINETIC_DPS = "kinetic_dps"
CHEM_DAMAGE = "chem_damage"
CHEM_DPS = "chem_dps"

# Steps whose results depend on rail draw
DRAW_DEPENDENT = frozenset(
    {VOLUME, VELOCITY, RANGE, ARMOR_PIERCE, KINETIC_DAMAGE, KINETIC_DPS, CHEM_DPS}
)


class ShellStateError(RuntimeError):
    """A computation step was invoked before the steps it depends on."""


def gauge_coefficient(gauge: float) -> float:
    """Scaling factor relative to the reference gauge."""
    if gauge <= 0:
        return 0.0
    return (gauge / C.GAUGE_REFERENCE_MM) ** C.GAUGE_EXPONENT


def loader_volume(total_length: float) -> float:
    """Volume of the smallest loader (plus intake) that fits the shell."""
    for _, limit in C.LENGTH_BRACKETS:
        if total_length <= limit:
            return limit / 1000.0 + C.LOADER_INTAKE_VOLUME
    return math.ceil(total_length / 1000.0) + C.LOADER_INTAKE_VOLUME


class Shell:
    """One candidate shell and its derived performance figures."""

    def __init__(
        self,
        gauge: float,
        head_module: Module,
        base_module: Module | None = None,
        body_module_counts: np.ndarray | None = None,
        gp_casing_count: float = 0.0,
        rg_casing_count: float = 0.0,
        catalog: ModuleCatalog | None = None,
    ) -> None:
        self.catalog = catalog or default_catalog()
        self.gauge = float(gauge)
        self.head_module = head_module
        self.base_module = base_module
        if body_module_counts is None:
            body_module_counts = self.catalog.zero_counts()
        self.body_module_counts = np.asarray(body_module_counts, dtype=np.float64)
        if self.body_module_counts.shape != (len(self.catalog),):
            raise ValueError(
                f"body_module_counts must have shape ({len(self.catalog)},), "
                f"got {self.body_module_counts.shape}"
            )
        self.gp_casing_count = float(gp_casing_count)
        self.rg_casing_count = float(rg_casing_count)
        self._rail_draw = 0.0
        self._done: set[str] = set()

        # Derived fields; only meaningful once their step has run
        self.gauge_coef = gauge_coefficient(self.gauge)
        self.projectile_length = 0.0
        self.casing_length = 0.0
        self.length_without_casings = 0.0
        self.total_length = 0.0
        self.effective_module_count = 0.0
        self.velocity_modifier = 1.0
        self.kinetic_damage_modifier = 1.0
        self.armor_pierce_modifier = 1.0
        self.chem_modifier = 1.0
        self.accuracy_modifier = 1.0
        self.chem_module_count = 0.0
        self.gp_recoil = 0.0
        self.max_draw = 0.0
        self.reload_time = 0.0
        self.volume = 0.0
        self.volume_belt = 0.0
        self.velocity = 0.0
        self.effective_range = 0.0
        self.armor_pierce = 0.0
        self.kinetic_damage = 0.0
        self.effective_kinetic_damage = 0.0
        self.kinetic_dps = 0.0
        self.kinetic_dps_per_volume = 0.0
        self.kinetic_dps_belt = 0.0
        self.kinetic_dps_per_volume_belt = 0.0
        self.chem_damage = 0.0
        self.chem_dps = 0.0
        self.chem_dps_per_volume = 0.0
        self.chem_dps_belt = 0.0
        self.chem_dps_per_volume_belt = 0.0

    # ------------------------------------------------------------------
    # State tracking
    # ------------------------------------------------------------------

    @property
    def rail_draw(self) -> float:
        return self._rail_draw

    @rail_draw.setter
    def rail_draw(self, value: float) -> None:
        self._rail_draw = float(value)
        self._done -= DRAW_DEPENDENT

    def has_computed(self, step: str) -> bool:
        return step in self._done

    def reset(self) -> None:
        """Discard every derived result."""
        self._done.clear()

    def _require(self, step: str, *prereqs: str) -> None:
        missing = [p for p in prereqs if p not in self._done]
        if missing:
            raise ShellStateError(f"{step} requires {', '.join(missing)} to be computed first")

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def compute_lengths(self) -> None:
        body_lengths = np.minimum(self.gauge, self.catalog.max_lengths)
        body = float(np.dot(body_lengths, self.body_module_counts))
        head = self.head_module.length(self.gauge)
        base = self.base_module.length(self.gauge) if self.base_module is not None else 0.0

        self.projectile_length = head + body + base
        self.casing_length = (self.gp_casing_count + self.rg_casing_count) * self.gauge
        self.length_without_casings = self.projectile_length
        self.total_length = self.projectile_length + self.casing_length
        self.effective_module_count = (
            self.projectile_length / self.gauge if self.gauge > 0 else 0.0
        )
        self._done = {LENGTHS}

    def compute_modifiers(self) -> None:
        self._require(MODIFIERS, LENGTHS)
        counts = self.body_module_counts
        n_body = float(counts.sum())
        cat = self.catalog

        def body_mean(mods: np.ndarray) -> float:
            return float(np.dot(counts, mods) / n_body) if n_body > 0 else 1.0

        head, base = self.head_module, self.base_module
        base_vel = base.velocity_mod if base is not None else 1.0
        base_kd = base.kinetic_damage_mod if base is not None else 1.0
        base_ap = base.armor_pierce_mod if base is not None else 1.0
        base_acc = base.accuracy_mod if base is not None else 1.0

        self.velocity_modifier = head.velocity_mod * body_mean(cat.velocity_mods) * base_vel
        self.kinetic_damage_modifier = (
            head.kinetic_damage_mod * body_mean(cat.kinetic_damage_mods) * base_kd
        )
        self.armor_pierce_modifier = head.armor_pierce_mod * body_mean(cat.armor_pierce_mods) * base_ap
        self.accuracy_modifier = head.accuracy_mod * body_mean(cat.accuracy_mods) * base_acc
        self.chem_modifier = head.chem_mod * body_mean(cat.chem_mods)

        self.chem_module_count = float(counts[cat.chem_mask].sum()) + (1.0 if head.is_chem else 0.0)
        self._done.add(MODIFIERS)

    def compute_recoil(self) -> None:
        """Recoil produced by the gunpowder casings."""
        self._require(RECOIL, LENGTHS)
        self.gp_recoil = self.gauge_coef * self.gp_casing_count * C.GP_RECOIL_PER_CASING
        self._done.add(RECOIL)

    def compute_max_draw(self) -> None:
        self._require(MAX_DRAW, LENGTHS)
        self.max_draw = self.gauge_coef * (
            C.DRAW_PER_MODULE * self.effective_module_count
            + C.DRAW_PER_RG_CASING * self.rg_casing_count
        )
        self._done.add(MAX_DRAW)

    def compute_reload_time(self) -> None:
        self._require(RELOAD, LENGTHS)
        if self.gauge <= 0:
            self.reload_time = 0.0
        else:
            size = (self.gauge / C.GAUGE_REFERENCE_MM) ** C.RELOAD_GAUGE_EXPONENT
            modules = (
                2.0
                + self.effective_module_count
                + C.RELOAD_CASING_WEIGHT * (self.gp_casing_count + self.rg_casing_count)
            )
            self.reload_time = size * modules * C.RELOAD_CONSTANT
        self._done.add(RELOAD)

    # ------------------------------------------------------------------
    # Draw-dependent figures
    # ------------------------------------------------------------------

    def _velocity_at(self, draw: float) -> float:
        denom = self.gauge_coef * self.projectile_length
        if denom <= 0:
            return 0.0
        energy = (draw + self.gp_recoil) * C.VELOCITY_CONSTANT * self.gauge / denom
        return math.sqrt(max(energy, 0.0)) * self.velocity_modifier

    def compute_min_draw(self, min_velocity: float, min_range: float, max_draw: float) -> float:
        """Smallest integer draw meeting both the velocity and the range floor.

        Returns ``math.inf`` when no draw can reach the floor, and a value above
        ``max_draw`` when the floor needs more draw than ``max_draw`` allows.
        """
        self._require("min_draw", MODIFIERS, RECOIL)
        flight = C.EFFECTIVE_FLIGHT_TIME_S * self.accuracy_modifier
        required = float(min_velocity)
        if min_range > 0:
            if flight <= 0:
                return math.inf
            required = max(required, min_range / flight)
        if self._velocity_at(0.0) >= required:
            return 0.0

        per_draw = self._velocity_at(1.0) ** 2 - self._velocity_at(0.0) ** 2
        if per_draw <= 0:
            return math.inf
        draw = max(math.ceil((required**2 - self._velocity_at(0.0) ** 2) / per_draw - 1e-9), 0)
        # Guard the ceiling against rounding on either side
        while draw > 0 and self._velocity_at(draw - 1) >= required:
            draw -= 1
        while self._velocity_at(draw) < required:
            draw += 1
            if draw > max_draw:
                break
        return float(draw)

    def compute_volume(self) -> None:
        """Loader, recoil absorber, rail charger and cooler volume per loader."""
        self._require(VOLUME, LENGTHS, RECOIL, RELOAD)
        if self.reload_time > 0:
            per_second = 1.0 / self.reload_time
            support = per_second * (
                (self.gp_recoil + self.rail_draw) / C.RECOIL_PER_ABSORBER
                + self.rail_draw / C.DRAW_PER_CHARGER
                + self.gp_casing_count * self.gauge_coef / C.COOLING_PER_BLOCK
            )
        else:
            support = 0.0
        self.volume = loader_volume(self.total_length) + support
        self.volume_belt = (
            C.BELT_LOADER_VOLUME + C.LOADER_INTAKE_VOLUME + support / C.BELT_RELOAD_MULTIPLIER
        )
        self._done.add(VOLUME)

    def compute_velocity(self) -> None:
        self._require(VELOCITY, MODIFIERS, RECOIL)
        self.velocity = self._velocity_at(self.rail_draw)
        self._done.add(VELOCITY)

    def compute_effective_range(self) -> None:
        self._require(RANGE, VELOCITY)
        self.effective_range = (
            self.velocity * C.EFFECTIVE_FLIGHT_TIME_S * self.accuracy_modifier
        )
        self._done.add(RANGE)

    def compute_armor_pierce(self) -> None:
        self._require(ARMOR_PIERCE, VELOCITY)
        self.armor_pierce = self.velocity * self.armor_pierce_modifier * C.ARMOR_PIERCE_CONSTANT
        self._done.add(ARMOR_PIERCE)

    def compute_kinetic_damage(self) -> None:
        self._require(KINETIC_DAMAGE, VELOCITY)
        self.kinetic_damage = (
            self.gauge_coef
            * self.effective_module_count
            * self.velocity
            * self.kinetic_damage_modifier
            * C.KINETIC_DAMAGE_CONSTANT
        )
        self._done.add(KINETIC_DAMAGE)

    def compute_kinetic_dps(self, target_ac: float) -> None:
        self._require(KINETIC_DPS, KINETIC_DAMAGE, ARMOR_PIERCE, VOLUME, RELOAD)
        ap_ratio = min(1.0, self.armor_pierce / target_ac) if target_ac > 0 else 1.0
        self.effective_kinetic_damage = self.kinetic_damage * ap_ratio
        self.kinetic_dps, self.kinetic_dps_belt = self._dps(self.effective_kinetic_damage)
        self.kinetic_dps_per_volume = _per(self.kinetic_dps, self.volume)
        self.kinetic_dps_per_volume_belt = _per(self.kinetic_dps_belt, self.volume_belt)
        self._done.add(KINETIC_DPS)

    def compute_chem_damage(self) -> None:
        self._require(CHEM_DAMAGE, MODIFIERS)
        self.chem_damage = (
            self.gauge_coef * self.chem_module_count * self.chem_modifier * C.CHEM_PAYLOAD_CONSTANT
        )
        self._done.add(CHEM_DAMAGE)

    def compute_chem_dps(self) -> None:
        self._require(CHEM_DPS, CHEM_DAMAGE, VOLUME, RELOAD)
        self.chem_dps, self.chem_dps_belt = self._dps(self.chem_damage)
        self.chem_dps_per_volume = _per(self.chem_dps, self.volume)
        self.chem_dps_per_volume_belt = _per(self.chem_dps_belt, self.volume_belt)
        self._done.add(CHEM_DPS)

    def _dps(self, damage: float) -> tuple[float, float]:
        if self.reload_time <= 0:
            return 0.0, 0.0
        dps = damage / self.reload_time
        belt = damage / (self.reload_time * C.BELT_RELOAD_MULTIPLIER) * C.BELT_UPTIME
        return dps, belt

    # ------------------------------------------------------------------
    # Scores and reporting helpers
    # ------------------------------------------------------------------

    def score(self, damage_type: DamageType) -> float:
        """DPS per volume for the given damage type."""
        if damage_type == DamageType.KINETIC:
            return self.kinetic_dps_per_volume
        return self.chem_dps_per_volume

    def belt_score(self, damage_type: DamageType) -> float:
        if damage_type == DamageType.KINETIC:
            return self.kinetic_dps_per_volume_belt
        return self.chem_dps_per_volume_belt

    def module_counts(self) -> dict[str, float]:
        """Nonzero body module counts keyed by module name."""
        return {
            self.catalog.name_of(i): float(c)
            for i, c in enumerate(self.body_module_counts)
            if c != 0
        }

    @property
    def total_module_count(self) -> float:
        """Modules on the shell, head, base and casings included."""
        return (
            float(self.body_module_counts.sum())
            + 1.0
            + (1.0 if self.base_module is not None else 0.0)
            + self.gp_casing_count
            + self.rg_casing_count
        )

    def copy(self) -> Shell:
        """Independent snapshot; later mutation of either shell leaves the other untouched."""
        clone = copy.copy(self)
        clone.body_module_counts = self.body_module_counts.copy()
        clone._done = set(self._done)
        return clone

    def __repr__(self) -> str:
        return (
            f"Shell(gauge={self.gauge:g}, head={self.head_module.name!r}, "
            f"length={self.total_length:g}, draw={self.rail_draw:g})"
        )


def _per(value: float, volume: float) -> float:
    return value / volume if volume > 0 else 0.0
