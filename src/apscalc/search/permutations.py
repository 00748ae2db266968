"""Permutation generator for module and casing counts.

Yields every legal ``ModuleCount`` for a search, lazily. Nesting order is
head -> gauge -> var0 -> var1 -> gp -> rg. The total of fixed modules, both
variable counts and both casing counts never exceeds ``MAX_MODULE_SLOTS``.

An axis whose upper bound lies below its start contributes no iterations;
invalid or inverted bounds therefore produce an empty sequence, not an error.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator

from ..core.constants import GP_STEPS_PER_CASING, MAX_MODULE_SLOTS, SLOT_EPS
from ..core.types import ModuleCount, SearchParams


def inclusive_steps(stop: float) -> range:
    """Integers ``0..floor(stop)`` inclusive; empty when ``stop < 0``."""
    if stop < 0:
        return range(0)
    return range(math.floor(stop + SLOT_EPS) + 1)


def gauge_values(min_gauge: float, max_gauge: float) -> list[float]:
    """Gauges from ``min_gauge`` to ``max_gauge`` inclusive in 1 mm steps."""
    return [float(min_gauge) + k for k in inclusive_steps(max_gauge - min_gauge)]


def partition_outer(params: SearchParams) -> Iterator[tuple[int, float]]:
    """Outer (head, gauge) partitions in enumeration order.

    Each partition can be enumerated independently with
    ``generate_module_counts(params, heads=[h], gauges=[g])``.
    """
    gauges = gauge_values(params.min_gauge, params.max_gauge)
    for head in params.head_indices:
        for gauge in gauges:
            yield head, gauge


def generate_module_counts(
    params: SearchParams,
    heads: Iterable[int] | None = None,
    gauges: Iterable[float] | None = None,
) -> Iterator[ModuleCount]:
    """Generate every module/casing count combination within the slot budget.

    Args:
        params: Search parameters.
        heads: Restrict to these head indices (default: ``params.head_indices``).
        gauges: Restrict to these gauges (default: the full gauge range).

    Yields:
        ModuleCount tuples. The generator is restartable: calling this function
        again reproduces the same sequence.
    """
    head_list = list(params.head_indices if heads is None else heads)
    gauge_list = (
        gauge_values(params.min_gauge, params.max_gauge) if gauges is None else list(gauges)
    )
    var0_max = MAX_MODULE_SLOTS - params.fixed_module_total

    for head in head_list:
        for gauge in gauge_list:
            for var0 in inclusive_steps(var0_max):
                # Identical variable modules would count the same axis twice
                var1_max = 0 if params.same_variable_module else var0_max - var0
                for var1 in inclusive_steps(var1_max):
                    remaining = var0_max - var0 - var1
                    gp_max = min(remaining, params.max_gp)
                    for gp_step in inclusive_steps(gp_max * GP_STEPS_PER_CASING):
                        gp = gp_step / GP_STEPS_PER_CASING
                        rg_max = min(remaining - gp, params.max_rg)
                        for rg in inclusive_steps(rg_max):
                            yield ModuleCount(
                                gauge=gauge,
                                head_index=head,
                                var0_count=float(var0),
                                var1_count=float(var1),
                                gp_count=gp,
                                rg_count=float(rg),
                            )


def count_module_counts(params: SearchParams) -> int:
    """Number of tuples ``generate_module_counts(params)`` yields, without building them."""
    var0_max = MAX_MODULE_SLOTS - params.fixed_module_total
    per_partition = 0
    for var0 in inclusive_steps(var0_max):
        var1_max = 0 if params.same_variable_module else var0_max - var0
        for var1 in inclusive_steps(var1_max):
            remaining = var0_max - var0 - var1
            gp_max = min(remaining, params.max_gp)
            for gp_step in inclusive_steps(gp_max * GP_STEPS_PER_CASING):
                rg_max = min(remaining - gp_step / GP_STEPS_PER_CASING, params.max_rg)
                per_partition += len(inclusive_steps(rg_max))

    n_gauges = len(gauge_values(params.min_gauge, params.max_gauge))
    return per_partition * n_gauges * len(params.head_indices)
