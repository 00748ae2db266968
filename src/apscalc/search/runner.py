"""Search runner: the entry point for a shell search.

Flow per enumerated ``ModuleCount``:
    1. build_shell(counts) -> Shell
    2. compute lengths; reject when longer than the max length
    3. compute modifiers, recoil, max draw, reload time
    4. draw mode: bound the feasible draw range, search the optimal draw
       no-draw mode: reject on velocity, then on effective range
    5. score at the chosen draw and offer the shell to the leaderboard

Partitions of the enumeration (one per head and gauge) are independent and can
be run in worker processes; their results merge into the sequential result.
"""

from __future__ import annotations

import math
import multiprocessing as mp
import signal
import time
from collections import deque
from collections.abc import Iterable
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from ..ballistics.modules import ModuleCatalog, default_catalog
from ..ballistics.shell import Shell
from ..core.logging import StructuredLogger, get_log_level, get_logger, set_log_level
from ..core.types import DamageType, ModuleCount, SearchParams
from .draw import DrawSearchResult, coarse_scan, find_optimal_draw
from .leaderboard import Leaderboard
from .permutations import generate_module_counts, partition_outer
from .stats import RunStats


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class SearchResult:
    """Leaderboard and counters of a finished (or cancelled) run."""

    leaderboard: Leaderboard
    stats: RunStats = field(default_factory=RunStats)
    cancelled: bool = False
    partitions: int = 0
    elapsed_s: float = 0.0

    def top_shells(self) -> dict[str, Shell]:
        return self.leaderboard.top_shells()

    def merge(self, other: SearchResult) -> SearchResult:
        self.leaderboard.merge(other.leaderboard)
        self.stats.merge(other.stats)
        self.partitions += other.partitions
        self.cancelled = self.cancelled or other.cancelled
        return self


def validate_params(params: SearchParams, catalog: ModuleCatalog) -> None:
    """Check that every index in ``params`` refers to a usable catalog module.

    Raises:
        ValueError: On a catalog/parameter mismatch.
    """
    if len(params.fixed_module_counts) != len(catalog):
        raise ValueError(
            f"fixed_module_counts has {len(params.fixed_module_counts)} entries, "
            f"catalog has {len(catalog)} modules"
        )
    for idx in params.head_indices:
        if not 0 <= idx < len(catalog):
            raise ValueError(f"Head index {idx} outside catalog of {len(catalog)} modules")
        if not catalog[idx].can_be_head:
            raise ValueError(f"{catalog.name_of(idx)} cannot be used as a head")
    if params.base_index is not None and not 0 <= params.base_index < len(catalog):
        raise ValueError(f"Base index {params.base_index} outside catalog of {len(catalog)} modules")


class ShellSearch:
    """Evaluates enumerated shells and keeps the best per length bracket.

    Args:
        params: Search parameters.
        catalog: Module catalog (default: built-in catalog).
        logger: Structured logger for progress output.
        check_unimodal: When > 0, cross-check each draw search against a
            coarse scan with this many groups and log a warning when the scan
            finds a better score. The bisection result is kept either way.
    """

    def __init__(
        self,
        params: SearchParams,
        catalog: ModuleCatalog | None = None,
        logger: StructuredLogger | None = None,
        check_unimodal: int = 0,
    ) -> None:
        self.params = params
        self.catalog = catalog or default_catalog()
        self.logger = logger or get_logger(__name__)
        self.check_unimodal = int(check_unimodal)
        validate_params(params, self.catalog)

        self._fixed_counts = np.asarray(params.fixed_module_counts, dtype=np.float64)
        self._base = self.catalog[params.base_index] if params.base_index is not None else None
        self._var0, self._var1 = params.variable_module_indices

    # ------------------------------------------------------------------
    # Per-candidate evaluation
    # ------------------------------------------------------------------

    def build_shell(self, counts: ModuleCount) -> Shell:
        """Materialize a shell from an enumerated tuple."""
        body = self._fixed_counts.copy()
        body[self._var0] += counts.var0_count
        body[self._var1] += counts.var1_count
        return Shell(
            gauge=counts.gauge,
            head_module=self.catalog[counts.head_index],
            base_module=self._base,
            body_module_counts=body,
            gp_casing_count=counts.gp_count,
            rg_casing_count=counts.rg_count,
            catalog=self.catalog,
        )

    def score_at(self, shell: Shell, draw: float) -> float:
        """Re-score ``shell`` at ``draw``: volume, velocity, damage, DPS."""
        p = self.params
        shell.rail_draw = draw
        shell.compute_volume()
        shell.compute_velocity()
        if p.damage_type == DamageType.KINETIC:
            shell.compute_armor_pierce()
            shell.compute_kinetic_damage()
            shell.compute_kinetic_dps(p.target_ac)
        else:
            shell.compute_chem_damage()
            shell.compute_chem_dps()
        return shell.score(p.damage_type)

    def evaluate(self, counts: ModuleCount, stats: RunStats) -> Shell | None:
        """Filter and score one candidate.

        Returns:
            The scored shell, or None when it was rejected. Exactly one
            counter in ``stats`` is incremented per call.
        """
        p = self.params
        shell = self.build_shell(counts)

        shell.compute_lengths()
        if shell.total_length > p.max_length:
            stats.reject_length += 1
            return None

        shell.compute_modifiers()
        shell.compute_recoil()
        shell.compute_max_draw()
        shell.compute_reload_time()

        if p.uses_draw:
            draw = self._search_draw(shell, stats)
            if draw is None:
                return None
        else:
            shell.rail_draw = 0.0
            shell.compute_velocity()
            if shell.velocity < p.min_velocity:
                stats.reject_velocity += 1
                return None
            shell.compute_effective_range()
            if shell.effective_range < p.min_effective_range:
                stats.reject_range += 1
                return None
            stats.comparisons += 1
            draw = 0.0

        self.score_at(shell, draw)
        shell.compute_effective_range()
        return shell

    def _search_draw(self, shell: Shell, stats: RunStats) -> float | None:
        p = self.params
        max_draw = float(math.floor(min(shell.max_draw, p.max_draw)))
        min_draw = shell.compute_min_draw(p.min_velocity, p.min_effective_range, max_draw)

        if min_draw > max_draw:
            # Classify by the first floor the best-case draw still misses
            shell.rail_draw = max_draw
            shell.compute_velocity()
            if shell.velocity < p.min_velocity:
                stats.reject_velocity += 1
            else:
                stats.reject_range += 1
            return None

        stats.comparisons += 1
        result = find_optimal_draw(lambda d: self.score_at(shell, d), min_draw, max_draw)
        if self.check_unimodal > 0:
            self._check_unimodal(shell, result, min_draw, max_draw)
        return result.draw

    def _check_unimodal(
        self, shell: Shell, result: DrawSearchResult, min_draw: float, max_draw: float
    ) -> None:
        coarse = coarse_scan(
            lambda d: self.score_at(shell, d), min_draw, max_draw, self.check_unimodal
        )
        if coarse.score > result.score:
            self.logger.warn(
                "Draw search returned a local optimum",
                gauge=shell.gauge,
                head=shell.head_module.name,
                bisection_draw=result.draw,
                bisection_score=result.score,
                scan_draw=coarse.draw,
                scan_score=coarse.score,
            )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_partitions(
        self,
        partitions: Iterable[tuple[int, float]],
        cancel: CancelToken | None = None,
    ) -> SearchResult:
        """Evaluate the given (head, gauge) partitions in order."""
        t0 = time.perf_counter()
        result = SearchResult(leaderboard=Leaderboard(self.params.damage_type))

        for head, gauge in partitions:
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                self.logger.warn("Search cancelled", head=self.catalog.name_of(head), gauge=gauge)
                break

            self.logger.info(
                "Testing partition",
                head=self.catalog.name_of(head),
                gauge=gauge,
                max_gauge=self.params.max_gauge,
            )
            with self.logger.timer("partition", gauge=gauge):
                for counts in generate_module_counts(self.params, heads=[head], gauges=[gauge]):
                    shell = self.evaluate(counts, result.stats)
                    if shell is not None:
                        result.leaderboard.offer(shell)
            result.partitions += 1

        result.elapsed_s = time.perf_counter() - t0
        return result

    def run(self, cancel: CancelToken | None = None) -> SearchResult:
        """Evaluate the whole enumeration sequentially."""
        result = self.run_partitions(partition_outer(self.params), cancel=cancel)
        log_summary(self.logger, result)
        return result


def log_summary(logger: StructuredLogger, result: SearchResult) -> None:
    stats = result.stats
    logger.info(
        "Search finished",
        compared=stats.comparisons,
        rejected_length=stats.reject_length,
        rejected_velocity=stats.reject_velocity,
        rejected_range=stats.reject_range,
        total=stats.total,
        brackets=list(result.top_shells()),
        cancelled=result.cancelled,
        elapsed_s=result.elapsed_s,
    )


def _init_worker(log_level: str) -> None:
    # Ctrl-C reaches the whole process group; only the parent reacts to it
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    set_log_level(log_level)


def _run_partition_worker(
    params: SearchParams,
    catalog: ModuleCatalog | None,
    partition: tuple[int, float],
    check_unimodal: int,
) -> SearchResult:
    search = ShellSearch(params, catalog=catalog, check_unimodal=check_unimodal)
    return search.run_partitions([partition])


def run_search(
    params: SearchParams,
    catalog: ModuleCatalog | None = None,
    workers: int = 1,
    cancel: CancelToken | None = None,
    check_unimodal: int = 0,
    logger: StructuredLogger | None = None,
    log_level: str | None = None,
) -> SearchResult:
    """Run a full search, optionally sharded over worker processes.

    Each (head, gauge) partition runs with its own shells, counters and
    leaderboard. Partition results are merged in enumeration order, so the
    outcome matches the sequential run exactly.

    At most ``workers`` partitions are in flight at a time. Worker processes
    ignore SIGINT; cancellation is driven by ``cancel`` in the parent, and
    partitions still running when it is set are discarded.

    Args:
        params: Search parameters.
        catalog: Module catalog (default: built-in catalog).
        workers: Worker processes; 1 runs in-process.
        cancel: Token checked once per partition; when set, the run stops and
            returns the partial result with ``cancelled=True``.
        check_unimodal: See ``ShellSearch``.
        logger: Structured logger (default: module logger).
        log_level: Minimum level for worker process loggers (default: the
            current global level).

    Returns:
        SearchResult.
    """
    logger = logger or get_logger(__name__)
    catalog = catalog or default_catalog()

    if workers <= 1:
        search = ShellSearch(params, catalog=catalog, logger=logger, check_unimodal=check_unimodal)
        return search.run(cancel=cancel)

    validate_params(params, catalog)
    t0 = time.perf_counter()
    merged = SearchResult(leaderboard=Leaderboard(params.damage_type))
    todo = iter(partition_outer(params))
    in_flight: deque = deque()

    ctx = mp.get_context("spawn")
    ex = ProcessPoolExecutor(
        max_workers=workers,
        mp_context=ctx,
        initializer=_init_worker,
        initargs=(log_level or get_log_level(),),
    )

    def submit_next() -> None:
        part = next(todo, None)
        if part is not None:
            fut = ex.submit(_run_partition_worker, params, catalog, part, check_unimodal)
            in_flight.append((fut, part))

    try:
        for _ in range(workers):
            submit_next()
        # Merge in submission order so ties resolve as in the sequential run
        while in_flight:
            fut, (head, gauge) = in_flight.popleft()
            if cancel is not None and cancel.is_set():
                merged.cancelled = True
                logger.warn("Search cancelled", head=catalog.name_of(head), gauge=gauge)
                break
            merged.merge(fut.result())
            logger.info("Partition merged", head=catalog.name_of(head), gauge=gauge)
            submit_next()
    finally:
        ex.shutdown(wait=True, cancel_futures=True)

    merged.elapsed_s = time.perf_counter() - t0
    log_summary(logger, merged)
    return merged
