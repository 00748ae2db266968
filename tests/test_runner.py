"""Tests for the search runner: filtering, counters, sharding and cancellation."""

import io
import json
import math
import signal
import threading

import pytest

from apscalc.core.logging import StructuredLogger, get_log_level, set_log_level
from apscalc.core.types import DamageType, ModuleCount
from apscalc.search.draw import DrawSearchResult, scan_optimal_draw
from apscalc.search.leaderboard import Leaderboard
from apscalc.search.permutations import count_module_counts, generate_module_counts, partition_outer
from apscalc.search.runner import (
    SearchResult,
    ShellSearch,
    _init_worker,
    run_search,
    validate_params,
)
from apscalc.search.stats import RunStats


def _winners(result):
    return {label: (s.gauge, s.head_module.name, s.rail_draw) for label, s in result.top_shells().items()}


class _SetAfter:
    """Cancel token that reports set from the n-th check on."""

    def __init__(self, n):
        self.n = n
        self.checks = 0

    def is_set(self):
        self.checks += 1
        return self.checks >= self.n


def test_zero_length_shells_all_compared_none_stored(make_params, zero_length_catalog, quiet_logger):
    """Degenerate shells pass every filter but score nothing."""
    params = make_params(min_gauge=500.0, max_gauge=500.0)
    search = ShellSearch(params, catalog=zero_length_catalog, logger=quiet_logger)

    result = search.run()

    assert result.stats.comparisons == 231
    assert result.stats.reject_length == 0
    assert result.stats.total == count_module_counts(params)
    assert result.top_shells() == {}


def test_every_candidate_counted_once_without_draw(make_params, quiet_logger):
    params = make_params(
        heads=("AP head", "Sabot head"),
        fixed={"Solid body": 15},
        min_gauge=150.0,
        max_gauge=152.0,
        max_gp=1.0,
        max_rg=2.0,
        max_length=3000.0,
        min_velocity=300.0,
        min_effective_range=3500.0,
    )

    stats = ShellSearch(params, logger=quiet_logger).run().stats

    assert stats.candidates == count_module_counts(params)
    assert stats.reject_length > 0
    assert stats.reject_velocity > 0
    assert stats.total == stats.comparisons + stats.reject_length + stats.reject_velocity


def test_every_candidate_counted_once_with_draw(make_params, quiet_logger):
    params = make_params(
        fixed={"Solid body": 16},
        min_gauge=100.0,
        max_gauge=101.0,
        max_gp=0.3,
        max_rg=1.0,
        max_length=2200.0,
        max_draw=3000.0,
        min_velocity=700.0,
        min_effective_range=7500.0,
    )

    stats = ShellSearch(params, logger=quiet_logger).run().stats

    assert stats.candidates == count_module_counts(params)
    assert stats.comparisons > 0


def test_length_filter(make_params, quiet_logger):
    params = make_params(fixed={"Solid body": 18}, max_length=350.0)
    search = ShellSearch(params, logger=quiet_logger)
    stats = RunStats()

    # AP head + 18 solid bodies at 100 mm is far longer than 350 mm
    counts = ModuleCount(gauge=100.0, head_index=params.head_indices[0],
                         var0_count=0, var1_count=0, gp_count=0, rg_count=0)
    assert search.evaluate(counts, stats) is None
    assert stats.reject_length == 1
    assert stats.candidates == 1


def test_no_draw_shells_respect_floors(make_params, quiet_logger):
    params = make_params(
        fixed={"Solid body": 16},
        min_gauge=120.0,
        max_gauge=121.0,
        max_gp=2.0,
        min_velocity=200.0,
        min_effective_range=2000.0,
    )

    result = ShellSearch(params, logger=quiet_logger).run()

    assert result.top_shells(), "expected at least one winning shell"
    for shell in result.top_shells().values():
        assert shell.rail_draw == 0.0
        assert shell.velocity >= 200.0
        assert shell.effective_range >= 2000.0


def test_draw_search_matches_exhaustive_scan(make_params, quiet_logger):
    params = make_params(
        fixed={"Solid body": 16},
        max_gp=0.5,
        max_rg=1.0,
        max_draw=2500.0,
        min_velocity=300.0,
    )
    search = ShellSearch(params, logger=quiet_logger)
    sample = list(generate_module_counts(params))[::97]
    assert sample

    for counts in sample:
        shell = search.evaluate(counts, RunStats())
        if shell is None:
            continue

        reference = search.build_shell(counts)
        reference.compute_lengths()
        reference.compute_modifiers()
        reference.compute_recoil()
        reference.compute_max_draw()
        reference.compute_reload_time()
        max_draw = float(math.floor(min(reference.max_draw, params.max_draw)))
        min_draw = reference.compute_min_draw(params.min_velocity, 0.0, max_draw)
        best = scan_optimal_draw(lambda d: search.score_at(reference, d), min_draw, max_draw)

        assert shell.score(DamageType.KINETIC) == pytest.approx(best.score), f"Mismatch at {counts}"
        assert min_draw <= shell.rail_draw <= max_draw
        assert shell.velocity >= params.min_velocity


def test_chemical_search(make_params, quiet_logger):
    params = make_params(
        heads=("HE head",),
        fixed={"HE body": 16},
        variable=("HE body", "Solid body"),
        max_gp=1.0,
        damage_type=DamageType.CHEMICAL,
    )

    result = ShellSearch(params, logger=quiet_logger).run()

    assert result.leaderboard.damage_type == DamageType.CHEMICAL
    assert result.top_shells()
    for label, shell in result.top_shells().items():
        assert shell.chem_damage > 0
        assert result.leaderboard.score_of(label) > 0


def test_partition_results_merge_to_sequential(make_params, quiet_logger):
    params = make_params(
        heads=("AP head", "Hollow point head"),
        fixed={"Solid body": 16},
        min_gauge=90.0,
        max_gauge=92.0,
        max_gp=0.5,
        max_draw=1500.0,
    )
    search = ShellSearch(params, logger=quiet_logger)

    sequential = search.run()
    merged = SearchResult(leaderboard=Leaderboard(params.damage_type))
    for part in partition_outer(params):
        merged.merge(search.run_partitions([part]))

    assert merged.stats == sequential.stats
    assert merged.partitions == sequential.partitions == 6
    assert _winners(merged) == _winners(sequential)
    assert merged.leaderboard.scores() == sequential.leaderboard.scores()


def test_worker_pool_matches_sequential(make_params, quiet_logger):
    params = make_params(
        heads=("AP head", "Sabot head"),
        fixed={"Solid body": 17},
        min_gauge=100.0,
        max_gauge=101.0,
        max_gp=0.5,
        max_draw=1000.0,
    )

    sequential = run_search(params, workers=1, logger=quiet_logger)
    parallel = run_search(params, workers=2, logger=quiet_logger)

    assert parallel.stats == sequential.stats
    assert _winners(parallel) == _winners(sequential)
    assert parallel.leaderboard.scores() == sequential.leaderboard.scores()
    assert not parallel.cancelled


def test_cancel_before_start(make_params, quiet_logger):
    params = make_params(min_gauge=100.0, max_gauge=105.0)
    cancel = threading.Event()
    cancel.set()

    result = run_search(params, cancel=cancel, logger=quiet_logger)

    assert result.cancelled
    assert result.partitions == 0
    assert result.stats.candidates == 0


def test_cancel_mid_run_keeps_partial_result(make_params, quiet_logger):
    params = make_params(fixed={"Solid body": 18}, min_gauge=100.0, max_gauge=105.0, max_gp=1.0)

    result = run_search(params, cancel=_SetAfter(3), logger=quiet_logger)

    assert result.cancelled
    assert result.partitions == 2
    assert result.stats.candidates == 2 * count_module_counts(params.with_changes(max_gauge=100.0))


def test_validate_params_rejects_bad_indices(make_params, catalog):
    validate_params(make_params(), catalog)

    with pytest.raises(ValueError, match="cannot be used as a head"):
        validate_params(make_params(heads=("Base bleeder",)), catalog)
    with pytest.raises(ValueError, match="Head index"):
        validate_params(make_params().with_changes(head_indices=(len(catalog),)), catalog)
    with pytest.raises(ValueError, match="Base index"):
        validate_params(make_params().with_changes(base_index=len(catalog) + 3), catalog)
    with pytest.raises(ValueError, match="fixed_module_counts"):
        validate_params(
            make_params().with_changes(
                fixed_module_counts=(0.0, 0.0), variable_module_indices=(0, 1)
            ),
            catalog,
        )


def test_body_module_can_be_head(make_params, catalog):
    validate_params(make_params(heads=("Solid body",)), catalog)


def test_unimodal_check_quiet_on_real_shells(make_params):
    stream = io.StringIO()
    logger = StructuredLogger("check", output=stream, min_level="WARN")
    params = make_params(fixed={"Solid body": 17}, max_gp=0.2, max_draw=2000.0)

    checked = ShellSearch(params, logger=logger, check_unimodal=8).run()
    plain = ShellSearch(params, logger=logger).run()

    assert "local optimum" not in stream.getvalue()
    assert _winners(checked) == _winners(plain)


def test_unimodal_check_warns_when_scan_beats_bisection(make_params):
    stream = io.StringIO()
    logger = StructuredLogger("check", output=stream, min_level="WARN")
    params = make_params(fixed={"Solid body": 18}, max_gp=1.0, max_draw=2000.0)
    search = ShellSearch(params, logger=logger, check_unimodal=4)

    shell = search.build_shell(
        ModuleCount(gauge=100.0, head_index=params.head_indices[0],
                    var0_count=0, var1_count=0, gp_count=1.0, rg_count=0)
    )
    shell.compute_lengths()
    shell.compute_modifiers()
    shell.compute_recoil()
    shell.compute_max_draw()
    shell.compute_reload_time()

    # A deliberately poor result stands in for a bisection stuck on a lower peak
    search._check_unimodal(shell, DrawSearchResult(draw=0.0, score=-1.0, evaluations=1), 0.0, 1000.0)

    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert len(records) == 1
    assert records[0]["level"] == "WARN"
    assert records[0]["message"] == "Draw search returned a local optimum"
    assert records[0]["bisection_score"] == -1.0


def test_worker_pool_cancel_mid_run_keeps_partial_result(make_params, quiet_logger):
    params = make_params(fixed={"Solid body": 18}, min_gauge=100.0, max_gauge=105.0, max_gp=1.0)

    result = run_search(params, workers=2, cancel=_SetAfter(3), logger=quiet_logger)

    assert result.cancelled
    assert result.partitions == 2, "only partitions merged before the cancel should count"
    assert result.stats.candidates == 2 * count_module_counts(params.with_changes(max_gauge=100.0))


def test_worker_pool_honours_log_level(make_params, quiet_logger, capfd):
    """Worker processes log at the requested level, not the default INFO."""
    params = make_params(fixed={"Solid body": 19}, min_gauge=100.0, max_gauge=102.0, max_gp=0.2)

    result = run_search(params, workers=2, logger=quiet_logger, log_level="ERROR")

    assert result.partitions == 3
    err = capfd.readouterr().err
    assert '"level": "INFO"' not in err, f"Workers logged below ERROR: {err[:200]}"


def test_worker_initializer_ignores_sigint_and_sets_level():
    previous = signal.getsignal(signal.SIGINT)
    try:
        _init_worker("WARN")

        assert signal.getsignal(signal.SIGINT) is signal.SIG_IGN
        assert get_log_level() == "WARN"
    finally:
        signal.signal(signal.SIGINT, previous)
        set_log_level("INFO")
