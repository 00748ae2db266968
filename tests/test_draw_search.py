"""Tests for the rail draw domain and the optimal-draw search."""

import pytest

from apscalc.search.draw import (
    coarse_scan,
    distribute_range,
    draw_domain,
    find_optimal_draw,
    scan_optimal_draw,
)


def _peak(at):
    return lambda d: -abs(d - at)


def _bimodal(d):
    # Tall narrow peak at 10, low wide peak at 80
    return max(100 - 5 * abs(d - 10), 50 - abs(d - 80))


def test_single_peak_found_in_few_evaluations():
    """Bisection finds the peak with a logarithmic number of probes."""
    result = find_optimal_draw(_peak(57), 0, 100)

    assert result.draw == 57
    assert result.score == 0
    assert result.evaluations <= 18, f"Too many evaluations: {result.evaluations}"


def test_increasing_score_returns_max_draw():
    result = find_optimal_draw(lambda d: d, 0, 100)

    assert result.draw == 100
    assert result.evaluations <= 3


def test_decreasing_score_returns_min_draw():
    result = find_optimal_draw(lambda d: -d, 0, 100)

    assert result.draw == 0
    assert result.evaluations <= 3


def test_flat_score_resolves_to_lower_draw():
    result = find_optimal_draw(lambda d: 5.0, 10, 90)

    assert result.draw == 10
    assert result.score == 5.0


@pytest.mark.parametrize("peak", range(0, 101))
def test_matches_exhaustive_scan_on_unimodal_scores(peak):
    score = _peak(peak)

    fast = find_optimal_draw(score, 0, 100)
    full = scan_optimal_draw(score, 0, 100)

    assert fast.draw == full.draw == peak


def test_offset_range_respects_min_draw():
    result = find_optimal_draw(_peak(5), 20, 60)

    assert result.draw == 20


def test_single_point_range():
    result = find_optimal_draw(lambda d: d * 2, 7, 7)

    assert result.draw == 7
    assert result.score == 14
    assert result.evaluations == 1


def test_two_point_range():
    assert find_optimal_draw(lambda d: d, 3, 4).draw == 4
    assert find_optimal_draw(lambda d: -d, 3, 4).draw == 3


def test_empty_range_raises():
    with pytest.raises(ValueError, match="Empty draw range"):
        find_optimal_draw(lambda d: d, 10, 5)


def test_never_scores_a_draw_twice():
    seen = []

    def score(d):
        seen.append(d)
        return -abs(d - 33)

    result = find_optimal_draw(score, 0, 200)

    assert len(seen) == len(set(seen)) == result.evaluations


def test_bimodal_score_returns_local_optimum():
    """Bisection follows the wide peak; the scans find the tall one."""
    fast = find_optimal_draw(_bimodal, 0, 100)
    full = scan_optimal_draw(_bimodal, 0, 100)
    coarse = coarse_scan(_bimodal, 0, 100, 10)

    assert fast.draw == 80
    assert full.draw == 10
    assert coarse.draw == 10
    assert coarse.score > fast.score


def test_draw_domain():
    assert list(draw_domain(3.7, 10)) == [0.0, 1.0, 2.0, 3.0]
    assert list(draw_domain(100, 2)) == [0.0, 1.0, 2.0]
    assert list(draw_domain(0, 0)) == [0.0]
    assert list(draw_domain(-1, 5)) == []


def test_distribute_range():
    assert list(distribute_range(0, 10, 3)) == [0, 3, 6, 10]
    assert list(distribute_range(5, 15, 2)) == [0, 5, 15]


def test_distribute_range_zero_groups():
    assert list(distribute_range(0, 100, 0)) == [0]
