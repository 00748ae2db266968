"""Rail draw domain and the optimal-draw search.

Re-scoring a shell at a new draw recomputes volume, velocity and the whole
damage chain, so the search probes as few draws as it can: two boundary
probes, an edge confirmation, then bisection on neighbouring pairs.

The bisection assumes the score is unimodal in draw. It does not check this;
on a multi-peaked curve it returns a local optimum. ``scan_optimal_draw``
provides the exhaustive reference and ``coarse_scan`` a cheap spot check.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass

ScoreFn = Callable[[float], float]


def draw_domain(shell_max_draw: float, max_draw_input: float) -> Iterator[float]:
    """Integer draws ``0..floor(min(shell_max_draw, max_draw_input))`` inclusive."""
    upper = min(shell_max_draw, max_draw_input)
    if upper < 0 or math.isnan(upper):
        return
    for draw in range(math.floor(upper) + 1):
        yield float(draw)


def distribute_range(start: float, end: float, num_groups: int) -> Iterator[float]:
    """Divide a range of integers into even groups.

    Yields ``i * floor(|end - start| / num_groups)`` for each group, then
    ``end``. Offsets are relative to zero, not to ``start``. With zero groups a
    single 0 is yielded.
    """
    if num_groups == 0:
        yield 0.0
        return

    group_size = math.floor(abs(end - start) / num_groups)
    for i in range(num_groups):
        yield float(i * group_size)
    yield float(end)


@dataclass(frozen=True)
class DrawSearchResult:
    """Outcome of an optimal-draw search.

    Attributes:
        draw: Best draw found.
        score: Score at that draw.
        evaluations: Number of score function calls made.
    """

    draw: float
    score: float
    evaluations: int


class _MemoScore:
    """Score function wrapper that counts calls and never re-scores a draw."""

    def __init__(self, fn: ScoreFn) -> None:
        self.fn = fn
        self.calls = 0
        self._seen: dict[float, float] = {}

    def __call__(self, draw: float) -> float:
        draw = float(draw)
        if draw not in self._seen:
            self.calls += 1
            self._seen[draw] = self.fn(draw)
        return self._seen[draw]


def find_optimal_draw(score: ScoreFn, min_draw: float, max_draw: float) -> DrawSearchResult:
    """Find the integer draw in ``[min_draw, max_draw]`` with the highest score.

    Args:
        score: Score at a given draw (higher is better).
        min_draw: Smallest feasible draw.
        max_draw: Largest feasible draw.

    Returns:
        DrawSearchResult. Ties resolve to the lower draw.
    """
    if max_draw < min_draw:
        raise ValueError(f"Empty draw range: [{min_draw}, {max_draw}]")

    fn = _MemoScore(score)
    bottom, top = float(min_draw), float(max_draw)

    bottom_score = fn(bottom)
    if top == bottom:
        return DrawSearchResult(bottom, bottom_score, fn.calls)
    top_score = fn(top)

    # Monotonic edge cases: the best draw sits on a boundary
    if top_score > bottom_score:
        if top - 1 <= bottom or top_score > fn(top - 1):
            return DrawSearchResult(top, top_score, fn.calls)
    else:
        if bottom + 1 >= top or bottom_score > fn(bottom + 1):
            return DrawSearchResult(bottom, bottom_score, fn.calls)

    while top - bottom > 1:
        lower = math.floor((top + bottom) / 2)
        upper = lower + 1
        if fn(lower) >= fn(upper):
            top = float(lower)
        else:
            bottom = float(upper)

    # Both survivors were scored inside the loop or as endpoints
    if fn(bottom) >= fn(top):
        return DrawSearchResult(bottom, fn(bottom), fn.calls)
    return DrawSearchResult(top, fn(top), fn.calls)


def scan_optimal_draw(score: ScoreFn, min_draw: float, max_draw: float) -> DrawSearchResult:
    """Exhaustive reference: score every integer draw in range."""
    best_draw, best_score, calls = float(min_draw), -math.inf, 0
    for draw in draw_domain(max_draw, max_draw):
        if draw < min_draw:
            continue
        calls += 1
        value = score(draw)
        if value > best_score:
            best_draw, best_score = draw, value
    return DrawSearchResult(best_draw, best_score, calls)


def coarse_scan(score: ScoreFn, min_draw: float, max_draw: float, num_groups: int) -> DrawSearchResult:
    """Score evenly spaced draws across ``[min_draw, max_draw]``."""
    best_draw, best_score, calls = float(min_draw), -math.inf, 0
    for offset in distribute_range(min_draw, max_draw, num_groups):
        draw = min(float(min_draw) + offset, float(max_draw))
        calls += 1
        value = score(draw)
        if value > best_score:
            best_draw, best_score = draw, value
    return DrawSearchResult(best_draw, best_score, calls)
