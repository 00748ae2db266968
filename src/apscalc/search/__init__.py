"""Search engine: enumeration, draw optimization, leaderboard and runner."""

from .draw import (
    DrawSearchResult,
    coarse_scan,
    distribute_range,
    draw_domain,
    find_optimal_draw,
    scan_optimal_draw,
)
from .leaderboard import BRACKET_LABELS, Leaderboard, bracket_for_length
from .permutations import count_module_counts, generate_module_counts, partition_outer
from .runner import SearchResult, ShellSearch, run_search, validate_params
from .stats import RunStats

__all__ = [
    "BRACKET_LABELS",
    "DrawSearchResult",
    "Leaderboard",
    "RunStats",
    "SearchResult",
    "ShellSearch",
    "bracket_for_length",
    "coarse_scan",
    "count_module_counts",
    "distribute_range",
    "draw_domain",
    "find_optimal_draw",
    "generate_module_counts",
    "partition_outer",
    "run_search",
    "scan_optimal_draw",
    "validate_params",
]
