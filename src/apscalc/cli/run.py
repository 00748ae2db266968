"""Shell search CLI.

Usage:
    python -m apscalc.cli.run --config search.yaml
    python -m apscalc.cli.run --min-gauge 100 --max-gauge 120 --heads "AP head" \
        --variable "Solid body,Sabot body" --max-gp 2 --max-draw 20000

Prints the winning shell per length bracket and the run statistics (JSON by
default) to stdout. Progress is logged as JSON lines to stderr.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from typing import Any

from pydantic import ValidationError


def _ref(value: str) -> int | str:
    value = value.strip()
    return int(value) if value.isdigit() else value


def _ref_list(value: str) -> list[int | str]:
    return [_ref(v) for v in value.split(",") if v.strip()]


def _fixed_modules(value: str) -> dict[int | str, float]:
    """Parse ``"Solid body=2,HE body=1"``."""
    out: dict[int | str, float] = {}
    for item in value.split(","):
        if not item.strip():
            continue
        name, sep, count = item.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"expected NAME=COUNT, got {item!r}")
        out[_ref(name)] = float(count)
    return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search shell configurations for the best DPS per volume")
    parser.add_argument("--config", type=str, default=None, help="YAML config file")
    parser.add_argument("--save-config", type=str, default=None, help="Write the effective config here")
    parser.add_argument("--list-modules", action="store_true", help="List catalog modules and exit")

    s = parser.add_argument_group("search")
    s.add_argument("--min-gauge", type=float, default=None, help="Min gauge (mm)")
    s.add_argument("--max-gauge", type=float, default=None, help="Max gauge (mm)")
    s.add_argument("--heads", type=_ref_list, default=None, help="Comma-separated head modules")
    s.add_argument("--base", type=_ref, default=None, help="Base module")
    s.add_argument("--fixed", type=_fixed_modules, default=None, help="Fixed modules, NAME=COUNT,...")
    s.add_argument("--variable", type=_ref_list, default=None, help="Two variable modules, A,B")
    s.add_argument("--max-gp", type=float, default=None, help="Max GP casings")
    s.add_argument("--max-rg", type=float, default=None, help="Max RG casings")
    s.add_argument("--max-length", type=float, default=None, help="Max shell length (mm)")
    s.add_argument("--max-draw", type=float, default=None, help="Max rail draw (0 = GP only)")
    s.add_argument("--min-velocity", type=float, default=None, help="Min velocity (m/s)")
    s.add_argument("--min-range", type=float, default=None, help="Min effective range (m)")
    s.add_argument("--target-ac", type=float, default=None, help="Target armor class")
    s.add_argument("--damage-type", choices=["kinetic", "chemical"], default=None)
    s.add_argument("--no-labels", action="store_true", help="Text report without per-row labels")

    r = parser.add_argument_group("run")
    r.add_argument("--workers", type=int, default=None, help="Worker processes")
    r.add_argument("--check-unimodal", type=int, default=None, help="Coarse-scan groups for draw checks")
    r.add_argument("--log-level", choices=["DEBUG", "INFO", "WARN", "ERROR"], default=None)
    r.add_argument("--format", choices=["json", "text"], default="json", help="Output format")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    search = {
        "min_gauge": args.min_gauge,
        "max_gauge": args.max_gauge,
        "heads": args.heads,
        "base": args.base,
        "fixed_modules": args.fixed,
        "variable_modules": args.variable,
        "max_gp": args.max_gp,
        "max_rg": args.max_rg,
        "max_length": args.max_length,
        "max_draw": args.max_draw,
        "min_velocity": args.min_velocity,
        "min_effective_range": args.min_range,
        "target_ac": args.target_ac,
        "damage_type": args.damage_type,
    }
    if args.no_labels:
        search["labels"] = False
    run = {
        "workers": args.workers,
        "check_unimodal": args.check_unimodal,
        "log_level": args.log_level,
    }
    return {
        "search": {k: v for k, v in search.items() if v is not None},
        "run": {k: v for k, v in run.items() if v is not None},
    }


def main(argv: list[str] | None = None) -> int:
    """Run a shell search.

    Args:
        argv: Command-line arguments (uses sys.argv if None).

    Returns:
        Exit code (0 = success, 2 = invalid configuration).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    from ..ballistics.modules import default_catalog
    from ..core.config import default_config, load_config, merge_config, save_config
    from ..core.logging import set_log_level
    from ..report import format_report, result_to_dict
    from ..search.runner import run_search, validate_params

    catalog = default_catalog()

    if args.list_modules:
        for i, module in enumerate(catalog):
            print(f"{i:3d}  {module.module_type.value:5s}  {module.name}")
        return 0

    try:
        config = load_config(args.config) if args.config else default_config()
        config = merge_config(config, _overrides(args))
        params = config.search.to_params(catalog)
        validate_params(params, catalog)
    except (FileNotFoundError, ValidationError, KeyError, IndexError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    set_log_level(config.run.log_level)
    if args.save_config:
        save_config(config, args.save_config)

    # Ctrl-C stops at the next partition boundary and still reports partial results
    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    try:
        result = run_search(
            params,
            catalog=catalog,
            workers=config.run.workers,
            cancel=cancel,
            check_unimodal=config.run.check_unimodal,
            log_level=config.run.log_level,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.format == "text":
        print(format_report(result, params, catalog), end="")
    else:
        print(json.dumps(result_to_dict(result, params, catalog), indent=2))

    return 0


if __name__ == "__main__":
    sys.exit(main())
