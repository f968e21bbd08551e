"""CLI entry point for bucketsim."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from .breakdown import find_breakdown
from .engine import projection_years
from .historical_data import load_annual_series, series_window
from .report import breakdown_to_dict, format_breakdown, format_summary, result_to_dict, write_json
from .schema import SchemaError, load_config
from .simulation import run_simulation
from .validate import validate_config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Five-bucket retirement portfolio simulator")
    parser.add_argument("config", help="Path to simulation config JSON file")
    parser.add_argument("-o", "--output", help="Write the result (or breakdown) as JSON to this path")
    parser.add_argument("--returns", help="CSV of historical annual equity returns")
    parser.add_argument("--inflation", help="CSV of historical annual inflation rates")
    parser.add_argument("--history-start", type=int, help="First calendar year to take from the historical CSVs")
    parser.add_argument("--breakdown", type=int, metavar="AGE", help="Explain the computations for one simulated age")
    parser.add_argument("--validate", action="store_true", help="Validate the config only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _load_series(path: str | None, start_year: int, count: int) -> list[float]:
    if path is None:
        return []
    return series_window(load_annual_series(path), start_year, count)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load config: {exc}", file=sys.stderr)
        return 2

    validation = validate_config(config)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Config is valid.")
        return 0

    start_year = args.history_start if args.history_start is not None else config.current_year + 1
    count = projection_years(config.current_age)
    try:
        market_returns = _load_series(args.returns, start_year, count)
        inflation_rates = _load_series(args.inflation, start_year, count)
    except OSError as exc:
        print(f"Failed to load historical data: {exc}", file=sys.stderr)
        return 2

    result = run_simulation(config, market_returns=market_returns, inflation_rates=inflation_rates)

    if args.breakdown is not None:
        try:
            breakdown = find_breakdown(config, result, args.breakdown)
        except ValueError as exc:
            print(f"Cannot build breakdown: {exc}", file=sys.stderr)
            return 2
        print(format_breakdown(breakdown))
        if args.output:
            write_json(args.output, breakdown_to_dict(breakdown))
            print(f"Wrote breakdown to {Path(args.output)}")
        return 0

    if args.summary:
        print(format_summary(result))

    if args.output:
        write_json(args.output, result_to_dict(result, config_path=args.config))
        print(f"Wrote result to {Path(args.output)}")
    elif not args.summary:
        outcome = "success" if result.summary.is_success else "failure"
        print(f"{config.name}: {outcome}, final balance ${result.summary.final_total_balance:,.0f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
