"""JSON serialization and plain-text summaries of simulation results."""

from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, datetime
import hashlib
import json
from pathlib import Path
from typing import Any

from .breakdown import ComputationBreakdown
from .engine import SimulationResult
from .portfolio import ACCOUNTS


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _camel_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(key) if isinstance(key, str) else key: _camel_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camel_keys(item) for item in value]
    return value


def _metadata(config_path: str | Path | None) -> dict[str, Any]:
    meta: dict[str, Any] = {"generated": datetime.now(UTC).isoformat(timespec="seconds")}
    if config_path is not None:
        meta["configHash"] = hashlib.sha256(Path(config_path).read_bytes()).hexdigest()[:12]
    return meta


def result_to_dict(result: SimulationResult, config_path: str | Path | None = None) -> dict[str, Any]:
    payload = _camel_keys(asdict(result))
    payload["metadata"] = _metadata(config_path)
    return payload


def breakdown_to_dict(breakdown: ComputationBreakdown) -> dict[str, Any]:
    return _camel_keys(asdict(breakdown))


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _money(value: float) -> str:
    return f"${value:,.0f}"


def format_summary(result: SimulationResult) -> str:
    summary = result.summary
    lines = [f"Scenario: {result.config.name}"]
    if result.yearly_results:
        first = result.yearly_results[0]
        last = result.yearly_results[-1]
        lines.append(f"Years: {first.year}-{last.year} (ages {first.age}-{last.age})")
    lines.append(f"Outcome: {'success' if summary.is_success else 'failure'}")
    if summary.failure_year is not None:
        lines.append(f"Failure year: {summary.failure_year}")
    lines.append(f"Final balance: {_money(summary.final_total_balance)}")
    lines.append(f"Total interest: {_money(summary.total_interest)}")
    lines.append(f"Total dividends: {_money(summary.total_dividends)}")

    header = ["Year", "Age", *(name.upper() for name in ACCOUNTS), "Total"]
    rows = [header]
    for yearly in result.yearly_results:
        balances = yearly.balances
        rows.append(
            [
                str(yearly.year),
                str(yearly.age),
                *(_money(balances.get(name)) for name in ACCOUNTS),
                _money(balances.total()),
            ]
        )
    widths = [max(len(row[col]) for row in rows) for col in range(len(header))]
    lines.append("")
    for row in rows:
        lines.append("  ".join(cell.rjust(width) for cell, width in zip(row, widths)))
    return "\n".join(lines)


def format_breakdown(breakdown: ComputationBreakdown) -> str:
    lines = [f"Breakdown for {breakdown.year} (age {breakdown.age})"]
    for section in breakdown.sections:
        lines.append("")
        lines.append(section.title)
        for step in section.steps:
            lines.append(f"  {step.label}: {step.result:,.2f}")
            lines.append(f"    = {step.formula}")
            if step.explanation:
                lines.append(f"    {step.explanation}")
    return "\n".join(lines)
