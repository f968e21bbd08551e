"""Historical annual series loading.

Files are CSV with a header row followed by rows of a quoted ``M/D/YYYY``
date and a percent value, e.g. ``"12/31/1928",43.81``. Values are returned
as decimal fractions keyed by calendar year.
"""

from __future__ import annotations

import csv
from datetime import datetime
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DATE_FORMAT = "%m/%d/%Y"


def load_annual_series(path: str | Path) -> dict[int, float]:
    source = Path(path)
    series: dict[int, float] = {}
    with source.open(newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle)
        next(reader, None)
        for line_no, row in enumerate(reader, start=2):
            if len(row) < 2:
                continue
            try:
                year = datetime.strptime(row[0].strip().strip('"'), DATE_FORMAT).year
                percent = float(row[1])
            except ValueError:
                logger.warning("%s:%d: skipping malformed row %r", source, line_no, row)
                continue
            series[year] = percent / 100.0
    logger.debug("loaded %d annual values from %s", len(series), source)
    return series


def series_window(series: dict[int, float], start_year: int, count: int) -> list[float]:
    """Consecutive values from ``start_year``; stops early at the first missing year."""
    out: list[float] = []
    for year in range(start_year, start_year + count):
        if year not in series:
            break
        out.append(series[year])
    return out
