"""Equity return helpers and the running market index."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

MIN_ANNUAL_RETURN = -0.95


def clamp_annual_return(value: float) -> float:
    # Prevent invalid monthly geometric conversion for returns <= -100%.
    return max(MIN_ANNUAL_RETURN, value)


def annual_to_monthly_rate(annual_rate: float) -> float:
    return (1.0 + clamp_annual_return(annual_rate)) ** (1.0 / 12.0) - 1.0


def equity_return_for_year(
    *,
    year_idx: int,
    age: int,
    retirement_age: int,
    pre_retirement_growth: float,
    post_retirement_growth: float,
    market_returns: list[float] | tuple[float, ...],
) -> float:
    """Annual equity return for simulated year ``year_idx`` (1-based).

    An externally supplied sequence wins when it covers the year; otherwise
    the flat pre/post-retirement growth rate applies.
    """
    if 0 < year_idx <= len(market_returns):
        return market_returns[year_idx - 1]
    return pre_retirement_growth if age < retirement_age else post_retirement_growth


@dataclass(slots=True)
class MarketIndex:
    """Normalized index (1.0 at start) with all-time-high and 12-month lookback."""

    value: float = 1.0
    peak: float = 1.0
    history: deque[float] = field(default_factory=lambda: deque([1.0], maxlen=13))

    def advance(self, monthly_rate: float) -> None:
        self.value *= 1.0 + monthly_rate
        self.peak = max(self.peak, self.value)
        self.history.append(self.value)

    def trailing_ratio(self) -> float:
        """Current value divided by the value 12 months earlier (or the start)."""
        base = self.history[0]
        if base <= 0:
            return 1.0
        return self.value / base

    def ath_ratio(self) -> float:
        if self.peak <= 0:
            return 1.0
        return self.value / self.peak
