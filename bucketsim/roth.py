"""Roth conversion helpers."""

from __future__ import annotations

from .portfolio import Portfolio
from .schema import StrategyConfig

FIRST_CONVERSION_YEAR_IDX = 2


def base_conversion_amount(strategy: StrategyConfig, age: int, retirement_age: int) -> float:
    """Today's-dollar conversion amount for the phase of life at ``age``."""
    if age < retirement_age:
        override = strategy.roth_conversion_pre_retirement
    else:
        override = strategy.roth_conversion_post_retirement
    if override is not None:
        return max(0.0, override)
    return max(0.0, strategy.roth_conversion_amount)


def annual_conversion_amount(
    *,
    strategy: StrategyConfig,
    year_idx: int,
    age: int,
    retirement_age: int,
    inflation_adjustment: float,
) -> float:
    """Inflation-adjusted conversion target, active from the second simulated year."""
    if year_idx < FIRST_CONVERSION_YEAR_IDX:
        return 0.0
    return base_conversion_amount(strategy, age, retirement_age) * inflation_adjustment


def execute_quarterly_conversion(portfolio: Portfolio, annual_amount: float) -> float:
    """Move a quarter of ``annual_amount`` from TDA straight to TFA.

    Capped by the available TDA balance. Returns the amount converted.
    """
    amount = min(max(0.0, annual_amount / 4.0), max(0.0, portfolio.tda))
    if amount <= 0:
        return 0.0
    portfolio.transfer("tda", "tfa", amount)
    return amount
