"""Quarterly bucket refill strategy."""

from __future__ import annotations

from dataclasses import dataclass

from .portfolio import Portfolio
from .roth import base_conversion_amount
from .schema import ExpenseConfig, SimulationConfig

MARKET_UP_THRESHOLD = 0.95
ATH_THRESHOLD = 0.85
CBB_PERFORMANCE_THRESHOLD = 0.90

SB_CAP_MULTIPLE = 2.0
CBB_CAP_MULTIPLE = 7
CBB_STEP_DOWN_AGES = (65, 70, 75, 80, 85)

REFILL_RATE = 0.125
FULL_CBB_REFILL_RATE = 0.25
SB_COMFORT_FRACTION = 0.5
WANTS_CUSHION = 0.1


@dataclass(slots=True)
class SpendingResult:
    portfolio: Portfolio
    shortfall: float = 0.0
    tba_withdrawal: float = 0.0
    tda_withdrawal: float = 0.0
    cbb_withdrawal: float = 0.0
    sb_deposit: float = 0.0
    cbb_deposit: float = 0.0


@dataclass(slots=True)
class EquityWithdrawal:
    amount: float
    tda: float
    tba: float


def cap_aig(*, needs: float, wants: float, healthcare: float, property_tax: float, income_tax: float) -> float:
    """Expense-only gap used to size bucket caps: half of wants, no passive income."""
    return needs + wants * 0.5 + healthcare + property_tax + income_tax


def sb_cap(cap_aig_value: float) -> float:
    return max(0.0, cap_aig_value * SB_CAP_MULTIPLE)


def base_cap_aig(config: SimulationConfig) -> float:
    """Cap-AIG from today's-dollar expenses in the retirement healthcare bracket."""
    expenses: ExpenseConfig = config.expenses
    healthcare = expenses.healthcare_post_retirement_pre_medicare if config.retirement_age < 65 else expenses.healthcare_medicare
    return cap_aig(
        needs=expenses.needs,
        wants=expenses.wants,
        healthcare=healthcare,
        property_tax=expenses.property_tax,
        income_tax=0.0,
    )


def cbb_cap_for_age(base_cap_aig_value: float, age: int) -> float:
    """Seven base cap-AIGs, less one at each step-down age reached. Never inflated."""
    steps = sum(1 for threshold in CBB_STEP_DOWN_AGES if age >= threshold)
    return max(0.0, (CBB_CAP_MULTIPLE - steps) * base_cap_aig_value)


def quarterly_tda_target(config: SimulationConfig, inflation_adjustment: float, age: int) -> float:
    """Quarter of the yearly TDA draw: the spending withdrawal plus the Roth amount in effect at ``age``."""
    strategy = config.strategy
    roth_amount = base_conversion_amount(strategy, age, config.retirement_age)
    return max(0.0, (strategy.initial_tda_withdrawal + roth_amount) * inflation_adjustment / 4.0)


def withdraw_from_equities(portfolio: Portfolio, target: float, tda_budget: float) -> EquityWithdrawal:
    """Take up to ``target`` from TDA (bounded by ``tda_budget``) and then TBA.

    Balances are reduced in place; nothing is deposited anywhere.
    """
    if target <= 0:
        return EquityWithdrawal(amount=0.0, tda=0.0, tba=0.0)

    from_tda = max(0.0, min(tda_budget, target, portfolio.tda))
    portfolio.apply("tda", -from_tda)

    from_tba = 0.0
    if from_tda < target:
        from_tba = max(0.0, min(target - from_tda, portfolio.tba))
        portfolio.apply("tba", -from_tba)

    return EquityWithdrawal(amount=from_tda + from_tba, tda=from_tda, tba=from_tba)


def _market_up(market_performance: float, ath_performance: float) -> bool:
    return market_performance >= MARKET_UP_THRESHOLD and ath_performance >= ATH_THRESHOLD


def execute_quarterly(
    *,
    quarter: int,
    age: int,
    config: SimulationConfig,
    portfolio: Portfolio,
    aig: float,
    cap_aig_value: float,
    cbb_cap: float,
    market_performance: float,
    ath_performance: float,
    cbb_performance: float,
    inflation_adjustment: float,
) -> SpendingResult:
    """Decide one quarter's transfers between buckets.

    ``portfolio`` is not modified; the returned result carries the proposed
    balances. Each quarter is decided from current balances alone.
    """
    balances = portfolio.copy()
    result = SpendingResult(portfolio=balances)
    aig = max(0.0, aig)
    target_sb = sb_cap(cap_aig_value)
    tda_budget = quarterly_tda_target(config, inflation_adjustment, age)

    if _market_up(market_performance, ath_performance):
        cbb_full = balances.cbb >= cbb_cap
        sb_room = max(0.0, target_sb - balances.sb)
        if sb_room > 0:
            rate = FULL_CBB_REFILL_RATE if cbb_full else REFILL_RATE
            to_sb = min(rate * aig, sb_room)
            taken = withdraw_from_equities(balances, to_sb, tda_budget)
            balances.apply("sb", taken.amount)
            tda_budget = max(0.0, tda_budget - taken.tda)
            result.sb_deposit += taken.amount
            result.tda_withdrawal += taken.tda
            result.tba_withdrawal += taken.tba
            result.shortfall += max(0.0, to_sb - taken.amount)

        if not cbb_full:
            to_cbb = min(REFILL_RATE * aig, max(0.0, cbb_cap - balances.cbb))
            taken = withdraw_from_equities(balances, to_cbb, tda_budget)
            balances.apply("cbb", taken.amount)
            result.cbb_deposit += taken.amount
            result.tda_withdrawal += taken.tda
            result.tba_withdrawal += taken.tba
            result.shortfall += max(0.0, to_cbb - taken.amount)
    elif balances.sb > aig * SB_COMFORT_FRACTION:
        pass
    else:
        reduced_aig = max(0.0, aig - config.expenses.wants * WANTS_CUSHION)
        qw = reduced_aig / 4.0
        sb_room = max(0.0, target_sb - balances.sb)
        # TODO: pick CBB vs equities by relative drawdown once the rule for a
        # weak bond year is defined; both branches draw from CBB today.
        if cbb_performance >= CBB_PERFORMANCE_THRESHOLD:
            amount = min(max(0.0, balances.cbb), qw, sb_room)
        else:
            amount = min(max(0.0, balances.cbb), qw, sb_room)
        if amount > 0:
            balances.transfer("cbb", "sb", amount)
            result.cbb_withdrawal += amount
            result.sb_deposit += amount

    return result
