"""Core year/month simulation engine for the five-bucket portfolio."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from .market import MarketIndex, annual_to_monthly_rate, equity_return_for_year
from .portfolio import EQUITY_ACCOUNTS, Portfolio
from .roth import annual_conversion_amount, execute_quarterly_conversion
from .schema import ExpenseConfig, SimulationConfig
from .social_security import annual_social_security
from .strategy import base_cap_aig, cap_aig, cbb_cap_for_age, execute_quarterly, sb_cap
from .tax import YearIncomeSummary, gross_up_divisor, tax_on

logger = logging.getLogger(__name__)

END_AGE = 85
MEDICARE_AGE = 65
QUARTER_START_MONTHS = (1, 4, 7, 10)


@dataclass(slots=True, frozen=True)
class CashFlow:
    salary: float = 0.0
    interest: float = 0.0
    dividends: float = 0.0
    social_security: float = 0.0
    tba_withdrawal: float = 0.0
    tda_withdrawal: float = 0.0
    tda_withdrawal_spend: float = 0.0
    tda_withdrawal_roth: float = 0.0
    cbb_withdrawal: float = 0.0
    cbb_deposit: float = 0.0
    sb_deposit: float = 0.0
    sb_withdrawal: float = 0.0
    roth_conversion: float = 0.0
    contribution_401k: float = 0.0
    contribution_tba: float = 0.0
    market_growth: float = 0.0
    total_income: float = 0.0
    needs: float = 0.0
    wants: float = 0.0
    healthcare: float = 0.0
    income_tax: float = 0.0
    property_tax: float = 0.0
    total_expenses: float = 0.0


@dataclass(slots=True, frozen=True)
class Metrics:
    annual_income_gap: float
    income_gap_expenses: float
    income_gap_passive_income: float
    sb_cap: float
    cbb_cap: float
    is_failure: bool
    shortfall: float = 0.0


@dataclass(slots=True, frozen=True)
class YearlyResult:
    year: int
    age: int
    balances: Portfolio
    cash_flow: CashFlow
    metrics: Metrics


@dataclass(slots=True, frozen=True)
class QuarterlyResult:
    year: int
    quarter: int
    age: int
    balances: Portfolio
    cash_flow: CashFlow
    metrics: Metrics


@dataclass(slots=True, frozen=True)
class Summary:
    final_total_balance: float
    is_success: bool
    failure_year: int | None
    total_dividends: float
    total_interest: float


@dataclass(slots=True, frozen=True)
class SimulationResult:
    config: SimulationConfig
    yearly_results: list[YearlyResult]
    quarterly_results: list[QuarterlyResult]
    summary: Summary


@dataclass(slots=True)
class _Flows:
    """Running totals for one period; frozen into a CashFlow when the period closes."""

    salary: float = 0.0
    interest: float = 0.0
    dividends: float = 0.0
    social_security: float = 0.0
    tba_withdrawal: float = 0.0
    tda_withdrawal_spend: float = 0.0
    tda_withdrawal_roth: float = 0.0
    cbb_withdrawal: float = 0.0
    cbb_deposit: float = 0.0
    sb_deposit: float = 0.0
    sb_withdrawal: float = 0.0
    contribution_401k: float = 0.0
    contribution_tba: float = 0.0
    market_growth: float = 0.0
    needs: float = 0.0
    wants: float = 0.0
    healthcare: float = 0.0
    income_tax: float = 0.0
    property_tax: float = 0.0
    shortfall: float = 0.0

    @property
    def passive_income(self) -> float:
        return self.interest + self.dividends + self.social_security

    @property
    def gap_expenses(self) -> float:
        return self.needs + self.wants + self.healthcare + self.property_tax + self.income_tax

    def income_summary(self) -> YearIncomeSummary:
        return YearIncomeSummary(
            salary=self.salary,
            interest=self.interest,
            dividends=self.dividends,
            social_security=self.social_security,
            tda_withdrawal_spend=self.tda_withdrawal_spend,
            tda_withdrawal_roth=self.tda_withdrawal_roth,
            tba_withdrawal=self.tba_withdrawal,
        )

    def freeze(self) -> CashFlow:
        return CashFlow(
            salary=self.salary,
            interest=self.interest,
            dividends=self.dividends,
            social_security=self.social_security,
            tba_withdrawal=self.tba_withdrawal,
            tda_withdrawal=self.tda_withdrawal_spend + self.tda_withdrawal_roth,
            tda_withdrawal_spend=self.tda_withdrawal_spend,
            tda_withdrawal_roth=self.tda_withdrawal_roth,
            cbb_withdrawal=self.cbb_withdrawal,
            cbb_deposit=self.cbb_deposit,
            sb_deposit=self.sb_deposit,
            sb_withdrawal=self.sb_withdrawal,
            roth_conversion=self.tda_withdrawal_roth,
            contribution_401k=self.contribution_401k,
            contribution_tba=self.contribution_tba,
            market_growth=self.market_growth,
            total_income=self.salary + self.passive_income + self.market_growth,
            needs=self.needs,
            wants=self.wants,
            healthcare=self.healthcare,
            income_tax=self.income_tax,
            property_tax=self.property_tax,
            total_expenses=self.gap_expenses,
        )


def inflation_factor(inflation_rate: float, year_idx: int) -> float:
    return (1.0 + inflation_rate) ** year_idx


def healthcare_bracket(age: int, retirement_age: int) -> str:
    if age < retirement_age:
        return "pre_retirement"
    if age < MEDICARE_AGE:
        return "post_retirement_pre_medicare"
    return "medicare"


def healthcare_for_age(expenses: ExpenseConfig, age: int, retirement_age: int) -> float:
    bracket = healthcare_bracket(age, retirement_age)
    if bracket == "pre_retirement":
        return expenses.healthcare_pre_retirement
    if bracket == "post_retirement_pre_medicare":
        return expenses.healthcare_post_retirement_pre_medicare
    return expenses.healthcare_medicare


def is_working(age: int, retirement_age: int) -> bool:
    return age <= retirement_age


def projection_years(current_age: int) -> int:
    return max(0, END_AGE - current_age + 1)


def year_zero_taxable_income(config: SimulationConfig) -> float:
    """Estimate of the current year's taxable income, taxed in the first simulated year."""
    salary = config.salary if is_working(config.current_age, config.retirement_age) else 0.0
    social_security = annual_social_security(
        spousal=config.spousal,
        year_idx=0,
        primary_age=config.current_age,
        inflation_adjustment=1.0,
    ).total
    interest = max(0.0, config.portfolio.sb) * config.rates.hysa_rate
    dividends = max(0.0, config.portfolio.cbb) * config.rates.bond_yield
    return salary + social_security + interest + dividends


def _is_breach(balances: Portfolio, sb_floor: float) -> bool:
    if balances.sb < sb_floor:
        return True
    return balances.cbb < 0 or balances.tba < 0 or balances.tda < 0 or balances.tfa < 0


def run_projection(
    config: SimulationConfig,
    market_returns: list[float] | tuple[float, ...] = (),
    inflation_rates: list[float] | tuple[float, ...] = (),
) -> SimulationResult:
    """Project ``config`` through the age-85 horizon.

    ``market_returns`` overrides the annual equity return for the first
    ``len(market_returns)`` simulated years. ``inflation_rates`` is accepted
    for interface compatibility; inflation always follows
    ``config.rates.inflation``.

    Interest and dividends accrue monthly and are credited to SB at the
    next quarter start. Whatever accrues after the final quarter start is
    dropped when the horizon ends, so the summary totals count credited
    amounts only and the final balances never include it.
    """
    rates = config.rates
    expenses = config.expenses
    retirement_age = config.retirement_age
    market_returns = list(market_returns)
    if inflation_rates:
        logger.debug("ignoring %d inflation overrides; using flat rate %.4f", len(inflation_rates), rates.inflation)

    balances = config.portfolio.copy()
    base_cap = base_cap_aig(config)
    divisor = gross_up_divisor(rates.income_tax)
    prior_taxable_income = year_zero_taxable_income(config)

    equity_index = MarketIndex()
    bond_index = MarketIndex()
    bond_monthly_rate = annual_to_monthly_rate(rates.bond_yield)

    accrued_interest = 0.0
    accrued_dividends = 0.0
    total_interest = 0.0
    total_dividends = 0.0
    is_failure = False
    failure_year: int | None = None

    yearly_results: list[YearlyResult] = []
    quarterly_results: list[QuarterlyResult] = []
    duration = projection_years(config.current_age)
    logger.debug("simulating %s for %d years", config.name, duration)

    for year_idx in range(1, duration + 1):
        year = config.current_year + year_idx
        age = config.current_age + year_idx
        inflation = inflation_factor(rates.inflation, year_idx)

        needs = expenses.needs * inflation
        property_tax = expenses.property_tax * inflation
        healthcare = healthcare_for_age(expenses, age, retirement_age) * inflation
        social_security = annual_social_security(
            spousal=config.spousal,
            year_idx=year_idx,
            primary_age=age,
            inflation_adjustment=inflation,
        ).total

        working = is_working(age, retirement_age)
        salary = config.salary * inflation if working else 0.0
        contribution_401k = config.contributions.annual_401k * inflation if working else 0.0
        contribution_tba = config.contributions.annual_tba * inflation if working else 0.0
        net_salary = salary - contribution_401k - contribution_tba

        roth_target = annual_conversion_amount(
            strategy=config.strategy,
            year_idx=year_idx,
            age=age,
            retirement_age=retirement_age,
            inflation_adjustment=inflation,
        )
        estimated_tax = tax_on(prior_taxable_income, rates.income_tax)

        wants = expenses.wants * inflation
        if age < retirement_age:
            # Salary alone funds spending while working; investment income is saved.
            fixed_outflows = (
                needs + healthcare + property_tax + estimated_tax + roth_target + contribution_401k + contribution_tba
            )
            wants = max(0.0, salary - fixed_outflows)

        gross_expenses = needs + wants + healthcare + property_tax
        gap_expenses = gross_expenses + estimated_tax
        estimated_passive = (
            social_security + max(0.0, balances.sb) * rates.hysa_rate + max(0.0, balances.cbb) * rates.bond_yield
        )
        aig = max(0.0, gap_expenses - estimated_passive - net_salary) / divisor
        cap_value = cap_aig(
            needs=needs,
            wants=wants,
            healthcare=healthcare,
            property_tax=property_tax,
            income_tax=estimated_tax,
        )
        sb_cap_value = sb_cap(cap_value)
        cbb_cap_value = cbb_cap_for_age(base_cap, age)

        equity_return = equity_return_for_year(
            year_idx=year_idx,
            age=age,
            retirement_age=retirement_age,
            pre_retirement_growth=rates.pre_retirement_growth,
            post_retirement_growth=rates.post_retirement_growth,
            market_returns=market_returns,
        )
        monthly_growth = annual_to_monthly_rate(equity_return)
        sb_floor = -(gross_expenses / 12.0)

        year_flows = _Flows()
        quarter_flows = _Flows()
        period_flows = (year_flows, quarter_flows)

        def _record(name: str, amount: float) -> None:
            for flows in period_flows:
                setattr(flows, name, getattr(flows, name) + amount)

        for month in range(1, 13):
            if month in QUARTER_START_MONTHS:
                balances.apply("sb", accrued_interest + accrued_dividends)
                _record("interest", accrued_interest)
                _record("dividends", accrued_dividends)
                _record("sb_deposit", accrued_interest + accrued_dividends)
                total_interest += accrued_interest
                total_dividends += accrued_dividends
                accrued_interest = 0.0
                accrued_dividends = 0.0

                if age > retirement_age:
                    spending = execute_quarterly(
                        quarter=(month - 1) // 3,
                        age=age,
                        config=config,
                        portfolio=balances,
                        aig=aig,
                        cap_aig_value=cap_value,
                        cbb_cap=cbb_cap_value,
                        market_performance=equity_index.trailing_ratio(),
                        ath_performance=equity_index.ath_ratio(),
                        cbb_performance=bond_index.trailing_ratio(),
                        inflation_adjustment=inflation,
                    )
                    balances = spending.portfolio
                    _record("tba_withdrawal", spending.tba_withdrawal)
                    _record("tda_withdrawal_spend", spending.tda_withdrawal)
                    _record("cbb_withdrawal", spending.cbb_withdrawal)
                    _record("cbb_deposit", spending.cbb_deposit)
                    _record("sb_deposit", spending.sb_deposit)
                    _record("shortfall", spending.shortfall)

                _record("tda_withdrawal_roth", execute_quarterly_conversion(balances, roth_target))

            if working:
                balances.apply("sb", net_salary / 12.0)
                balances.apply("tda", contribution_401k / 12.0)
                balances.apply("tba", contribution_tba / 12.0)
                _record("salary", salary / 12.0)
                _record("contribution_401k", contribution_401k / 12.0)
                _record("contribution_tba", contribution_tba / 12.0)
                _record("sb_deposit", net_salary / 12.0)

            balances.apply("sb", social_security / 12.0)
            _record("social_security", social_security / 12.0)
            _record("sb_deposit", social_security / 12.0)

            balances.apply("sb", -gap_expenses / 12.0)
            _record("needs", needs / 12.0)
            _record("wants", wants / 12.0)
            _record("healthcare", healthcare / 12.0)
            _record("property_tax", property_tax / 12.0)
            _record("income_tax", estimated_tax / 12.0)
            _record("sb_withdrawal", gap_expenses / 12.0)

            accrued_interest += max(0.0, balances.sb) * rates.hysa_rate / 12.0
            accrued_dividends += max(0.0, balances.cbb) * rates.bond_yield / 12.0

            growth = 0.0
            for account in EQUITY_ACCOUNTS:
                delta = balances.get(account) * monthly_growth
                balances.apply(account, delta)
                growth += delta
            _record("market_growth", growth)
            equity_index.advance(monthly_growth)
            bond_index.advance(bond_monthly_rate)

            if month == 12:
                # Tax true-up: this year's actual liability replaces the estimate.
                taxable_income = year_flows.income_summary().taxable_income
                adjustment = tax_on(taxable_income, rates.income_tax) - estimated_tax
                balances.apply("sb", -adjustment)
                _record("income_tax", adjustment)
                if adjustment >= 0:
                    _record("sb_withdrawal", adjustment)
                else:
                    _record("sb_deposit", -adjustment)
                prior_taxable_income = taxable_income

            if not is_failure and _is_breach(balances, sb_floor):
                is_failure = True
                failure_year = year
                logger.info("%s: portfolio breach at age %d (%d-%02d)", config.name, age, year, month)

            if month % 3 == 0:
                quarterly_results.append(
                    QuarterlyResult(
                        year=year,
                        quarter=month // 3,
                        age=age,
                        balances=balances.copy(),
                        cash_flow=quarter_flows.freeze(),
                        metrics=Metrics(
                            annual_income_gap=aig,
                            income_gap_expenses=quarter_flows.gap_expenses,
                            income_gap_passive_income=quarter_flows.passive_income,
                            sb_cap=sb_cap_value,
                            cbb_cap=cbb_cap_value,
                            is_failure=is_failure,
                            shortfall=quarter_flows.shortfall,
                        ),
                    )
                )
                quarter_flows = _Flows()
                period_flows = (year_flows, quarter_flows)

        actual_net_salary = year_flows.salary - year_flows.contribution_401k - year_flows.contribution_tba
        actual_aig = max(0.0, year_flows.gap_expenses - year_flows.passive_income - actual_net_salary) / divisor
        yearly_results.append(
            YearlyResult(
                year=year,
                age=age,
                balances=balances.copy(),
                cash_flow=year_flows.freeze(),
                metrics=Metrics(
                    annual_income_gap=actual_aig,
                    income_gap_expenses=year_flows.gap_expenses,
                    income_gap_passive_income=year_flows.passive_income,
                    sb_cap=sb_cap_value,
                    cbb_cap=cbb_cap_value,
                    is_failure=is_failure,
                    shortfall=year_flows.shortfall,
                ),
            )
        )
        logger.debug("year %d age %d total %.2f aig %.2f", year, age, balances.total(), actual_aig)

        if is_failure:
            break

    summary = Summary(
        final_total_balance=balances.total(),
        is_success=not is_failure,
        failure_year=failure_year,
        total_dividends=total_dividends,
        total_interest=total_interest,
    )
    logger.debug("finished %s: success=%s final=%.2f", config.name, summary.is_success, summary.final_total_balance)
    return SimulationResult(
        config=config,
        yearly_results=yearly_results,
        quarterly_results=quarterly_results,
        summary=summary,
    )

