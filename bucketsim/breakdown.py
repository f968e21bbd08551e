"""Human-readable computation breakdown for one simulated year.

Every figure is either read from the engine's result records or re-derived
from the config with the same helpers the engine uses, so the narration
stays numerically consistent with the run it explains. Nothing here
re-simulates.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .engine import (
    MEDICARE_AGE,
    SimulationResult,
    YearlyResult,
    healthcare_bracket,
    healthcare_for_age,
    inflation_factor,
    is_working,
    year_zero_taxable_income,
)
from .portfolio import ACCOUNTS, Portfolio
from .roth import annual_conversion_amount, base_conversion_amount
from .schema import SimulationConfig
from .social_security import annual_social_security
from .strategy import (
    ATH_THRESHOLD,
    CBB_PERFORMANCE_THRESHOLD,
    CBB_STEP_DOWN_AGES,
    MARKET_UP_THRESHOLD,
    REFILL_RATE,
    SB_CAP_MULTIPLE,
    SB_COMFORT_FRACTION,
    base_cap_aig,
    cap_aig,
    cbb_cap_for_age,
    quarterly_tda_target,
)
from .tax import TBA_TAXABLE_FRACTION, gross_up_divisor, tax_on

ACCOUNT_LABELS = {
    "sb": ("Spend Bucket (SB)", "HYSA cash that pays expenses; interest accrues monthly and is credited quarterly"),
    "cbb": ("Crash Buffer Bucket (CBB)", "Bond buffer that refills SB while markets are down"),
    "tba": ("Taxable Brokerage (TBA)", "Taxable equities; half of each sale is taxable"),
    "tda": ("Tax-Deferred Account (TDA)", "Traditional 401k/IRA; withdrawals are fully taxable"),
    "tfa": ("Tax-Free Account (TFA)", "Roth account that receives conversions"),
}

HEALTHCARE_LABELS = {
    "pre_retirement": "Pre-Retirement",
    "post_retirement_pre_medicare": "Post-Retirement Pre-Medicare",
    "medicare": f"Medicare ({MEDICARE_AGE}+)",
}


@dataclass(slots=True, frozen=True)
class ComputationStep:
    label: str
    formula: str
    result: float
    explanation: str = ""
    values: dict[str, float] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class BreakdownSection:
    title: str
    steps: list[ComputationStep]


@dataclass(slots=True, frozen=True)
class ComputationBreakdown:
    year: int
    age: int
    sections: list[BreakdownSection]


def _money(value: float) -> str:
    return f"${value:,.2f}"


def taxable_income(result: YearlyResult) -> float:
    flow = result.cash_flow
    return (
        flow.salary
        + flow.interest
        + flow.dividends
        + flow.social_security
        + flow.tda_withdrawal
        + flow.tba_withdrawal * TBA_TAXABLE_FRACTION
    )


@dataclass(slots=True)
class _YearInputs:
    """The year-start figures the engine derives before stepping months."""

    year_idx: int
    age: int
    inflation: float
    start: Portfolio
    salary: float
    contribution_401k: float
    contribution_tba: float
    social_security: float
    needs: float
    wants: float
    healthcare: float
    property_tax: float
    roth_target: float
    estimated_tax: float
    prior_taxable_income: float

    @property
    def net_salary(self) -> float:
        return self.salary - self.contribution_401k - self.contribution_tba

    @property
    def gap_expenses(self) -> float:
        return self.needs + self.wants + self.healthcare + self.property_tax + self.estimated_tax


def _year_inputs(config: SimulationConfig, age: int, prior: YearlyResult | None) -> _YearInputs:
    rates = config.rates
    year_idx = age - config.current_age
    if prior is None:
        if year_idx != 1:
            raise ValueError(f"age {age}: prior year result is required after the first simulated year")
        start = config.portfolio.copy()
        prior_taxable = year_zero_taxable_income(config)
    else:
        start = prior.balances.copy()
        prior_taxable = taxable_income(prior)

    inflation = inflation_factor(rates.inflation, year_idx)
    working = is_working(age, config.retirement_age)
    salary = config.salary * inflation if working else 0.0
    contribution_401k = config.contributions.annual_401k * inflation if working else 0.0
    contribution_tba = config.contributions.annual_tba * inflation if working else 0.0
    needs = config.expenses.needs * inflation
    healthcare = healthcare_for_age(config.expenses, age, config.retirement_age) * inflation
    property_tax = config.expenses.property_tax * inflation
    roth_target = annual_conversion_amount(
        strategy=config.strategy,
        year_idx=year_idx,
        age=age,
        retirement_age=config.retirement_age,
        inflation_adjustment=inflation,
    )
    estimated_tax = tax_on(prior_taxable, rates.income_tax)
    wants = config.expenses.wants * inflation
    if age < config.retirement_age:
        fixed = needs + healthcare + property_tax + estimated_tax + roth_target + contribution_401k + contribution_tba
        wants = max(0.0, salary - fixed)

    return _YearInputs(
        year_idx=year_idx,
        age=age,
        inflation=inflation,
        start=start,
        salary=salary,
        contribution_401k=contribution_401k,
        contribution_tba=contribution_tba,
        social_security=annual_social_security(
            spousal=config.spousal,
            year_idx=year_idx,
            primary_age=age,
            inflation_adjustment=inflation,
        ).total,
        needs=needs,
        wants=wants,
        healthcare=healthcare,
        property_tax=property_tax,
        roth_target=roth_target,
        estimated_tax=estimated_tax,
        prior_taxable_income=prior_taxable,
    )


def _inflation_section(config: SimulationConfig, inputs: _YearInputs) -> BreakdownSection:
    rate = config.rates.inflation
    return BreakdownSection(
        "Inflation Adjustment",
        [
            ComputationStep("Inflation Rate", "rates.inflation", rate, "Annual inflation applied to every dollar figure"),
            ComputationStep("Years from Start", "age - currentAge", float(inputs.year_idx), "Simulated years since the current year"),
            ComputationStep(
                "Cumulative Inflation Factor",
                "(1 + inflation) ^ years",
                inputs.inflation,
                "Multiplier applied to today's-dollar config figures",
                {"inflation": rate, "years": float(inputs.year_idx)},
            ),
        ],
    )


def _balances_section(result: YearlyResult, inputs: _YearInputs) -> BreakdownSection:
    steps = [
        ComputationStep(
            "Start of Year Spend Bucket",
            "priorYear.balances.sb",
            inputs.start.sb,
            "SB carried in from the end of the prior year",
        )
    ]
    for name in ACCOUNTS:
        label, explanation = ACCOUNT_LABELS[name]
        steps.append(ComputationStep(label, f"balances.{name}", result.balances.get(name), explanation))
    steps.append(
        ComputationStep(
            "Total Portfolio",
            "SB + CBB + TBA + TDA + TFA",
            result.balances.total(),
            "Sum of all account balances at year end",
            result.balances.to_dict(),
        )
    )
    return BreakdownSection("Account Balances (End of Year)", steps)


def _expenses_section(config: SimulationConfig, result: YearlyResult, age: int, inputs: _YearInputs) -> BreakdownSection:
    flow = result.cash_flow
    bracket = HEALTHCARE_LABELS[healthcare_bracket(age, config.retirement_age)]
    steps = [
        ComputationStep(
            "Needs (Essential Expenses)",
            "baseNeeds × inflationFactor",
            flow.needs,
            "Essential living expenses adjusted for inflation",
            {"baseNeeds": config.expenses.needs, "inflationFactor": inputs.inflation},
        )
    ]

    if age < config.retirement_age:
        steps.append(
            ComputationStep(
                "Wants (Pre-Retirement)",
                "max(0, Salary - (Needs + Healthcare + PropertyTax + EstimatedTax + RothConversion + Contributions))",
                flow.wants,
                "While working, wants absorb whatever salary leaves after fixed outflows; investment income is saved",
                {
                    "salary": inputs.salary,
                    "needs": inputs.needs,
                    "healthcare": inputs.healthcare,
                    "propertyTax": inputs.property_tax,
                    "estimatedTax": inputs.estimated_tax,
                    "rothConversion": inputs.roth_target,
                    "annual401k": inputs.contribution_401k,
                    "annualTba": inputs.contribution_tba,
                },
            )
        )
    else:
        steps.append(
            ComputationStep(
                "Wants (Discretionary)",
                "baseWants × inflationFactor",
                flow.wants,
                "Discretionary spending adjusted for inflation",
                {"baseWants": config.expenses.wants, "inflationFactor": inputs.inflation},
            )
        )

    liability = tax_on(taxable_income(result), config.rates.income_tax)
    steps.extend(
        [
            ComputationStep(
                f"Healthcare ({bracket})",
                "baseHealthcare × inflationFactor",
                flow.healthcare,
                f"Healthcare cost in the {bracket} bracket",
                {"inflationFactor": inputs.inflation},
            ),
            ComputationStep(
                "Property Tax",
                "basePropertyTax × inflationFactor",
                flow.property_tax,
                "Annual property tax adjusted for inflation",
                {"basePropertyTax": config.expenses.property_tax, "inflationFactor": inputs.inflation},
            ),
            ComputationStep(
                "Income Tax",
                "EstimatedTax + (Liability - EstimatedTax)",
                flow.income_tax,
                "Paid monthly on last year's taxable income, then trued up to this year's liability in December",
                {
                    "estimatedTax": inputs.estimated_tax,
                    "liability": liability,
                    "trueUp": liability - inputs.estimated_tax,
                },
            ),
            ComputationStep(
                "Total Expenses",
                "Needs + Wants + Healthcare + PropertyTax + IncomeTax",
                flow.total_expenses,
                "Sum of all expense categories",
                {
                    "needs": flow.needs,
                    "wants": flow.wants,
                    "healthcare": flow.healthcare,
                    "propertyTax": flow.property_tax,
                    "incomeTax": flow.income_tax,
                },
            ),
        ]
    )
    return BreakdownSection("Expenses", steps)


def _income_section(config: SimulationConfig, result: YearlyResult, age: int, inputs: _YearInputs) -> BreakdownSection:
    flow = result.cash_flow
    steps: list[ComputationStep] = []
    if is_working(age, config.retirement_age):
        steps.append(
            ComputationStep(
                "Salary",
                "baseSalary × inflationFactor",
                flow.salary,
                "Gross salary, paid through the retirement-age year",
                {"baseSalary": config.salary, "inflationFactor": inputs.inflation},
            )
        )

    benefits = annual_social_security(
        spousal=config.spousal,
        year_idx=inputs.year_idx,
        primary_age=age,
        inflation_adjustment=inputs.inflation,
    )
    steps.extend(
        [
            ComputationStep(
                "Interest (from SB)",
                "SB × hysaRate / 12, accrued monthly and credited at quarter start",
                flow.interest,
                "Interest credited this year; the last quarter's accrual lands in next year's Q1",
                {"hysaRate": config.rates.hysa_rate},
            ),
            ComputationStep(
                "Dividends (from CBB)",
                "CBB × bondYield / 12, accrued monthly and credited at quarter start",
                flow.dividends,
                "Bond income paid into SB",
                {"bondYield": config.rates.bond_yield},
            ),
            ComputationStep(
                "Social Security",
                "LowerEarnerBenefit + HigherEarnerBenefit",
                flow.social_security,
                "Each benefit starts at its claim age; a claimed lower earner gets at least half the higher earner's benefit",
                {
                    "lowerEarnerAge": float(config.spousal.spouse_age + inputs.year_idx),
                    "lowerEarnerBenefit": benefits.lower_earner,
                    "higherEarnerAge": float(age),
                    "higherEarnerBenefit": benefits.higher_earner,
                },
            ),
            ComputationStep(
                "TBA Withdrawal",
                "Equity draws taken from TBA once the quarter's TDA budget is spent",
                flow.tba_withdrawal,
                "Brokerage sales used to refill SB and CBB",
            ),
            ComputationStep(
                "TDA Withdrawal (Total)",
                "TDA for Spending + TDA for Roth",
                flow.tda_withdrawal,
                f"{_money(flow.tda_withdrawal_spend)} for spending plus "
                f"{_money(flow.tda_withdrawal_roth)} converted directly to TFA",
                {"tdaSpend": flow.tda_withdrawal_spend, "tdaRoth": flow.tda_withdrawal_roth},
            ),
            ComputationStep(
                "Roth Conversion",
                "rothConversionAmount × inflationFactor, a quarter at a time",
                flow.roth_conversion,
                "Direct TDA to TFA transfer capped by the TDA balance; it never passes through SB",
                {"target": inputs.roth_target},
            ),
            ComputationStep(
                "Market Growth",
                "(TBA + TDA + TFA) × monthlyGrowth, compounded",
                flow.market_growth,
                "Equity growth across the three market accounts",
            ),
            ComputationStep(
                "Total Income",
                "Salary + Interest + Dividends + SocialSecurity + MarketGrowth",
                flow.total_income,
                "Inflows that change the portfolio total; withdrawals and conversions are internal transfers",
            ),
        ]
    )
    return BreakdownSection("Income Sources", steps)


def _income_gap_section(config: SimulationConfig, result: YearlyResult) -> BreakdownSection:
    flow = result.cash_flow
    metrics = result.metrics
    net_salary = flow.salary - flow.contribution_401k - flow.contribution_tba
    return BreakdownSection(
        "Income Gap Calculation",
        [
            ComputationStep(
                "Gap Expenses",
                "Needs + Wants + Healthcare + PropertyTax + IncomeTax",
                metrics.income_gap_expenses,
                "Total expenses that must be covered",
            ),
            ComputationStep(
                "Passive Income",
                "Interest + Dividends + SocialSecurity",
                metrics.income_gap_passive_income,
                "Income that does not require selling assets",
                {"interest": flow.interest, "dividends": flow.dividends, "socialSecurity": flow.social_security},
            ),
            ComputationStep("Net Salary", "Salary - 401k - TBA contributions", net_salary, "Take-home pay deposited into SB"),
            ComputationStep(
                "Annual Income Gap (AIG)",
                "max(0, GapExpenses - PassiveIncome - NetSalary) / max(0.01, 1 - taxRate)",
                metrics.annual_income_gap,
                "Grossed up because the withdrawals that fill the gap are themselves taxed",
                {
                    "gapExpenses": metrics.income_gap_expenses,
                    "passiveIncome": metrics.income_gap_passive_income,
                    "netSalary": net_salary,
                    "taxDivisor": gross_up_divisor(config.rates.income_tax),
                },
            ),
        ],
    )


def _taxable_income_section(config: SimulationConfig, result: YearlyResult, inputs: _YearInputs) -> BreakdownSection:
    flow = result.cash_flow
    taxable = taxable_income(result)
    rate = config.rates.income_tax
    return BreakdownSection(
        "Taxable Income",
        [
            ComputationStep(
                "Taxable Income",
                "Salary + Interest + Dividends + SocialSecurity + TDA Withdrawals + 0.5 × TBA Withdrawals",
                taxable,
                "TDA withdrawals include Roth conversions; only half of TBA sales count",
                {
                    "salary": flow.salary,
                    "interest": flow.interest,
                    "dividends": flow.dividends,
                    "socialSecurity": flow.social_security,
                    "tdaWithdrawal": flow.tda_withdrawal,
                    "tbaWithdrawal": flow.tba_withdrawal,
                },
            ),
            ComputationStep(
                "Tax Liability",
                "TaxableIncome × incomeTax",
                tax_on(taxable, rate),
                "This year's flat effective-rate liability",
                {"taxableIncome": taxable, "incomeTax": rate},
            ),
            ComputationStep(
                "Estimated Tax Paid",
                "PriorYearTaxableIncome × incomeTax",
                inputs.estimated_tax,
                "Withheld monthly through the year",
                {"priorYearTaxableIncome": inputs.prior_taxable_income, "incomeTax": rate},
            ),
        ],
    )


def _strategy_aig(config: SimulationConfig, inputs: _YearInputs) -> float:
    """The income gap the engine hands the quarterly strategy, estimated at year start."""
    rates = config.rates
    estimated_passive = (
        inputs.social_security
        + max(0.0, inputs.start.sb) * rates.hysa_rate
        + max(0.0, inputs.start.cbb) * rates.bond_yield
    )
    return max(0.0, inputs.gap_expenses - estimated_passive - inputs.net_salary) / gross_up_divisor(rates.income_tax)


def _strategy_section(config: SimulationConfig, inputs: _YearInputs) -> BreakdownSection:
    aig = _strategy_aig(config, inputs)
    return BreakdownSection(
        "Spending Strategy Parameters",
        [
            ComputationStep(
                "Strategy AIG",
                "max(0, GapExpenses - EstimatedPassiveIncome - NetSalary) / max(0.01, 1 - taxRate)",
                aig,
                "Income gap estimated at the start of the year from year-start SB and CBB balances",
                {
                    "gapExpenses": inputs.gap_expenses,
                    "socialSecurity": inputs.social_security,
                    "startSB": inputs.start.sb,
                    "startCBB": inputs.start.cbb,
                    "netSalary": inputs.net_salary,
                },
            ),
            ComputationStep("Quarterly AIG", "AIG / 4", aig / 4.0, "Spending need per quarter"),
            ComputationStep(
                "Quarterly Refill Step",
                f"AIG × {REFILL_RATE}",
                aig * REFILL_RATE,
                "Largest single SB or CBB refill in an up market",
            ),
            ComputationStep(
                "Quarterly TDA Budget (QTDAW)",
                "(initialTdaWithdrawal + phaseRothConversionAmount) × inflationFactor / 4",
                quarterly_tda_target(config, inputs.inflation, inputs.age),
                "TDA draws are taken first, up to this budget per quarter, before selling TBA",
                {
                    "initialTdaWithdrawal": config.strategy.initial_tda_withdrawal,
                    "rothConversionAmount": base_conversion_amount(config.strategy, inputs.age, config.retirement_age),
                    "inflationFactor": inputs.inflation,
                },
            ),
            ComputationStep(
                "Market Up Threshold",
                "trailing12m >= marketUp and fromATH >= ath",
                MARKET_UP_THRESHOLD,
                "Both ratios must clear their thresholds to refill from equities",
                {"marketUp": MARKET_UP_THRESHOLD, "ath": ATH_THRESHOLD, "cbbPerformance": CBB_PERFORMANCE_THRESHOLD},
            ),
            ComputationStep(
                "SB Comfort Level",
                f"AIG × {SB_COMFORT_FRACTION}",
                aig * SB_COMFORT_FRACTION,
                "In a down market, SB above this level is left alone",
            ),
        ],
    )


def _sb_operations_section(result: YearlyResult, inputs: _YearInputs) -> BreakdownSection:
    flow = result.cash_flow
    true_up = flow.income_tax - inputs.estimated_tax
    refund = max(0.0, -true_up)
    tax_payment = max(0.0, true_up)
    net_salary = flow.salary - flow.contribution_401k - flow.contribution_tba
    transfers_in = flow.sb_deposit - net_salary - flow.interest - flow.dividends - flow.social_security - refund
    ending = inputs.start.sb + flow.sb_deposit - flow.sb_withdrawal
    return BreakdownSection(
        "Spend Bucket Operations",
        [
            ComputationStep(
                "Deposits into SB",
                "NetSalary + Interest + Dividends + SocialSecurity + BucketTransfers + TaxRefund",
                flow.sb_deposit,
                "Everything credited to SB this year",
                {
                    "netSalary": net_salary,
                    "interest": flow.interest,
                    "dividends": flow.dividends,
                    "socialSecurity": flow.social_security,
                    "bucketTransfers": transfers_in,
                    "taxRefund": refund,
                },
            ),
            ComputationStep(
                "Withdrawals from SB",
                "ExpenseDebits + TaxTrueUp",
                flow.sb_withdrawal,
                "Monthly expense debits plus any December tax payment",
                {"expenseDebits": flow.sb_withdrawal - tax_payment, "taxTrueUp": tax_payment},
            ),
            ComputationStep(
                "Ending SB Balance",
                "StartSB + Deposits - Withdrawals",
                ending,
                f"Year-end balance is {_money(result.balances.sb)}",
                {"startSB": inputs.start.sb, "deposits": flow.sb_deposit, "withdrawals": flow.sb_withdrawal},
            ),
        ],
    )


def _caps_section(config: SimulationConfig, result: YearlyResult, age: int, inputs: _YearInputs) -> BreakdownSection:
    metrics = result.metrics
    cap_value = cap_aig(
        needs=inputs.needs,
        wants=inputs.wants,
        healthcare=inputs.healthcare,
        property_tax=inputs.property_tax,
        income_tax=inputs.estimated_tax,
    )
    base = base_cap_aig(config)
    steps_reached = sum(1 for threshold in CBB_STEP_DOWN_AGES if age >= threshold)
    sb = result.balances.sb
    cbb = result.balances.cbb
    sb_status = "at or above cap" if sb >= metrics.sb_cap else "below cap"
    cbb_status = "at or above cap" if cbb >= metrics.cbb_cap else "below cap"
    step_ages = ", ".join(str(a) for a in CBB_STEP_DOWN_AGES)
    return BreakdownSection(
        "Caps & Status",
        [
            ComputationStep(
                "Cap AIG",
                "Needs + 0.5 × Wants + Healthcare + PropertyTax + EstimatedTax",
                cap_value,
                "Expense-only gap used to size the bucket caps",
            ),
            ComputationStep(
                "SB Cap",
                f"CapAIG × {SB_CAP_MULTIPLE:g}",
                metrics.sb_cap,
                f"SB is {sb_status} ({_money(sb)})",
                {"capAig": cap_value},
            ),
            ComputationStep(
                "CBB Cap",
                "max(0, 7 - steps) × BaseCapAIG",
                cbb_cap_for_age(base, age),
                f"Steps down at ages {step_ages}; CBB is {cbb_status} ({_money(cbb)})",
                {"baseCapAig": base, "steps": float(steps_reached)},
            ),
            ComputationStep("Shortfall", "Unmet equity draws", metrics.shortfall, "Refill amounts equities could not cover"),
            ComputationStep(
                "Failure Status",
                "SB < -(monthly gross expenses) or any other account < 0",
                1.0 if metrics.is_failure else 0.0,
                "Portfolio breached" if metrics.is_failure else "Portfolio healthy",
            ),
        ],
    )


def generate_breakdown(
    config: SimulationConfig,
    target_age: int,
    yearly_result: YearlyResult,
    prior_result: YearlyResult | None = None,
) -> ComputationBreakdown:
    if yearly_result.age != target_age:
        raise ValueError(f"yearly result is for age {yearly_result.age}, not {target_age}")
    inputs = _year_inputs(config, target_age, prior_result)

    sections = [
        _inflation_section(config, inputs),
        _balances_section(yearly_result, inputs),
        _expenses_section(config, yearly_result, target_age, inputs),
        _income_section(config, yearly_result, target_age, inputs),
        _income_gap_section(config, yearly_result),
        _taxable_income_section(config, yearly_result, inputs),
    ]
    if target_age > config.retirement_age:
        sections.append(_strategy_section(config, inputs))
    sections.append(_sb_operations_section(yearly_result, inputs))
    sections.append(_caps_section(config, yearly_result, target_age, inputs))
    return ComputationBreakdown(year=yearly_result.year, age=target_age, sections=sections)


def find_breakdown(config: SimulationConfig, result: SimulationResult, target_age: int) -> ComputationBreakdown:
    """Breakdown for ``target_age`` from a finished run."""
    prior: YearlyResult | None = None
    for yearly in result.yearly_results:
        if yearly.age == target_age:
            return generate_breakdown(config, target_age, yearly, prior)
        prior = yearly
    raise ValueError(f"age {target_age} is not in the simulation result")
