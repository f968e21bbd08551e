"""Semantic validation for simulation configs."""

from __future__ import annotations

from dataclasses import dataclass, field

from .engine import END_AGE
from .portfolio import ACCOUNTS
from .schema import SimulationConfig

MIN_CLAIM_AGE = 62
MAX_CLAIM_AGE = 70
# Rates above this look like percentages rather than fractions.
PERCENT_LIKE_RATE = 1.0


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_non_negative(result: ValidationResult, path: str, value: float) -> None:
    if value < 0:
        result.errors.append(f"{path}: must be >= 0")


def _check_rate(result: ValidationResult, path: str, value: float) -> None:
    if value <= -1.0:
        result.errors.append(f"{path}: must be > -1")
    elif abs(value) > PERCENT_LIKE_RATE:
        result.warnings.append(f"{path}: {value} looks like a percentage; rates are decimal fractions (0.03 = 3%)")


def _check_claim_age(result: ValidationResult, path: str, claim_age: int) -> None:
    if not MIN_CLAIM_AGE <= claim_age <= MAX_CLAIM_AGE:
        result.warnings.append(f"{path}: {claim_age} is outside the usual claiming window {MIN_CLAIM_AGE}-{MAX_CLAIM_AGE}")


def validate_config(config: SimulationConfig) -> ValidationResult:
    result = ValidationResult()

    if config.current_age < 0:
        result.errors.append("currentAge: must be >= 0")
    if config.current_age > END_AGE:
        result.errors.append(f"currentAge: must be <= {END_AGE}")
    if config.retirement_age < config.current_age:
        result.errors.append("retirementAge: must be >= currentAge")
    _check_non_negative(result, "salary", config.salary)

    for name in ACCOUNTS:
        _check_non_negative(result, f"portfolio.{name}", config.portfolio.get(name))

    expenses = config.expenses
    for path, value in (
        ("expenses.needs", expenses.needs),
        ("expenses.wants", expenses.wants),
        ("expenses.propertyTax", expenses.property_tax),
        ("expenses.healthcarePreRetirement", expenses.healthcare_pre_retirement),
        ("expenses.healthcarePostRetirementPreMedicare", expenses.healthcare_post_retirement_pre_medicare),
        ("expenses.healthcareMedicare", expenses.healthcare_medicare),
        ("contributions.annual401k", config.contributions.annual_401k),
        ("contributions.annualTba", config.contributions.annual_tba),
        ("strategy.initialTdaWithdrawal", config.strategy.initial_tda_withdrawal),
        ("strategy.rothConversionAmount", config.strategy.roth_conversion_amount),
    ):
        _check_non_negative(result, path, value)

    contributions = config.contributions.annual_401k + config.contributions.annual_tba
    if contributions > config.salary and config.current_age <= config.retirement_age:
        result.warnings.append("contributions: annual contributions exceed salary; net salary to SB is negative")

    rates = config.rates
    for path, value in (
        ("rates.inflation", rates.inflation),
        ("rates.preRetirementGrowth", rates.pre_retirement_growth),
        ("rates.postRetirementGrowth", rates.post_retirement_growth),
        ("rates.bondYield", rates.bond_yield),
        ("rates.hysaRate", rates.hysa_rate),
    ):
        _check_rate(result, path, value)
    if not 0.0 <= rates.income_tax < 1.0:
        result.errors.append("rates.incomeTax: must be >= 0 and < 1")

    spousal = config.spousal
    if spousal.spouse_age < 0:
        result.errors.append("spousal.spouseAge: must be >= 0")
    _check_non_negative(result, "spousal.lowerEarner.annualBenefit", spousal.lower_earner.annual_benefit)
    _check_non_negative(result, "spousal.higherEarner.annualBenefit", spousal.higher_earner.annual_benefit)
    _check_claim_age(result, "spousal.lowerEarner.claimAge", spousal.lower_earner.claim_age)
    _check_claim_age(result, "spousal.higherEarner.claimAge", spousal.higher_earner.claim_age)
    if spousal.lower_earner.annual_benefit > spousal.higher_earner.annual_benefit:
        result.warnings.append("spousal: lowerEarner.annualBenefit exceeds higherEarner.annualBenefit")

    return result
