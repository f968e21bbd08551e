"""Simulation config dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from .portfolio import ACCOUNTS, Portfolio

DEFAULT_STRATEGY_TYPE = "PARTHA_V0_01_20250105"


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into config objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _number(data: dict[str, Any], key: str, path: str) -> float:
    value = _require(data, key, path)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}.{key}: expected number")
    return float(value)


def _integer(data: dict[str, Any], key: str, path: str) -> int:
    value = _require(data, key, path)
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"{path}.{key}: expected integer")
    return value


def _optional_number(data: dict[str, Any], key: str, path: str) -> float | None:
    if _optional(data, key) is None:
        return None
    return _number(data, key, path)


def portfolio_from_dict(data: dict[str, Any], path: str = "portfolio") -> Portfolio:
    return Portfolio(**{name: _number(data, name, path) for name in ACCOUNTS})


@dataclass(slots=True, frozen=True)
class SocialSecurityDetails:
    claim_age: int
    annual_benefit: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SocialSecurityDetails":
        return cls(
            claim_age=_integer(data, "claimAge", path),
            annual_benefit=_number(data, "annualBenefit", path),
        )


@dataclass(slots=True, frozen=True)
class SpousalDetails:
    spouse_age: int
    lower_earner: SocialSecurityDetails
    higher_earner: SocialSecurityDetails

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "spousal") -> "SpousalDetails":
        return cls(
            spouse_age=_integer(data, "spouseAge", path),
            lower_earner=SocialSecurityDetails.from_dict(
                _expect_dict(_require(data, "lowerEarner", path), f"{path}.lowerEarner"), f"{path}.lowerEarner"
            ),
            higher_earner=SocialSecurityDetails.from_dict(
                _expect_dict(_require(data, "higherEarner", path), f"{path}.higherEarner"), f"{path}.higherEarner"
            ),
        )


@dataclass(slots=True, frozen=True)
class ExpenseConfig:
    needs: float
    wants: float
    property_tax: float
    healthcare_pre_retirement: float
    healthcare_post_retirement_pre_medicare: float
    healthcare_medicare: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "expenses") -> "ExpenseConfig":
        return cls(
            needs=_number(data, "needs", path),
            wants=_number(data, "wants", path),
            property_tax=_number(data, "propertyTax", path),
            healthcare_pre_retirement=_number(data, "healthcarePreRetirement", path),
            healthcare_post_retirement_pre_medicare=_number(data, "healthcarePostRetirementPreMedicare", path),
            healthcare_medicare=_number(data, "healthcareMedicare", path),
        )


@dataclass(slots=True, frozen=True)
class ContributionConfig:
    annual_401k: float
    annual_tba: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "contributions") -> "ContributionConfig":
        return cls(
            annual_401k=_number(data, "annual401k", path),
            annual_tba=_number(data, "annualTba", path),
        )


@dataclass(slots=True, frozen=True)
class RateConfig:
    inflation: float
    pre_retirement_growth: float
    post_retirement_growth: float
    bond_yield: float
    hysa_rate: float
    income_tax: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "rates") -> "RateConfig":
        return cls(
            inflation=_number(data, "inflation", path),
            pre_retirement_growth=_number(data, "preRetirementGrowth", path),
            post_retirement_growth=_number(data, "postRetirementGrowth", path),
            bond_yield=_number(data, "bondYield", path),
            hysa_rate=_number(data, "hysaRate", path),
            income_tax=_number(data, "incomeTax", path),
        )


@dataclass(slots=True, frozen=True)
class StrategyConfig:
    initial_tda_withdrawal: float
    roth_conversion_amount: float = 0.0
    roth_conversion_pre_retirement: float | None = None
    roth_conversion_post_retirement: float | None = None
    type: str = DEFAULT_STRATEGY_TYPE

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "strategy") -> "StrategyConfig":
        roth_amount = _optional_number(data, "rothConversionAmount", path)
        return cls(
            initial_tda_withdrawal=_number(data, "initialTdaWithdrawal", path),
            roth_conversion_amount=roth_amount if roth_amount is not None else 0.0,
            roth_conversion_pre_retirement=_optional_number(data, "rothConversionPreRetirement", path),
            roth_conversion_post_retirement=_optional_number(data, "rothConversionPostRetirement", path),
            type=str(_optional(data, "type", DEFAULT_STRATEGY_TYPE)),
        )


@dataclass(slots=True, frozen=True)
class SimulationConfig:
    name: str
    current_year: int
    current_age: int
    retirement_age: int
    salary: float
    portfolio: Portfolio
    spousal: SpousalDetails
    expenses: ExpenseConfig
    contributions: ContributionConfig
    rates: RateConfig
    strategy: StrategyConfig
    id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationConfig":
        path = "config"
        config_id = _optional(data, "id")
        return cls(
            id=str(config_id) if config_id is not None else None,
            name=str(_require(data, "name", path)),
            current_year=_integer(data, "currentYear", path),
            current_age=_integer(data, "currentAge", path),
            retirement_age=_integer(data, "retirementAge", path),
            salary=_number(data, "salary", path),
            portfolio=portfolio_from_dict(_expect_dict(_require(data, "portfolio", path), "portfolio")),
            spousal=SpousalDetails.from_dict(_expect_dict(_require(data, "spousal", path), "spousal")),
            expenses=ExpenseConfig.from_dict(_expect_dict(_require(data, "expenses", path), "expenses")),
            contributions=ContributionConfig.from_dict(
                _expect_dict(_require(data, "contributions", path), "contributions")
            ),
            rates=RateConfig.from_dict(_expect_dict(_require(data, "rates", path), "rates")),
            strategy=StrategyConfig.from_dict(_expect_dict(_require(data, "strategy", path), "strategy")),
        )


def load_config(path: str | Path) -> SimulationConfig:
    """Load config JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("config: root must be a JSON object")
    return SimulationConfig.from_dict(raw)
