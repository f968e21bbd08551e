"""Flat effective-rate income tax helpers."""

from __future__ import annotations

from dataclasses import dataclass

TBA_TAXABLE_FRACTION = 0.5
MIN_TAX_DIVISOR = 0.01


@dataclass(slots=True)
class YearIncomeSummary:
    salary: float = 0.0
    interest: float = 0.0
    dividends: float = 0.0
    social_security: float = 0.0
    tda_withdrawal_spend: float = 0.0
    tda_withdrawal_roth: float = 0.0
    tba_withdrawal: float = 0.0

    @property
    def taxable_income(self) -> float:
        """Everything is ordinary income except TBA sales, which are half basis."""
        return (
            self.salary
            + self.interest
            + self.dividends
            + self.social_security
            + self.tda_withdrawal_spend
            + self.tda_withdrawal_roth
            + self.tba_withdrawal * TBA_TAXABLE_FRACTION
        )


def tax_on(taxable_income: float, rate: float) -> float:
    return max(0.0, taxable_income) * rate


def gross_up_divisor(rate: float) -> float:
    return max(MIN_TAX_DIVISOR, 1.0 - rate)
