"""Household Social Security modeling."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import SocialSecurityDetails, SpousalDetails

SPOUSAL_STEP_UP = 0.5


@dataclass(slots=True, frozen=True)
class SocialSecurityIncome:
    lower_earner: float
    higher_earner: float

    @property
    def total(self) -> float:
        return self.lower_earner + self.higher_earner


def _claimed(details: SocialSecurityDetails, age: int) -> bool:
    return age >= details.claim_age


def _earner_benefit(details: SocialSecurityDetails, age: int, inflation_adjustment: float) -> float:
    if not _claimed(details, age):
        return 0.0
    return max(0.0, details.annual_benefit * inflation_adjustment)


def annual_social_security(
    *,
    spousal: SpousalDetails,
    year_idx: int,
    primary_age: int,
    inflation_adjustment: float,
) -> SocialSecurityIncome:
    """Return the household's annual benefits for one simulated year.

    The higher earner is the primary (``primary_age``); the lower earner ages
    from ``spousal.spouse_age``. Once the higher earner has claimed, a lower
    earner who has also claimed receives at least half of the higher earner's
    adjusted benefit.
    """
    lower_age = spousal.spouse_age + year_idx
    lower = _earner_benefit(spousal.lower_earner, lower_age, inflation_adjustment)
    higher = _earner_benefit(spousal.higher_earner, primary_age, inflation_adjustment)

    if _claimed(spousal.higher_earner, primary_age) and _claimed(spousal.lower_earner, lower_age):
        lower = max(lower, higher * SPOUSAL_STEP_UP)

    return SocialSecurityIncome(lower_earner=lower, higher_earner=higher)
