"""
Payout rates for the two membership models.

Unlimited members pay clubs on a tier that depends on how many distinct
gyms the member used that month; credits members pay a flat amount per
visit. Amounts are Decimal in major units (SEK) until the transfer boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from ..core.config import settings

Amount = Union[Decimal, int, str]

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PayoutRates:
    one_gym: Decimal = Decimal("550")
    two_gyms: Decimal = Decimal("450")
    three_plus: Decimal = Decimal("350")
    credit_visit: Decimal = Decimal("90")

    def __post_init__(self) -> None:
        for name in ("one_gym", "two_gyms", "three_plus", "credit_visit"):
            value = Decimal(getattr(self, name))
            if value < 0:
                raise ValueError(f"{name} rate cannot be negative")
            object.__setattr__(self, name, value)
        if not (self.one_gym >= self.two_gyms >= self.three_plus):
            raise ValueError("Unlimited tiers must satisfy one_gym >= two_gyms >= three_plus")

    @classmethod
    def from_settings(cls) -> "PayoutRates":
        return cls(
            one_gym=settings.payout_rate_one_gym,
            two_gyms=settings.payout_rate_two_gyms,
            three_plus=settings.payout_rate_three_plus,
            credit_visit=settings.credit_visit_payout,
        )


def unlimited_payout_per_visit(unique_gyms: int, rates: Optional[PayoutRates] = None) -> Decimal:
    """Per-visit payout for an unlimited member who used ``unique_gyms`` clubs."""
    rates = rates or PayoutRates.from_settings()
    if unique_gyms <= 0:
        return Decimal("0")
    if unique_gyms == 1:
        return rates.one_gym
    if unique_gyms == 2:
        return rates.two_gyms
    return rates.three_plus


def credits_payout_per_visit(rates: Optional[PayoutRates] = None) -> Decimal:
    return (rates or PayoutRates.from_settings()).credit_visit


def to_minor_units(amount: Amount) -> int:
    """Convert a major-unit amount to integer minor units, rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_payout_amount(amount: Amount, currency: str = "SEK") -> str:
    return f"{Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)} {currency}"
