"""Consistency checks on a calculated club payout."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .payout_calculator import ClubPayoutCalculation


@dataclass(frozen=True)
class PayoutValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_payout_calculation(calc: ClubPayoutCalculation) -> PayoutValidationResult:
    """
    Check a calculation's internal arithmetic.

    Advisory only: callers log and report failures but still persist the row.
    """
    errors: List[str] = []
    if calc.total_amount < 0:
        errors.append("Total amount cannot be negative")
    if calc.unlimited_visits + calc.credits_visits != calc.total_visits:
        errors.append("Visit counts do not add up correctly")
    if calc.unlimited_amount + calc.credits_amount != calc.total_amount:
        errors.append("Payout amounts do not add up correctly")
    if calc.unique_users > calc.total_visits:
        errors.append("Unique users cannot exceed total visits")
    return PayoutValidationResult(valid=not errors, errors=errors)
