# backend/fitpass/core/enums.py
"""
Core enums for the FitPass payouts service.

String-valued so they can be stored in plain VARCHAR columns and
serialized in API responses without conversion.
"""

from enum import Enum


class SubscriptionType(str, Enum):
    """Membership plan a visit is billed under."""

    UNLIMITED = "unlimited"
    CREDITS = "credits"


class PayoutStatus(str, Enum):
    """Lifecycle states for a club payout row."""

    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PayoutStatus.PAID, PayoutStatus.FAILED)


class UpsertMode(str, Enum):
    """
    How a recalculation treats an existing payout row.

    RECALCULATE_ONLY refreshes amounts on rows that are still pending and
    leaves every other row alone. RESET overwrites amounts and reopens the
    row as pending with a fresh retry budget.
    """

    RECALCULATE_ONLY = "recalculate_only"
    RESET = "reset"
