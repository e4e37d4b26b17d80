"""
Monthly club payout calculation.

Pure functions over usage rows: no database access, no clock. The service
layer loads the inputs and persists the resulting ClubPayoutCalculation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from ..core.enums import SubscriptionType
from .payout_model import PayoutRates, credits_payout_per_visit, unlimited_payout_per_visit
from .usage_aggregator import (
    UsageLike,
    aggregate_by_club,
    build_unique_gyms_index,
    get_user_monthly_usage,
    subscription_type_value,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlimitedUserPayout:
    user_id: str
    unique_gyms_count: int
    payout_per_visit: Decimal
    visit_count: int
    total_payout: Decimal


@dataclass(frozen=True)
class CreditsUserPayout:
    user_id: str
    visit_count: int
    total_payout: Decimal


@dataclass
class ClubPayoutCalculation:
    club_id: str
    club_name: str
    period: date
    unlimited_users: List[UnlimitedUserPayout] = field(default_factory=list)
    unlimited_amount: Decimal = Decimal("0")
    unlimited_visits: int = 0
    credits_users: List[CreditsUserPayout] = field(default_factory=list)
    credits_amount: Decimal = Decimal("0")
    credits_visits: int = 0
    total_amount: Decimal = Decimal("0")
    total_visits: int = 0
    unique_users: int = 0


@dataclass(frozen=True)
class PayoutTotals:
    total_clubs: int
    total_amount: Decimal
    unlimited_amount: Decimal
    credits_amount: Decimal
    total_visits: int
    unique_users: int


def _club_name(club: Any) -> str:
    if isinstance(club, Mapping):
        return str(club.get("name") or "")
    return str(getattr(club, "name", "") or "")


def calculate_club_payout(
    club_id: str,
    club_name: str,
    period: date,
    club_usage: Sequence[UsageLike],
    all_usage: Sequence[UsageLike],
    *,
    rates: Optional[PayoutRates] = None,
    unique_gyms_index: Optional[Mapping[str, int]] = None,
) -> ClubPayoutCalculation:
    """
    Calculate one club's payout for ``period``.

    Unlimited rows are priced on the member's unique-gym count across all
    clubs for the period. Pass ``unique_gyms_index`` when calculating many
    clubs so that count is not recomputed per row.
    """
    rates = rates or PayoutRates.from_settings()
    credit_rate = credits_payout_per_visit(rates)

    unlimited_users: List[UnlimitedUserPayout] = []
    credits_users: List[CreditsUserPayout] = []
    for record in club_usage:
        plan = subscription_type_value(record.subscription_type)
        if plan == SubscriptionType.UNLIMITED.value:
            if unique_gyms_index is not None:
                unique_gyms = unique_gyms_index.get(record.user_id, 0)
            else:
                unique_gyms = get_user_monthly_usage(
                    record.user_id, period, all_usage
                ).unique_gyms_visited
            per_visit = unlimited_payout_per_visit(unique_gyms, rates)
            unlimited_users.append(
                UnlimitedUserPayout(
                    user_id=record.user_id,
                    unique_gyms_count=unique_gyms,
                    payout_per_visit=per_visit,
                    visit_count=record.visit_count,
                    total_payout=per_visit * record.visit_count,
                )
            )
        elif plan == SubscriptionType.CREDITS.value:
            credits_users.append(
                CreditsUserPayout(
                    user_id=record.user_id,
                    visit_count=record.visit_count,
                    total_payout=credit_rate * record.visit_count,
                )
            )
        else:
            logger.warning(
                "Ignoring usage row with unknown subscription type",
                extra={"club_id": club_id, "user_id": record.user_id, "subscription_type": plan},
            )

    unlimited_amount = sum((u.total_payout for u in unlimited_users), Decimal("0"))
    credits_amount = sum((c.total_payout for c in credits_users), Decimal("0"))
    unlimited_visits = sum(u.visit_count for u in unlimited_users)
    credits_visits = sum(c.visit_count for c in credits_users)
    # Rows with no visits carry no member into the count
    user_ids = {u.user_id for u in unlimited_users if u.visit_count > 0} | {
        c.user_id for c in credits_users if c.visit_count > 0
    }

    return ClubPayoutCalculation(
        club_id=club_id,
        club_name=club_name,
        period=period,
        unlimited_users=unlimited_users,
        unlimited_amount=unlimited_amount,
        unlimited_visits=unlimited_visits,
        credits_users=credits_users,
        credits_amount=credits_amount,
        credits_visits=credits_visits,
        total_amount=unlimited_amount + credits_amount,
        total_visits=unlimited_visits + credits_visits,
        unique_users=len(user_ids),
    )


def calculate_all_club_payouts(
    period: date,
    clubs: Mapping[str, Any],
    all_usage: Sequence[UsageLike],
    visits: Optional[Iterable[Any]] = None,
    *,
    rates: Optional[PayoutRates] = None,
) -> List[ClubPayoutCalculation]:
    """
    Calculate payouts for every club that has usage in ``period``.

    ``clubs`` maps club id to a club object (or dict) carrying a name. Usage
    for club ids missing from it is skipped. Clubs without usage produce no
    calculation. ``visits`` is accepted for audit callers and not used in
    the amounts.
    """
    rates = rates or PayoutRates.from_settings()
    period_usage = [r for r in all_usage if r.subscription_period == period]
    unique_gyms_index = build_unique_gyms_index(period_usage, period)

    calculations: List[ClubPayoutCalculation] = []
    for club_id, club_usage in aggregate_by_club(period_usage, clubs).items():
        calculations.append(
            calculate_club_payout(
                club_id,
                _club_name(clubs[club_id]),
                period,
                club_usage,
                period_usage,
                rates=rates,
                unique_gyms_index=unique_gyms_index,
            )
        )
    return calculations


def summarize_payouts(calculations: Iterable[ClubPayoutCalculation]) -> PayoutTotals:
    calculations = list(calculations)
    users: set[str] = set()
    for calc in calculations:
        users.update(u.user_id for u in calc.unlimited_users if u.visit_count > 0)
        users.update(c.user_id for c in calc.credits_users if c.visit_count > 0)
    return PayoutTotals(
        total_clubs=len(calculations),
        total_amount=sum((c.total_amount for c in calculations), Decimal("0")),
        unlimited_amount=sum((c.unlimited_amount for c in calculations), Decimal("0")),
        credits_amount=sum((c.credits_amount for c in calculations), Decimal("0")),
        total_visits=sum(c.total_visits for c in calculations),
        unique_users=len(users),
    )
