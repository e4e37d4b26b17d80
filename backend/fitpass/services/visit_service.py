"""
Visit logging.

Records a member check-in: deducts credits for credits members, prices the
visit for the club, writes the audit Visit row and bumps the monthly usage
counter that payout generation reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.enums import SubscriptionType
from ..core.exceptions import InsufficientCreditsException, NotFoundException, ValidationException
from ..core.periods import period_start
from ..domain.payout_model import PayoutRates, credits_payout_per_visit, unlimited_payout_per_visit
from ..domain.usage_aggregator import subscription_type_value
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService


@dataclass(frozen=True)
class LogVisitResult:
    visit_id: str
    club_id: str
    subscription_type: str
    cost_to_club: Decimal
    unique_monthly_visit: bool
    subscription_period: date
    visit_count: int
    credits_remaining: int


class VisitService(BaseService):
    def __init__(self, db: Session, rates: Optional[PayoutRates] = None):
        super().__init__(db)
        self.usage_repository = RepositoryFactory.create_usage_repository(db)
        self.club_repository = RepositoryFactory.create_club_repository(db)
        self.member_repository = RepositoryFactory.create_member_repository(db)
        self.rates = rates or PayoutRates.from_settings()

    @BaseService.measure_operation("log_visit")
    def log_visit(
        self,
        user_id: str,
        club_id: str,
        subscription_type: Union[str, SubscriptionType],
        visit_date: Optional[Union[date, datetime]] = None,
    ) -> LogVisitResult:
        """
        Record one visit by ``user_id`` at ``club_id``.

        Unlimited visits are priced on the member's unique gyms this month,
        counting this club. Credits visits cost the member the club's credit
        price and pay the club the flat credits rate.
        """
        try:
            plan = SubscriptionType(subscription_type_value(subscription_type))
        except ValueError as exc:
            raise ValidationException(
                f"Unknown subscription type {subscription_type!r}",
                code="INVALID_SUBSCRIPTION_TYPE",
            ) from exc

        if visit_date is None:
            visited_at = datetime.now(timezone.utc)
        elif isinstance(visit_date, datetime):
            visited_at = visit_date if visit_date.tzinfo else visit_date.replace(tzinfo=timezone.utc)
        else:
            visited_at = datetime.combine(visit_date, datetime.min.time(), tzinfo=timezone.utc)
        period = period_start(visited_at)

        club = self.club_repository.get_by_id(club_id, load_relationships=False)
        if club is None:
            raise NotFoundException("Club not found", code="CLUB_NOT_FOUND", details={"club_id": club_id})
        member = self.member_repository.get_by_id(user_id, load_relationships=False)
        if member is None:
            raise NotFoundException("Member not found", code="MEMBER_NOT_FOUND", details={"user_id": user_id})

        with self.transaction():
            credits_remaining = member.credits
            if plan == SubscriptionType.CREDITS:
                remaining = self.member_repository.deduct_credits(user_id, club.credits)
                if remaining is None:
                    raise InsufficientCreditsException(required=club.credits, available=member.credits)
                credits_remaining = remaining
                cost = credits_payout_per_visit(self.rates)
            else:
                unique_gyms = {
                    usage.club_id
                    for usage in self.usage_repository.get_user_usage(user_id, period)
                    if usage.unique_visit
                    and subscription_type_value(usage.subscription_type) == SubscriptionType.UNLIMITED.value
                }
                unique_gyms.add(club_id)
                cost = unlimited_payout_per_visit(len(unique_gyms), self.rates)

            usage, created = self.usage_repository.record_usage(user_id, club_id, period, plan.value)
            visit = self.usage_repository.create_visit(
                user_id=user_id,
                club_id=club_id,
                subscription_type=plan.value,
                cost_to_club=cost,
                unique_monthly_visit=created,
                created_at=visited_at,
            )

        prometheus_metrics.inc_visit_logged(plan.value)
        self.logger.info(
            "Logged %s visit for member %s at club %s",
            plan.value,
            user_id,
            club_id,
            extra={"visit_id": visit.id, "cost_to_club": str(cost), "unique": created},
        )
        return LogVisitResult(
            visit_id=visit.id,
            club_id=club_id,
            subscription_type=plan.value,
            cost_to_club=cost,
            unique_monthly_visit=created,
            subscription_period=period,
            visit_count=usage.visit_count,
            credits_remaining=credits_remaining,
        )
