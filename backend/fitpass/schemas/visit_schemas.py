"""Visit logging request/response schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import Field

from ..core.enums import SubscriptionType
from ._strict_base import Money, StrictModel, StrictRequestModel


class LogVisitRequest(StrictRequestModel):
    user_id: str = Field(..., min_length=1)
    club_id: str = Field(..., min_length=1)
    subscription_type: SubscriptionType
    visit_date: Optional[datetime] = Field(
        default=None, description="When the visit happened; defaults to now"
    )


class SubscriptionUsageSummary(StrictModel):
    subscription_period: date
    visit_count: int


class LogVisitResponse(StrictModel):
    success: bool = True
    visit_id: str
    cost_to_club: Money
    unique_monthly_visit: bool
    subscription_usage: SubscriptionUsageSummary
    credits_remaining: int
