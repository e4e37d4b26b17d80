# backend/fitpass/routes/v1/visits.py
"""
Visit routes - API v1

    POST /visits → Log a member check-in at a club
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ...core.exceptions import DomainException
from ...database import get_db
from ...schemas.visit_schemas import LogVisitRequest, LogVisitResponse, SubscriptionUsageSummary
from ...services.visit_service import VisitService
from .payouts import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["visits-v1"])


def get_visit_service(db: Session = Depends(get_db)) -> VisitService:
    return VisitService(db)


@router.post("", response_model=LogVisitResponse, status_code=status.HTTP_201_CREATED)
async def log_visit(
    payload: LogVisitRequest = Body(...),
    service: VisitService = Depends(get_visit_service),
) -> LogVisitResponse:
    """
    Log a visit.

    Credits members are charged the club's credit price; the response
    carries the amount the club earns for the visit.
    """
    try:
        result = await asyncio.to_thread(
            service.log_visit,
            payload.user_id,
            payload.club_id,
            payload.subscription_type,
            payload.visit_date,
        )
    except DomainException as exc:
        handle_domain_exception(exc)

    return LogVisitResponse(
        visit_id=result.visit_id,
        cost_to_club=result.cost_to_club,
        unique_monthly_visit=result.unique_monthly_visit,
        subscription_usage=SubscriptionUsageSummary(
            subscription_period=result.subscription_period,
            visit_count=result.visit_count,
        ),
        credits_remaining=result.credits_remaining,
    )
