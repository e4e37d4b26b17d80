# backend/fitpass/routes/v1/payouts.py
"""
Payout routes - API v1

Versioned club payout endpoints under /api/v1/payouts.
All business logic delegated to PayoutService.

Endpoints:
    POST /generate-monthly      → Calculate and store club payouts for a month
    POST /send-transfers        → Transfer pending payouts via Stripe Connect
    GET /club/{club_id}         → Payout history for a club
    GET /summary/{period}       → Totals and status counts for a month
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from ...core.constants import DEFAULT_CLUB_PAYOUT_HISTORY, MAX_CLUB_PAYOUT_HISTORY
from ...core.enums import UpsertMode
from ...core.exceptions import DomainException
from ...database import get_db
from ...schemas.payout_schemas import (
    ClubPayoutResponse,
    ClubPayoutsResponse,
    DataWarningResponse,
    GeneratedPayoutResponse,
    GenerateMonthlyPayoutsRequest,
    GenerateMonthlyPayoutsResponse,
    PayoutSummary,
    PayoutSummaryResponse,
    SendTransfersRequest,
    SendTransfersResponse,
    SkippedClubResponse,
    TransferResultResponse,
)
from ...services.payout_service import PayoutService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["payouts-v1"])


def get_payout_service(db: Session = Depends(get_db)) -> PayoutService:
    return PayoutService(db)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/generate-monthly", response_model=GenerateMonthlyPayoutsResponse)
async def generate_monthly_payouts(
    payload: Optional[GenerateMonthlyPayoutsRequest] = Body(default=None),
    service: PayoutService = Depends(get_payout_service),
) -> GenerateMonthlyPayoutsResponse:
    """
    Calculate every club's payout for a month and store it.

    Re-running for the same month refreshes pending payouts only; pass
    ``force`` to reopen payouts that are already processing, paid or failed.
    """
    payload = payload or GenerateMonthlyPayoutsRequest()
    mode = UpsertMode.RESET if payload.force else UpsertMode.RECALCULATE_ONLY
    try:
        result = await asyncio.to_thread(
            service.generate_monthly_payouts,
            payload.period,
            payload.club_ids,
            mode,
        )
    except DomainException as exc:
        handle_domain_exception(exc)

    return GenerateMonthlyPayoutsResponse(
        period=result.period,
        clubs_processed=result.clubs_processed,
        total_amount=result.total_amount,
        payouts=[GeneratedPayoutResponse.model_validate(p) for p in result.payouts],
        skipped=[SkippedClubResponse.model_validate(s) for s in result.skipped],
        validation_errors=result.validation_errors,
        data_warnings=[DataWarningResponse.model_validate(w) for w in result.data_warnings],
        message=result.message,
    )


@router.post("/send-transfers", response_model=SendTransfersResponse)
async def send_transfers(
    payload: Optional[SendTransfersRequest] = Body(default=None),
    service: PayoutService = Depends(get_payout_service),
) -> SendTransfersResponse:
    """Transfer every pending payout for a month to its club's Stripe account."""
    payload = payload or SendTransfersRequest()
    try:
        batch = await asyncio.to_thread(service.send_transfers, payload.period, payload.club_ids)
    except DomainException as exc:
        handle_domain_exception(exc)

    return SendTransfersResponse(
        period=batch.period,
        transfers_attempted=batch.attempted,
        transfers_succeeded=batch.succeeded,
        transfers_failed=batch.failed,
        results=[TransferResultResponse.model_validate(r) for r in batch.results],
        skipped=[SkippedClubResponse.model_validate(s) for s in batch.skipped],
        message=batch.message,
    )


@router.get("/club/{club_id}", response_model=ClubPayoutsResponse)
async def get_club_payouts(
    club_id: str = Path(..., min_length=1),
    limit: int = Query(DEFAULT_CLUB_PAYOUT_HISTORY, ge=1, le=MAX_CLUB_PAYOUT_HISTORY),
    service: PayoutService = Depends(get_payout_service),
) -> ClubPayoutsResponse:
    """Payout history for a club, newest month first."""
    try:
        payouts = await asyncio.to_thread(service.get_club_payouts, club_id, limit)
    except DomainException as exc:
        handle_domain_exception(exc)
    return ClubPayoutsResponse(payouts=[ClubPayoutResponse.model_validate(p) for p in payouts])


@router.get("/summary/{period}", response_model=PayoutSummaryResponse)
async def get_payout_summary(
    period: str = Path(..., description="First day of the month, YYYY-MM-01"),
    service: PayoutService = Depends(get_payout_service),
) -> PayoutSummaryResponse:
    """Totals across all clubs for a month plus payout counts by status."""
    try:
        summary = await asyncio.to_thread(service.get_payout_summary, period)
    except DomainException as exc:
        handle_domain_exception(exc)
    return PayoutSummaryResponse(summary=PayoutSummary(**summary))
