# backend/fitpass/schemas/__init__.py
"""Pydantic schemas for the FitPass payouts API."""

from .payout_schemas import (
    ClubPayoutResponse,
    ClubPayoutsResponse,
    GenerateMonthlyPayoutsRequest,
    GenerateMonthlyPayoutsResponse,
    PayoutSummary,
    PayoutSummaryResponse,
    SendTransfersRequest,
    SendTransfersResponse,
)
from .visit_schemas import LogVisitRequest, LogVisitResponse

__all__ = [
    "ClubPayoutResponse",
    "ClubPayoutsResponse",
    "GenerateMonthlyPayoutsRequest",
    "GenerateMonthlyPayoutsResponse",
    "LogVisitRequest",
    "LogVisitResponse",
    "PayoutSummary",
    "PayoutSummaryResponse",
    "SendTransfersRequest",
    "SendTransfersResponse",
]
