"""
Payout-related Pydantic schemas.

Request and response models for the monthly generation run, the transfer
run and the payout read endpoints. Field names are snake_case in Python and
camelCase on the wire.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.exceptions import InvalidPeriodException
from ..core.periods import parse_period
from ._strict_base import Money, StrictModel, StrictRequestModel

# ========== Request Models ==========


class _PeriodRequest(StrictRequestModel):
    period: Optional[date] = Field(
        default=None, description="First day of the payout month; defaults to the previous month"
    )
    club_ids: Optional[List[str]] = Field(
        default=None, description="Restrict the run to these clubs"
    )

    @field_validator("period", mode="before")
    @classmethod
    def _validate_period(cls, value: object) -> Optional[date]:
        if value is None or value == "":
            return None
        try:
            return parse_period(value)  # type: ignore[arg-type]
        except InvalidPeriodException as exc:
            raise ValueError(exc.message) from exc

    @field_validator("club_ids")
    @classmethod
    def _empty_club_ids_mean_all(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return value or None


class GenerateMonthlyPayoutsRequest(_PeriodRequest):
    force: bool = Field(
        default=False,
        description="Overwrite and reopen payouts that are already processing, paid or failed",
    )


class SendTransfersRequest(_PeriodRequest):
    pass


# ========== Response Models ==========


class GeneratedPayoutResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True)

    payout_id: str
    club_id: str
    club_name: str
    unlimited_amount: Money
    credits_amount: Money
    total_amount: Money
    unlimited_visits: int
    credits_visits: int
    total_visits: int
    unique_users: int
    status: str
    written: bool = Field(..., description="False when an existing non-pending payout was kept")


class SkippedClubResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True)

    club_id: str
    club_name: Optional[str] = None
    payout_id: Optional[str] = None
    reason: str


class DataWarningResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    subscription_types: List[str]
    message: str


class GenerateMonthlyPayoutsResponse(StrictModel):
    success: bool = True
    period: date
    clubs_processed: int
    total_amount: Money
    payouts: List[GeneratedPayoutResponse] = Field(default_factory=list)
    skipped: List[SkippedClubResponse] = Field(default_factory=list)
    validation_errors: Dict[str, List[str]] = Field(default_factory=dict)
    data_warnings: List[DataWarningResponse] = Field(default_factory=list)
    message: Optional[str] = None


class TransferResultResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True)

    payout_id: str
    club_id: str
    club_name: str
    amount: Money
    status: str
    stripe_transfer_id: Optional[str] = None
    error: Optional[str] = None
    retry_count: int = 0


class SendTransfersResponse(StrictModel):
    success: bool = True
    period: date
    transfers_attempted: int
    transfers_succeeded: int
    transfers_failed: int
    results: List[TransferResultResponse] = Field(default_factory=list)
    skipped: List[SkippedClubResponse] = Field(default_factory=list)
    message: Optional[str] = None


class ClubPayoutResponse(StrictModel):
    """Persisted payout row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    club_id: str
    payout_period: date
    unlimited_amount: Money
    credits_amount: Money
    total_amount: Money
    unlimited_visits: int
    credits_visits: int
    total_visits: int
    unique_users: int
    status: str
    stripe_transfer_id: Optional[str] = None
    transfer_attempted_at: Optional[datetime] = None
    transfer_completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int
    created_at: Optional[datetime] = None


class ClubPayoutsResponse(StrictModel):
    success: bool = True
    payouts: List[ClubPayoutResponse] = Field(default_factory=list)


class PayoutSummary(StrictModel):
    period: date
    total_clubs: int
    total_amount: Money
    unlimited_amount: Money
    credits_amount: Money
    total_visits: int
    unique_users: int
    pending: int
    processing: int
    paid: int
    failed: int


class PayoutSummaryResponse(StrictModel):
    success: bool = True
    summary: PayoutSummary
