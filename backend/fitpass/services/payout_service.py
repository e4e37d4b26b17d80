# backend/fitpass/services/payout_service.py
"""
Payout Service for the FitPass payouts service.

Orchestrates the monthly club payout cycle:
- generate_monthly_payouts: calculate every club's payout from the period's
  usage and persist it idempotently
- send_transfers: pay pending rows through Stripe Connect with per-club
  isolation and bounded retries
- get_club_payouts / get_payout_summary: read-side views

Every club is its own unit of work. A failure for one club (transfer
rejected, database error) is recorded for that club and never stops the
rest of the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    DEFAULT_CLUB_PAYOUT_HISTORY,
    MAX_CLUB_PAYOUT_HISTORY,
    NO_PENDING_PAYOUTS_MESSAGE,
    NO_USAGE_MESSAGE,
    ZERO_AMOUNT_PAYOUT_MESSAGE,
)
from ..core.enums import PayoutStatus, UpsertMode
from ..core.exceptions import (
    RepositoryException,
    ServiceException,
    TransferError,
    ValidationException,
)
from ..core.periods import PeriodLike, parse_period
from ..domain.payout_calculator import ClubPayoutCalculation, calculate_all_club_payouts
from ..domain.payout_model import PayoutRates, to_minor_units
from ..domain.payout_validator import validate_payout_calculation
from ..domain.usage_aggregator import find_mixed_subscription_users
from ..models.payout import ClubPayout
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .stripe_transfer_service import StripeTransferClient, TransferClient, TransferRequest

logger = logging.getLogger(__name__)

MIXED_SUBSCRIPTION_WARNING = "Member has usage under more than one subscription type in this period"


@dataclass(frozen=True)
class GeneratedPayout:
    payout_id: str
    club_id: str
    club_name: str
    unlimited_amount: Decimal
    credits_amount: Decimal
    total_amount: Decimal
    unlimited_visits: int
    credits_visits: int
    total_visits: int
    unique_users: int
    status: str
    written: bool


@dataclass(frozen=True)
class SkippedClub:
    club_id: str
    reason: str
    club_name: Optional[str] = None
    payout_id: Optional[str] = None


@dataclass(frozen=True)
class DataWarning:
    user_id: str
    subscription_types: List[str]
    message: str = MIXED_SUBSCRIPTION_WARNING


@dataclass
class PayoutGenerationResult:
    period: date
    clubs_processed: int = 0
    total_amount: Decimal = Decimal("0")
    payouts: List[GeneratedPayout] = field(default_factory=list)
    skipped: List[SkippedClub] = field(default_factory=list)
    validation_errors: Dict[str, List[str]] = field(default_factory=dict)
    data_warnings: List[DataWarning] = field(default_factory=list)
    message: Optional[str] = None


@dataclass(frozen=True)
class TransferOutcome:
    payout_id: str
    club_id: str
    club_name: str
    amount: Decimal
    status: str
    stripe_transfer_id: Optional[str] = None
    error: Optional[str] = None
    retry_count: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == PayoutStatus.PAID.value


@dataclass
class TransferBatchResult:
    period: date
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[TransferOutcome] = field(default_factory=list)
    skipped: List[SkippedClub] = field(default_factory=list)
    message: Optional[str] = None


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PayoutService(BaseService):
    """Monthly club payout generation and transfer execution."""

    def __init__(
        self,
        db: Session,
        transfer_client: Optional[TransferClient] = None,
        rates: Optional[PayoutRates] = None,
    ):
        super().__init__(db)
        self.payout_repository = RepositoryFactory.create_payout_repository(db)
        self.usage_repository = RepositoryFactory.create_usage_repository(db)
        self.club_repository = RepositoryFactory.create_club_repository(db)
        self.transfer_client: TransferClient = transfer_client or StripeTransferClient()
        self.rates = rates or PayoutRates.from_settings()

    # --------------------------------------------------------------------- #
    # Generation
    # --------------------------------------------------------------------- #

    @BaseService.measure_operation("generate_monthly_payouts")
    def generate_monthly_payouts(
        self,
        period: PeriodLike = None,
        club_ids: Optional[Sequence[str]] = None,
        mode: UpsertMode = UpsertMode.RECALCULATE_ONLY,
    ) -> PayoutGenerationResult:
        """
        Calculate and persist payouts for ``period`` (default: previous month).

        Validation problems are logged and reported but do not block the
        write. Persistence errors abort that club only.
        """
        payout_period = parse_period(period)
        result = PayoutGenerationResult(period=payout_period)
        self.logger.info(
            "Generating club payouts",
            extra={"period": payout_period.isoformat(), "club_ids": club_ids, "mode": mode.value},
        )

        # Tiers depend on every gym a member used, so load the whole period
        # even when only some clubs are being paid.
        usage = self.usage_repository.get_usage_for_period(payout_period)
        if club_ids:
            wanted = set(club_ids)
            target_usage = [record for record in usage if record.club_id in wanted]
        else:
            target_usage = usage
        if not target_usage:
            result.message = NO_USAGE_MESSAGE
            self.logger.info("No usage data for %s", payout_period)
            return result

        for user_id, types in sorted(find_mixed_subscription_users(target_usage).items()):
            self.logger.warning(
                "Member %s has mixed subscription types in %s: %s",
                user_id,
                payout_period,
                ", ".join(sorted(types)),
            )
            result.data_warnings.append(DataWarning(user_id=user_id, subscription_types=sorted(types)))

        usage_club_ids = list(dict.fromkeys(record.club_id for record in target_usage))
        clubs = self.club_repository.get_by_ids(usage_club_ids)
        for missing_id in usage_club_ids:
            if missing_id not in clubs:
                self.logger.warning("Skipping usage for unknown club %s", missing_id)
                result.skipped.append(SkippedClub(club_id=missing_id, reason="Club not found"))

        visits = self.usage_repository.get_visits_for_period(payout_period, club_ids)
        calculations = calculate_all_club_payouts(
            payout_period, clubs, usage, visits, rates=self.rates
        )

        for calc in calculations:
            validation = validate_payout_calculation(calc)
            if not validation.valid:
                self.logger.error(
                    "Payout validation failed for club %s: %s",
                    calc.club_id,
                    "; ".join(validation.errors),
                    extra={"club_id": calc.club_id, "period": payout_period.isoformat()},
                )
                result.validation_errors[calc.club_id] = list(validation.errors)

            generated = self._persist_calculation(calc, mode, result)
            if generated is None:
                continue
            result.payouts.append(generated)
            result.total_amount += generated.total_amount

        result.clubs_processed = len(result.payouts)
        self.logger.info(
            "Generated %d club payouts for %s totalling %s",
            result.clubs_processed,
            payout_period,
            result.total_amount,
        )
        return result

    def _persist_calculation(
        self,
        calc: ClubPayoutCalculation,
        mode: UpsertMode,
        result: PayoutGenerationResult,
    ) -> Optional[GeneratedPayout]:
        try:
            with self.transaction():
                outcome = self.payout_repository.upsert_payout(calc, mode)
        except (RepositoryException, ServiceException) as exc:
            self.logger.error(
                "Failed to persist payout for club %s: %s",
                calc.club_id,
                str(exc),
                extra={"club_id": calc.club_id, "period": calc.period.isoformat()},
            )
            prometheus_metrics.inc_payout_generated("error")
            result.skipped.append(
                SkippedClub(
                    club_id=calc.club_id,
                    club_name=calc.club_name,
                    reason=f"Failed to save payout: {str(exc)}",
                )
            )
            return None

        if outcome.created:
            prometheus_metrics.inc_payout_generated("created")
        elif outcome.written:
            prometheus_metrics.inc_payout_generated("updated")
        else:
            prometheus_metrics.inc_payout_generated("protected")

        payout = outcome.payout
        # A protected row reports what is stored, not the recalculation
        source: Any = calc if outcome.written else payout
        return GeneratedPayout(
            payout_id=payout.id,
            club_id=calc.club_id,
            club_name=calc.club_name,
            unlimited_amount=source.unlimited_amount,
            credits_amount=source.credits_amount,
            total_amount=source.total_amount,
            unlimited_visits=source.unlimited_visits,
            credits_visits=source.credits_visits,
            total_visits=source.total_visits,
            unique_users=source.unique_users,
            status=payout.status,
            written=outcome.written,
        )

    # --------------------------------------------------------------------- #
    # Transfers
    # --------------------------------------------------------------------- #

    @BaseService.measure_operation("send_transfers")
    def send_transfers(
        self, period: PeriodLike = None, club_ids: Optional[Iterable[str]] = None
    ) -> TransferBatchResult:
        """
        Transfer every pending payout for ``period`` (default: previous month).

        Rows are processed one at a time and each commits on its own, so a
        crash mid-batch leaves finished clubs paid and the rest pending or
        processing.
        """
        payout_period = parse_period(period)
        batch = TransferBatchResult(period=payout_period)

        pending = self.payout_repository.get_pending_payouts(payout_period, club_ids)
        if not pending:
            batch.message = NO_PENDING_PAYOUTS_MESSAGE
            self.logger.info("No pending payouts for %s", payout_period)
            return batch

        for payout in pending:
            try:
                outcome = self._process_payout(payout, payout_period)
            except (RepositoryException, ServiceException) as exc:
                self.db.rollback()
                self.logger.error(
                    "Database error while paying club %s: %s",
                    payout.club_id,
                    str(exc),
                    extra={"payout_id": payout.id, "club_id": payout.club_id},
                )
                prometheus_metrics.inc_payout_transfer("error")
                outcome = TransferOutcome(
                    payout_id=payout.id,
                    club_id=payout.club_id,
                    club_name=payout.club.name if payout.club else "",
                    amount=payout.total_amount,
                    status=PayoutStatus.FAILED.value,
                    error=str(exc),
                    retry_count=payout.retry_count,
                )

            if isinstance(outcome, SkippedClub):
                batch.skipped.append(outcome)
                continue

            batch.attempted += 1
            batch.results.append(outcome)
            if outcome.succeeded:
                batch.succeeded += 1
            else:
                batch.failed += 1

        self.logger.info(
            "Transfer run for %s: %d attempted, %d succeeded, %d failed, %d skipped",
            payout_period,
            batch.attempted,
            batch.succeeded,
            batch.failed,
            len(batch.skipped),
        )
        return batch

    def _process_payout(
        self, payout: ClubPayout, period: date
    ) -> Union[TransferOutcome, SkippedClub]:
        club = payout.club
        club_name = club.name if club is not None else ""

        if club is None or not club.can_receive_transfers:
            prometheus_metrics.inc_payout_transfer("skipped")
            if club is None or not club.stripe_account_id:
                reason = "Club has no Stripe account"
            else:
                reason = "Stripe payouts are not enabled for this club"
            return SkippedClub(
                club_id=payout.club_id,
                club_name=club_name,
                payout_id=payout.id,
                reason=reason,
            )

        retry_count = payout.retry_count
        attempted_at = _now_utc()
        with self.transaction():
            claimed = self.payout_repository.claim_for_transfer(payout.id, attempted_at)
        if not claimed:
            return SkippedClub(
                club_id=payout.club_id,
                club_name=club_name,
                payout_id=payout.id,
                reason="Already claimed by another transfer run",
            )

        if payout.total_amount <= 0:
            with self.transaction():
                self.payout_repository.update_payout_status(
                    payout.id,
                    status=PayoutStatus.PAID,
                    error_message=ZERO_AMOUNT_PAYOUT_MESSAGE,
                    transfer_completed_at=_now_utc(),
                )
            prometheus_metrics.inc_payout_transfer("zero_amount")
            return TransferOutcome(
                payout_id=payout.id,
                club_id=payout.club_id,
                club_name=club_name,
                amount=Decimal("0"),
                status=PayoutStatus.PAID.value,
                retry_count=retry_count,
            )

        request = self._build_transfer_request(payout, club_name, period, retry_count)
        try:
            transfer_id = self.transfer_client.create_transfer(request)
        except TransferError as exc:
            return self._record_transfer_failure(payout, club_name, retry_count, exc)

        try:
            with self.transaction():
                self.payout_repository.update_payout_status(
                    payout.id,
                    status=PayoutStatus.PAID,
                    stripe_transfer_id=transfer_id,
                    error_message=None,
                    transfer_completed_at=_now_utc(),
                )
        except (RepositoryException, ServiceException):
            # Money has moved; the row stays processing until reconciled by hand
            self.logger.critical(
                "Transfer %s succeeded but payout %s could not be marked paid",
                transfer_id,
                payout.id,
            )
            raise

        prometheus_metrics.inc_payout_transfer("paid")
        self.logger.info(
            "Paid club %s",
            payout.club_id,
            extra={
                "payout_id": payout.id,
                "transfer_id": transfer_id,
                "amount_minor": request.amount_minor,
            },
        )
        return TransferOutcome(
            payout_id=payout.id,
            club_id=payout.club_id,
            club_name=club_name,
            amount=payout.total_amount,
            status=PayoutStatus.PAID.value,
            stripe_transfer_id=transfer_id,
            retry_count=retry_count,
        )

    def _build_transfer_request(
        self, payout: ClubPayout, club_name: str, period: date, retry_count: int
    ) -> TransferRequest:
        period_label = period.isoformat()
        return TransferRequest(
            amount_minor=to_minor_units(payout.total_amount),
            currency=settings.stripe_currency,
            destination=payout.club.stripe_account_id,
            description=f"Payout for {period_label} - {club_name}",
            transfer_group=f"club-payouts:{period_label}",
            idempotency_key=f"club-payout:{payout.id}:{retry_count}",
            metadata={
                "payout_id": payout.id,
                "payout_period": period_label,
                "club_id": payout.club_id,
                "club_name": club_name,
                "unlimited_amount": str(payout.unlimited_amount),
                "credits_amount": str(payout.credits_amount),
                "total_visits": str(payout.total_visits),
            },
        )

    def _record_transfer_failure(
        self, payout: ClubPayout, club_name: str, retry_count: int, exc: TransferError
    ) -> TransferOutcome:
        attempts = retry_count + 1
        exhausted = attempts >= settings.payout_max_transfer_attempts
        status = PayoutStatus.FAILED if exhausted else PayoutStatus.PENDING
        with self.transaction():
            self.payout_repository.update_payout_status(
                payout.id,
                status=status,
                retry_count=attempts,
                error_message=exc.message,
            )
        prometheus_metrics.inc_payout_transfer("failed" if exhausted else "retry")
        self.logger.error(
            "Transfer failed for club %s (attempt %d/%d): %s",
            payout.club_id,
            attempts,
            settings.payout_max_transfer_attempts,
            exc.message,
            extra={"payout_id": payout.id, "stripe_code": exc.stripe_code},
        )
        return TransferOutcome(
            payout_id=payout.id,
            club_id=payout.club_id,
            club_name=club_name,
            amount=payout.total_amount,
            status=status.value,
            error=exc.message,
            retry_count=attempts,
        )

    # --------------------------------------------------------------------- #
    # Queries
    # --------------------------------------------------------------------- #

    @BaseService.measure_operation("get_club_payouts")
    def get_club_payouts(
        self, club_id: str, limit: int = DEFAULT_CLUB_PAYOUT_HISTORY
    ) -> List[ClubPayout]:
        if limit < 1 or limit > MAX_CLUB_PAYOUT_HISTORY:
            raise ValidationException(
                f"limit must be between 1 and {MAX_CLUB_PAYOUT_HISTORY}",
                code="INVALID_LIMIT",
                details={"limit": limit},
            )
        return self.payout_repository.get_club_payouts(club_id, limit)

    @BaseService.measure_operation("get_payout_summary")
    def get_payout_summary(self, period: PeriodLike) -> Dict[str, Any]:
        if period is None:
            raise ValidationException("period is required", code="INVALID_PERIOD")
        return self.payout_repository.get_period_summary(parse_period(period))
