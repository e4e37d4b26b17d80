# backend/fitpass/repositories/payout_repository.py
"""
Repository for club payout rows.

Implements the idempotent monthly upsert, the pending fetch used by the
transfer run, the atomic pending -> processing claim, and status updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Optional, cast

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
import ulid

from ..core.constants import DEFAULT_CLUB_PAYOUT_HISTORY, MAX_ERROR_MESSAGE_LENGTH
from ..core.enums import PayoutStatus, UpsertMode
from ..core.exceptions import RepositoryException
from ..domain.payout_calculator import ClubPayoutCalculation
from ..models.payout import ClubPayout
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _amount_fields(calc: ClubPayoutCalculation) -> Dict[str, Any]:
    return {
        "unlimited_amount": calc.unlimited_amount,
        "credits_amount": calc.credits_amount,
        "total_amount": calc.total_amount,
        "unlimited_visits": calc.unlimited_visits,
        "credits_visits": calc.credits_visits,
        "total_visits": calc.total_visits,
        "unique_users": calc.unique_users,
    }


@dataclass(frozen=True)
class UpsertOutcome:
    """Result of writing one calculation; ``written`` is False when the row was protected."""

    payout: ClubPayout
    written: bool
    created: bool = False


class PayoutRepository(BaseRepository[ClubPayout]):
    """Data access for ``payouts_to_clubs``."""

    def __init__(self, db: Session):
        super().__init__(db, ClubPayout)
        self._dialect = self.dialect_name.lower()

    def _apply_eager_loading(self, query: Any) -> Any:
        return query.options(joinedload(ClubPayout.club))

    # ------------------------------------------------------------------ upsert
    def upsert_payout(
        self,
        calc: ClubPayoutCalculation,
        mode: UpsertMode = UpsertMode.RECALCULATE_ONLY,
    ) -> UpsertOutcome:
        """
        Insert or refresh the payout row for ``calc.club_id`` and ``calc.period``.

        Pending rows always take the new amounts. Rows that are processing,
        paid or failed are left untouched unless ``mode`` is RESET, which
        overwrites the amounts and reopens the row as pending with a fresh
        retry budget.
        """
        try:
            payout_id = str(ulid.ULID())
            values = {
                "id": payout_id,
                "club_id": calc.club_id,
                "payout_period": calc.period,
                "status": PayoutStatus.PENDING.value,
                "retry_count": 0,
                **_amount_fields(calc),
            }
            inserted = False
            if self._dialect == "postgresql":
                stmt = (
                    pg_insert(ClubPayout)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["club_id", "payout_period"])
                    .returning(ClubPayout.id)
                )
                inserted = self.db.execute(stmt).scalar_one_or_none() is not None
            else:
                stmt = insert(ClubPayout).values(**values)
                if self._dialect == "sqlite":
                    stmt = stmt.prefix_with("OR IGNORE")
                inserted = bool(getattr(self.db.execute(stmt), "rowcount", 0))

            if inserted:
                self.db.flush()
                row = cast(Optional[ClubPayout], self.db.get(ClubPayout, payout_id))
                if row is None:
                    raise RepositoryException("Inserted payout row could not be reloaded")
                return UpsertOutcome(payout=row, written=True, created=True)

            existing = self._get_for_update(calc.club_id, calc.period)
            if existing is None:
                raise RepositoryException("Payout row not found after upsert conflict")

            if existing.status != PayoutStatus.PENDING.value and mode != UpsertMode.RESET:
                self.logger.info(
                    "Keeping %s payout for club %s period %s",
                    existing.status,
                    calc.club_id,
                    calc.period,
                )
                return UpsertOutcome(payout=existing, written=False)

            for key, value in _amount_fields(calc).items():
                setattr(existing, key, value)
            if mode == UpsertMode.RESET:
                existing.status = PayoutStatus.PENDING.value
                existing.retry_count = 0
                existing.stripe_transfer_id = None
                existing.error_message = None
                existing.transfer_attempted_at = None
                existing.transfer_completed_at = None
            existing.updated_at = _now_utc()
            self.db.flush()
            return UpsertOutcome(payout=existing, written=True)
        except SQLAlchemyError as e:
            self.logger.error(f"Error upserting payout for club {calc.club_id}: {str(e)}")
            raise RepositoryException(f"Failed to upsert payout: {str(e)}")

    def _get_for_update(self, club_id: str, period: date) -> Optional[ClubPayout]:
        stmt = (
            select(ClubPayout)
            .where(ClubPayout.club_id == club_id, ClubPayout.payout_period == period)
            .execution_options(populate_existing=True)
        )
        if self._dialect == "postgresql":
            stmt = stmt.with_for_update()
        return cast(Optional[ClubPayout], self.db.execute(stmt).scalar_one_or_none())

    # ---------------------------------------------------------------- fetchers
    def get_pending_payouts(
        self, period: date, club_ids: Optional[Iterable[str]] = None
    ) -> List[ClubPayout]:
        """Pending rows for ``period`` with their club loaded, largest first."""
        try:
            stmt = (
                select(ClubPayout)
                .options(joinedload(ClubPayout.club))
                .where(ClubPayout.payout_period == period)
                .where(ClubPayout.status == PayoutStatus.PENDING.value)
                .order_by(ClubPayout.total_amount.desc(), ClubPayout.id.asc())
                .execution_options(populate_existing=True)
            )
            ids = list(club_ids or [])
            if ids:
                stmt = stmt.where(ClubPayout.club_id.in_(ids))
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching pending payouts for {period}: {str(e)}")
            raise RepositoryException(f"Failed to fetch pending payouts: {str(e)}")

    def get_club_payouts(
        self, club_id: str, limit: int = DEFAULT_CLUB_PAYOUT_HISTORY
    ) -> List[ClubPayout]:
        """Payout history for a club, newest period first."""
        try:
            stmt = (
                select(ClubPayout)
                .where(ClubPayout.club_id == club_id)
                .order_by(ClubPayout.payout_period.desc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching payouts for club {club_id}: {str(e)}")
            raise RepositoryException(f"Failed to fetch club payouts: {str(e)}")

    def get_period_summary(self, period: date) -> Dict[str, Any]:
        """Totals and per-status counts for every payout row in ``period``."""
        try:
            totals = self.db.execute(
                select(
                    func.count(ClubPayout.id),
                    func.coalesce(func.sum(ClubPayout.total_amount), 0),
                    func.coalesce(func.sum(ClubPayout.unlimited_amount), 0),
                    func.coalesce(func.sum(ClubPayout.credits_amount), 0),
                    func.coalesce(func.sum(ClubPayout.total_visits), 0),
                    func.coalesce(func.sum(ClubPayout.unique_users), 0),
                ).where(ClubPayout.payout_period == period)
            ).one()
            status_rows = self.db.execute(
                select(ClubPayout.status, func.count(ClubPayout.id))
                .where(ClubPayout.payout_period == period)
                .group_by(ClubPayout.status)
            ).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error summarizing payouts for {period}: {str(e)}")
            raise RepositoryException(f"Failed to summarize payouts: {str(e)}")

        by_status = {str(status): int(count) for status, count in status_rows}
        summary: Dict[str, Any] = {
            "period": period,
            "total_clubs": int(totals[0] or 0),
            "total_amount": Decimal(str(totals[1] or 0)),
            "unlimited_amount": Decimal(str(totals[2] or 0)),
            "credits_amount": Decimal(str(totals[3] or 0)),
            "total_visits": int(totals[4] or 0),
            "unique_users": int(totals[5] or 0),
        }
        for status in PayoutStatus:
            summary[status.value] = by_status.get(status.value, 0)
        return summary

    # ------------------------------------------------------------- state updates
    def claim_for_transfer(self, payout_id: str, attempted_at: Optional[datetime] = None) -> bool:
        """
        Move a row from pending to processing.

        Returns True only for the caller whose UPDATE matched; a concurrent
        run that already claimed the row gets False.
        """
        attempted = attempted_at or _now_utc()
        try:
            result = self.db.execute(
                update(ClubPayout)
                .where(ClubPayout.id == payout_id)
                .where(ClubPayout.status == PayoutStatus.PENDING.value)
                .values(
                    status=PayoutStatus.PROCESSING.value,
                    transfer_attempted_at=attempted,
                    updated_at=attempted,
                )
            )
            self.db.flush()
            return bool(getattr(result, "rowcount", 0))
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming payout {payout_id}: {str(e)}")
            raise RepositoryException(f"Failed to claim payout: {str(e)}")

    def update_payout_status(self, payout_id: str, **fields: Any) -> None:
        """Partial update of a payout row; unknown columns are rejected."""
        unknown = [name for name in fields if not hasattr(ClubPayout, name)]
        if unknown:
            raise RepositoryException(f"Unknown payout fields: {', '.join(sorted(unknown))}")
        if isinstance(fields.get("status"), PayoutStatus):
            fields["status"] = fields["status"].value
        if fields.get("error_message"):
            fields["error_message"] = fields["error_message"][:MAX_ERROR_MESSAGE_LENGTH]
        fields.setdefault("updated_at", _now_utc())
        try:
            self.db.execute(update(ClubPayout).where(ClubPayout.id == payout_id).values(**fields))
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating payout {payout_id}: {str(e)}")
            raise RepositoryException(f"Failed to update payout: {str(e)}")
