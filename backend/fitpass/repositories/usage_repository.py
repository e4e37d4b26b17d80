# backend/fitpass/repositories/usage_repository.py
"""
Repository for usage input: monthly subscription counters and visit audit rows.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..core.periods import period_bounds
from ..models.usage import SubscriptionUsage, Visit
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UsageRepository(BaseRepository[SubscriptionUsage]):
    """Data access for ``subscription_usage`` and ``visits``."""

    def __init__(self, db: Session):
        super().__init__(db, SubscriptionUsage)

    def get_usage_for_period(
        self, period: date, club_ids: Optional[Iterable[str]] = None
    ) -> List[SubscriptionUsage]:
        """All usage rows for ``period``, optionally limited to some clubs."""
        try:
            stmt = (
                select(SubscriptionUsage)
                .where(SubscriptionUsage.subscription_period == period)
                .order_by(SubscriptionUsage.club_id, SubscriptionUsage.user_id)
            )
            ids = list(club_ids or [])
            if ids:
                stmt = stmt.where(SubscriptionUsage.club_id.in_(ids))
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading usage for {period}: {str(e)}")
            raise RepositoryException(f"Failed to load usage: {str(e)}")

    def get_user_usage(self, user_id: str, period: date) -> List[SubscriptionUsage]:
        """Every usage row a member has in ``period`` across all clubs."""
        try:
            stmt = select(SubscriptionUsage).where(
                SubscriptionUsage.user_id == user_id,
                SubscriptionUsage.subscription_period == period,
            )
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading usage for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load user usage: {str(e)}")

    def get_visits_for_period(
        self, period: date, club_ids: Optional[Iterable[str]] = None
    ) -> List[Visit]:
        try:
            start, end = period_bounds(period)
            stmt = (
                select(Visit)
                .where(Visit.created_at >= start, Visit.created_at < end)
                .order_by(Visit.created_at)
            )
            ids = list(club_ids or [])
            if ids:
                stmt = stmt.where(Visit.club_id.in_(ids))
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading visits for {period}: {str(e)}")
            raise RepositoryException(f"Failed to load visits: {str(e)}")

    def record_usage(
        self, user_id: str, club_id: str, period: date, subscription_type: str
    ) -> Tuple[SubscriptionUsage, bool]:
        """
        Count one visit on the member's usage row for this club and period.

        Creates the row on the first visit (flagged as unique) and increments
        ``visit_count`` in SQL otherwise. Returns the row and whether it was
        created.
        """
        existing = self.find_one_by(
            user_id=user_id,
            club_id=club_id,
            subscription_period=period,
            subscription_type=subscription_type,
        )
        if existing is None:
            try:
                with self.db.begin_nested():
                    usage = SubscriptionUsage(
                        user_id=user_id,
                        club_id=club_id,
                        subscription_period=period,
                        subscription_type=subscription_type,
                        visit_count=1,
                        unique_visit=True,
                    )
                    self.db.add(usage)
                return usage, True
            except IntegrityError:
                # Concurrent first visit created the row; fall through to increment
                existing = self.find_one_by(
                    user_id=user_id,
                    club_id=club_id,
                    subscription_period=period,
                    subscription_type=subscription_type,
                )
                if existing is None:
                    raise RepositoryException("Usage row vanished after insert conflict")
            except SQLAlchemyError as e:
                self.logger.error(f"Error creating usage row: {str(e)}")
                raise RepositoryException(f"Failed to record usage: {str(e)}")

        try:
            self.db.execute(
                update(SubscriptionUsage)
                .where(SubscriptionUsage.id == existing.id)
                .values(visit_count=SubscriptionUsage.visit_count + 1),
                execution_options={"synchronize_session": False},
            )
            self.db.flush()
            self.db.refresh(existing)
            return existing, False
        except SQLAlchemyError as e:
            self.logger.error(f"Error incrementing usage {existing.id}: {str(e)}")
            raise RepositoryException(f"Failed to record usage: {str(e)}")

    def create_visit(self, **kwargs) -> Visit:
        try:
            visit = Visit(**kwargs)
            self.db.add(visit)
            self.db.flush()
            return visit
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating visit: {str(e)}")
            raise RepositoryException(f"Failed to create visit: {str(e)}")
