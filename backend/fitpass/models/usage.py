"""
Usage models feeding the payout engine.

SubscriptionUsage holds one counter row per member, club, month and plan
type; it is what payouts are calculated from. Visit is the per-check-in
audit trail and is never recomputed after it is written.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.enums import SubscriptionType
from ..database import Base


class SubscriptionUsage(Base):
    """Monthly visit counter per (member, club, period, subscription type)."""

    __tablename__ = "subscription_usage"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    club_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    subscription_period: Mapped[date] = mapped_column(Date, nullable=False, comment="First of month")
    subscription_type: Mapped[str] = mapped_column(String(20), nullable=False)
    visit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unique_visit: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="First visit by this member to this club in the period under this plan",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "club_id",
            "subscription_period",
            "subscription_type",
            name="uq_subscription_usage_user_club_period_type",
        ),
        Index("ix_subscription_usage_period_club", "subscription_period", "club_id"),
    )

    @property
    def subscription(self) -> SubscriptionType:
        return SubscriptionType(self.subscription_type)

    def __repr__(self) -> str:
        return (
            f"<SubscriptionUsage(user_id={self.user_id}, club_id={self.club_id}, "
            f"period={self.subscription_period}, type={self.subscription_type}, visits={self.visit_count})>"
        )


class Visit(Base):
    """Single check-in, with the amount attributed to the club at visit time."""

    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    club_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subscription_type: Mapped[str] = mapped_column(String(20), nullable=False)
    cost_to_club: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"), comment="Amount in SEK"
    )
    unique_monthly_visit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payout_processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Visit(user_id={self.user_id}, club_id={self.club_id}, cost={self.cost_to_club})>"
