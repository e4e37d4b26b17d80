"""
Club payout model.

One row per club and billing period (table ``payouts_to_clubs``). Rows are
written by the monthly calculation and advanced through
pending -> processing -> paid | pending (retry) | failed by the transfer run.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.enums import PayoutStatus
from ..database import Base

if TYPE_CHECKING:
    from .club import Club


class ClubPayout(Base):
    """Persisted monthly payout for a club."""

    __tablename__ = "payouts_to_clubs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    club_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payout_period: Mapped[date] = mapped_column(Date, nullable=False, comment="First of month")

    # Payout breakdown (SEK)
    unlimited_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    credits_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    # Visit statistics
    unlimited_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credits_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Stripe transfer info
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayoutStatus.PENDING.value, index=True
    )
    stripe_transfer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transfer_attempted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    transfer_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Error handling
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    club: Mapped["Club"] = relationship("Club", back_populates="payouts")

    __table_args__ = (
        UniqueConstraint("club_id", "payout_period", name="uq_payouts_to_clubs_club_period"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClubPayout(club_id={self.club_id}, period={self.payout_period}, "
            f"total={self.total_amount}, status={self.status})>"
        )
