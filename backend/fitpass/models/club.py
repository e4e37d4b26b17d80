"""
Club and member models.

Clubs are the payees of the payout engine; a club can only receive
transfers once it has a Stripe Connect account with payouts enabled.
Members are only modelled as far as their credit balance goes.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .payout import ClubPayout


class Club(Base):
    """Partner gym receiving monthly payouts."""

    __tablename__ = "clubs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    stripe_account_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    credits: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False, comment="Credits charged per visit"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    payouts: Mapped[List["ClubPayout"]] = relationship("ClubPayout", back_populates="club")

    @property
    def can_receive_transfers(self) -> bool:
        return bool(self.stripe_account_id) and bool(self.payouts_enabled)

    def __repr__(self) -> str:
        return f"<Club(id={self.id}, name={self.name}, payouts_enabled={self.payouts_enabled})>"


class Member(Base):
    """Member profile; only the credit balance matters to payouts."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, credits={self.credits})>"
