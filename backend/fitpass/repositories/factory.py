# backend/fitpass/repositories/factory.py
"""
Repository Factory for the FitPass payouts service.

Centralizes repository construction so services depend on one seam that
tests can patch.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .club_repository import ClubRepository
    from .member_repository import MemberRepository
    from .payout_repository import PayoutRepository
    from .usage_repository import UsageRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_payout_repository(db: Session) -> "PayoutRepository":
        """Create repository for club payout rows."""
        from .payout_repository import PayoutRepository

        return PayoutRepository(db)

    @staticmethod
    def create_usage_repository(db: Session) -> "UsageRepository":
        """Create repository for subscription usage and visits."""
        from .usage_repository import UsageRepository

        return UsageRepository(db)

    @staticmethod
    def create_club_repository(db: Session) -> "ClubRepository":
        from .club_repository import ClubRepository

        return ClubRepository(db)

    @staticmethod
    def create_member_repository(db: Session) -> "MemberRepository":
        from .member_repository import MemberRepository

        return MemberRepository(db)
