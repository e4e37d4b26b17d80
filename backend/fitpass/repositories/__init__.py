# backend/fitpass/repositories/__init__.py
"""
Repository layer for the FitPass payouts service.

Key Components:
- BaseRepository: generic data access with RepositoryException translation
- RepositoryFactory: construction seam used by services
- PayoutRepository: monthly payout upsert, claim and status updates
- UsageRepository: subscription usage counters and visit audit rows
- ClubRepository / MemberRepository: payees and member credit balances

Usage:
    from fitpass.repositories import RepositoryFactory

    repository = RepositoryFactory.create_payout_repository(db)
    pending = repository.get_pending_payouts(period)
"""

from .base_repository import BaseRepository
from .club_repository import ClubRepository
from .factory import RepositoryFactory
from .member_repository import MemberRepository
from .payout_repository import PayoutRepository, UpsertOutcome
from .usage_repository import UsageRepository

__all__ = [
    "BaseRepository",
    "RepositoryFactory",
    "PayoutRepository",
    "UpsertOutcome",
    "UsageRepository",
    "ClubRepository",
    "MemberRepository",
]
