"""
Database models for the FitPass payouts service.

- Club / Member: payees and the credit balance used by visit logging
- SubscriptionUsage / Visit: usage input to the payout engine
- ClubPayout: persisted monthly payout per club
"""

from .club import Club, Member
from .payout import ClubPayout
from .usage import SubscriptionUsage, Visit

__all__ = [
    "Club",
    "ClubPayout",
    "Member",
    "SubscriptionUsage",
    "Visit",
]
