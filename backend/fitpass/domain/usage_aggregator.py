"""Grouping of monthly usage rows by club and by member."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set

from ..core.enums import SubscriptionType


class UsageLike(Protocol):
    """Attributes the engine reads from a usage row (ORM row or UsageRecord)."""

    user_id: str
    club_id: str
    subscription_period: date
    subscription_type: str
    visit_count: int
    unique_visit: bool


@dataclass(frozen=True)
class UsageRecord:
    user_id: str
    club_id: str
    subscription_period: date
    subscription_type: str
    visit_count: int = 0
    unique_visit: bool = False


@dataclass(frozen=True)
class GymVisit:
    club_id: str
    visit_count: int
    is_unique: bool


@dataclass
class UserMonthlyUsage:
    user_id: str
    subscription_type: str
    unique_gyms_visited: int
    gym_visits: List[GymVisit] = field(default_factory=list)
    has_mixed_subscription_types: bool = False


def subscription_type_value(value: object) -> str:
    """Plain string form of a plan type, whether stored as enum or text."""
    return value.value if isinstance(value, SubscriptionType) else str(value)


def aggregate_by_club(
    records: Iterable[UsageLike],
    clubs: Optional[Mapping[str, object]] = None,
) -> Dict[str, List[UsageLike]]:
    """
    Group usage rows by club id, preserving input order within each club.

    When ``clubs`` is given, rows for club ids missing from it are dropped;
    those are clubs that were deleted after the usage was recorded.
    """
    grouped: Dict[str, List[UsageLike]] = {}
    for record in records:
        if clubs is not None and record.club_id not in clubs:
            continue
        grouped.setdefault(record.club_id, []).append(record)
    return grouped


def get_user_monthly_usage(
    user_id: str, period: date, all_records: Iterable[UsageLike]
) -> UserMonthlyUsage:
    """
    Summarize one member's usage across every club for a period.

    ``unique_gyms_visited`` counts rows flagged as unique visits. The
    subscription type is taken from the first matching row; members with no
    rows default to credits.
    """
    rows = [
        r for r in all_records if r.user_id == user_id and r.subscription_period == period
    ]
    types = {subscription_type_value(r.subscription_type) for r in rows}
    subscription_type = rows[0].subscription_type if rows else SubscriptionType.CREDITS.value
    return UserMonthlyUsage(
        user_id=user_id,
        subscription_type=subscription_type_value(subscription_type),
        unique_gyms_visited=sum(1 for r in rows if r.unique_visit),
        gym_visits=[
            GymVisit(club_id=r.club_id, visit_count=r.visit_count, is_unique=bool(r.unique_visit))
            for r in rows
        ],
        has_mixed_subscription_types=len(types) > 1,
    )


def build_unique_gyms_index(records: Iterable[UsageLike], period: date) -> Dict[str, int]:
    """Map user id to unique gyms visited in ``period``, in a single pass."""
    index: Dict[str, int] = defaultdict(int)
    for record in records:
        if record.subscription_period != period:
            continue
        index[record.user_id] += 1 if record.unique_visit else 0
    return dict(index)


def find_mixed_subscription_users(records: Iterable[UsageLike]) -> Dict[str, Set[str]]:
    """
    Return members billed under more than one plan type within the same period.

    A member holds one plan per month, so any hit here is an upstream data
    error that operators need to look at.
    """
    types_by_key: Dict[tuple[str, date], Set[str]] = defaultdict(set)
    for record in records:
        types_by_key[(record.user_id, record.subscription_period)].add(
            subscription_type_value(record.subscription_type)
        )
    mixed: Dict[str, Set[str]] = {}
    for (user_id, _period), types in types_by_key.items():
        if len(types) > 1:
            mixed.setdefault(user_id, set()).update(types)
    return mixed
