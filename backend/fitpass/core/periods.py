"""
Billing-period helpers.

A payout period is identified by the first day of a calendar month. All
helpers work in UTC so a scheduled run near midnight resolves the same
month regardless of the worker's local timezone.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from .exceptions import InvalidPeriodException

PeriodLike = Union[str, date, datetime, None]


def period_start(value: date | datetime) -> date:
    """Return the first day of the month containing ``value``."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return value.replace(day=1)


def previous_period(today: Optional[date] = None) -> date:
    """First day of the calendar month before ``today`` (defaults to now, UTC)."""
    reference = today or datetime.now(timezone.utc).date()
    last_of_previous = reference.replace(day=1) - timedelta(days=1)
    return last_of_previous.replace(day=1)


def parse_period(raw: PeriodLike, *, today: Optional[date] = None) -> date:
    """
    Normalize an optional period input.

    ``None`` and empty strings resolve to the previous calendar month.
    Strings must be ISO dates on the first of a month; anything else raises
    InvalidPeriodException.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return previous_period(today)
    if isinstance(raw, datetime):
        raw = raw.date()
    if isinstance(raw, date):
        parsed = raw
    else:
        try:
            parsed = date.fromisoformat(str(raw).strip())
        except ValueError as exc:
            raise InvalidPeriodException(raw) from exc
    if parsed.day != 1:
        raise InvalidPeriodException(raw)
    return parsed


def period_bounds(period: date) -> tuple[datetime, datetime]:
    """Return [start, end) UTC datetimes covering the period's month."""
    start = datetime.combine(period, time.min, tzinfo=timezone.utc)
    if period.month == 12:
        next_month = date(period.year + 1, 1, 1)
    else:
        next_month = date(period.year, period.month + 1, 1)
    end = datetime.combine(next_month, time.min, tzinfo=timezone.utc)
    return start, end
