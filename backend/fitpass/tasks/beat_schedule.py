# backend/fitpass/tasks/beat_schedule.py
"""
Celery Beat schedule for the monthly payout cycle.

Both jobs fire on every day in ``payout_schedule_days`` (28-31 by default);
each task only acts on the last day of the month, so the pair
runs once per month at month end. Transfers follow generation by half an
hour.
"""

from typing import Any, Dict

from celery.schedules import crontab

from fitpass.core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        "generate-monthly-club-payouts": {
            "task": "fitpass.tasks.payout_tasks.generate_monthly_payouts",
            "schedule": crontab(
                hour=settings.payout_generation_hour,
                minute=settings.payout_generation_minute,
                day_of_month=settings.payout_schedule_days,
            ),
            "kwargs": {"only_on_month_end": True},
            "options": {"queue": "payouts"},
        },
        "send-club-payout-transfers": {
            "task": "fitpass.tasks.payout_tasks.send_payout_transfers",
            "schedule": crontab(
                hour=settings.payout_transfer_hour,
                minute=settings.payout_transfer_minute,
                day_of_month=settings.payout_schedule_days,
            ),
            "kwargs": {"only_on_month_end": True},
            "options": {"queue": "payouts"},
        },
    }
