# backend/fitpass/tasks/__init__.py
"""
Celery tasks package for FitPass payouts.

- generate_monthly_payouts: month-end payout calculation
- send_payout_transfers: Stripe Connect transfers for pending payouts
"""

from fitpass.tasks.celery_app import BaseTask, celery_app
from fitpass.tasks.payout_tasks import generate_monthly_payouts, send_payout_transfers

__all__ = [
    "BaseTask",
    "celery_app",
    "generate_monthly_payouts",
    "send_payout_transfers",
]
