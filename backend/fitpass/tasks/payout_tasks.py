"""
Celery tasks for the monthly club payout cycle.

Both tasks are safe to run more than once for the same month: generation
only refreshes pending payouts and transfers only pick up pending rows.
"""

from datetime import date, datetime, timedelta, timezone
import logging
from typing import (
    Any,
    Callable,
    List,
    Optional,
    ParamSpec,
    Protocol,
    TypedDict,
    TypeVar,
    cast,
)

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from fitpass.core.exceptions import DomainException
from fitpass.database import SessionLocal
from fitpass.services.payout_service import PayoutService
from fitpass.tasks.celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


class GenerationJobResults(TypedDict):
    skipped: bool
    period: Optional[str]
    clubs_processed: int
    total_amount: str
    validation_errors: int
    data_warnings: int
    processed_at: str


class TransferJobResults(TypedDict):
    skipped: bool
    period: Optional[str]
    attempted: int
    succeeded: int
    failed: int
    skipped_clubs: List[str]
    processed_at: str


def is_last_day_of_month(today: date) -> bool:
    return (today + timedelta(days=1)).day == 1


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


@typed_task(bind=True, max_retries=3, name="fitpass.tasks.payout_tasks.generate_monthly_payouts")
def generate_monthly_payouts(
    self: Any, period: Optional[str] = None, only_on_month_end: bool = False
) -> GenerationJobResults:
    """
    Calculate and store club payouts.

    Beat fires this on days 28-31; with ``only_on_month_end`` it does
    nothing except on the month's last day. ``period`` defaults to the
    previous month.
    """
    processed_at = datetime.now(timezone.utc).isoformat()
    if only_on_month_end and not is_last_day_of_month(_today_utc()):
        logger.info("Skipping payout generation: not the last day of the month")
        return {
            "skipped": True,
            "period": None,
            "clubs_processed": 0,
            "total_amount": "0",
            "validation_errors": 0,
            "data_warnings": 0,
            "processed_at": processed_at,
        }

    db: Session = SessionLocal()
    try:
        result = PayoutService(db).generate_monthly_payouts(period)
        if result.validation_errors:
            logger.warning(
                f"Payout generation for {result.period} had validation errors "
                f"for {len(result.validation_errors)} clubs"
            )
        logger.info(
            f"Payout generation completed: {result.clubs_processed} clubs, total {result.total_amount}"
        )
        return {
            "skipped": False,
            "period": result.period.isoformat(),
            "clubs_processed": result.clubs_processed,
            "total_amount": str(result.total_amount),
            "validation_errors": len(result.validation_errors),
            "data_warnings": len(result.data_warnings),
            "processed_at": processed_at,
        }
    except DomainException:
        # Bad input (e.g. malformed period) will not succeed on retry
        raise
    except Exception as exc:
        logger.error(f"Payout generation job failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()


@typed_task(bind=True, max_retries=3, name="fitpass.tasks.payout_tasks.send_payout_transfers")
def send_payout_transfers(
    self: Any, period: Optional[str] = None, only_on_month_end: bool = False
) -> TransferJobResults:
    """
    Transfer pending club payouts through Stripe Connect.

    Per-club failures are recorded on the payout rows and retried by the
    next run; only a failure of the run itself retries the task.
    """
    processed_at = datetime.now(timezone.utc).isoformat()
    if only_on_month_end and not is_last_day_of_month(_today_utc()):
        logger.info("Skipping payout transfers: not the last day of the month")
        return {
            "skipped": True,
            "period": None,
            "attempted": 0,
            "succeeded": 0,
            "failed": 0,
            "skipped_clubs": [],
            "processed_at": processed_at,
        }

    db: Session = SessionLocal()
    try:
        batch = PayoutService(db).send_transfers(period)
        if batch.failed > 0:
            logger.warning(f"Transfer job completed with {batch.failed} failures")
        logger.info(
            f"Transfer job completed: {batch.succeeded} succeeded, {batch.failed} failed"
        )
        return {
            "skipped": False,
            "period": batch.period.isoformat(),
            "attempted": batch.attempted,
            "succeeded": batch.succeeded,
            "failed": batch.failed,
            "skipped_clubs": [s.club_id for s in batch.skipped],
            "processed_at": processed_at,
        }
    except DomainException:
        raise
    except Exception as exc:
        logger.error(f"Transfer job failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()
