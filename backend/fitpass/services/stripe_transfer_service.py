"""
Stripe Connect transfer client for club payouts.

The payout executor depends on the TransferClient protocol; production
uses StripeTransferClient, tests pass a fake.
"""

from dataclasses import dataclass, field
import logging
from typing import Dict, Optional, Protocol

import stripe

from ..core.config import settings
from ..core.exceptions import TransferError

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferRequest:
    amount_minor: int
    currency: str
    destination: str
    description: str
    idempotency_key: str
    transfer_group: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class TransferClient(Protocol):
    def create_transfer(self, request: TransferRequest) -> str:
        """Execute the transfer and return the provider transfer id, or raise TransferError."""
        ...


class StripeTransferClient:
    """Creates Stripe Connect transfers from the platform balance to a club account."""

    def __init__(self) -> None:
        self.stripe_configured = False
        if settings.stripe_configured:
            stripe.api_key = settings.stripe_secret_key.get_secret_value()
            stripe.max_network_retries = settings.stripe_max_network_retries
            try:
                stripe.default_http_client = stripe.RequestsClient(
                    timeout=settings.stripe_timeout_seconds
                )
            except Exception as exc:
                # Non-fatal if client customization isn't available
                logger.warning("Could not set Stripe HTTP timeout: %s", exc)
            self.stripe_configured = True
        else:
            logger.warning("Stripe secret key not configured - club transfers will fail")

    def create_transfer(self, request: TransferRequest) -> str:
        if not self.stripe_configured:
            raise TransferError(
                "Stripe service not configured. Please check STRIPE_SECRET_KEY environment variable.",
                stripe_code="not_configured",
            )
        try:
            transfer = stripe.Transfer.create(  # type: ignore[attr-defined]
                amount=request.amount_minor,
                currency=request.currency,
                destination=request.destination,
                description=request.description,
                transfer_group=request.transfer_group,
                metadata=request.metadata,
                idempotency_key=request.idempotency_key,
            )
        except stripe.StripeError as exc:
            logger.error(
                "Stripe error creating club transfer: %s",
                str(exc),
                extra={
                    "destination": request.destination,
                    "amount_minor": request.amount_minor,
                    "idempotency_key": request.idempotency_key,
                },
            )
            raise TransferError(
                getattr(exc, "user_message", None) or str(exc) or "Stripe transfer failed",
                stripe_code=getattr(exc, "code", None),
            ) from exc
        except Exception as exc:
            logger.error(f"Error creating club transfer: {str(exc)}")
            raise TransferError(f"Failed to create transfer: {str(exc)}") from exc

        transfer_id = getattr(transfer, "id", None)
        if not transfer_id:
            raise TransferError("Stripe returned a transfer without an id")
        logger.info(
            "Created club transfer",
            extra={
                "transfer_id": transfer_id,
                "destination": request.destination,
                "amount_minor": request.amount_minor,
            },
        )
        return str(transfer_id)
