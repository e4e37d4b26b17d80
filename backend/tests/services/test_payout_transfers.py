"""
Tests for PayoutService.send_transfers.

The transfer rail is the FakeTransferClient from conftest; every scenario
checks both the batch report and the persisted payout row.
"""

from datetime import date
from decimal import Decimal
import logging
from unittest.mock import patch

import pytest

from fitpass.core.constants import NO_PENDING_PAYOUTS_MESSAGE, ZERO_AMOUNT_PAYOUT_MESSAGE
from fitpass.core.enums import PayoutStatus
from fitpass.core.exceptions import RepositoryException
from fitpass.services.payout_service import PayoutService

PERIOD = date(2024, 5, 1)


@pytest.fixture
def service(db, transfer_client):
    return PayoutService(db, transfer_client=transfer_client)


class TestSendTransfers:
    def test_successful_transfer_marks_paid(self, db, service, transfer_client, create_club, create_payout):
        club = create_club(name="Club C", stripe_account_id="acct_c")
        payout = create_payout(club, total_amount=Decimal("3350"))

        batch = service.send_transfers("2024-05-01")

        assert batch.attempted == 1
        assert batch.succeeded == 1
        assert batch.failed == 0
        outcome = batch.results[0]
        assert outcome.status == "paid"
        assert outcome.stripe_transfer_id == "tr_1"

        request = transfer_client.requests[0]
        assert request.amount_minor == 335000
        assert request.currency == "sek"
        assert request.destination == "acct_c"
        assert request.idempotency_key == f"club-payout:{payout.id}:0"
        assert request.description == "Payout for 2024-05-01 - Club C"
        assert request.metadata["payout_id"] == payout.id
        assert request.metadata["club_id"] == club.id
        assert request.metadata["payout_period"] == "2024-05-01"

        db.refresh(payout)
        assert payout.status == PayoutStatus.PAID.value
        assert payout.stripe_transfer_id == "tr_1"
        assert payout.error_message is None
        assert payout.transfer_attempted_at is not None
        assert payout.transfer_completed_at is not None

    def test_second_run_transfers_nothing(self, service, transfer_client, create_club, create_payout):
        create_payout(create_club())

        service.send_transfers(PERIOD)
        second = service.send_transfers(PERIOD)

        assert second.attempted == 0
        assert second.message == NO_PENDING_PAYOUTS_MESSAGE
        assert len(transfer_client.requests) == 1

    def test_failure_leaves_payout_pending_for_retry(self, db, service, transfer_client, create_club, create_payout):
        payout = create_payout(create_club())
        transfer_client.always_fail = True

        batch = service.send_transfers(PERIOD)

        assert batch.attempted == 1
        assert batch.failed == 1
        assert batch.results[0].status == "pending"
        assert batch.results[0].retry_count == 1
        assert batch.results[0].error == "Insufficient funds in platform balance"
        db.refresh(payout)
        assert payout.status == PayoutStatus.PENDING.value
        assert payout.retry_count == 1
        assert payout.error_message == "Insufficient funds in platform balance"

    def test_three_failures_mark_payout_failed(self, db, service, transfer_client, create_club, create_payout):
        payout = create_payout(create_club())
        transfer_client.always_fail = True

        for _ in range(3):
            service.send_transfers(PERIOD)
        fourth = service.send_transfers(PERIOD)

        db.refresh(payout)
        assert payout.status == PayoutStatus.FAILED.value
        assert payout.retry_count == 3
        assert fourth.attempted == 0
        # Each attempt uses a fresh idempotency key
        assert [r.idempotency_key for r in transfer_client.requests] == [
            f"club-payout:{payout.id}:{n}" for n in range(3)
        ]

    def test_retry_after_failure_can_succeed(self, db, service, transfer_client, create_club, create_payout):
        payout = create_payout(create_club())
        transfer_client.always_fail = True
        service.send_transfers(PERIOD)

        transfer_client.always_fail = False
        batch = service.send_transfers(PERIOD)

        assert batch.succeeded == 1
        db.refresh(payout)
        assert payout.status == "paid"
        assert payout.retry_count == 1
        assert payout.error_message is None

    def test_zero_amount_skips_transfer_rail(self, db, service, transfer_client, create_club, create_payout):
        payout = create_payout(create_club(), total_amount=Decimal("0"))

        batch = service.send_transfers(PERIOD)

        assert transfer_client.requests == []
        assert batch.attempted == 1
        assert batch.succeeded == 1
        db.refresh(payout)
        assert payout.status == PayoutStatus.PAID.value
        assert payout.error_message == ZERO_AMOUNT_PAYOUT_MESSAGE
        assert payout.stripe_transfer_id is None

    @pytest.mark.parametrize(
        "club_kwargs,reason",
        [
            ({"stripe_account_id": None}, "Club has no Stripe account"),
            ({"payouts_enabled": False}, "Stripe payouts are not enabled for this club"),
        ],
    )
    def test_clubs_that_cannot_receive_are_skipped(
        self, db, service, transfer_client, create_club, create_payout, club_kwargs, reason
    ):
        payout = create_payout(create_club(**club_kwargs))

        batch = service.send_transfers(PERIOD)

        assert batch.attempted == 0
        assert batch.failed == 0
        assert batch.skipped[0].reason == reason
        assert batch.skipped[0].payout_id == payout.id
        assert transfer_client.requests == []
        db.refresh(payout)
        assert payout.status == PayoutStatus.PENDING.value
        assert payout.retry_count == 0

    def test_one_club_failure_does_not_stop_others(self, db, service, transfer_client, create_club, create_payout):
        bad = create_payout(create_club(name="Bad", stripe_account_id="acct_bad"), total_amount=Decimal("5000"))
        good = create_payout(create_club(name="Good", stripe_account_id="acct_good"), total_amount=Decimal("100"))
        transfer_client.fail_for = {"acct_bad": "No such destination: acct_bad"}

        batch = service.send_transfers(PERIOD)

        assert batch.attempted == 2
        assert batch.succeeded == 1
        assert batch.failed == 1
        db.refresh(bad)
        db.refresh(good)
        assert bad.status == "pending"
        assert bad.error_message == "No such destination: acct_bad"
        assert good.status == "paid"

    def test_club_filter(self, service, transfer_client, create_club, create_payout):
        create_payout(create_club(stripe_account_id="acct_1"))
        wanted = create_club(stripe_account_id="acct_2")
        create_payout(wanted)

        batch = service.send_transfers(PERIOD, club_ids=[wanted.id])

        assert batch.attempted == 1
        assert [r.destination for r in transfer_client.requests] == ["acct_2"]

    def test_empty_club_filter_pays_every_club(self, service, transfer_client, create_club, create_payout):
        create_payout(create_club(stripe_account_id="acct_1"))
        create_payout(create_club(stripe_account_id="acct_2"))

        batch = service.send_transfers(PERIOD, club_ids=[])

        assert batch.attempted == 2
        assert sorted(r.destination for r in transfer_client.requests) == ["acct_1", "acct_2"]

    def test_claim_lost_to_concurrent_run_is_skipped(self, service, transfer_client, create_club, create_payout):
        create_payout(create_club())

        with patch.object(service.payout_repository, "claim_for_transfer", return_value=False):
            batch = service.send_transfers(PERIOD)

        assert batch.attempted == 0
        assert batch.skipped[0].reason == "Already claimed by another transfer run"
        assert transfer_client.requests == []

    def test_database_error_is_isolated_per_club(self, db, service, transfer_client, create_club, create_payout):
        first = create_payout(create_club(stripe_account_id="acct_1"), total_amount=Decimal("900"))
        second = create_payout(create_club(stripe_account_id="acct_2"), total_amount=Decimal("100"))
        original_claim = service.payout_repository.claim_for_transfer

        def flaky_claim(payout_id, attempted_at=None):
            if payout_id == first.id:
                raise RepositoryException("Failed to claim payout: connection reset")
            return original_claim(payout_id, attempted_at)

        with patch.object(service.payout_repository, "claim_for_transfer", side_effect=flaky_claim):
            batch = service.send_transfers(PERIOD)

        assert batch.attempted == 2
        assert batch.failed == 1
        assert batch.succeeded == 1
        assert batch.results[0].error == "Failed to claim payout: connection reset"
        db.refresh(first)
        db.refresh(second)
        assert first.status == "pending"
        assert second.status == "paid"

    def test_unrecorded_success_is_logged_critical(
        self, db, service, transfer_client, create_club, create_payout, caplog
    ):
        payout = create_payout(create_club())
        original_update = service.payout_repository.update_payout_status

        def failing_update(payout_id, **fields):
            if fields.get("stripe_transfer_id"):
                raise RepositoryException("Failed to update payout: lock timeout")
            return original_update(payout_id, **fields)

        with caplog.at_level(logging.CRITICAL):
            with patch.object(service.payout_repository, "update_payout_status", side_effect=failing_update):
                batch = service.send_transfers(PERIOD)

        assert batch.failed == 1
        assert len(transfer_client.requests) == 1
        assert "could not be marked paid" in caplog.text
        db.refresh(payout)
        # Left processing so the next run cannot pay it twice
        assert payout.status == PayoutStatus.PROCESSING.value


class TestPayoutQueries:
    def test_club_history(self, service, create_club, create_payout):
        club = create_club()
        for month in (3, 4, 5):
            create_payout(club, period=date(2024, month, 1))

        payouts = service.get_club_payouts(club.id, limit=2)

        assert [p.payout_period for p in payouts] == [date(2024, 5, 1), date(2024, 4, 1)]

    @pytest.mark.parametrize("limit", [0, 101])
    def test_club_history_limit_bounds(self, service, limit):
        from fitpass.core.exceptions import ValidationException

        with pytest.raises(ValidationException) as exc_info:
            service.get_club_payouts("club", limit=limit)
        assert exc_info.value.code == "INVALID_LIMIT"

    def test_summary(self, service, create_club, create_payout):
        create_payout(create_club(), total_amount=Decimal("100"))
        create_payout(create_club(), total_amount=Decimal("50"), status=PayoutStatus.PAID)

        summary = service.get_payout_summary("2024-05-01")

        assert summary["total_clubs"] == 2
        assert summary["total_amount"] == Decimal("150")
        assert summary["pending"] == 1
        assert summary["paid"] == 1

    def test_summary_requires_period(self, service):
        from fitpass.core.exceptions import ValidationException

        with pytest.raises(ValidationException):
            service.get_payout_summary(None)
