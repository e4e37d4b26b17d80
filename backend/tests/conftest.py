# backend/tests/conftest.py
"""
Pytest configuration for the payouts service.

Every test gets its own in-memory SQLite database, so services can commit
freely without leaking rows into the next test.
"""

import os
import sys

# Set test configuration BEFORE any fitpass imports
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CI"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ.setdefault("CELERY_BROKER_URL", "memory://")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fitpass import models  # noqa: F401
from fitpass.core.enums import PayoutStatus
from fitpass.core.exceptions import TransferError
from fitpass.database import Base, get_db
from fitpass.main import app
from fitpass.models.club import Club, Member
from fitpass.models.payout import ClubPayout
from fitpass.models.usage import SubscriptionUsage
from fitpass.services.stripe_transfer_service import TransferRequest

PERIOD = date(2024, 5, 1)


def _make_test_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT handling; emit BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="function")
def db():
    """Fresh database session backed by a private in-memory database."""
    engine = _make_test_engine()
    Base.metadata.create_all(bind=engine)
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(db: Session):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    # No context manager: the lifespan would create tables on the app engine
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


class FakeTransferClient:
    """Records transfer requests and answers from a script of outcomes."""

    def __init__(self, fail_for: Optional[Dict[str, str]] = None, always_fail: bool = False):
        self.requests: List[TransferRequest] = []
        self.fail_for = fail_for or {}
        self.always_fail = always_fail

    def create_transfer(self, request: TransferRequest) -> str:
        self.requests.append(request)
        if self.always_fail:
            raise TransferError("Insufficient funds in platform balance", stripe_code="balance_insufficient")
        if request.destination in self.fail_for:
            raise TransferError(self.fail_for[request.destination], stripe_code="account_invalid")
        return f"tr_{len(self.requests)}"


@pytest.fixture
def transfer_client() -> FakeTransferClient:
    return FakeTransferClient()


@pytest.fixture
def create_club(db: Session) -> Callable[..., Club]:
    def _create(
        name: str = "Test Club",
        stripe_account_id: Optional[str] = "acct_test",
        payouts_enabled: bool = True,
        credits: int = 2,
        club_id: Optional[str] = None,
    ) -> Club:
        club = Club(
            name=name,
            stripe_account_id=stripe_account_id,
            payouts_enabled=payouts_enabled,
            credits=credits,
        )
        if club_id:
            club.id = club_id
        db.add(club)
        db.commit()
        return club

    return _create


@pytest.fixture
def create_member(db: Session) -> Callable[..., Member]:
    def _create(credits: int = 10, member_id: Optional[str] = None) -> Member:
        member = Member(credits=credits)
        if member_id:
            member.id = member_id
        db.add(member)
        db.commit()
        return member

    return _create


@pytest.fixture
def add_usage(db: Session) -> Callable[..., SubscriptionUsage]:
    def _add(
        user_id: str,
        club_id: str,
        subscription_type: str = "unlimited",
        visit_count: int = 1,
        unique_visit: bool = True,
        period: date = PERIOD,
    ) -> SubscriptionUsage:
        usage = SubscriptionUsage(
            user_id=user_id,
            club_id=club_id,
            subscription_period=period,
            subscription_type=subscription_type,
            visit_count=visit_count,
            unique_visit=unique_visit,
        )
        db.add(usage)
        db.commit()
        return usage

    return _add


@pytest.fixture
def create_payout(db: Session) -> Callable[..., ClubPayout]:
    def _create(
        club: Club,
        total_amount: Decimal = Decimal("1000"),
        status: PayoutStatus = PayoutStatus.PENDING,
        retry_count: int = 0,
        period: date = PERIOD,
        **extra: Any,
    ) -> ClubPayout:
        payout = ClubPayout(
            club_id=club.id,
            payout_period=period,
            unlimited_amount=total_amount,
            credits_amount=Decimal("0"),
            total_amount=total_amount,
            unlimited_visits=2,
            credits_visits=0,
            total_visits=2,
            unique_users=1,
            status=status.value,
            retry_count=retry_count,
            **extra,
        )
        db.add(payout)
        db.commit()
        return payout

    return _create
