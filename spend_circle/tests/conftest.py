"""
Pytest configuration and fixtures for spend_circle tests.

The store is an in-memory SQLite database shared by every session of a test;
notifications go to a recording producer instead of RabbitMQ.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from spend_circle.db.database import Base, build_engine, init_db
from spend_circle.schemas.profile_schema import UserProfile
from spend_circle.schemas.transaction_schema import ExpenseCreate
from spend_circle.services.circle_service import create_circle
from spend_circle.services.transaction_service import (
    build_custom_split, build_equal_split, record_split_expense
)


class RecordingProducer:
    """Stands in for RabbitMQProducer and keeps what was published"""

    def __init__(self):
        self.notifications: List[Dict] = []
        self.deletions: List[str] = []
        self.fail = False

    def publish_notification(self, notification: Dict) -> bool:
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.notifications.append(notification)
        return True

    def publish_notification_deletion(self, related_id: str) -> bool:
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.deletions.append(related_id)
        return True

    def types_for(self, user_id: str) -> List[str]:
        return [n["type"] for n in self.notifications if n["user_id"] == user_id]


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def producer(monkeypatch):
    """Recording fake for the notification producer."""
    fake = RecordingProducer()
    monkeypatch.setattr(
        "spend_circle.services.notification_service.get_rabbitmq_producer", lambda: fake
    )
    return fake


@pytest.fixture
def alice():
    return UserProfile(uid="alice", display_name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return UserProfile(uid="bob", display_name="Bob", email="bob@example.com")


@pytest.fixture
def carol():
    return UserProfile(uid="carol", display_name="Carol", email="carol@example.com")


@pytest.fixture
def circle(db, alice, bob, carol):
    """Circle owned by Alice with Bob and Carol."""
    return create_circle(db, "Flat 4B", alice, [bob, carol])


@pytest.fixture
def record_expense(db):
    """Record a split expense paid by ``payer``; equal split unless shares are given."""

    def _record(payer: UserProfile, members: List[UserProfile], total, circle_id: Optional[str] = None,
                description: str = "Dinner", shares: Optional[Dict[str, Decimal]] = None) -> str:
        total = Decimal(str(total))
        if shares is None:
            split = build_equal_split(total, payer, members)
        else:
            split = build_custom_split(total, payer, members, shares)
        expense = ExpenseCreate(
            description=description,
            amount=total,
            category="Food",
            date=datetime(2024, 5, 1, tzinfo=timezone.utc),
            circle_id=circle_id,
            user_id=payer.uid,
        )
        return record_split_expense(db, expense, split)

    return _record
