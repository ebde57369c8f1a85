from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from src.billing.reminders import detect_due_soon
from src.db.database import Base
from src.models import (
    Charge,
    ChargeStatus,
    ChargeType,
    NotificationChannel,
    NotificationLog,
    User,
)
from src.notifications.dispatcher import NotificationDispatcher

NOW = datetime(2024, 3, 1, 12, 0)


@pytest.fixture
def db_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    Base.metadata.drop_all(engine)


@pytest.fixture
def user(db_session):
    user = User(email="driver@example.com", name="Driver")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def sender():
    mock_sender = MagicMock()
    mock_sender.send.return_value = True
    return mock_sender


def _make_charge(session, user, due_date, status=ChargeStatus.pending):
    charge = Charge(
        user_id=user.id,
        amount=Decimal("120.00"),
        currency="GBP",
        type=ChargeType.monthly_fee,
        due_date=due_date,
        status=status,
    )
    session.add(charge)
    session.commit()
    return charge


def test_reminds_without_changing_status(db_session, user, sender):
    charge = _make_charge(db_session, user, NOW + timedelta(hours=24))

    result = detect_due_soon(
        db_session, NOW, lead_hours=48,
        dispatcher=NotificationDispatcher(db_session, sender),
    )

    assert result.processed == 1
    assert result.notified == 1
    db_session.refresh(charge)
    assert charge.status == ChargeStatus.pending

    subject = sender.send.call_args.args[1]
    assert subject == "Upcoming payment due: £120.00"
    log = db_session.query(NotificationLog).one()
    assert log.channel == NotificationChannel.reminder


def test_only_charges_inside_lead_window(db_session, user, sender):
    _make_charge(db_session, user, NOW - timedelta(hours=1))  # already past due
    _make_charge(db_session, user, NOW + timedelta(hours=72))  # too far out
    _make_charge(db_session, user, NOW + timedelta(hours=10), status=ChargeStatus.paid)
    inside = _make_charge(db_session, user, NOW + timedelta(hours=48))

    result = detect_due_soon(
        db_session, NOW, lead_hours=48,
        dispatcher=NotificationDispatcher(db_session, sender),
    )

    assert result.processed == 1
    log = db_session.query(NotificationLog).one()
    assert log.related_charge_id == inside.id


def test_throttled_reminder_still_processed(db_session, user, sender):
    charge = _make_charge(db_session, user, NOW + timedelta(hours=24))
    db_session.add(
        NotificationLog(
            user_id=user.id,
            channel=NotificationChannel.reminder,
            message="earlier reminder",
            related_charge_id=charge.id,
            sent_at=NOW - timedelta(hours=1),
        )
    )
    db_session.commit()

    result = detect_due_soon(
        db_session, NOW, throttle_hours=24,
        dispatcher=NotificationDispatcher(db_session, sender),
    )

    assert result.processed == 1
    assert result.notified == 0
    sender.send.assert_not_called()


def test_overdue_notice_does_not_throttle_reminder(db_session, user, sender):
    """Throttling is per channel."""
    charge = _make_charge(db_session, user, NOW + timedelta(hours=24))
    db_session.add(
        NotificationLog(
            user_id=user.id,
            channel=NotificationChannel.overdue,
            message="other channel",
            related_charge_id=charge.id,
            sent_at=NOW - timedelta(hours=1),
        )
    )
    db_session.commit()

    result = detect_due_soon(
        db_session, NOW, dispatcher=NotificationDispatcher(db_session, sender)
    )

    assert result.notified == 1


def test_second_run_within_window_sends_once(db_session, user, sender):
    _make_charge(db_session, user, NOW + timedelta(hours=24))
    dispatcher = NotificationDispatcher(db_session, sender)

    detect_due_soon(db_session, NOW, dispatcher=dispatcher)
    result = detect_due_soon(db_session, NOW + timedelta(minutes=15), dispatcher=dispatcher)

    assert result.notified == 0
    assert sender.send.call_count == 1
