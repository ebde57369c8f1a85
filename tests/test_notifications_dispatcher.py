from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from src.db.database import Base
from src.models import NotificationChannel, NotificationLog, NotificationStatus, User
from src.notifications.dispatcher import NotificationDispatcher


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


class TestNotificationDispatcher:
    @patch("src.notifications.dispatcher.get_settings")
    def test_dispatch_disabled(self, mock_settings, db_session, user):
        mock_settings.return_value = MagicMock(notification_enabled=False)
        sender = MagicMock()
        dispatcher = NotificationDispatcher(db_session, sender)

        result = dispatcher.send_email_notification(
            user.id, "subject", "body", NotificationChannel.generic
        )

        assert result is False
        sender.send.assert_not_called()
        assert db_session.query(NotificationLog).count() == 0

    def test_send_success_logs_sent(self, db_session, user):
        sender = MagicMock()
        sender.send.return_value = True
        dispatcher = NotificationDispatcher(db_session, sender)
        now = datetime(2024, 1, 3, 9, 0)

        result = dispatcher.send_email_notification(
            user.id, "Hello", "a < b", NotificationChannel.generic,
            metadata={"source": "test"}, now=now,
        )

        assert result is True
        to, subject, text, html = sender.send.call_args.args
        assert to == "driver@example.com"
        assert "a &lt; b" in html

        log = db_session.query(NotificationLog).one()
        assert log.status == NotificationStatus.sent
        assert log.message == "a < b"
        assert log.meta == {"source": "test"}
        assert log.sent_at == now

    def test_send_failure_still_logs(self, db_session, user):
        sender = MagicMock()
        sender.send.return_value = False
        dispatcher = NotificationDispatcher(db_session, sender)

        result = dispatcher.send_email_notification(
            user.id, "Hello", "body", NotificationChannel.reminder, related_charge_id=None
        )

        assert result is False
        log = db_session.query(NotificationLog).one()
        assert log.status == NotificationStatus.failed
        assert log.channel == NotificationChannel.reminder
        assert "error" in log.meta

    def test_unknown_user_raises(self, db_session):
        dispatcher = NotificationDispatcher(db_session, MagicMock())

        with pytest.raises(LookupError):
            dispatcher.send_email_notification(
                999, "Hello", "body", NotificationChannel.generic
            )
        assert db_session.query(NotificationLog).count() == 0

    def test_log_notification_for_receipts(self, db_session, user):
        dispatcher = NotificationDispatcher(db_session, MagicMock())

        log = dispatcher.log_notification(
            user.id, NotificationChannel.receipt, "Payment received"
        )

        assert log.id is not None
        assert log.channel == NotificationChannel.receipt
        assert log.sent_at is not None
