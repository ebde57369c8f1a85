from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base


class NotificationType(enum.Enum):
    email = "email"
    in_app = "in_app"


class NotificationChannel(enum.Enum):
    overdue = "overdue"
    reminder = "reminder"
    receipt = "receipt"
    generic = "generic"


class NotificationStatus(enum.Enum):
    sent = "sent"
    failed = "failed"


class NotificationLog(Base):
    """Append-only record of an attempted customer message.

    Used for throttling and audit; there is deliberately no unique constraint
    on (user, charge, channel) since the same tuple is allowed again once the
    throttle window has passed.
    """

    __tablename__ = "notification_logs"
    __table_args__ = (
        Index(
            "ix_notification_throttle",
            "user_id",
            "related_charge_id",
            "channel",
            "sent_at",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False, default=NotificationType.email
    )
    channel: Mapped[NotificationChannel] = mapped_column(
        Enum(NotificationChannel), nullable=False, default=NotificationChannel.generic
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_charge_id: Mapped[Optional[int]] = mapped_column(ForeignKey("charges.id"))
    sent_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(NotificationStatus), nullable=False, default=NotificationStatus.sent
    )
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON)

    def __repr__(self) -> str:
        return (
            f"<NotificationLog {self.channel.value} "
            f"charge={self.related_charge_id} {self.status.value}>"
        )
