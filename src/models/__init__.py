from src.models.charge import Charge, ChargeStatus, ChargeType
from src.models.notification_log import (
    NotificationChannel,
    NotificationLog,
    NotificationStatus,
    NotificationType,
)
from src.models.plan import Plan, PlanFrequency
from src.models.user import User

__all__ = [
    "Charge",
    "ChargeStatus",
    "ChargeType",
    "NotificationChannel",
    "NotificationLog",
    "NotificationStatus",
    "NotificationType",
    "Plan",
    "PlanFrequency",
    "User",
]
