from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base
from src.models.base import TimestampMixin


class ChargeType(enum.Enum):
    weekly_fee = "weekly_fee"
    monthly_fee = "monthly_fee"
    mot = "mot"
    other = "other"


class ChargeStatus(enum.Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"
    canceled = "canceled"


class Charge(Base, TimestampMixin):
    __tablename__ = "charges"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    type: Mapped[ChargeType] = mapped_column(Enum(ChargeType), nullable=False, index=True)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    status: Mapped[ChargeStatus] = mapped_column(
        Enum(ChargeStatus), nullable=False, default=ChargeStatus.pending, index=True
    )
    created_by: Mapped[Optional[int]] = mapped_column(Integer)  # admin user id
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON)

    @property
    def plan_id(self) -> Optional[int]:
        return (self.meta or {}).get("plan_id")

    def __repr__(self) -> str:
        return f"<Charge {self.id} {self.status.value} due={self.due_date}>"
