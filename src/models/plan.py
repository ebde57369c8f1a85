from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.db.database import Base
from src.models.base import TimestampMixin


class PlanFrequency(enum.Enum):
    weekly = "weekly"
    monthly = "monthly"
    custom_days = "custom_days"


class Plan(Base, TimestampMixin):
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    frequency: Mapped[PlanFrequency] = mapped_column(Enum(PlanFrequency), nullable=False)
    interval_days: Mapped[Optional[int]] = mapped_column(Integer)  # only for custom_days
    starting_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    next_due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    @classmethod
    def create(
        cls,
        user_id: int,
        amount,
        frequency,
        starting_date: datetime,
        interval_days: Optional[int] = None,
        vehicle_id: Optional[int] = None,
        currency: str = "GBP",
    ) -> "Plan":
        """Build a validated plan whose first charge falls on ``starting_date``.

        Raises:
            ValueError: negative amount, unknown frequency, or ``interval_days``
                missing for ``custom_days`` / not a positive integer.
        """
        frequency = PlanFrequency(frequency)
        amount = Decimal(str(amount))
        if amount < 0:
            raise ValueError("amount must be non-negative")

        if frequency == PlanFrequency.custom_days:
            if not isinstance(interval_days, int) or interval_days < 1:
                raise ValueError("interval_days is required when frequency=custom_days")
        else:
            interval_days = None

        return cls(
            user_id=user_id,
            vehicle_id=vehicle_id,
            amount=amount,
            currency=currency,
            frequency=frequency,
            interval_days=interval_days,
            starting_date=starting_date,
            next_due_date=starting_date,
            active=True,
        )

    def __repr__(self) -> str:
        return f"<Plan {self.id} {self.frequency.value} next={self.next_due_date}>"
