"""Turn due plans into pending charges and advance each plan's next due date."""
from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.billing.recurrence import advance_due_date
from src.billing.results import MaterializeResult
from src.models.base import as_naive_utc
from src.models.charge import Charge, ChargeStatus, ChargeType
from src.models.plan import Plan, PlanFrequency

DEFAULT_PLAN_BATCH_SIZE = 100

_CHARGE_TYPE_BY_FREQUENCY = {
    PlanFrequency.weekly: ChargeType.weekly_fee,
    PlanFrequency.monthly: ChargeType.monthly_fee,
}


def charge_type_for(frequency: PlanFrequency) -> ChargeType:
    return _CHARGE_TYPE_BY_FREQUENCY.get(frequency, ChargeType.other)


def build_charge(plan: Plan) -> Charge:
    """Pending charge for the plan's current cycle."""
    return Charge(
        user_id=plan.user_id,
        vehicle_id=plan.vehicle_id,
        amount=plan.amount,
        currency=plan.currency or "GBP",
        type=charge_type_for(plan.frequency),
        due_date=plan.next_due_date,
        status=ChargeStatus.pending,
        meta={"plan_id": plan.id},
    )


def _materialize_plan(session: Session, plan: Plan, now: datetime) -> bool:
    """Create one charge for ``plan`` and advance it, in a single transaction.

    The charge is written first; the plan is then claimed with a conditional
    update on the ``next_due_date`` value we read. If another run already
    advanced the plan the claim matches no row and the charge is rolled back.

    Returns:
        True if a charge was committed, False if the cycle was already taken.
    """
    seen_due = plan.next_due_date
    if not plan.active or seen_due > now:
        return False

    charge = build_charge(plan)
    session.add(charge)
    session.flush()

    next_due = advance_due_date(seen_due, plan.frequency, plan.interval_days)
    claim = session.execute(
        update(Plan)
        .where(
            Plan.id == plan.id,
            Plan.next_due_date == seen_due,
            Plan.active.is_(True),
        )
        .values(next_due_date=next_due)
        .execution_options(synchronize_session=False)
    )
    if claim.rowcount == 0:
        session.rollback()
        return False

    session.commit()
    logger.debug(
        f"Plan {plan.id}: created charge {charge.id} due {seen_due}, next due {next_due}"
    )
    return True


def materialize_charges(
    session: Session,
    now: datetime,
    batch_size: int = DEFAULT_PLAN_BATCH_SIZE,
) -> MaterializeResult:
    """Create charges for every active plan whose next due date has passed.

    A plan that fails is rolled back, recorded and retried on the next tick;
    the rest of the batch carries on.
    """
    now = as_naive_utc(now)
    result = MaterializeResult()

    plan_ids = list(
        session.scalars(
            select(Plan.id)
            .where(Plan.active.is_(True), Plan.next_due_date <= now)
            .order_by(Plan.next_due_date)
            .limit(batch_size)
        )
    )
    result.plans_scanned = len(plan_ids)
    if not plan_ids:
        return result

    for plan_id in plan_ids:
        try:
            plan = session.get(Plan, plan_id, populate_existing=True)
            if plan is None:
                result.skipped += 1
                continue
            if _materialize_plan(session, plan, now):
                result.charges_created += 1
            else:
                result.skipped += 1
        except Exception as e:
            session.rollback()
            logger.error(f"Error materializing plan {plan_id}: {e}")
            result.record_failure(plan_id, e)

    result.log_failures("Charge materializer")
    return result
