"""
Periodic maintenance jobs.

Each job opens its own session, processes records one by one and commits.
A failing record is logged and skipped so one bad row never blocks the
rest of the pass. ``start_background_tasks`` runs the jobs on fixed
cadences from the application lifespan.
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock
from components.core.config import get_settings
from components.core.database import DatabaseManager
from components.core.log import get_logger
from components.ledger.models import WeeklyLedger
from components.notification.alerts import BudgetAlertChecker
from components.notification.publisher import NotificationPublisher, NotificationSink
from components.reconciliation.service import ReconciliationService, SweepReport
from components.schedule.models import PaymentSchedule
from components.schedule.repository import PaymentScheduleRepository

logger = get_logger(__name__)
settings = get_settings()


async def _isolated(session: AsyncSession, job: str, record_id: int, step: Callable[[], Awaitable]) -> bool:
    try:
        emitted = await step()
        await session.commit()
        return bool(emitted)
    except Exception as e:
        logger.error("maintenance_item_failed", job=job, record_id=record_id, error=str(e))
        await session.rollback()
        return False


def _schedule_event(publisher: NotificationPublisher, session: AsyncSession, schedule_id: int, type: str, title: str, verb: str):
    async def notify():
        schedule = await session.get(PaymentSchedule, schedule_id)
        return await publisher.publish(
            user_id=schedule.user_id,
            type=type,
            title=title,
            message=f"{schedule.name} ({schedule.amount:.2f}) {verb} {schedule.due_date.isoformat()}",
            related_type="payment_schedule",
            related_id=schedule.id,
            data={"amount": schedule.amount, "due_date": schedule.due_date.isoformat()},
        )
    return notify


async def check_overdue_payments(session: AsyncSession, clock: Clock, sink: Optional[NotificationSink] = None) -> int:
    """Flag pending schedules past due and emit a payment_overdue event for each."""
    publisher = NotificationPublisher(session, clock, sink)
    flagged = [s.id for s in await PaymentScheduleRepository(session, clock).refresh_overdue()]
    emitted = 0
    for schedule_id in flagged:
        step = _schedule_event(publisher, session, schedule_id, "payment_overdue", "Payment overdue", "was due on")
        emitted += await _isolated(session, "overdue", schedule_id, step)
    logger.info("overdue_check_completed", flagged=len(flagged), emitted=emitted)
    return emitted


async def send_payment_reminders(session: AsyncSession, clock: Clock, sink: Optional[NotificationSink] = None) -> int:
    """Emit a payment_reminder for pending schedules inside their reminder window."""
    publisher = NotificationPublisher(session, clock, sink)
    today = clock.today()
    result = await session.execute(
        select(PaymentSchedule.id, PaymentSchedule.due_date, PaymentSchedule.reminder_days_before).where(
            PaymentSchedule.status == "pending",
            PaymentSchedule.reminder_enabled.is_(True),
            PaymentSchedule.due_date >= today,
        )
    )
    emitted = 0
    for schedule_id, due_date, days_before in result.all():
        if due_date - timedelta(days=days_before) > today:
            continue
        step = _schedule_event(publisher, session, schedule_id, "payment_reminder", "Upcoming payment", "is due on")
        emitted += await _isolated(session, "reminder", schedule_id, step)
    logger.info("reminders_completed", emitted=emitted)
    return emitted


async def check_budget_alerts(session: AsyncSession, clock: Clock, sink: Optional[NotificationSink] = None) -> int:
    """Emit budget_alert events for limited categories of this week's ledgers."""
    checker = BudgetAlertChecker(NotificationPublisher(session, clock, sink))
    today = clock.today()
    result = await session.execute(
        select(WeeklyLedger.id).where(WeeklyLedger.week_start <= today, WeeklyLedger.week_end >= today)
    )
    emitted = 0
    for ledger_id in result.scalars().all():
        async def check(ledger_id=ledger_id):
            return await checker.check_ledger(await session.get(WeeklyLedger, ledger_id))
        if await _isolated(session, "budget_alert", ledger_id, check):
            emitted += 1
    logger.info("budget_alerts_completed", ledgers_alerted=emitted)
    return emitted


async def reconcile_payments(session: AsyncSession, clock: Clock, dry_run: bool = False) -> SweepReport:
    return await ReconciliationService(session, clock).sweep(dry_run=dry_run)


Job = Callable[[AsyncSession, Clock], Awaitable]


async def run_periodically(db_manager: DatabaseManager, clock: Clock, name: str, interval: int, job: Job) -> None:
    """Run ``job`` every ``interval`` seconds until cancelled."""
    while True:
        try:
            async with db_manager.get_db() as session:
                await job(session, clock)
        except Exception as e:
            logger.error("maintenance_job_failed", job=name, error=str(e))
        await asyncio.sleep(interval)


def start_background_tasks(db_manager: DatabaseManager, clock: Clock) -> List[asyncio.Task]:
    """Schedule every maintenance job on its configured cadence."""
    jobs = [
        ("overdue", settings.OVERDUE_CHECK_INTERVAL, check_overdue_payments),
        ("reminders", settings.REMINDER_CHECK_INTERVAL, send_payment_reminders),
        ("budget_alerts", settings.BUDGET_ALERT_INTERVAL, check_budget_alerts),
        ("reconcile", settings.RECONCILE_INTERVAL, reconcile_payments),
    ]
    tasks = [
        asyncio.create_task(run_periodically(db_manager, clock, name, interval, job), name=f"maintenance:{name}")
        for name, interval, job in jobs
    ]
    logger.info("maintenance_started", jobs=[name for name, _, _ in jobs])
    return tasks
