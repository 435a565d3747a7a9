"""Repository for payment schedule operations."""

from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.category.repository import CategoryRepository
from components.core.clock import Clock
from components.core.config import get_settings
from components.core.dates import FREQUENCIES, advance_due_date
from components.core.exceptions import NotFoundError, OverAllocationError, ValidationError
from components.core.log import get_logger
from components.household.permissions import PermissionGate, default_gate, ensure_can_read, ensure_can_write
from components.ledger.models import WeeklyLedger
from components.ledger.repository import WeeklyLedgerRepository
from components.notification.alerts import BudgetAlertChecker
from components.notification.publisher import NotificationPublisher
from components.reconciliation.service import PaymentStatusChanged, ReconciliationService
from components.schedule.models import PaymentSchedule
from components.schedule import schemas

logger = get_logger(__name__)
settings = get_settings()


class PaymentScheduleRepository:
    """Repository for payment schedule operations."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        gate: Optional[PermissionGate] = None,
        publisher: Optional[NotificationPublisher] = None,
    ):
        """Initialize repository; status changes are routed through reconciliation."""
        self.session = session
        self.clock = clock
        self.gate = gate or default_gate
        self.ledgers = WeeklyLedgerRepository(session, clock)
        self.reconciler = ReconciliationService(session, clock, self.gate)
        self.reconciler.subscribe(self._spawn_on_paid)
        if publisher is not None:
            self.alerts = BudgetAlertChecker(publisher)
            self.reconciler.subscribe(self._check_budget_alerts)

    async def _find_recent_duplicate(self, user_id: int, name: str, amount: float) -> Optional[PaymentSchedule]:
        since = self.clock.now() - timedelta(seconds=settings.DUPLICATE_WINDOW_SECONDS)
        result = await self.session.execute(
            select(PaymentSchedule)
            .where(
                PaymentSchedule.user_id == user_id,
                PaymentSchedule.name == name,
                PaymentSchedule.amount == amount,
                PaymentSchedule.created_at >= since,
            )
            .order_by(PaymentSchedule.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _link_to_ledger(
        self,
        schedule: PaymentSchedule,
        ledger: Optional[WeeklyLedger] = None,
        strict: bool = True,
    ) -> bool:
        """
        Insert the schedule's payment entry into a ledger and link the two.

        With ``strict`` an over-allocation propagates; otherwise the schedule
        is kept without a ledger and a warning is logged.
        """
        if ledger is None:
            ledger = await self.ledgers.ensure_ledger_for(schedule.user_id, schedule.due_date, schedule.household_id)
        await self.ledgers.add_category(ledger, schedule.category_id)
        try:
            entry = await self.ledgers.add_payment(
                ledger,
                schedule.category_id,
                schedule.name,
                schedule.amount,
                schedule.due_date,
                schedule_id=schedule.id,
                status=schedule.status,
                notes=schedule.notes,
            )
        except OverAllocationError as e:
            if strict:
                raise
            logger.warning("schedule_left_unlinked", schedule_id=schedule.id, ledger_id=ledger.id, reason=e.message)
            schedule.ledger_id = None
            await self.session.flush()
            return False

        entry.paid_date = schedule.paid_date
        entry.paid_by = schedule.paid_by
        entry.status_changed_at = schedule.status_changed_at
        schedule.ledger_id = ledger.id
        await self.session.flush()
        return True

    async def _insert(self, user_id: int, fields: dict, strict: bool = True, ledger: Optional[WeeklyLedger] = None) -> PaymentSchedule:
        now = self.clock.now()
        schedule = PaymentSchedule(user_id=user_id, status="pending", created_at=now, updated_at=now, **fields)
        self.session.add(schedule)
        await self.session.flush()
        await self._link_to_ledger(schedule, ledger, strict)
        return schedule

    def _validate(self, frequency: Optional[str], due_date: Optional[date], recurring_end_date: Optional[date]) -> None:
        if frequency is not None and frequency not in FREQUENCIES:
            raise ValidationError(f"Invalid frequency: {frequency}")
        if due_date and recurring_end_date and recurring_end_date < due_date:
            raise ValidationError("Recurring end date must not be before the due date")

    async def create(self, actor_id: int, data: schemas.PaymentScheduleCreate) -> PaymentSchedule:
        """
        Create a schedule and its linked ledger entry.

        A submission repeating the owner, name and amount of a schedule
        created within the duplicate window returns that schedule instead.
        """
        self._validate(data.frequency, data.due_date, data.recurring_end_date)
        await CategoryRepository(self.session).ensure_visible(actor_id, [data.category_id])

        duplicate = await self._find_recent_duplicate(actor_id, data.name, data.amount)
        if duplicate is not None:
            logger.info("duplicate_schedule_returned", schedule_id=duplicate.id, user_id=actor_id)
            return duplicate

        ledger = None
        if data.ledger_id is not None:
            ledger = await self.ledgers.get_or_404(data.ledger_id)
            await ensure_can_write(self.gate, actor_id, ledger, "ledger")

        fields = data.model_dump(exclude={"ledger_id"})
        try:
            schedule = await self._insert(actor_id, fields, strict=True, ledger=ledger)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("schedule_created", schedule_id=schedule.id, user_id=actor_id, ledger_id=schedule.ledger_id)
        return schedule

    async def get(self, actor_id: int, schedule_id: int) -> PaymentSchedule:
        schedule = await self.session.get(PaymentSchedule, schedule_id)
        if schedule is None:
            raise NotFoundError("Payment schedule not found")
        await ensure_can_read(self.gate, actor_id, schedule, "payment")
        return schedule

    async def check_overdue(self, schedule: PaymentSchedule) -> bool:
        """Flag a pending schedule past its due date (and its entry) as overdue."""
        if schedule.status != "pending" or schedule.due_date >= self.clock.today():
            return False
        now = self.clock.now()
        schedule.status = "overdue"
        schedule.status_changed_at = now
        entry = await self.ledgers.find_entry_by_schedule(schedule.id)
        if entry is not None and entry.status == "pending":
            entry.status = "overdue"
            entry.status_changed_at = now
        await self.session.flush()
        return True

    async def refresh_overdue(self, user_id: Optional[int] = None) -> List[PaymentSchedule]:
        """Mark every pending schedule past its due date overdue and commit."""
        query = select(PaymentSchedule).where(
            PaymentSchedule.status == "pending",
            PaymentSchedule.due_date < self.clock.today(),
        )
        if user_id is not None:
            query = query.where(PaymentSchedule.user_id == user_id)
        result = await self.session.execute(query)
        flagged = []
        for schedule in result.scalars().all():
            if await self.check_overdue(schedule):
                flagged.append(schedule)
        if flagged:
            await self.session.commit()
            logger.info("schedules_marked_overdue", count=len(flagged), user_id=user_id)
        return flagged

    async def list(
        self,
        user_id: int,
        status: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[PaymentSchedule]:
        """Schedules of a user ordered by due date, overdue status refreshed first."""
        await self.refresh_overdue(user_id)
        query = select(PaymentSchedule).where(PaymentSchedule.user_id == user_id)
        if status is not None:
            query = query.where(PaymentSchedule.status == status)
        if start is not None:
            query = query.where(PaymentSchedule.due_date >= start)
        if end is not None:
            query = query.where(PaymentSchedule.due_date <= end)
        result = await self.session.execute(query.order_by(PaymentSchedule.due_date, PaymentSchedule.id))
        return list(result.scalars().all())

    async def upcoming(self, user_id: int, days: Optional[int] = None) -> List[PaymentSchedule]:
        """Pending payments due between today and ``days`` from now."""
        today = self.clock.today()
        horizon = today + timedelta(days=settings.UPCOMING_PAYMENTS_DAYS if days is None else days)
        result = await self.session.execute(
            select(PaymentSchedule)
            .where(
                PaymentSchedule.user_id == user_id,
                PaymentSchedule.status.in_(("pending", "paying")),
                PaymentSchedule.due_date >= today,
                PaymentSchedule.due_date <= horizon,
            )
            .order_by(PaymentSchedule.due_date, PaymentSchedule.id)
        )
        return list(result.scalars().all())

    async def update(self, actor_id: int, schedule_id: int, data: schemas.PaymentScheduleUpdate) -> PaymentSchedule:
        """Update schedule fields and keep the linked ledger entry in step."""
        schedule = await self.get(actor_id, schedule_id)
        await ensure_can_write(self.gate, actor_id, schedule, "payment")

        changes = data.model_dump(exclude_unset=True)
        self._validate(
            changes.get("frequency"),
            changes.get("due_date", schedule.due_date),
            changes.get("recurring_end_date", schedule.recurring_end_date),
        )
        if "category_id" in changes:
            await CategoryRepository(self.session).ensure_visible(schedule.user_id, [changes["category_id"]])

        try:
            entry = await self.ledgers.find_entry_by_schedule(schedule.id)
            ledger = await self.ledgers.get(entry.ledger_id) if entry is not None else None
            relink = entry is None or ledger is None or (
                changes.get("category_id", schedule.category_id) != schedule.category_id
                or not ledger.contains(changes.get("due_date", schedule.due_date))
            )

            if entry is not None and not relink and "amount" in changes:
                category = next(c for c in ledger.categories if c.id == entry.ledger_category_id)
                current = category.scheduled_total - entry.amount
                if category.is_limited and round(current + changes["amount"], 2) > category.allocation:
                    raise OverAllocationError(category.category_id, category.allocation, current, changes["amount"])

            for key, value in changes.items():
                setattr(schedule, key, value)
            schedule.updated_at = self.clock.now()

            if relink:
                if entry is not None:
                    await self.ledgers.delete_entry(entry)
                await self._link_to_ledger(schedule, strict=True)
            else:
                entry.name = schedule.name
                entry.amount = schedule.amount
                entry.scheduled_date = schedule.due_date
                entry.notes = schedule.notes

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return schedule

    async def delete(self, actor_id: int, schedule_id: int) -> None:
        """Delete a schedule with its ledger entry and transactions."""
        schedule = await self.get(actor_id, schedule_id)
        await ensure_can_write(self.gate, actor_id, schedule, "payment")

        entry = await self.ledgers.find_entry_by_schedule(schedule.id)
        await self.reconciler.delete_transactions(schedule, entry)
        if entry is not None:
            await self.ledgers.delete_entry(entry)
        await self.session.execute(
            update(PaymentSchedule)
            .where(PaymentSchedule.previous_id == schedule.id)
            .values(previous_id=None)
        )
        await self.session.delete(schedule)
        await self.session.commit()
        logger.info("schedule_deleted", schedule_id=schedule_id, actor_id=actor_id)

    async def mark_paid(self, actor_id: int, schedule_id: int, data: Optional[schemas.MarkPaid] = None) -> PaymentSchedule:
        """Pay a schedule; recurring schedules spawn their successor."""
        schedule = await self.get(actor_id, schedule_id)
        if schedule.status == "cancelled":
            raise ValidationError("A cancelled payment cannot be paid")
        data = data or schemas.MarkPaid()
        await self.reconciler.apply_status_change(
            actor_id,
            "paid",
            schedule_id=schedule.id,
            paid_date=data.paid_date,
            paid_by=data.paid_by,
        )
        return schedule

    async def set_status(self, actor_id: int, schedule_id: int, status: str) -> PaymentSchedule:
        schedule = await self.get(actor_id, schedule_id)
        await self.reconciler.apply_status_change(actor_id, status, schedule_id=schedule.id)
        return schedule

    async def set_entry_status(self, actor_id: int, entry_id: int, status: str, paid_date=None) -> PaymentStatusChanged:
        """Status change coming from the ledger side of a payment."""
        return await self.reconciler.apply_status_change(actor_id, status, entry_id=entry_id, paid_date=paid_date)

    async def find_successor(self, schedule_id: int) -> Optional[PaymentSchedule]:
        result = await self.session.execute(
            select(PaymentSchedule).where(PaymentSchedule.previous_id == schedule_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def spawn_successor(self, schedule: PaymentSchedule) -> Optional[PaymentSchedule]:
        """Create the next occurrence of a recurring schedule, at most once."""
        if not schedule.is_recurring or schedule.frequency == "once":
            return None

        existing = await self.find_successor(schedule.id)
        if existing is not None:
            return existing

        next_due = advance_due_date(schedule.due_date, schedule.frequency)
        end = schedule.recurring_end_date
        if end is not None and (next_due > end or self.clock.today() > end):
            logger.info("recurrence_finished", schedule_id=schedule.id, recurring_end_date=str(end))
            return None

        successor = await self._insert(
            schedule.user_id,
            dict(
                household_id=schedule.household_id,
                name=schedule.name,
                amount=schedule.amount,
                category_id=schedule.category_id,
                type=schedule.type,
                due_date=next_due,
                frequency=schedule.frequency,
                notes=schedule.notes,
                reminder_enabled=schedule.reminder_enabled,
                reminder_days_before=schedule.reminder_days_before,
                is_recurring=True,
                recurring_end_date=end,
                previous_id=schedule.id,
            ),
            strict=False,
        )
        logger.info("successor_spawned", schedule_id=schedule.id, successor_id=successor.id, due_date=str(next_due))
        return successor

    async def _spawn_on_paid(self, event: PaymentStatusChanged) -> None:
        if event.schedule is not None and event.new_status == "paid":
            await self.spawn_successor(event.schedule)

    async def _check_budget_alerts(self, event: PaymentStatusChanged) -> None:
        if event.entry is None or event.new_status != "paid":
            return
        ledger = await self.ledgers.get(event.entry.ledger_id)
        if ledger is not None:
            await self.alerts.check_ledger(ledger)

    async def delete_ledger_payment(self, actor_id: int, entry_id: int) -> None:
        """Delete a ledger payment; a payment backed by a schedule is deleted as a whole."""
        entry = await self.ledgers.get_entry(entry_id)
        if entry is None:
            raise NotFoundError("Payment entry not found")
        if entry.schedule_id is not None:
            await self.delete(actor_id, entry.schedule_id)
            return

        ledger = await self.ledgers.get_or_404(entry.ledger_id)
        await ensure_can_write(self.gate, actor_id, ledger, "ledger")
        await self.reconciler.delete_transactions(None, entry)
        await self.ledgers.delete_entry(entry)
        await self.session.commit()
        logger.info("ledger_payment_deleted", entry_id=entry_id, ledger_id=ledger.id)
