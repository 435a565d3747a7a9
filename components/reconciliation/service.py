"""
Payment reconciliation.

A payment can live in two places at once: a PaymentSchedule and the
PaymentEntry it is linked to in a weekly ledger. Every status change goes
through ``ReconciliationService.apply_status_change`` which publishes one
``PaymentStatusChanged`` event to an ordered list of subscribers (schedule
updater, ledger entry updater, transaction keeper, plus any extra hooks)
inside a single unit of work.

``sweep`` is the drift-recovery pass for records that were changed behind
the service's back. It is re-entrant: a second run over converged data
writes nothing.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock
from components.core.dates import as_date
from components.core.exceptions import NotFoundError, ValidationError
from components.core.log import get_logger
from components.household.permissions import PermissionGate, default_gate, ensure_can_write
from components.ledger.models import PAYMENT_STATUSES, PaymentEntry, WeeklyLedger
from components.ledger.repository import WeeklyLedgerRepository
from components.schedule.models import PaymentSchedule
from components.transaction.models import Transaction
from components.transaction.repository import TransactionRepository

logger = get_logger(__name__)


@dataclass
class PaymentStatusChanged:
    """A payment moved to ``new_status``; both representations must follow."""
    payment_key: str
    new_status: str
    actor_id: int
    owner_id: int
    occurred_at: datetime
    previous_status: Optional[str] = None
    paid_date: Optional[datetime] = None
    paid_by: Optional[int] = None
    schedule: Optional[PaymentSchedule] = None
    entry: Optional[PaymentEntry] = None


@dataclass
class SweepReport:
    checked: int = 0
    synced: int = 0
    skipped: int = 0
    errors: int = 0
    created: int = 0
    deleted: int = 0
    duplicates_removed: int = 0
    dry_run: bool = False
    failures: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


Subscriber = Callable[[PaymentStatusChanged], Awaitable[None]]


def pick_authority(schedule: PaymentSchedule, entry: PaymentEntry) -> str:
    """
    Decide which side of a drifted pair wins.

    The side with a strictly more recent status change wins; otherwise a
    paid side beats an unpaid one; otherwise the ledger entry wins.
    """
    schedule_at, entry_at = schedule.status_changed_at, entry.status_changed_at
    if schedule_at is not None and entry_at is not None and schedule_at != entry_at:
        return "schedule" if schedule_at > entry_at else "ledger"
    if schedule.status == "paid" and entry.status != "paid":
        return "schedule"
    if entry.status == "paid" and schedule.status != "paid":
        return "ledger"
    return "ledger"


class ReconciliationService:
    """Keeps schedules, ledger entries and transactions consistent."""

    def __init__(self, session: AsyncSession, clock: Clock, gate: Optional[PermissionGate] = None):
        self.session = session
        self.clock = clock
        self.gate = gate or default_gate
        self.ledgers = WeeklyLedgerRepository(session, clock)
        self.transactions = TransactionRepository(session, clock)
        self._subscribers: List[Subscriber] = [
            self._update_schedule,
            self._update_entry,
            self._keep_transactions,
        ]

    def subscribe(self, handler: Subscriber) -> None:
        """Run ``handler`` after the built-in subscribers for every status change."""
        self._subscribers.append(handler)

    async def _locate(
        self,
        schedule_id: Optional[int],
        entry_id: Optional[int],
    ) -> Tuple[Optional[PaymentSchedule], Optional[PaymentEntry]]:
        schedule = entry = None
        if schedule_id is not None:
            schedule = await self.session.get(PaymentSchedule, schedule_id)
            if schedule is None:
                raise NotFoundError("Payment schedule not found")
            entry = await self.ledgers.find_entry_by_schedule(schedule_id)

        if entry is None and entry_id is not None:
            entry = await self.ledgers.get_entry(entry_id)
            if entry is None:
                raise NotFoundError("Payment entry not found")
            if schedule is None and entry.schedule_id is not None:
                schedule = await self.session.get(PaymentSchedule, entry.schedule_id)

        if schedule is None and entry is None:
            raise NotFoundError("Payment not found")
        return schedule, entry

    async def apply_status_change(
        self,
        actor_id: int,
        new_status: str,
        schedule_id: Optional[int] = None,
        entry_id: Optional[int] = None,
        paid_date: Optional[datetime] = None,
        paid_by: Optional[int] = None,
    ) -> PaymentStatusChanged:
        """Change a payment's status on every representation and commit."""
        if new_status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid status: {new_status}")

        schedule, entry = await self._locate(schedule_id, entry_id)
        if schedule is not None:
            await ensure_can_write(self.gate, actor_id, schedule, "payment")
            owner_id = schedule.user_id
        else:
            ledger = await self.ledgers.get_or_404(entry.ledger_id)
            await ensure_can_write(self.gate, actor_id, ledger, "ledger")
            owner_id = ledger.user_id

        if new_status == "paid":
            paid_date = paid_date or self.clock.now()
            paid_by = paid_by or actor_id
        else:
            paid_date = paid_by = None

        event = PaymentStatusChanged(
            payment_key=schedule.payment_key if schedule is not None else entry.payment_key,
            new_status=new_status,
            actor_id=actor_id,
            owner_id=owner_id,
            occurred_at=self.clock.now(),
            previous_status=(schedule or entry).status,
            paid_date=paid_date,
            paid_by=paid_by,
            schedule=schedule,
            entry=entry,
        )

        try:
            for subscriber in self._subscribers:
                await subscriber(event)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "payment_status_changed",
            payment_key=event.payment_key,
            previous_status=event.previous_status,
            new_status=new_status,
            actor_id=actor_id,
        )
        return event

    async def _update_schedule(self, event: PaymentStatusChanged) -> None:
        schedule = event.schedule
        if schedule is None:
            return
        schedule.status = event.new_status
        schedule.paid_date = event.paid_date
        schedule.paid_by = event.paid_by
        schedule.status_changed_at = event.occurred_at
        schedule.updated_at = event.occurred_at
        await self.session.flush()

    async def _update_entry(self, event: PaymentStatusChanged) -> None:
        entry = event.entry
        if entry is None:
            return
        entry.status = event.new_status
        entry.paid_date = event.paid_date
        entry.paid_by = event.paid_by
        entry.status_changed_at = event.occurred_at
        await self.session.flush()

    async def _keep_transactions(self, event: PaymentStatusChanged) -> None:
        if event.new_status == "paid":
            await self.ensure_single_transaction(event.owner_id, event.schedule, event.entry)
        else:
            removed = await self.delete_transactions(event.schedule, event.entry)
            if removed:
                logger.info("payment_transactions_removed", payment_key=event.payment_key, count=removed)

    async def _entry_category_id(self, entry: PaymentEntry) -> int:
        ledger = await self.ledgers.get_or_404(entry.ledger_id)
        return next(c.category_id for c in ledger.categories if c.id == entry.ledger_category_id)

    async def ensure_single_transaction(
        self,
        owner_id: int,
        schedule: Optional[PaymentSchedule],
        entry: Optional[PaymentEntry],
        dry_run: bool = False,
    ) -> Tuple[bool, int]:
        """
        Make sure exactly one Transaction stands for a paid payment.

        Returns (created, duplicates_removed). When duplicates exist the most
        recent one is kept.
        """
        existing = await self.transactions.find_for_payment(
            schedule.id if schedule is not None else None,
            entry.id if entry is not None else None,
        )
        if existing:
            duplicates = existing[1:]
            if not dry_run:
                for transaction in duplicates:
                    await self.session.delete(transaction)
                await self.session.flush()
            return False, len(duplicates)

        if dry_run:
            return True, 0

        source = schedule if schedule is not None else entry
        paid_date = source.paid_date or (entry.paid_date if entry is not None else None)
        if schedule is not None:
            category_id, kind, planned = schedule.category_id, schedule.type, schedule.due_date
        else:
            category_id, kind, planned = await self._entry_category_id(entry), "expense", entry.scheduled_date

        await self.transactions.record_payment(
            user_id=owner_id,
            type=kind,
            amount=source.amount,
            category_id=category_id,
            day=as_date(paid_date) if paid_date is not None else planned,
            description=f"Payment: {source.name}",
            schedule_id=schedule.id if schedule is not None else None,
            entry_id=entry.id if entry is not None else None,
        )
        return True, 0

    async def delete_transactions(self, schedule: Optional[PaymentSchedule], entry: Optional[PaymentEntry]) -> int:
        """Delete every Transaction carrying the payment's key."""
        existing = await self.transactions.find_for_payment(
            schedule.id if schedule is not None else None,
            entry.id if entry is not None else None,
        )
        for transaction in existing:
            await self.session.delete(transaction)
        await self.session.flush()
        return len(existing)

    async def _run_item(self, report: SweepReport, label: str, item_id: int, step, *args) -> None:
        """Run one sweep item in its own unit of work; failures are counted, not raised."""
        try:
            await step(*args)
            if not report.dry_run:
                await self.session.commit()
        except Exception as e:
            report.errors += 1
            report.failures.append(f"{label}:{item_id}")
            logger.error("reconcile_item_failed", item=label, item_id=item_id, error=str(e))
            await self.session.rollback()
            self.session.expunge_all()

    async def _sync_pair(self, schedule_id: int, report: SweepReport) -> None:
        schedule = await self.session.get(PaymentSchedule, schedule_id)
        entry = await self.ledgers.find_entry_by_schedule(schedule_id)
        if schedule is None or entry is None:
            report.skipped += 1
            logger.warning("payment_entry_missing", schedule_id=schedule_id)
            return
        if schedule.status == entry.status:
            return

        authority = pick_authority(schedule, entry)
        source, target = (schedule, entry) if authority == "schedule" else (entry, schedule)
        report.synced += 1
        logger.info(
            "payment_status_drift",
            schedule_id=schedule.id,
            entry_id=entry.id,
            authority=authority,
            from_status=target.status,
            to_status=source.status,
        )
        if report.dry_run:
            return
        target.status = source.status
        target.paid_date = source.paid_date
        target.paid_by = source.paid_by
        target.status_changed_at = source.status_changed_at
        await self.session.flush()

    async def _sweep_schedule_transactions(self, schedule_id: int, report: SweepReport) -> None:
        schedule = await self.session.get(PaymentSchedule, schedule_id)
        entry = await self.ledgers.find_entry_by_schedule(schedule_id)
        created, removed = await self.ensure_single_transaction(schedule.user_id, schedule, entry, report.dry_run)
        report.created += int(created)
        report.duplicates_removed += removed

    async def _sweep_entry_transactions(self, entry_id: int, report: SweepReport) -> None:
        entry = await self.ledgers.get_entry(entry_id)
        ledger = await self.ledgers.get_or_404(entry.ledger_id)
        created, removed = await self.ensure_single_transaction(ledger.user_id, None, entry, report.dry_run)
        report.created += int(created)
        report.duplicates_removed += removed

    async def _sweep_stale_transaction(self, transaction_id: int, report: SweepReport) -> None:
        transaction = await self.session.get(Transaction, transaction_id)
        if transaction.schedule_id is not None:
            payment = await self.session.get(PaymentSchedule, transaction.schedule_id)
        else:
            payment = await self.ledgers.get_entry(transaction.entry_id)
        if payment is not None and payment.status == "paid":
            return
        report.deleted += 1
        if not report.dry_run:
            await self.session.delete(transaction)
            await self.session.flush()

    async def sweep(self, user_id: Optional[int] = None, dry_run: bool = False) -> SweepReport:
        """Converge drifted pairs, then enforce one Transaction per paid payment."""
        report = SweepReport(dry_run=dry_run)

        query = select(PaymentSchedule.id).where(PaymentSchedule.ledger_id.is_not(None))
        if user_id is not None:
            query = query.where(PaymentSchedule.user_id == user_id)
        for schedule_id in (await self.session.execute(query.order_by(PaymentSchedule.id))).scalars().all():
            report.checked += 1
            await self._run_item(report, "schedule", schedule_id, self._sync_pair, schedule_id, report)

        query = select(PaymentSchedule.id).where(PaymentSchedule.status == "paid")
        if user_id is not None:
            query = query.where(PaymentSchedule.user_id == user_id)
        for schedule_id in (await self.session.execute(query.order_by(PaymentSchedule.id))).scalars().all():
            await self._run_item(
                report, "schedule_transaction", schedule_id,
                self._sweep_schedule_transactions, schedule_id, report,
            )

        query = (
            select(PaymentEntry.id)
            .join(WeeklyLedger, WeeklyLedger.id == PaymentEntry.ledger_id)
            .where(PaymentEntry.status == "paid", PaymentEntry.schedule_id.is_(None))
        )
        if user_id is not None:
            query = query.where(WeeklyLedger.user_id == user_id)
        for entry_id in (await self.session.execute(query.order_by(PaymentEntry.id))).scalars().all():
            await self._run_item(
                report, "entry_transaction", entry_id,
                self._sweep_entry_transactions, entry_id, report,
            )

        linked_ids = [t.id for t in await self.transactions.list_linked(user_id)]
        for transaction_id in linked_ids:
            await self._run_item(
                report, "transaction", transaction_id,
                self._sweep_stale_transaction, transaction_id, report,
            )

        logger.info("sweep_completed", user_id=user_id, **{k: v for k, v in report.as_dict().items() if k != "failures"})
        return report
