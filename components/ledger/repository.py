"""Repository for weekly ledger operations.

Methods here only flush; the operation that drives them owns the commit.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock
from components.core.dates import end_of_week, start_of_week
from components.core.exceptions import NotFoundError, OverAllocationError, ValidationError
from components.core.log import get_logger
from components.ledger.models import ALLOCATION_MODES, LedgerCategory, PaymentEntry, WeeklyLedger
from components.period.planner import count_slices, per_slice_allocation
from components.schedule.models import PaymentSchedule
from components.transaction.models import Transaction

logger = get_logger(__name__)


def resolve_allocation(mode: Optional[str], allocation: Optional[float]):
    """Turn a (mode, amount) pair into a valid tri-state allocation."""
    amount = allocation or 0
    if amount < 0:
        raise ValidationError("Allocation must be a non-negative number")
    if mode is None:
        mode = "limited" if amount > 0 else "unset"
    if mode not in ALLOCATION_MODES:
        raise ValidationError(f"Invalid allocation mode: {mode}")
    if mode == "limited" and amount <= 0:
        raise ValidationError("A limited allocation needs a positive amount")
    if mode != "limited":
        amount = 0
    return mode, amount


class WeeklyLedgerRepository:
    """Repository for weekly ledger operations."""

    def __init__(self, session: AsyncSession, clock: Clock):
        """Initialize repository with database session and time source."""
        self.session = session
        self.clock = clock

    async def get(self, ledger_id: int) -> Optional[WeeklyLedger]:
        """Get ledger by ID."""
        return await self.session.get(WeeklyLedger, ledger_id)

    async def get_or_404(self, ledger_id: int) -> WeeklyLedger:
        ledger = await self.get(ledger_id)
        if ledger is None:
            raise NotFoundError("Weekly ledger not found")
        return ledger

    async def find_covering(self, user_id: int, day: date) -> Optional[WeeklyLedger]:
        """Ledger of the user whose window contains ``day``; plan ledgers first."""
        result = await self.session.execute(
            select(WeeklyLedger)
            .where(
                WeeklyLedger.user_id == user_id,
                WeeklyLedger.week_start <= day,
                WeeklyLedger.week_end >= day,
            )
            .order_by(WeeklyLedger.period_budget_id.is_(None), WeeklyLedger.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def current(self, user_id: int) -> Optional[WeeklyLedger]:
        return await self.find_covering(user_id, self.clock.today())

    async def list_overlapping(self, user_id: int, start: date, end: date) -> List[WeeklyLedger]:
        """Ledgers whose window overlaps the inclusive range [start, end]."""
        result = await self.session.execute(
            select(WeeklyLedger)
            .where(
                WeeklyLedger.user_id == user_id,
                WeeklyLedger.week_start <= end,
                WeeklyLedger.week_end >= start,
            )
            .order_by(WeeklyLedger.week_start, WeeklyLedger.id)
        )
        return list(result.scalars().all())

    async def list_for_period(self, period_budget_id: int) -> List[WeeklyLedger]:
        result = await self.session.execute(
            select(WeeklyLedger).where(WeeklyLedger.period_budget_id == period_budget_id)
        )
        return list(result.scalars().all())

    async def ensure_ledger_for(self, user_id: int, day: date, household_id: Optional[int] = None) -> WeeklyLedger:
        """
        Return the user's ledger covering ``day``, creating a standalone one if needed.

        A standalone ledger has no parent period, no total and no categories;
        it only gives scheduled payments a weekly home.
        """
        ledger = await self.find_covering(user_id, day)
        if ledger is not None:
            return ledger

        now = self.clock.now()
        ledger = WeeklyLedger(
            user_id=user_id,
            household_id=household_id,
            week_start=start_of_week(day),
            week_end=end_of_week(day),
            total_amount=0,
            remaining_amount=0,
            creation_mode="standalone",
            created_at=now,
            updated_at=now,
            categories=[],
        )
        self.session.add(ledger)
        await self.session.flush()
        logger.info("standalone_ledger_created", ledger_id=ledger.id, user_id=user_id, week_start=str(ledger.week_start))
        return ledger

    async def materialize_from_period(self, plan, week_number: int) -> WeeklyLedger:
        """
        Materialize one slice of a period budget into a live ledger.

        Idempotent: a slice that already points at a ledger returns it.
        Only current or past weeks are pre-populated with due schedules.
        """
        week = plan.slice(week_number)
        if week is None:
            raise NotFoundError("Week not found in budget period")

        if week.ledger_id is not None:
            existing = await self.get(week.ledger_id)
            if existing is not None:
                return existing

        slice_count = count_slices(plan.start_date, plan.end_date)
        now = self.clock.now()
        categories = []
        for allocation in plan.categories:
            amount = per_slice_allocation(
                allocation.default_allocation,
                allocation.percentage,
                slice_count,
                week.allocated_amount,
            )
            categories.append(LedgerCategory(
                category_id=allocation.category_id,
                allocation_mode="limited" if amount > 0 else "unset",
                allocation=amount,
                entries=[],
            ))

        ledger = WeeklyLedger(
            user_id=plan.user_id,
            household_id=plan.household_id,
            period_budget_id=plan.id,
            week_number=week.week_number,
            week_start=week.start_date,
            week_end=week.end_date,
            total_amount=week.allocated_amount,
            remaining_amount=week.allocated_amount,
            creation_mode="from_period",
            created_at=now,
            updated_at=now,
            categories=categories,
        )
        self.session.add(ledger)
        await self.session.flush()

        # Future weeks start empty
        if week.start_date <= self.clock.today():
            await self._pull_due_schedules(ledger)

        self.update_remaining(ledger)
        week.ledger_id = ledger.id
        week.status = "active"
        if ledger.total_amount > 0:
            week.allocated_amount = ledger.total_amount
        await self.session.flush()

        logger.info(
            "ledger_materialized",
            ledger_id=ledger.id,
            period_budget_id=plan.id,
            week_number=week_number,
        )
        return ledger

    async def _pull_due_schedules(self, ledger: WeeklyLedger) -> int:
        """Attach schedules due inside the ledger window to matching categories."""
        result = await self.session.execute(
            select(PaymentSchedule)
            .where(
                PaymentSchedule.user_id == ledger.user_id,
                PaymentSchedule.due_date >= ledger.week_start,
                PaymentSchedule.due_date <= ledger.week_end,
                PaymentSchedule.status != "cancelled",
            )
            .order_by(PaymentSchedule.due_date, PaymentSchedule.id)
        )
        pulled = 0
        for schedule in result.scalars().all():
            category = ledger.category(schedule.category_id)
            if category is None or schedule.ledger_id == ledger.id:
                continue

            if schedule.ledger_id is not None:
                current_home = await self.get(schedule.ledger_id)
                if current_home is not None and current_home.period_budget_id is not None:
                    continue

            if category.is_limited and round(category.scheduled_total + schedule.amount, 2) > category.allocation:
                logger.warning(
                    "schedule_skipped_over_allocation",
                    ledger_id=ledger.id,
                    schedule_id=schedule.id,
                    allocation=category.allocation,
                )
                continue

            previous_entry = await self.find_entry_by_schedule(schedule.id)
            source = previous_entry or schedule
            if previous_entry is not None:
                await self.delete_entry(previous_entry)

            entry = PaymentEntry(
                ledger_id=ledger.id,
                name=schedule.name,
                amount=schedule.amount,
                scheduled_date=schedule.due_date,
                status=source.status,
                paid_date=source.paid_date,
                paid_by=source.paid_by,
                schedule_id=schedule.id,
                notes=schedule.notes,
                status_changed_at=source.status_changed_at,
            )
            category.entries.append(entry)
            schedule.ledger_id = ledger.id
            pulled += 1

        await self.session.flush()
        return pulled

    async def add_category(
        self,
        ledger: WeeklyLedger,
        category_id: int,
        allocation_mode: Optional[str] = None,
        allocation: Optional[float] = None,
    ) -> LedgerCategory:
        """Add a category to the ledger; an existing one is returned unchanged."""
        existing = ledger.category(category_id)
        if existing is not None:
            return existing
        mode, amount = resolve_allocation(allocation_mode, allocation)
        category = LedgerCategory(
            ledger_id=ledger.id,
            category_id=category_id,
            allocation_mode=mode,
            allocation=amount,
            entries=[],
        )
        ledger.categories.append(category)
        self.update_remaining(ledger)
        await self.session.flush()
        return category

    async def set_allocation(
        self,
        ledger: WeeklyLedger,
        category_id: int,
        allocation_mode: Optional[str],
        allocation: Optional[float],
    ) -> LedgerCategory:
        """Change a category allocation without breaking already scheduled entries."""
        category = ledger.category(category_id)
        if category is None:
            raise NotFoundError("Category not found in ledger")
        mode, amount = resolve_allocation(allocation_mode, allocation)
        if mode == "limited" and category.scheduled_total > amount:
            raise ValidationError(
                f"Allocation {amount:.2f} is below the {category.scheduled_total:.2f} already scheduled"
            )
        category.allocation_mode = mode
        category.allocation = amount
        self.update_remaining(ledger)
        await self.session.flush()
        return category

    async def add_payment(
        self,
        ledger: WeeklyLedger,
        category_id: int,
        name: str,
        amount: float,
        scheduled_date: date,
        schedule_id: Optional[int] = None,
        status: str = "pending",
        notes: Optional[str] = None,
    ) -> PaymentEntry:
        """
        Insert a payment entry into a ledger category.

        Raises OverAllocationError when the category is limited and the new
        entry would push its scheduled total past the allocation; the ledger
        is left unchanged in that case.
        """
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be a positive number")
        if not name:
            raise ValidationError("Payment name is required")

        category = ledger.category(category_id)
        if category is None:
            raise NotFoundError("Category not found in ledger")

        if category.is_limited:
            current = category.scheduled_total
            if round(current + amount, 2) > category.allocation:
                raise OverAllocationError(category_id, category.allocation, current, amount)

        entry = PaymentEntry(
            ledger_id=ledger.id,
            name=name,
            amount=amount,
            scheduled_date=scheduled_date,
            status=status,
            schedule_id=schedule_id,
            notes=notes,
        )
        category.entries.append(entry)
        await self.session.flush()
        return entry

    def update_remaining(self, ledger: WeeklyLedger) -> float:
        """Headroom left after category allocations (not spend)."""
        allocated = sum(c.allocation for c in ledger.categories)
        ledger.remaining_amount = (ledger.total_amount or 0) - allocated
        return ledger.remaining_amount

    def get_spending_by_category(self, ledger: WeeklyLedger) -> List[Dict]:
        """Allocated, spent, scheduled and remaining amounts per category."""
        spending = []
        for category in ledger.categories:
            allocated = category.allocation or 0
            spent = category.paid_total
            scheduled = category.scheduled_total
            spending.append({
                "category_id": category.category_id,
                "allocation_mode": category.allocation_mode,
                "allocated": allocated,
                "spent": spent,
                "scheduled": scheduled,
                "remaining": allocated - spent,
                "available": allocated - scheduled if category.is_limited else None,
                "percent_used": (spent / allocated * 100) if allocated > 0 else 0,
            })
        return spending

    async def get_entry(self, entry_id: int) -> Optional[PaymentEntry]:
        return await self.session.get(PaymentEntry, entry_id)

    async def find_entry_by_schedule(self, schedule_id: int) -> Optional[PaymentEntry]:
        result = await self.session.execute(
            select(PaymentEntry)
            .where(PaymentEntry.schedule_id == schedule_id)
            .order_by(PaymentEntry.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    def find_entry(self, ledger: WeeklyLedger, payment_id: int) -> Optional[PaymentEntry]:
        """Entry of this ledger matching a schedule id first, then its own id."""
        entries = [e for c in ledger.categories for e in c.entries]
        match = next((e for e in entries if e.schedule_id == payment_id), None)
        return match or next((e for e in entries if e.id == payment_id), None)

    async def delete_entry(self, entry: PaymentEntry) -> None:
        """Remove an entry from its ledger category."""
        ledger = await self.get_or_404(entry.ledger_id)
        category = next(c for c in ledger.categories if c.id == entry.ledger_category_id)
        category.entries.remove(entry)
        await self.session.flush()

    async def delete_ledger(self, ledger: WeeklyLedger) -> None:
        """Delete a ledger, unlinking schedules and slices that point at it."""
        from components.period.models import WeeklySlice

        entry_ids = [e.id for c in ledger.categories for e in c.entries if e.schedule_id is None]
        if entry_ids:
            result = await self.session.execute(
                select(Transaction).where(Transaction.entry_id.in_(entry_ids))
            )
            for transaction in result.scalars().all():
                await self.session.delete(transaction)

        await self.session.execute(
            update(PaymentSchedule)
            .where(PaymentSchedule.ledger_id == ledger.id)
            .values(ledger_id=None)
        )
        await self.session.execute(
            update(WeeklySlice)
            .where(WeeklySlice.ledger_id == ledger.id)
            .values(ledger_id=None, status="pending")
        )
        await self.session.delete(ledger)
        await self.session.flush()
        logger.info("ledger_deleted", ledger_id=ledger.id)
