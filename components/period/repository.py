"""Repository for period budget operations."""

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.category.repository import CategoryRepository
from components.core.clock import Clock
from components.core.config import get_settings
from components.core.dates import compute_period_range
from components.core.exceptions import NotFoundError, ValidationError
from components.core.log import get_logger
from components.household.permissions import PermissionGate, default_gate, ensure_can_read, ensure_can_write
from components.ledger.models import WeeklyLedger
from components.ledger.repository import WeeklyLedgerRepository
from components.period.models import PeriodBudget, PeriodCategoryAllocation, WeeklySlice
from components.period.planner import generate_weekly_slices
from components.period import schemas
from components.user.repository import UserRepository

logger = get_logger(__name__)
settings = get_settings()

STATUS_TRANSITIONS = ("active", "completed", "archived")


class PeriodBudgetRepository:
    """Repository for period budget operations."""

    def __init__(self, session: AsyncSession, clock: Clock, gate: Optional[PermissionGate] = None):
        """Initialize repository with database session and time source."""
        self.session = session
        self.clock = clock
        self.gate = gate or default_gate
        self.ledgers = WeeklyLedgerRepository(session, clock)

    async def _check_categories(self, user_id: int, categories: List[schemas.CategoryAllocationIn]) -> None:
        ids = [c.category_id for c in categories]
        if len(ids) != len(set(ids)):
            raise ValidationError("Each category can only be allocated once")
        await CategoryRepository(self.session).ensure_visible(user_id, ids)

    @staticmethod
    def _allocations(categories: List[schemas.CategoryAllocationIn]) -> List[PeriodCategoryAllocation]:
        return [
            PeriodCategoryAllocation(
                category_id=c.category_id,
                default_allocation=c.default_allocation,
                percentage=c.percentage,
                priority=c.priority,
            )
            for c in categories
        ]

    async def create(self, user_id: int, data: schemas.PeriodBudgetCreate) -> PeriodBudget:
        """
        Create a period budget with its weekly slices.

        With ``auto_create_weekly`` the slice containing today (else the first
        slice) is materialized into a weekly ledger straight away.
        """
        today = self.clock.today()
        start, end = compute_period_range(data.period_type, today, data.custom_start_date, data.custom_end_date)
        await self._check_categories(user_id, data.categories)

        slices = generate_weekly_slices(start, end, data.total_amount, data.weekly_budget_amount)
        currency = data.currency or await UserRepository(self.session).currency_for(user_id, settings.DEFAULT_CURRENCY)
        now = self.clock.now()

        plan = PeriodBudget(
            user_id=user_id,
            household_id=data.household_id,
            name=data.name,
            description=data.description,
            period_type=data.period_type,
            start_date=start,
            end_date=end,
            total_amount=data.total_amount,
            weekly_budget_amount=data.weekly_budget_amount,
            auto_create_weekly=data.auto_create_weekly,
            currency=currency,
            status="active",
            total_spent=0,
            created_at=now,
            updated_at=now,
            categories=self._allocations(data.categories),
            weekly_slices=[
                WeeklySlice(
                    week_number=s.week_number,
                    start_date=s.start_date,
                    end_date=s.end_date,
                    allocated_amount=s.allocated_amount,
                    spent_amount=0,
                    status="pending",
                )
                for s in slices
            ],
        )
        self.session.add(plan)
        try:
            await self.session.flush()
            if data.auto_create_weekly and plan.weekly_slices:
                current = next(
                    (s for s in plan.weekly_slices if s.start_date <= today <= s.end_date),
                    plan.weekly_slices[0],
                )
                await self.ledgers.materialize_from_period(plan, current.week_number)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "period_budget_created",
            period_budget_id=plan.id,
            user_id=user_id,
            period_type=plan.period_type,
            slices=len(plan.weekly_slices),
        )
        return plan

    async def list(self, user_id: int, status: Optional[str] = None) -> List[PeriodBudget]:
        query = select(PeriodBudget).where(PeriodBudget.user_id == user_id)
        if status is not None:
            query = query.where(PeriodBudget.status == status)
        result = await self.session.execute(query.order_by(PeriodBudget.start_date.desc(), PeriodBudget.id.desc()))
        return list(result.scalars().all())

    async def get(self, actor_id: int, period_budget_id: int) -> PeriodBudget:
        """Get a period budget the actor may read."""
        plan = await self.session.get(PeriodBudget, period_budget_id)
        if plan is None:
            raise NotFoundError("Budget period not found")
        await ensure_can_read(self.gate, actor_id, plan, "budget period")
        return plan

    async def _get_writable(self, actor_id: int, period_budget_id: int) -> PeriodBudget:
        plan = await self.get(actor_id, period_budget_id)
        await ensure_can_write(self.gate, actor_id, plan, "budget period")
        return plan

    async def update(self, actor_id: int, period_budget_id: int, data: schemas.PeriodBudgetUpdate) -> PeriodBudget:
        """Update plan fields; the total can only change while the plan is a draft."""
        plan = await self._get_writable(actor_id, period_budget_id)
        changes = data.model_dump(exclude_unset=True)

        if "total_amount" in changes and plan.status != "draft":
            raise ValidationError("Total amount can only be changed on a draft budget period")
        if changes.get("categories") is not None:
            await self._check_categories(plan.user_id, data.categories)
            plan.categories = self._allocations(data.categories)

        for key in ("name", "description", "total_amount"):
            if key in changes:
                setattr(plan, key, changes[key])

        if "weekly_budget_amount" in changes:
            plan.weekly_budget_amount = changes["weekly_budget_amount"]
            if plan.weekly_budget_amount:
                for week in plan.weekly_slices:
                    if week.ledger_id is None:
                        week.allocated_amount = plan.weekly_budget_amount

        plan.updated_at = self.clock.now()
        await self.session.commit()
        return plan

    async def update_status(self, actor_id: int, period_budget_id: int, status: str) -> PeriodBudget:
        if status not in STATUS_TRANSITIONS:
            raise ValidationError(f"Invalid status: {status}")
        plan = await self._get_writable(actor_id, period_budget_id)
        plan.status = status
        plan.updated_at = self.clock.now()
        await self.session.commit()
        logger.info("period_budget_status_changed", period_budget_id=plan.id, status=status)
        return plan

    async def delete(self, actor_id: int, period_budget_id: int) -> None:
        """Delete a plan and every ledger materialized from it."""
        plan = await self._get_writable(actor_id, period_budget_id)
        for ledger in await self.ledgers.list_for_period(plan.id):
            await self.ledgers.delete_ledger(ledger)
        await self.session.delete(plan)
        await self.session.commit()
        logger.info("period_budget_deleted", period_budget_id=period_budget_id)

    async def materialize_week(self, actor_id: int, period_budget_id: int, week_number: int) -> WeeklyLedger:
        plan = await self._get_writable(actor_id, period_budget_id)
        try:
            ledger = await self.ledgers.materialize_from_period(plan, week_number)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return ledger

    async def recalculate_total(self, actor_id: int, period_budget_id: int) -> PeriodBudget:
        """Set the plan total to the sum of its slice allocations."""
        plan = await self._get_writable(actor_id, period_budget_id)
        previous = plan.total_amount
        plan.total_amount = sum(s.allocated_amount for s in plan.weekly_slices)
        await self._refresh_spent(plan)
        plan.updated_at = self.clock.now()
        await self.session.commit()
        logger.info("period_total_recalculated", period_budget_id=plan.id, previous=previous, total=plan.total_amount)
        return plan

    async def update_slice_allocation(
        self,
        actor_id: int,
        period_budget_id: int,
        week_number: int,
        amount: float,
    ) -> PeriodBudget:
        """Manually set one slice's allocation; its ledger total follows."""
        if amount is None or amount < 0:
            raise ValidationError("Allocated amount must be a non-negative number")
        plan = await self._get_writable(actor_id, period_budget_id)
        week = plan.slice(week_number)
        if week is None:
            raise NotFoundError("Week not found in budget period")

        week.allocated_amount = amount
        if week.ledger_id is not None:
            ledger = await self.ledgers.get(week.ledger_id)
            if ledger is not None:
                ledger.total_amount = amount
                self.ledgers.update_remaining(ledger)
        plan.updated_at = self.clock.now()
        await self.session.commit()
        return plan

    async def cleanup_future_slices(self, actor_id: int, period_budget_id: int) -> int:
        """Delete ledgers of slices that start after today; returns how many were reset."""
        plan = await self._get_writable(actor_id, period_budget_id)
        today = self.clock.today()
        cleaned = 0
        for week in plan.weekly_slices:
            if week.start_date <= today or week.ledger_id is None:
                continue
            ledger = await self.ledgers.get(week.ledger_id)
            if ledger is not None:
                await self.ledgers.delete_ledger(ledger)
            week.ledger_id = None
            week.status = "pending"
            cleaned += 1
        await self.session.commit()
        logger.info("future_weeks_cleaned", period_budget_id=plan.id, cleaned=cleaned)
        return cleaned

    async def _refresh_spent(self, plan: PeriodBudget) -> Dict[int, float]:
        """Recompute slice and plan spend from ledger paid entries; returns spend per category."""
        by_category: Dict[int, float] = {}
        today = self.clock.today()
        for week in plan.weekly_slices:
            spent = 0
            if week.ledger_id is not None:
                ledger = await self.ledgers.get(week.ledger_id)
                if ledger is not None:
                    for category in ledger.categories:
                        by_category[category.category_id] = by_category.get(category.category_id, 0) + category.paid_total
                        spent += category.paid_total
            week.spent_amount = spent
            if week.end_date < today and week.status == "active":
                week.status = "completed"
        plan.total_spent = sum(s.spent_amount for s in plan.weekly_slices)
        return by_category

    async def summary(self, actor_id: int, period_budget_id: int) -> schemas.PeriodSummary:
        """Overview, weekly progress, category breakdown and spending trend."""
        plan = await self.get(actor_id, period_budget_id)
        spent_by_category = await self._refresh_spent(plan)
        await self.session.commit()

        today = self.clock.today()
        slices = plan.weekly_slices
        completed = [s for s in slices if s.end_date < today]
        total = plan.total_amount or 0
        spent = plan.total_spent or 0

        average = sum(s.spent_amount for s in completed) / len(completed) if completed else 0
        projected = average * len(slices)

        return schemas.PeriodSummary(
            overview=schemas.SummaryOverview(
                total_budget=total,
                total_spent=spent,
                total_remaining=total - spent,
                progress_percentage=(spent / total * 100) if total > 0 else 0,
                days_remaining=max(0, (plan.end_date - today).days),
                weeks_completed=len(completed),
                weeks_total=len(slices),
            ),
            weekly_progress=[
                schemas.WeekProgress(
                    week_number=s.week_number,
                    start_date=s.start_date,
                    end_date=s.end_date,
                    allocated=s.allocated_amount,
                    spent=s.spent_amount,
                    status=s.status,
                )
                for s in slices
            ],
            category_breakdown=[
                schemas.CategoryBreakdown(
                    category_id=c.category_id,
                    allocated=c.default_allocation or (c.percentage or 0) * total / 100,
                    spent=spent_by_category.get(c.category_id, 0),
                )
                for c in plan.categories
            ],
            trends=schemas.Trends(
                average_weekly_spend=average,
                projected_total=projected,
                on_track=projected <= total if completed else True,
            ),
        )
