"""Financial aggregation over transactions and paid payments."""

from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Union

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock
from components.core.config import get_settings
from components.core.dates import as_date
from components.ledger.models import LedgerCategory, PaymentEntry, WeeklyLedger
from components.ledger.repository import WeeklyLedgerRepository
from components.period.models import PeriodBudget
from components.reporting import schemas
from components.schedule.models import PaymentSchedule
from components.transaction.repository import TransactionRepository

settings = get_settings()

GROUP_KEYS = ("category", "type", "weekday")

KeyFunction = Callable[[schemas.PeriodTransaction], Union[int, str]]


def performance_status(spent: float, budgeted: float) -> str:
    if spent > budgeted:
        return "exceeded"
    if spent > budgeted * settings.BUDGET_WARNING_RATIO:
        return "warning"
    return "good"


class FinancialAggregator:
    """Reports that count every payment fact exactly once."""

    def __init__(self, session: AsyncSession, clock: Clock):
        """Initialize aggregator with database session and time source."""
        self.session = session
        self.clock = clock
        self.transactions = TransactionRepository(session, clock)
        self.ledgers = WeeklyLedgerRepository(session, clock)

    async def get_period_transactions(self, user_id: int, start: date, end: date) -> List[schemas.PeriodTransaction]:
        """
        Plain transactions plus pseudo-transactions for paid payments in [start, end].

        A payment is skipped when a Transaction already carries its payment
        key; a ledger entry linked to a schedule shares the schedule's key and
        is therefore reported once. The effective date of a payment is its
        paid date, else its due/scheduled date.
        """
        records = []
        covered = {t.payment_key for t in await self.transactions.list_linked(user_id)}

        for transaction in await self.transactions.list_for_user(user_id, start, end):
            records.append(schemas.PeriodTransaction(
                source="transaction",
                record_id=transaction.id,
                type=transaction.type,
                amount=transaction.amount,
                category_id=transaction.category_id,
                date=transaction.date,
                description=transaction.description,
                payment_key=transaction.payment_key,
            ))

        # Paid schedules without a Transaction
        result = await self.session.execute(
            select(PaymentSchedule).where(
                PaymentSchedule.user_id == user_id,
                PaymentSchedule.status == "paid",
            )
        )
        for schedule in result.scalars().all():
            if schedule.payment_key in covered:
                continue
            covered.add(schedule.payment_key)
            day = as_date(schedule.paid_date) if schedule.paid_date else schedule.due_date
            if start <= day <= end:
                records.append(schemas.PeriodTransaction(
                    source="schedule",
                    record_id=schedule.id,
                    type=schedule.type,
                    amount=schedule.amount,
                    category_id=schedule.category_id,
                    date=day,
                    description=schedule.name,
                    payment_key=schedule.payment_key,
                ))

        # Paid ledger entries not represented yet
        result = await self.session.execute(
            select(PaymentEntry, LedgerCategory.category_id)
            .join(LedgerCategory, LedgerCategory.id == PaymentEntry.ledger_category_id)
            .join(WeeklyLedger, WeeklyLedger.id == PaymentEntry.ledger_id)
            .where(WeeklyLedger.user_id == user_id, PaymentEntry.status == "paid")
        )
        for entry, category_id in result.all():
            if entry.payment_key in covered:
                continue
            covered.add(entry.payment_key)
            day = as_date(entry.paid_date) if entry.paid_date else entry.scheduled_date
            if start <= day <= end:
                records.append(schemas.PeriodTransaction(
                    source="ledger",
                    record_id=entry.id,
                    type="expense",
                    amount=entry.amount,
                    category_id=category_id,
                    date=day,
                    description=entry.name,
                    payment_key=entry.payment_key,
                ))

        records.sort(key=lambda r: (r.date, r.source, r.record_id))
        return records

    @staticmethod
    def _aggregate(
        records: List[schemas.PeriodTransaction],
        key: Union[str, KeyFunction],
    ) -> Dict[Union[int, str], schemas.AggregateBucket]:
        if not records:
            return {}

        df = pd.DataFrame([r.model_dump() for r in records])
        if callable(key):
            df["group"] = [key(r) for r in records]
        elif key == "category":
            df["group"] = df["category_id"]
        elif key == "type":
            df["group"] = df["type"]
        elif key == "weekday":
            df["group"] = pd.to_datetime(df["date"]).dt.day_name()
        else:
            raise ValueError(f"Unknown group key: {key}")

        grouped = df.groupby("group")["amount"].agg(["sum", "count", "mean"])
        buckets = {}
        for group, row in grouped.iterrows():
            # numpy scalars -> plain Python values
            group = group.item() if hasattr(group, "item") else group
            buckets[group] = schemas.AggregateBucket(
                total=round(float(row["sum"]), 2),
                count=int(row["count"]),
                average=round(float(row["mean"]), 2),
            )
        return buckets

    async def aggregate_by(
        self,
        user_id: int,
        key: Union[str, KeyFunction],
        start: date,
        end: date,
    ) -> Dict[Union[int, str], schemas.AggregateBucket]:
        """Group the period's transactions by ``key``: {group: {total, count, average}}."""
        records = await self.get_period_transactions(user_id, start, end)
        return self._aggregate(records, key)

    @staticmethod
    def _performance_row(
        row_id: str,
        row_type: str,
        category_id: int,
        start: date,
        end: date,
        budgeted: float,
        spent: float,
    ) -> schemas.CategoryPerformance:
        spent = round(spent, 2)
        return schemas.CategoryPerformance(
            id=row_id,
            type=row_type,
            category_id=category_id,
            start_date=start,
            end_date=end,
            budgeted=budgeted,
            spent=spent,
            remaining=round(budgeted - spent, 2),
            percentage=round(spent / budgeted * 100, 2),
            status=performance_status(spent, budgeted),
        )

    async def get_budget_performance(self, user_id: int, start: date, end: date) -> List[schemas.CategoryPerformance]:
        """
        Budgeted vs spent for every budget line active in [start, end].

        Returns one row per budget line, weekly rows first:
        - ``weekly``: a limited category of a ledger overlapping the range,
          spent is the sum of its paid entries
        - ``period``: a category allocation of a plan overlapping the range,
          spent is the sum of the paid entries of that category in the plan's ledgers
        Lines with no positive budget are omitted.
        """
        performance = []

        for ledger in await self.ledgers.list_overlapping(user_id, start, end):
            for category in ledger.categories:
                if not category.is_limited or category.allocation <= 0:
                    continue
                performance.append(self._performance_row(
                    f"weekly:{ledger.id}:{category.category_id}",
                    "weekly",
                    category.category_id,
                    ledger.week_start,
                    ledger.week_end,
                    category.allocation,
                    category.paid_total,
                ))

        result = await self.session.execute(
            select(PeriodBudget)
            .where(
                PeriodBudget.user_id == user_id,
                PeriodBudget.start_date <= end,
                PeriodBudget.end_date > start,
            )
            .order_by(PeriodBudget.start_date, PeriodBudget.id)
        )
        for plan in result.scalars().all():
            ledgers = await self.ledgers.list_for_period(plan.id)
            for allocation in plan.categories:
                amount = allocation.default_allocation or (allocation.percentage or 0) * plan.total_amount / 100
                if amount <= 0:
                    continue
                spent = 0
                for ledger in ledgers:
                    category = ledger.category(allocation.category_id)
                    if category is not None:
                        spent += category.paid_total
                performance.append(self._performance_row(
                    f"period:{plan.id}:{allocation.category_id}",
                    "period",
                    allocation.category_id,
                    plan.start_date,
                    plan.end_date - timedelta(days=1),
                    amount,
                    spent,
                ))
        return performance

    async def get_financial_summary(self, user_id: int, start: date, end: date) -> schemas.FinancialSummary:
        """Income, expenses, balance and savings rate with by-type and by-category breakdowns."""
        records = await self.get_period_transactions(user_id, start, end)
        income = round(sum(r.amount for r in records if r.type == "income"), 2)
        expenses = round(sum(r.amount for r in records if r.type == "expense"), 2)
        balance = round(income - expenses, 2)

        return schemas.FinancialSummary(
            start_date=start,
            end_date=end,
            income=income,
            expenses=expenses,
            balance=balance,
            savings_rate=round(balance / income * 100, 2) if income > 0 else 0,
            transaction_count=len(records),
            by_type=self._aggregate(records, "type"),
            by_category=self._aggregate(records, "category"),
        )

    def default_range(self, start: Optional[date] = None, end: Optional[date] = None):
        """Report range defaulting to the current month up to today."""
        today = self.clock.today()
        return start or date(today.year, today.month, 1), end or today
