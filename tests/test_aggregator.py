"""Tests for financial aggregation and budget performance."""

from datetime import date

import pytest

from components.ledger.repository import WeeklyLedgerRepository
from components.period.repository import PeriodBudgetRepository
from components.period.schemas import CategoryAllocationIn, PeriodBudgetCreate
from components.reporting.aggregator import FinancialAggregator, performance_status
from components.schedule.repository import PaymentScheduleRepository
from components.schedule.schemas import PaymentScheduleCreate
from components.transaction.repository import TransactionRepository
from components.transaction.schemas import TransactionCreate

FEBRUARY = (date(2027, 2, 1), date(2027, 2, 28))


async def income(session, clock, user, category, amount, day):
    return await TransactionRepository(session, clock).create(
        user.id, TransactionCreate(type="income", amount=amount, category_id=category.id, date=day),
    )


async def create_plan(session, clock, user, category, default_allocation):
    return await PeriodBudgetRepository(session, clock).create(user.id, PeriodBudgetCreate(
        name="February",
        period_type="monthly",
        total_amount=3000,
        categories=[CategoryAllocationIn(category_id=category.id, default_allocation=default_allocation)],
    ))


async def paid_schedule(session, clock, user, category, name, amount, due_date=date(2027, 2, 3)):
    repo = PaymentScheduleRepository(session, clock)
    schedule = await repo.create(user.id, PaymentScheduleCreate(
        name=name, amount=amount, category_id=category.id, due_date=due_date,
    ))
    return await repo.mark_paid(user.id, schedule.id)


class TestPeriodTransactions:
    """Tests for counting each payment fact exactly once."""

    async def test_aggregate_by_type(self, session, clock, user, salary, groceries):
        await income(session, clock, user, salary, 50, date(2027, 2, 1))
        await income(session, clock, user, salary, 70, date(2027, 2, 3))
        await paid_schedule(session, clock, user, groceries, "Market", 30)

        buckets = await FinancialAggregator(session, clock).aggregate_by(user.id, "type", *FEBRUARY)

        assert buckets["income"].model_dump() == {"total": 120, "count": 2, "average": 60}
        assert buckets["expense"].model_dump() == {"total": 30, "count": 1, "average": 30}

    async def test_paid_schedule_without_transaction_counts_once(self, session, clock, user, groceries):
        repo = PaymentScheduleRepository(session, clock)
        schedule = await repo.create(user.id, PaymentScheduleCreate(
            name="Market", amount=30, category_id=groceries.id, due_date=date(2027, 2, 4),
        ))
        entry = await repo.ledgers.find_entry_by_schedule(schedule.id)
        # Both sides flipped directly, no Transaction recorded
        for record in (schedule, entry):
            record.status = "paid"
        await session.commit()

        records = await FinancialAggregator(session, clock).get_period_transactions(user.id, *FEBRUARY)

        assert [(r.source, r.payment_key, r.date) for r in records] == [
            ("schedule", schedule.payment_key, date(2027, 2, 4)),
        ]

    async def test_unscheduled_ledger_entry_is_reported(self, session, clock, user, groceries):
        ledgers = WeeklyLedgerRepository(session, clock)
        ledger = await ledgers.ensure_ledger_for(user.id, date(2027, 2, 3))
        await ledgers.add_category(ledger, groceries.id)
        entry = await ledgers.add_payment(ledger, groceries.id, "Bakery", 12.5, date(2027, 2, 2), status="paid")
        await session.commit()

        records = await FinancialAggregator(session, clock).get_period_transactions(user.id, *FEBRUARY)

        assert [(r.source, r.record_id, r.category_id, r.amount) for r in records] == [
            ("ledger", entry.id, groceries.id, 12.5),
        ]

    async def test_range_is_inclusive(self, session, clock, user, salary):
        await income(session, clock, user, salary, 10, date(2027, 1, 31))
        await income(session, clock, user, salary, 20, date(2027, 2, 1))
        await income(session, clock, user, salary, 30, date(2027, 2, 28))
        await income(session, clock, user, salary, 40, date(2027, 3, 1))

        records = await FinancialAggregator(session, clock).get_period_transactions(user.id, *FEBRUARY)

        assert [r.amount for r in records] == [20, 30]

    async def test_group_by_category_weekday_and_function(self, session, clock, user, salary, groceries):
        await income(session, clock, user, salary, 50, date(2027, 2, 1))
        await paid_schedule(session, clock, user, groceries, "Market", 30)
        aggregator = FinancialAggregator(session, clock)

        by_category = await aggregator.aggregate_by(user.id, "category", *FEBRUARY)
        assert set(by_category) == {salary.id, groceries.id}
        by_weekday = await aggregator.aggregate_by(user.id, "weekday", *FEBRUARY)
        assert set(by_weekday) == {"Monday", "Wednesday"}
        by_size = await aggregator.aggregate_by(user.id, lambda r: "big" if r.amount >= 40 else "small", *FEBRUARY)
        assert by_size["big"].total == 50
        assert by_size["small"].total == 30

    async def test_empty_period(self, session, clock, user):
        assert await FinancialAggregator(session, clock).aggregate_by(user.id, "type", *FEBRUARY) == {}


class TestFinancialSummary:
    """Tests for income, expenses and savings rate."""

    async def test_summary(self, session, clock, user, salary, groceries):
        await income(session, clock, user, salary, 200, date(2027, 2, 1))
        await paid_schedule(session, clock, user, groceries, "Market", 50)

        aggregator = FinancialAggregator(session, clock)
        summary = await aggregator.get_financial_summary(user.id, *aggregator.default_range())

        assert (summary.start_date, summary.end_date) == (date(2027, 2, 1), date(2027, 2, 3))
        assert (summary.income, summary.expenses, summary.balance) == (200, 50, 150)
        assert summary.savings_rate == 75
        assert summary.transaction_count == 2
        assert summary.by_category[groceries.id].total == 50

    async def test_no_income_means_zero_savings_rate(self, session, clock, user, groceries):
        await paid_schedule(session, clock, user, groceries, "Market", 50)
        summary = await FinancialAggregator(session, clock).get_financial_summary(user.id, *FEBRUARY)
        assert summary.savings_rate == 0
        assert summary.balance == -50


class TestBudgetPerformance:
    """Tests for budgeted versus spent per budget line."""

    @pytest.mark.parametrize("spent,status", [(50, "good"), (80, "good"), (81, "warning"), (101, "exceeded")])
    def test_status_thresholds(self, spent, status):
        assert performance_status(spent, 100) == status

    async def test_plan_week_reaches_warning_on_its_own(self, session, clock, user, groceries):
        plan = await create_plan(session, clock, user, groceries, 1200)
        await paid_schedule(session, clock, user, groceries, "Market", 280, due_date=date(2027, 2, 4))

        rows = await FinancialAggregator(session, clock).get_budget_performance(user.id, *FEBRUARY)

        ledger_id = plan.slice(1).ledger_id
        assert [(r.id, r.type, r.budgeted, r.spent, r.status) for r in rows] == [
            (f"weekly:{ledger_id}:{groceries.id}", "weekly", 300, 280, "warning"),
            (f"period:{plan.id}:{groceries.id}", "period", 1200, 280, "good"),
        ]
        assert (rows[0].start_date, rows[0].end_date) == (date(2027, 2, 1), date(2027, 2, 7))
        assert (rows[1].start_date, rows[1].end_date) == (date(2027, 2, 1), date(2027, 2, 28))
        assert rows[0].remaining == 20

    async def test_standalone_ledger_counts_its_paid_entries_only(self, session, clock, user, utilities):
        ledgers = WeeklyLedgerRepository(session, clock)
        standalone = await ledgers.ensure_ledger_for(user.id, date(2027, 2, 10))
        await ledgers.add_category(standalone, utilities.id, allocation=100)
        await session.commit()
        await paid_schedule(session, clock, user, utilities, "Power", 90, due_date=date(2027, 2, 10))
        # A plain expense belongs to no budget line
        await TransactionRepository(session, clock).create(user.id, TransactionCreate(
            type="expense", amount=20, category_id=utilities.id, date=date(2027, 2, 11),
        ))

        [row] = await FinancialAggregator(session, clock).get_budget_performance(user.id, *FEBRUARY)

        assert (row.type, row.category_id, row.budgeted, row.spent) == ("weekly", utilities.id, 100, 90)
        assert row.status == "warning"
        assert row.percentage == 90

    async def test_period_line_exceeded_across_raised_weeks(self, session, clock, user, groceries):
        plan = await create_plan(session, clock, user, groceries, 120)
        ledgers = WeeklyLedgerRepository(session, clock)
        ledger = await ledgers.get(plan.slice(1).ledger_id)
        await ledgers.set_allocation(ledger, groceries.id, "limited", 200)
        await session.commit()
        await paid_schedule(session, clock, user, groceries, "Market", 150)

        rows = await FinancialAggregator(session, clock).get_budget_performance(user.id, *FEBRUARY)
        by_type = {r.type: r for r in rows}

        assert (by_type["weekly"].budgeted, by_type["weekly"].status) == (200, "good")
        assert (by_type["period"].budgeted, by_type["period"].spent) == (120, 150)
        assert by_type["period"].remaining == -30
        assert by_type["period"].status == "exceeded"

    async def test_ranges_outside_budgets_report_nothing(self, session, clock, user, groceries):
        await create_plan(session, clock, user, groceries, 1200)
        rows = await FinancialAggregator(session, clock).get_budget_performance(
            user.id, date(2027, 3, 1), date(2027, 3, 31),
        )
        assert rows == []

    async def test_unbudgeted_categories_are_omitted(self, session, clock, user, groceries):
        await paid_schedule(session, clock, user, groceries, "Market", 30)
        assert await FinancialAggregator(session, clock).get_budget_performance(user.id, *FEBRUARY) == []
