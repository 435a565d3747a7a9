"""Tests for periodic maintenance jobs and notification publishing."""

from datetime import date

from sqlalchemy import select

from components.ledger.repository import WeeklyLedgerRepository
from components.maintenance.sweeps import (
    check_budget_alerts,
    check_overdue_payments,
    reconcile_payments,
    send_payment_reminders,
)
from components.notification.models import Notification
from components.notification.publisher import NotificationPublisher, NotificationSink
from components.schedule.repository import PaymentScheduleRepository
from components.schedule.schemas import PaymentScheduleCreate


class RecordingSink(NotificationSink):
    def __init__(self):
        self.delivered = []

    async def deliver(self, notification):
        self.delivered.append((notification.type, notification.related_id))


class BrokenSink(NotificationSink):
    async def deliver(self, notification):
        raise ConnectionError("smtp down")


async def notifications(session):
    return list((await session.execute(select(Notification).order_by(Notification.id))).scalars().all())


async def schedule(session, clock, user, category, name, due_date, **kwargs):
    return await PaymentScheduleRepository(session, clock).create(user.id, PaymentScheduleCreate(
        name=name, amount=40, category_id=category.id, due_date=due_date, **kwargs,
    ))


class TestOverdueJob:
    """Tests for overdue detection and its notices."""

    async def test_flags_and_notifies_once(self, session, clock, user, groceries):
        late = await schedule(session, clock, user, groceries, "Water", date(2027, 2, 1))
        await schedule(session, clock, user, groceries, "Power", date(2027, 2, 5))
        sink = RecordingSink()

        assert await check_overdue_payments(session, clock, sink) == 1
        assert sink.delivered == [("payment_overdue", late.id)]
        assert late.status == "overdue"

        # Already overdue schedules are not flagged again
        assert await check_overdue_payments(session, clock, sink) == 0

    async def test_broken_sink_does_not_fail_the_job(self, session, clock, user, groceries):
        await schedule(session, clock, user, groceries, "Water", date(2027, 2, 1))

        assert await check_overdue_payments(session, clock, BrokenSink()) == 1
        [notice] = await notifications(session)
        assert notice.type == "payment_overdue"


class TestReminderJob:
    """Tests for upcoming payment reminders."""

    async def test_reminds_inside_window(self, session, clock, user, groceries):
        tomorrow = await schedule(session, clock, user, groceries, "Water", date(2027, 2, 4))
        await schedule(session, clock, user, groceries, "Power", date(2027, 2, 10))
        await schedule(session, clock, user, groceries, "Phone", date(2027, 2, 4), reminder_enabled=False)
        wide = await schedule(session, clock, user, groceries, "Rent", date(2027, 2, 8), reminder_days_before=5)
        sink = RecordingSink()

        assert await send_payment_reminders(session, clock, sink) == 2
        assert sorted(sink.delivered) == sorted([("payment_reminder", tomorrow.id), ("payment_reminder", wide.id)])

        # One reminder per payment per day
        assert await send_payment_reminders(session, clock, sink) == 0
        clock.advance(days=1)
        assert await send_payment_reminders(session, clock, sink) == 2


class TestBudgetAlertJob:
    """Tests for threshold alerts on this week's ledgers."""

    async def test_highest_threshold_once_per_day(self, session, clock, user, groceries):
        ledgers = WeeklyLedgerRepository(session, clock)
        ledger = await ledgers.ensure_ledger_for(user.id, date(2027, 2, 3))
        await ledgers.add_category(ledger, groceries.id, allocation=100)
        await session.commit()
        repo = PaymentScheduleRepository(session, clock)
        first = await repo.create(user.id, PaymentScheduleCreate(
            name="Market", amount=85, category_id=groceries.id, due_date=date(2027, 2, 2),
        ))
        await repo.mark_paid(user.id, first.id)

        assert await check_budget_alerts(session, clock) == 1
        assert await check_budget_alerts(session, clock) == 0

        second = await repo.create(user.id, PaymentScheduleCreate(
            name="Bakery", amount=15, category_id=groceries.id, due_date=date(2027, 2, 3),
        ))
        await repo.mark_paid(user.id, second.id)
        assert await check_budget_alerts(session, clock) == 1

        assert [n.threshold for n in await notifications(session)] == [80, 100]
        assert (await notifications(session))[-1].title == "Budget exceeded"

    async def test_other_weeks_are_ignored(self, session, clock, user, groceries):
        ledgers = WeeklyLedgerRepository(session, clock)
        ledger = await ledgers.ensure_ledger_for(user.id, date(2027, 2, 12))
        await ledgers.add_category(ledger, groceries.id, allocation=10)
        await ledgers.add_payment(ledger, groceries.id, "Market", 10, date(2027, 2, 12), status="paid")
        await session.commit()

        assert await check_budget_alerts(session, clock) == 0


class TestPublisher:
    """Tests for notification de-duplication."""

    async def test_same_event_once_per_day(self, session, clock, user):
        publisher = NotificationPublisher(session, clock)
        kwargs = dict(
            user_id=user.id, type="payment_reminder", title="Upcoming", message="Rent",
            related_type="payment_schedule", related_id=1,
        )
        assert await publisher.publish(**kwargs) is not None
        await session.commit()
        assert await publisher.publish(**kwargs) is None

    async def test_reconcile_job(self, session, clock, user, groceries):
        paid = await schedule(session, clock, user, groceries, "Water", date(2027, 2, 4))
        paid.status = "paid"
        paid.status_changed_at = clock.now()
        await session.commit()

        report = await reconcile_payments(session, clock)

        assert (report.synced, report.created) == (1, 1)
