"""Tests for the reconciliation sweep and conflict resolution."""

from datetime import date, datetime, timedelta
from types import SimpleNamespace

from sqlalchemy import select

from components.ledger.repository import WeeklyLedgerRepository
from components.reconciliation.service import ReconciliationService, pick_authority
from components.schedule.models import PaymentSchedule
from components.schedule.repository import PaymentScheduleRepository
from components.schedule.schemas import PaymentScheduleCreate
from components.transaction.models import Transaction


async def transactions(session):
    return list((await session.execute(select(Transaction).order_by(Transaction.id))).scalars().all())


async def create_schedule(session, clock, user, category, name, amount=60):
    return await PaymentScheduleRepository(session, clock).create(user.id, PaymentScheduleCreate(
        name=name, amount=amount, category_id=category.id, due_date=date(2027, 2, 4),
    ))


def side(status, changed_at=None):
    return SimpleNamespace(status=status, status_changed_at=changed_at)


class TestPickAuthority:
    """Tests for deciding which side of a drifted pair wins."""

    def test_newer_change_wins(self):
        earlier, later = datetime(2027, 2, 1), datetime(2027, 2, 2)
        assert pick_authority(side("pending", later), side("paid", earlier)) == "schedule"
        assert pick_authority(side("paid", earlier), side("pending", later)) == "ledger"

    def test_paid_wins_without_timestamps(self):
        assert pick_authority(side("paid"), side("pending")) == "schedule"
        assert pick_authority(side("overdue"), side("paid")) == "ledger"

    def test_ledger_wins_ties(self):
        same = datetime(2027, 2, 1)
        assert pick_authority(side("overdue", same), side("pending", same)) == "ledger"


class TestSweep:
    """Tests for drift recovery over schedules, entries and transactions."""

    async def test_paid_schedules_behind_the_service(self, session, clock, user, groceries):
        first = await create_schedule(session, clock, user, groceries, "Rent")
        second = await create_schedule(session, clock, user, groceries, "Water")
        for schedule in (first, second):
            schedule.status = "paid"
            schedule.paid_date = clock.now()
            schedule.status_changed_at = clock.now()
        await session.commit()

        service = ReconciliationService(session, clock)
        report = await service.sweep()

        assert (report.checked, report.synced, report.created, report.errors) == (2, 2, 2, 0)
        ledgers = WeeklyLedgerRepository(session, clock)
        for schedule_id in (first.id, second.id):
            assert (await ledgers.find_entry_by_schedule(schedule_id)).status == "paid"
        assert sorted(t.schedule_id for t in await transactions(session)) == [first.id, second.id]

        again = await service.sweep()
        assert (again.synced, again.created, again.deleted, again.duplicates_removed) == (0, 0, 0, 0)

    async def test_ledger_side_wins_when_newer(self, session, clock, user, groceries):
        schedule = await create_schedule(session, clock, user, groceries, "Rent")
        entry = await WeeklyLedgerRepository(session, clock).find_entry_by_schedule(schedule.id)
        entry.status = "paid"
        entry.paid_date = clock.now()
        entry.status_changed_at = clock.now()
        await session.commit()

        report = await ReconciliationService(session, clock).sweep(user.id)

        assert report.synced == 1
        assert schedule.status == "paid"
        assert schedule.paid_date == entry.paid_date
        assert len(await transactions(session)) == 1

    async def test_duplicates_keep_most_recent(self, session, clock, user, groceries):
        schedule = await create_schedule(session, clock, user, groceries, "Rent")
        await PaymentScheduleRepository(session, clock).mark_paid(user.id, schedule.id)
        duplicate = Transaction(
            user_id=user.id,
            type="expense",
            amount=60,
            category_id=groceries.id,
            date=date(2027, 2, 3),
            schedule_id=schedule.id,
            created_at=clock.now() + timedelta(minutes=5),
        )
        session.add(duplicate)
        await session.commit()
        duplicate_id = duplicate.id

        report = await ReconciliationService(session, clock).sweep()

        assert report.duplicates_removed == 1
        assert [t.id for t in await transactions(session)] == [duplicate_id]

    async def test_stale_transaction_is_deleted(self, session, clock, user, groceries):
        schedule = await create_schedule(session, clock, user, groceries, "Rent")
        repo = PaymentScheduleRepository(session, clock)
        await repo.mark_paid(user.id, schedule.id)
        entry = await repo.ledgers.find_entry_by_schedule(schedule.id)
        for record in (schedule, entry):
            record.status = "pending"
            record.paid_date = None
        await session.commit()

        report = await ReconciliationService(session, clock).sweep()

        assert report.deleted == 1
        assert await transactions(session) == []

    async def test_dry_run_writes_nothing(self, session, clock, user, groceries):
        schedule = await create_schedule(session, clock, user, groceries, "Rent")
        schedule_id = schedule.id
        schedule.status = "paid"
        schedule.status_changed_at = clock.now()
        await session.commit()

        report = await ReconciliationService(session, clock).sweep(dry_run=True)

        assert report.dry_run is True
        assert (report.synced, report.created) == (1, 1)
        assert await transactions(session) == []
        entry = await WeeklyLedgerRepository(session, clock).find_entry_by_schedule(schedule_id)
        assert entry.status == "pending"

    async def test_unscheduled_entry_gets_a_transaction(self, session, clock, user, groceries):
        repo = WeeklyLedgerRepository(session, clock)
        ledger = await repo.ensure_ledger_for(user.id, date(2027, 2, 3))
        await repo.add_category(ledger, groceries.id)
        entry = await repo.add_payment(ledger, groceries.id, "Market", 25, date(2027, 2, 2), status="paid")
        await session.commit()

        report = await ReconciliationService(session, clock).sweep(user.id)

        assert report.created == 1
        [transaction] = await transactions(session)
        assert (transaction.entry_id, transaction.schedule_id) == (entry.id, None)
        assert transaction.category_id == groceries.id
        # Without a paid date the scheduled date is used
        assert transaction.date == date(2027, 2, 2)

    async def test_failing_item_does_not_stop_the_sweep(self, session, clock, user, groceries, monkeypatch):
        ids = []
        for name in ("Rent", "Water"):
            schedule = await create_schedule(session, clock, user, groceries, name)
            schedule.status = "paid"
            schedule.status_changed_at = clock.now()
            ids.append(schedule.id)
        await session.commit()

        service = ReconciliationService(session, clock)

        async def boom(*args, **kwargs):
            raise RuntimeError("database hiccup")

        monkeypatch.setattr(service, "ensure_single_transaction", boom)
        report = await service.sweep()

        assert report.errors == 2
        assert report.failures == [f"schedule_transaction:{i}" for i in ids]
        # Status sync of the first phase was committed before the failures
        for schedule_id in ids:
            entry = await WeeklyLedgerRepository(session, clock).find_entry_by_schedule(schedule_id)
            assert entry.status == "paid"

    async def test_sweep_is_scoped_to_user(self, session, clock, user, other_user, groceries):
        schedule = await create_schedule(session, clock, user, groceries, "Rent")
        schedule.status = "paid"
        schedule.status_changed_at = clock.now()
        await session.commit()

        report = await ReconciliationService(session, clock).sweep(other_user.id)

        assert (report.checked, report.synced, report.created) == (0, 0, 0)
        assert (await session.get(PaymentSchedule, schedule.id)).status == "paid"
