"""Tests for weekly ledgers: allocations, payment entries and spending."""

from datetime import date

import pytest

from components.core.exceptions import NotFoundError, OverAllocationError, ValidationError
from components.ledger.repository import WeeklyLedgerRepository, resolve_allocation


@pytest.fixture
async def ledger(session, clock, user):
    return await WeeklyLedgerRepository(session, clock).ensure_ledger_for(user.id, date(2027, 2, 3))


class TestResolveAllocation:
    """Tests for the tri-state allocation mode."""

    def test_positive_amount_means_limited(self):
        assert resolve_allocation(None, 500) == ("limited", 500)

    def test_missing_amount_means_unset(self):
        assert resolve_allocation(None, None) == ("unset", 0)
        assert resolve_allocation(None, 0) == ("unset", 0)

    def test_unlimited_drops_amount(self):
        assert resolve_allocation("unlimited", 300) == ("unlimited", 0)

    @pytest.mark.parametrize("mode,amount", [
        ("limited", 0),
        ("limited", None),
        ("capped", 100),
        (None, -5),
    ])
    def test_invalid(self, mode, amount):
        with pytest.raises(ValidationError):
            resolve_allocation(mode, amount)


class TestEnsureLedger:
    """Tests for standalone ledger creation."""

    async def test_standalone_ledger_covers_the_week(self, session, clock, user, ledger):
        assert (ledger.week_start, ledger.week_end) == (date(2027, 2, 1), date(2027, 2, 7))
        assert ledger.period_budget_id is None
        assert ledger.creation_mode == "standalone"
        assert ledger.categories == []

        repo = WeeklyLedgerRepository(session, clock)
        assert (await repo.ensure_ledger_for(user.id, date(2027, 2, 7))).id == ledger.id
        assert (await repo.ensure_ledger_for(user.id, date(2027, 2, 8))).id != ledger.id

    async def test_current(self, session, clock, user, ledger):
        repo = WeeklyLedgerRepository(session, clock)
        assert (await repo.current(user.id)).id == ledger.id
        clock.set(clock.now().replace(day=20))
        assert await repo.current(user.id) is None


class TestAllocationCeiling:
    """Tests for payment insertion against limited categories."""

    async def test_over_allocation_is_rejected(self, session, clock, ledger, groceries):
        repo = WeeklyLedgerRepository(session, clock)
        await repo.add_category(ledger, groceries.id, allocation=500)
        await repo.add_payment(ledger, groceries.id, "Market", 300, date(2027, 2, 2))
        await repo.add_payment(ledger, groceries.id, "Bakery", 180, date(2027, 2, 4))

        with pytest.raises(OverAllocationError) as excinfo:
            await repo.add_payment(ledger, groceries.id, "Butcher", 30, date(2027, 2, 5))
        assert excinfo.value.current == 480
        assert len(ledger.category(groceries.id).entries) == 2

        await repo.add_payment(ledger, groceries.id, "Butcher", 20, date(2027, 2, 5))
        spending = repo.get_spending_by_category(ledger)[0]
        assert spending["scheduled"] == 500
        assert spending["available"] == 0

    @pytest.mark.parametrize("mode", ["unset", "unlimited"])
    async def test_unlimited_modes_accept_anything(self, session, clock, ledger, groceries, mode):
        repo = WeeklyLedgerRepository(session, clock)
        await repo.add_category(ledger, groceries.id, allocation_mode=mode)
        await repo.add_payment(ledger, groceries.id, "Party", 10000, date(2027, 2, 6))

        spending = repo.get_spending_by_category(ledger)[0]
        assert spending["scheduled"] == 10000
        assert spending["available"] is None

    async def test_rejects_bad_payments(self, session, clock, ledger, groceries, utilities):
        repo = WeeklyLedgerRepository(session, clock)
        await repo.add_category(ledger, groceries.id)
        with pytest.raises(ValidationError):
            await repo.add_payment(ledger, groceries.id, "Market", 0, date(2027, 2, 2))
        with pytest.raises(ValidationError):
            await repo.add_payment(ledger, groceries.id, "", 10, date(2027, 2, 2))
        with pytest.raises(NotFoundError, match="Category not found in ledger"):
            await repo.add_payment(ledger, utilities.id, "Power", 10, date(2027, 2, 2))

    async def test_allocation_cannot_drop_below_scheduled(self, session, clock, ledger, groceries):
        repo = WeeklyLedgerRepository(session, clock)
        await repo.add_category(ledger, groceries.id, allocation=500)
        await repo.add_payment(ledger, groceries.id, "Market", 300, date(2027, 2, 2))

        with pytest.raises(ValidationError):
            await repo.set_allocation(ledger, groceries.id, "limited", 250)
        category = await repo.set_allocation(ledger, groceries.id, "limited", 300)
        assert category.allocation == 300


class TestLedgerBookkeeping:
    """Tests for remaining headroom, lookups and deletion."""

    async def test_remaining_is_total_minus_allocations(self, session, clock, ledger, groceries, utilities):
        repo = WeeklyLedgerRepository(session, clock)
        ledger.total_amount = 1000
        await repo.add_category(ledger, groceries.id, allocation=400)
        await repo.add_category(ledger, utilities.id, allocation_mode="unlimited")

        assert ledger.remaining_amount == 600

    async def test_add_category_is_idempotent(self, session, clock, ledger, groceries):
        repo = WeeklyLedgerRepository(session, clock)
        first = await repo.add_category(ledger, groceries.id, allocation=400)
        second = await repo.add_category(ledger, groceries.id, allocation=900)

        assert first is second
        assert second.allocation == 400

    async def test_find_and_delete_entry(self, session, clock, ledger, groceries):
        repo = WeeklyLedgerRepository(session, clock)
        await repo.add_category(ledger, groceries.id)
        entry = await repo.add_payment(ledger, groceries.id, "Market", 40, date(2027, 2, 2))

        assert repo.find_entry(ledger, entry.id) is entry
        await repo.delete_entry(entry)
        assert repo.find_entry(ledger, entry.id) is None

    async def test_spent_counts_paid_entries(self, session, clock, ledger, groceries):
        repo = WeeklyLedgerRepository(session, clock)
        await repo.add_category(ledger, groceries.id, allocation=200)
        await repo.add_payment(ledger, groceries.id, "Market", 50, date(2027, 2, 2), status="paid")
        await repo.add_payment(ledger, groceries.id, "Bakery", 30, date(2027, 2, 4))

        spending = repo.get_spending_by_category(ledger)[0]
        assert spending["spent"] == 50
        assert spending["remaining"] == 150
        assert spending["percent_used"] == 25
