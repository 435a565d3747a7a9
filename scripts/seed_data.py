"""Script to seed demo data into the database."""

from datetime import date, timedelta
import asyncio
from sqlalchemy.sql import text

from components.category.repository import CategoryRepository
from components.category.schemas import CategoryCreate
from components.core.clock import system_clock
from components.core.init_db import db_manager
from components.period.repository import PeriodBudgetRepository
from components.period.schemas import CategoryAllocationIn, PeriodBudgetCreate
from components.schedule.repository import PaymentScheduleRepository
from components.schedule.schemas import PaymentScheduleCreate
from components.transaction.repository import TransactionRepository
from components.transaction.schemas import TransactionCreate
from components.user.repository import UserRepository
from components.user.schemas import UserCreate

TABLES = [
    "notifications",
    "transactions",
    "payment_entries",
    "ledger_categories",
    "weekly_slices",
    "payment_schedules",
    "weekly_ledgers",
    "period_category_allocations",
    "period_budgets",
    "categories",
    "users",
]

async def seed_data():
    """Seed demo data into the database."""
    await db_manager.create_tables()
    async with db_manager.get_db() as db:
        # Clear existing data
        for table in TABLES:
            await db.execute(text(f"DELETE FROM {table}"))
        await db.commit()

        # Create system categories
        categories = {}
        for name, kind in [("Groceries", "expense"), ("Utilities", "expense"), ("Rent", "expense"), ("Salary", "income")]:
            categories[name] = await CategoryRepository(db).create(None, CategoryCreate(name=name, type=kind))

        # Create users
        users = []
        for login in ("john_doe", "jane_smith"):
            users.append(await UserRepository(db).create(UserCreate(login=login, password="password123", currency="USD")))

        today = system_clock.today()
        for user in users:
            # Monthly plan with a weekly ledger for the current week
            await PeriodBudgetRepository(db, system_clock).create(
                user.id,
                PeriodBudgetCreate(
                    name="Household budget",
                    period_type="monthly",
                    total_amount=3000,
                    categories=[
                        CategoryAllocationIn(category_id=categories["Groceries"].id, default_allocation=1200),
                        CategoryAllocationIn(category_id=categories["Utilities"].id, percentage=20),
                    ],
                ),
            )

            schedules = PaymentScheduleRepository(db, system_clock)
            await schedules.create(user.id, PaymentScheduleCreate(
                name="Rent",
                amount=1100,
                category_id=categories["Rent"].id,
                due_date=today + timedelta(days=3),
                frequency="monthly",
                is_recurring=True,
            ))
            await schedules.create(user.id, PaymentScheduleCreate(
                name="Electricity",
                amount=85,
                category_id=categories["Utilities"].id,
                due_date=today,
            ))

            await TransactionRepository(db, system_clock).create(user.id, TransactionCreate(
                type="income",
                amount=2500,
                category_id=categories["Salary"].id,
                date=date(today.year, today.month, 1),
                description="Monthly salary",
            ))

        print(f"Seeded {len(users)} users and {len(categories)} categories")

if __name__ == "__main__":
    asyncio.run(seed_data())
