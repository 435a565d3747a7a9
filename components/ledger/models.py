"""Weekly ledger models for the database."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from components.core.database import Base

ALLOCATION_MODES = ("unset", "limited", "unlimited")
PAYMENT_STATUSES = ("pending", "paying", "paid", "overdue", "cancelled")


class WeeklyLedger(Base):
    """Live, mutable weekly record of category allocations and payment entries."""
    __tablename__ = "weekly_ledgers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    household_id = Column(Integer, nullable=True)
    period_budget_id = Column(Integer, ForeignKey("period_budgets.id", ondelete="SET NULL"), nullable=True)
    week_number = Column(Integer, nullable=True)
    week_start = Column(Date, nullable=False)
    week_end = Column(Date, nullable=False)  # Inclusive
    total_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    remaining_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    creation_mode = Column(String(20), nullable=False, default="manual")
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    # Relationships
    categories = relationship(
        "LedgerCategory",
        back_populates="ledger",
        cascade="all, delete-orphan",
        order_by="LedgerCategory.id",
        lazy="selectin",
    )

    def category(self, category_id: int):
        """Return the ledger category for a category id, if present."""
        return next((c for c in self.categories if c.category_id == category_id), None)

    def contains(self, day) -> bool:
        return self.week_start <= day <= self.week_end


class LedgerCategory(Base):
    """
    Category allocation inside a ledger.

    allocation_mode is a tri-state: ``limited`` enforces ``allocation`` as a
    ceiling, ``unset`` (no limit configured) and ``unlimited`` accept any
    payment.
    """
    __tablename__ = "ledger_categories"
    __table_args__ = (
        UniqueConstraint("ledger_id", "category_id", name="uq_ledger_category"),
    )

    id = Column(Integer, primary_key=True, index=True)
    ledger_id = Column(Integer, ForeignKey("weekly_ledgers.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    allocation_mode = Column(String(10), nullable=False, default="unset")
    allocation = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    ledger = relationship("WeeklyLedger", back_populates="categories")
    entries = relationship(
        "PaymentEntry",
        back_populates="ledger_category",
        cascade="all, delete-orphan",
        order_by="PaymentEntry.id",
        lazy="selectin",
    )

    @property
    def is_limited(self) -> bool:
        return self.allocation_mode == "limited"

    @property
    def scheduled_total(self) -> float:
        return sum(e.amount for e in self.entries)

    @property
    def paid_total(self) -> float:
        return sum(e.amount for e in self.entries if e.status == "paid")


class PaymentEntry(Base):
    """Payment entry keyed by (ledger_id, ledger_category_id, id)."""
    __tablename__ = "payment_entries"

    id = Column(Integer, primary_key=True, index=True)
    ledger_id = Column(Integer, ForeignKey("weekly_ledgers.id", ondelete="CASCADE"), nullable=False, index=True)
    ledger_category_id = Column(Integer, ForeignKey("ledger_categories.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    scheduled_date = Column(Date, nullable=False)
    status = Column(String(10), nullable=False, default="pending")
    paid_date = Column(DateTime, nullable=True)
    paid_by = Column(Integer, nullable=True)
    schedule_id = Column(Integer, ForeignKey("payment_schedules.id", ondelete="SET NULL"), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    status_changed_at = Column(DateTime, nullable=True)

    ledger_category = relationship("LedgerCategory", back_populates="entries")

    @property
    def payment_key(self) -> str:
        """Key shared by every representation of this payment."""
        if self.schedule_id is not None:
            return f"schedule:{self.schedule_id}"
        return f"entry:{self.id}"
