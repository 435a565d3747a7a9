"""Period budget models for the database."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from components.core.database import Base


class PeriodBudget(Base):
    """Funding plan over a calendar period, decomposed into weekly slices."""
    __tablename__ = "period_budgets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    household_id = Column(Integer, nullable=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    period_type = Column(String(10), nullable=False, default="monthly")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)  # Exclusive
    total_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    weekly_budget_amount = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    auto_create_weekly = Column(Boolean, nullable=False, default=True)
    currency = Column(String(3), nullable=True)
    status = Column(String(10), nullable=False, default="draft")
    total_spent = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    # Relationships
    categories = relationship(
        "PeriodCategoryAllocation",
        back_populates="period_budget",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    weekly_slices = relationship(
        "WeeklySlice",
        back_populates="period_budget",
        cascade="all, delete-orphan",
        order_by="WeeklySlice.week_number",
        lazy="selectin",
    )

    def slice(self, week_number: int):
        """Return the slice with the given week number, if any."""
        return next((s for s in self.weekly_slices if s.week_number == week_number), None)


class PeriodCategoryAllocation(Base):
    """Per-category default allocation of a period budget."""
    __tablename__ = "period_category_allocations"

    id = Column(Integer, primary_key=True, index=True)
    period_budget_id = Column(Integer, ForeignKey("period_budgets.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    default_allocation = Column(Numeric(12, 2, asdecimal=False), nullable=True)  # Over the whole period
    percentage = Column(Numeric(5, 2, asdecimal=False), nullable=True)  # Of each slice amount
    priority = Column(Integer, nullable=False, default=0)

    period_budget = relationship("PeriodBudget", back_populates="categories")


class WeeklySlice(Base):
    """One Monday-Sunday week of a period budget."""
    __tablename__ = "weekly_slices"

    id = Column(Integer, primary_key=True, index=True)
    period_budget_id = Column(Integer, ForeignKey("period_budgets.id", ondelete="CASCADE"), nullable=False)
    week_number = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)  # Always a Monday
    end_date = Column(Date, nullable=False)  # Inclusive, clipped to the period end
    allocated_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    spent_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    ledger_id = Column(Integer, ForeignKey("weekly_ledgers.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(10), nullable=False, default="pending")

    period_budget = relationship("PeriodBudget", back_populates="weekly_slices")
