"""Payment schedule model for the database."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from components.core.database import Base


class PaymentSchedule(Base):
    """Standalone, possibly recurring payment obligation."""
    __tablename__ = "payment_schedules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    household_id = Column(Integer, nullable=True)
    name = Column(String(200), nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    type = Column(String(10), nullable=False, default="expense")
    due_date = Column(Date, nullable=False, index=True)
    frequency = Column(String(10), nullable=False, default="once")
    status = Column(String(10), nullable=False, default="pending")
    paid_date = Column(DateTime, nullable=True)
    paid_by = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    reminder_enabled = Column(Boolean, nullable=False, default=True)
    reminder_days_before = Column(Integer, nullable=False, default=1)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_end_date = Column(Date, nullable=True)
    ledger_id = Column(Integer, ForeignKey("weekly_ledgers.id", ondelete="SET NULL"), nullable=True)
    previous_id = Column(Integer, ForeignKey("payment_schedules.id", ondelete="SET NULL"), nullable=True, index=True)
    status_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    @property
    def payment_key(self) -> str:
        return f"schedule:{self.id}"
