"""Transaction model for the database."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from components.core.database import Base


class Transaction(Base):
    """Plain ledger-of-record income or expense."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=True)
    currency = Column(String(3), nullable=True)
    # Payment key links; not unique so duplicates left by re-runs can be cleaned up
    schedule_id = Column(Integer, ForeignKey("payment_schedules.id", ondelete="SET NULL"), nullable=True, index=True)
    entry_id = Column(Integer, ForeignKey("payment_entries.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    @property
    def payment_key(self):
        if self.schedule_id is not None:
            return f"schedule:{self.schedule_id}"
        if self.entry_id is not None:
            return f"entry:{self.entry_id}"
        return None
