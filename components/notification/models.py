"""Notification model for the database."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from components.core.database import Base

NOTIFICATION_TYPES = ("budget_alert", "payment_reminder", "payment_overdue")


class Notification(Base):
    """Structured event handed to the notification subsystem."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_type = Column(String(30), nullable=True)
    related_id = Column(Integer, nullable=True)
    threshold = Column(Integer, nullable=True)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)
