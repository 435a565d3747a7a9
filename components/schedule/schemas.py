"""Pydantic schemas for payment schedule data validation."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class PaymentScheduleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., gt=0)
    category_id: int
    type: str = Field("expense", pattern="^(income|expense)$")
    due_date: date
    frequency: str = "once"
    notes: Optional[str] = None
    reminder_enabled: bool = True
    reminder_days_before: int = Field(1, ge=0, le=30)
    is_recurring: bool = False
    recurring_end_date: Optional[date] = None


class PaymentScheduleCreate(PaymentScheduleBase):
    """Schema for schedule creation; the ledger is resolved from the due date unless given."""
    household_id: Optional[int] = None
    ledger_id: Optional[int] = None


class PaymentScheduleUpdate(BaseModel):
    """Schema for schedule update; status changes go through the status endpoints."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[float] = Field(None, gt=0)
    category_id: Optional[int] = None
    due_date: Optional[date] = None
    frequency: Optional[str] = None
    notes: Optional[str] = None
    reminder_enabled: Optional[bool] = None
    reminder_days_before: Optional[int] = Field(None, ge=0, le=30)
    is_recurring: Optional[bool] = None
    recurring_end_date: Optional[date] = None


class PaymentSchedule(PaymentScheduleBase):
    """Schema for schedule response."""
    id: int
    user_id: int
    household_id: Optional[int] = None
    status: str
    paid_date: Optional[datetime] = None
    paid_by: Optional[int] = None
    ledger_id: Optional[int] = None
    previous_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkPaid(BaseModel):
    paid_date: Optional[datetime] = None
    paid_by: Optional[int] = None


class StatusUpdate(BaseModel):
    status: str
