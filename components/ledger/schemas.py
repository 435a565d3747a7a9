"""Pydantic schemas for weekly ledger data validation."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PaymentEntry(BaseModel):
    id: int
    name: str
    amount: float
    scheduled_date: date
    status: str
    paid_date: Optional[datetime] = None
    paid_by: Optional[int] = None
    schedule_id: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class LedgerCategory(BaseModel):
    id: int
    category_id: int
    allocation_mode: str
    allocation: float
    entries: List[PaymentEntry] = []

    class Config:
        from_attributes = True


class WeeklyLedger(BaseModel):
    """Schema for weekly ledger response."""
    id: int
    user_id: int
    household_id: Optional[int] = None
    period_budget_id: Optional[int] = None
    week_number: Optional[int] = None
    week_start: date
    week_end: date
    total_amount: float
    remaining_amount: float
    creation_mode: str
    categories: List[LedgerCategory] = []

    class Config:
        from_attributes = True


class LedgerCategoryCreate(BaseModel):
    """Category to add; mode is inferred from the amount when omitted."""
    category_id: int
    allocation_mode: Optional[str] = None
    allocation: Optional[float] = Field(None, ge=0)


class LedgerPaymentCreate(BaseModel):
    """Schema for adding a payment directly to a ledger."""
    category_id: int
    name: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., gt=0)
    scheduled_date: date
    notes: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    status: str
    paid_date: Optional[datetime] = None


class CategorySpending(BaseModel):
    category_id: int
    allocation_mode: str
    allocated: float
    spent: float
    scheduled: float
    remaining: float
    available: Optional[float] = None
    percent_used: float
