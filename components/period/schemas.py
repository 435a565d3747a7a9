"""Pydantic schemas for period budget data validation."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class CategoryAllocationIn(BaseModel):
    """Per-category allocation: an amount over the period or a percentage of each week."""
    category_id: int
    default_allocation: Optional[float] = Field(None, ge=0)
    percentage: Optional[float] = Field(None, ge=0, le=100)
    priority: int = 0

    @model_validator(mode="after")
    def check_amount_or_percentage(self):
        if self.default_allocation is None and self.percentage is None:
            raise ValueError("Either default_allocation or percentage is required")
        return self


class CategoryAllocation(CategoryAllocationIn):
    id: int

    class Config:
        from_attributes = True


class PeriodBudgetCreate(BaseModel):
    """Schema for period budget creation."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    period_type: str
    custom_start_date: Optional[date] = None
    custom_end_date: Optional[date] = None  # Inclusive last day
    total_amount: float = Field(..., ge=0)
    weekly_budget_amount: Optional[float] = Field(None, ge=0)
    auto_create_weekly: bool = True
    currency: Optional[str] = None
    household_id: Optional[int] = None
    categories: List[CategoryAllocationIn] = []


class PeriodBudgetUpdate(BaseModel):
    """Schema for period budget update; total only applies to drafts."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    total_amount: Optional[float] = Field(None, ge=0)
    weekly_budget_amount: Optional[float] = Field(None, ge=0)
    categories: Optional[List[CategoryAllocationIn]] = None


class PeriodStatusUpdate(BaseModel):
    status: str


class SliceAllocationUpdate(BaseModel):
    allocated_amount: float = Field(..., ge=0)


class WeeklySlice(BaseModel):
    week_number: int
    start_date: date
    end_date: date
    allocated_amount: float
    spent_amount: float
    ledger_id: Optional[int] = None
    status: str

    class Config:
        from_attributes = True


class PeriodBudget(BaseModel):
    """Schema for period budget response."""
    id: int
    user_id: int
    household_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    period_type: str
    start_date: date
    end_date: date
    total_amount: float
    weekly_budget_amount: Optional[float] = None
    currency: Optional[str] = None
    status: str
    total_spent: float
    created_at: datetime
    categories: List[CategoryAllocation] = []
    weekly_slices: List[WeeklySlice] = []

    class Config:
        from_attributes = True


class CleanupResult(BaseModel):
    message: str
    cleaned_count: int


class SummaryOverview(BaseModel):
    total_budget: float
    total_spent: float
    total_remaining: float
    progress_percentage: float
    days_remaining: int
    weeks_completed: int
    weeks_total: int


class WeekProgress(BaseModel):
    week_number: int
    start_date: date
    end_date: date
    allocated: float
    spent: float
    status: str


class CategoryBreakdown(BaseModel):
    category_id: int
    allocated: float
    spent: float


class Trends(BaseModel):
    average_weekly_spend: float = 0
    projected_total: float = 0
    on_track: bool = True


class PeriodSummary(BaseModel):
    overview: SummaryOverview
    weekly_progress: List[WeekProgress]
    category_breakdown: List[CategoryBreakdown]
    trends: Trends
