"""Pydantic schemas for financial reports."""

from datetime import date as Date
from typing import Dict, List, Optional, Union

from pydantic import BaseModel


class PeriodTransaction(BaseModel):
    """A plain transaction or a pseudo-transaction derived from a paid payment."""
    source: str  # transaction | schedule | ledger
    record_id: int
    type: str
    amount: float
    category_id: int
    date: Date
    description: Optional[str] = None
    payment_key: Optional[str] = None


class AggregateBucket(BaseModel):
    total: float
    count: int
    average: float


class CategoryPerformance(BaseModel):
    """One budget line: a weekly ledger category or a period budget category."""
    id: str
    type: str  # weekly | period
    category_id: int
    start_date: Date
    end_date: Date
    budgeted: float
    spent: float
    remaining: float
    percentage: float
    status: str


class FinancialSummary(BaseModel):
    start_date: Date
    end_date: Date
    income: float
    expenses: float
    balance: float
    savings_rate: float
    transaction_count: int
    by_type: Dict[str, AggregateBucket]
    by_category: Dict[Union[int, str], AggregateBucket]


class BudgetPerformance(BaseModel):
    start_date: Date
    end_date: Date
    categories: List[CategoryPerformance]
