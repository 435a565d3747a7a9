"""Financial report endpoints for the API."""

from datetime import date
from typing import Dict, Optional, Union
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.reporting.aggregator import GROUP_KEYS, FinancialAggregator
from components.reporting import schemas
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
)


def get_aggregator(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FinancialAggregator:
    return FinancialAggregator(db, clock)


@router.get("/summary", response_model=schemas.FinancialSummary)
async def get_financial_summary(
    start_date: Optional[date] = Query(None, description="Defaults to the first day of the current month"),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    aggregator: FinancialAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """
    Get the financial summary for a date range.

    Returns:
    - Income, expenses, balance and savings rate
    - Number of transactions (paid payments without a transaction count once)
    - Totals by type and by category
    """
    start, end = aggregator.default_range(start_date, end_date)
    return await aggregator.get_financial_summary(current_user.id, start, end)


@router.get("/aggregate", response_model=Dict[Union[int, str], schemas.AggregateBucket])
async def aggregate_transactions(
    group_by: str = Query("category", pattern="^(" + "|".join(GROUP_KEYS) + ")$"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    aggregator: FinancialAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    start, end = aggregator.default_range(start_date, end_date)
    return await aggregator.aggregate_by(current_user.id, group_by, start, end)


@router.get("/budget-performance", response_model=schemas.BudgetPerformance)
async def get_budget_performance(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    aggregator: FinancialAggregator = Depends(get_aggregator),
    current_user: User = Depends(get_current_user)
):
    """Budgeted versus spent per category for budgets overlapping the range."""
    start, end = aggregator.default_range(start_date, end_date)
    return schemas.BudgetPerformance(
        start_date=start,
        end_date=end,
        categories=await aggregator.get_budget_performance(current_user.id, start, end),
    )
