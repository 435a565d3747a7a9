"""Period budget endpoints for the API."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.household.permissions import PermissionGate, get_permission_gate
from components.ledger import schemas as ledger_schemas
from components.period.repository import PeriodBudgetRepository
from components.period import schemas
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/period-budgets",
    tags=["period budgets"],
    responses={404: {"description": "Not found"}},
)


def get_repository(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
) -> PeriodBudgetRepository:
    return PeriodBudgetRepository(db, clock, gate)


@router.post("/", response_model=schemas.PeriodBudget, status_code=201)
async def create_period_budget(
    data: schemas.PeriodBudgetCreate,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """
    Create a period budget.

    The period is the calendar month, quarter or year containing today, or
    the custom range given by custom_start_date and custom_end_date
    (inclusive). The period is split into Monday-aligned weekly slices.
    """
    return await repo.create(current_user.id, data)


@router.get("/", response_model=List[schemas.PeriodBudget])
async def list_period_budgets(
    status: Optional[str] = Query(None, description="Filter by status"),
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.list(current_user.id, status)


@router.get("/{period_budget_id}", response_model=schemas.PeriodBudget)
async def get_period_budget(
    period_budget_id: int,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.get(current_user.id, period_budget_id)


@router.put("/{period_budget_id}", response_model=schemas.PeriodBudget)
async def update_period_budget(
    period_budget_id: int,
    data: schemas.PeriodBudgetUpdate,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.update(current_user.id, period_budget_id, data)


@router.patch("/{period_budget_id}/status", response_model=schemas.PeriodBudget)
async def update_period_budget_status(
    period_budget_id: int,
    data: schemas.PeriodStatusUpdate,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """Move the plan to active, completed or archived."""
    return await repo.update_status(current_user.id, period_budget_id, data.status)


@router.delete("/{period_budget_id}", status_code=204)
async def delete_period_budget(
    period_budget_id: int,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """Delete the plan and every weekly ledger created from it."""
    await repo.delete(current_user.id, period_budget_id)
    return Response(status_code=204)


@router.post("/{period_budget_id}/weekly/{week_number}", response_model=ledger_schemas.WeeklyLedger)
async def materialize_week(
    period_budget_id: int,
    week_number: int,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """Create (or return) the weekly ledger for one slice of the plan."""
    return await repo.materialize_week(current_user.id, period_budget_id, week_number)


@router.post("/{period_budget_id}/recalculate-total", response_model=schemas.PeriodBudget)
async def recalculate_total(
    period_budget_id: int,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """Set the plan total to the sum of the weekly slice allocations."""
    return await repo.recalculate_total(current_user.id, period_budget_id)


@router.patch("/{period_budget_id}/weeks/{week_number}", response_model=schemas.PeriodBudget)
async def update_week_allocation(
    period_budget_id: int,
    week_number: int,
    data: schemas.SliceAllocationUpdate,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.update_slice_allocation(current_user.id, period_budget_id, week_number, data.allocated_amount)


@router.post("/{period_budget_id}/cleanup-future-weeks", response_model=schemas.CleanupResult)
async def cleanup_future_weeks(
    period_budget_id: int,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """Delete ledgers of weeks that have not started yet."""
    cleaned = await repo.cleanup_future_slices(current_user.id, period_budget_id)
    return schemas.CleanupResult(
        message=f"Cleaned up {cleaned} future weekly ledgers",
        cleaned_count=cleaned,
    )


@router.get("/{period_budget_id}/summary", response_model=schemas.PeriodSummary)
async def get_period_summary(
    period_budget_id: int,
    repo: PeriodBudgetRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """
    Get a summary of the plan.

    Returns:
    - Overview: total, spent, remaining, progress and time left
    - Weekly progress per slice
    - Category breakdown
    - Trends: average weekly spend and projected total
    """
    return await repo.summary(current_user.id, period_budget_id)
