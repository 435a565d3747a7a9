"""Payment schedule endpoints for the API."""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.household.permissions import PermissionGate, get_permission_gate
from components.notification.publisher import NotificationPublisher
from components.schedule.repository import PaymentScheduleRepository
from components.schedule import schemas
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/payment-schedules",
    tags=["payment schedules"],
    responses={404: {"description": "Not found"}},
)


def get_repository(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
) -> PaymentScheduleRepository:
    return PaymentScheduleRepository(db, clock, gate, publisher=NotificationPublisher(db, clock))


@router.post("/", response_model=schemas.PaymentSchedule, status_code=201)
async def create_payment_schedule(
    data: schemas.PaymentScheduleCreate,
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """
    Create a payment schedule.

    The payment is also entered in the weekly ledger covering its due date
    (a standalone ledger is created when none exists). Submitting the same
    name and amount again within a few seconds returns the first schedule.
    """
    return await repo.create(current_user.id, data)


@router.get("/", response_model=List[schemas.PaymentSchedule])
async def list_payment_schedules(
    status: Optional[str] = Query(None, description="Filter by status"),
    start_date: Optional[date] = Query(None, description="Due on or after"),
    end_date: Optional[date] = Query(None, description="Due on or before"),
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.list(current_user.id, status, start_date, end_date)


@router.get("/upcoming", response_model=List[schemas.PaymentSchedule])
async def list_upcoming_payments(
    days: Optional[int] = Query(None, ge=0, le=365, description="Horizon in days"),
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.upcoming(current_user.id, days)


@router.get("/{schedule_id}", response_model=schemas.PaymentSchedule)
async def get_payment_schedule(
    schedule_id: int,
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.get(current_user.id, schedule_id)


@router.put("/{schedule_id}", response_model=schemas.PaymentSchedule)
async def update_payment_schedule(
    schedule_id: int,
    data: schemas.PaymentScheduleUpdate,
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.update(current_user.id, schedule_id, data)


@router.delete("/{schedule_id}", status_code=204)
async def delete_payment_schedule(
    schedule_id: int,
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """Delete the schedule, its ledger entry and its transaction."""
    await repo.delete(current_user.id, schedule_id)
    return Response(status_code=204)


@router.post("/{schedule_id}/pay", response_model=schemas.PaymentSchedule)
async def pay_payment_schedule(
    schedule_id: int,
    data: Optional[schemas.MarkPaid] = None,
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    """
    Mark a payment as paid.

    Records exactly one transaction for the payment and, for recurring
    schedules, creates the next occurrence.
    """
    return await repo.mark_paid(current_user.id, schedule_id, data)


@router.patch("/{schedule_id}/status", response_model=schemas.PaymentSchedule)
async def update_payment_status(
    schedule_id: int,
    data: schemas.StatusUpdate,
    repo: PaymentScheduleRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user)
):
    return await repo.set_status(current_user.id, schedule_id, data.status)
