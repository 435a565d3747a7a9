"""Weekly ledger endpoints for the API."""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.household.permissions import (
    PermissionGate,
    ensure_can_read,
    ensure_can_write,
    get_permission_gate,
)
from components.ledger.repository import WeeklyLedgerRepository
from components.ledger import schemas
from components.notification.publisher import NotificationPublisher
from components.schedule.repository import PaymentScheduleRepository
from components.schedule.schemas import PaymentScheduleCreate
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/weekly-ledgers",
    tags=["weekly ledgers"],
    responses={404: {"description": "Not found"}},
)


async def _readable(repo: WeeklyLedgerRepository, gate: PermissionGate, user: User, ledger_id: int):
    ledger = await repo.get_or_404(ledger_id)
    await ensure_can_read(gate, user.id, ledger, "ledger")
    return ledger


@router.get("/current", response_model=schemas.WeeklyLedger)
async def get_current_ledger(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user)
):
    """Get the ledger covering today."""
    ledger = await WeeklyLedgerRepository(db, clock).current(current_user.id)
    if ledger is None:
        raise HTTPException(status_code=404, detail="No weekly ledger for the current week")
    return ledger


@router.get("/{ledger_id}", response_model=schemas.WeeklyLedger)
async def get_ledger(
    ledger_id: int,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    return await _readable(WeeklyLedgerRepository(db, clock), gate, current_user, ledger_id)


@router.get("/{ledger_id}/spending", response_model=List[schemas.CategorySpending])
async def get_ledger_spending(
    ledger_id: int,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    """
    Get spending per category.

    Returns for each category:
    - Allocated amount and allocation mode
    - Spent (paid entries) and scheduled (all entries) amounts
    - Remaining amount and percentage used
    """
    repo = WeeklyLedgerRepository(db, clock)
    ledger = await _readable(repo, gate, current_user, ledger_id)
    return repo.get_spending_by_category(ledger)


@router.post("/{ledger_id}/categories", response_model=schemas.WeeklyLedger)
async def add_ledger_category(
    ledger_id: int,
    data: schemas.LedgerCategoryCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    repo = WeeklyLedgerRepository(db, clock)
    ledger = await repo.get_or_404(ledger_id)
    await ensure_can_write(gate, current_user.id, ledger, "ledger")
    await repo.add_category(ledger, data.category_id, data.allocation_mode, data.allocation)
    await db.commit()
    return ledger


@router.put("/{ledger_id}/categories/{category_id}", response_model=schemas.WeeklyLedger)
async def set_ledger_allocation(
    ledger_id: int,
    category_id: int,
    data: schemas.LedgerCategoryCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    repo = WeeklyLedgerRepository(db, clock)
    ledger = await repo.get_or_404(ledger_id)
    await ensure_can_write(gate, current_user.id, ledger, "ledger")
    await repo.set_allocation(ledger, category_id, data.allocation_mode, data.allocation)
    await db.commit()
    return ledger


@router.post("/{ledger_id}/payments", response_model=schemas.WeeklyLedger, status_code=201)
async def add_ledger_payment(
    ledger_id: int,
    data: schemas.LedgerPaymentCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    """Add a payment to the ledger; a linked payment schedule is created with it."""
    repo = PaymentScheduleRepository(db, clock, gate)
    await repo.create(
        current_user.id,
        PaymentScheduleCreate(
            name=data.name,
            amount=data.amount,
            category_id=data.category_id,
            due_date=data.scheduled_date,
            notes=data.notes,
            ledger_id=ledger_id,
        ),
    )
    return await repo.ledgers.get_or_404(ledger_id)


@router.patch("/{ledger_id}/payments/{payment_id}/status", response_model=schemas.WeeklyLedger)
async def update_ledger_payment_status(
    ledger_id: int,
    payment_id: int,
    data: schemas.PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    """
    Change a payment status from the ledger side.

    ``payment_id`` is matched against the linked schedule id first, then
    the entry id. The schedule and the transaction record follow.
    """
    repo = PaymentScheduleRepository(db, clock, gate, publisher=NotificationPublisher(db, clock))
    ledger = await _readable(repo.ledgers, gate, current_user, ledger_id)
    entry = repo.ledgers.find_entry(ledger, payment_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Payment not found in ledger")
    await repo.set_entry_status(current_user.id, entry.id, data.status, data.paid_date)
    return await repo.ledgers.get_or_404(ledger_id)


@router.delete("/{ledger_id}/payments/{payment_id}", status_code=204)
async def delete_ledger_payment(
    ledger_id: int,
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PermissionGate = Depends(get_permission_gate),
    current_user: User = Depends(get_current_user)
):
    repo = PaymentScheduleRepository(db, clock, gate)
    ledger = await _readable(repo.ledgers, gate, current_user, ledger_id)
    entry = repo.ledgers.find_entry(ledger, payment_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Payment not found in ledger")
    await repo.delete_ledger_payment(current_user.id, entry.id)
    return Response(status_code=204)
