"""Maintenance endpoints for the API."""

from typing import List
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.notification.publisher import NotificationPublisher
from components.notification import schemas as notification_schemas
from components.reconciliation.service import ReconciliationService
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/maintenance",
    tags=["maintenance"],
)


class SweepReport(BaseModel):
    checked: int
    synced: int
    skipped: int
    errors: int
    created: int
    deleted: int
    duplicates_removed: int
    dry_run: bool


@router.post("/reconcile", response_model=SweepReport)
async def reconcile_payments(
    dry_run: bool = Query(False, description="Report drift without writing"),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user)
):
    """
    Reconcile the current user's payments.

    Brings each schedule and its ledger entry to the same status and makes
    sure every paid payment has exactly one transaction.
    """
    report = await ReconciliationService(db, clock).sweep(current_user.id, dry_run=dry_run)
    return SweepReport(**report.as_dict())


@router.get("/notifications", response_model=List[notification_schemas.Notification])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user)
):
    """Latest budget alerts, reminders and overdue notices."""
    return await NotificationPublisher(db, clock).list_for_user(current_user.id, limit)
