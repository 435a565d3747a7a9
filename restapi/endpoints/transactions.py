"""Transaction endpoints for the API."""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from components.category.repository import CategoryRepository
from components.core.clock import Clock, get_clock
from components.core.init_db import get_db
from components.transaction.repository import TransactionRepository
from components.transaction import schemas
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
    responses={404: {"description": "Not found"}},
)


@router.post("/", response_model=schemas.Transaction, status_code=201)
async def create_transaction(
    data: schemas.TransactionCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user)
):
    """Record a plain income or expense."""
    await CategoryRepository(db).ensure_visible(current_user.id, [data.category_id])
    return await TransactionRepository(db, clock).create(current_user.id, data)


@router.get("/", response_model=List[schemas.Transaction])
async def list_transactions(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user)
):
    return await TransactionRepository(db, clock).list_for_user(current_user.id, start_date, end_date)


@router.delete("/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: User = Depends(get_current_user)
):
    await TransactionRepository(db, clock).delete(current_user.id, transaction_id)
    return Response(status_code=204)
