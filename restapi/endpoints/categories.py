"""Category endpoints for the API."""

from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from components.category.repository import CategoryRepository
from components.category import schemas
from components.core.init_db import get_db
from components.user.models import User
from restapi.endpoints.auth import get_current_user

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
    responses={404: {"description": "Not found"}},
)


@router.get("/", response_model=List[schemas.CategoryRead])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Categories owned by the current user plus system categories."""
    return await CategoryRepository(db).list_visible(current_user.id)


@router.post("/", response_model=schemas.CategoryRead, status_code=201)
async def create_category(
    category: schemas.CategoryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await CategoryRepository(db).create(current_user.id, category)
