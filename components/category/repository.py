"""Repository for category lookups."""

from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from components.category.models import Category
from components.category import schemas
from components.core.exceptions import ValidationError


class CategoryRepository:
    """Repository for category operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, user_id: Optional[int], category: schemas.CategoryCreate) -> Category:
        """Create a category owned by a user (or a system category when user_id is None)."""
        db_category = Category(user_id=user_id, **category.model_dump())
        self.session.add(db_category)
        await self.session.commit()
        return db_category

    async def list_visible(self, user_id: int) -> List[Category]:
        """Categories owned by the user plus system categories."""
        result = await self.session.execute(
            select(Category)
            .where(or_(Category.user_id == user_id, Category.user_id.is_(None)))
            .order_by(Category.name)
        )
        return list(result.scalars().all())

    async def ensure_visible(self, user_id: int, category_ids) -> None:
        """Raise ValidationError if any category is unknown to the user."""
        wanted = set(category_ids)
        if not wanted:
            return
        result = await self.session.execute(
            select(Category.id).where(
                Category.id.in_(wanted),
                or_(Category.user_id == user_id, Category.user_id.is_(None)),
            )
        )
        found = set(result.scalars().all())
        missing = wanted - found
        if missing:
            raise ValidationError(f"Unknown category: {sorted(missing)[0]}")
