"""Repository for user operations."""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.user.models import User
from components.user.schemas import UserCreate
from components.core.security import get_password_hash


class UserRepository:
    """Repository for user operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, user: UserCreate, registration_date: Optional[date] = None) -> User:
        """Create a new user."""
        db_user = User(
            login=user.login,
            password=get_password_hash(user.password),
            registration_date=registration_date or date.today(),
            currency=user.currency,
        )
        self.session.add(db_user)
        await self.session.commit()
        await self.session.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        result = await self.session.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_login(self, login: str) -> Optional[User]:
        """Get user by login."""
        result = await self.session.execute(
            select(User).where(User.login == login)
        )
        return result.scalar_one_or_none()

    async def exists(self, login: str) -> bool:
        """Check if user with given login exists."""
        result = await self.session.execute(
            select(User.id).where(User.login == login)
        )
        return result.scalar_one_or_none() is not None

    async def currency_for(self, user_id: int, default: str) -> str:
        """Currency preference used to default a new transaction's currency."""
        result = await self.session.execute(
            select(User.currency).where(User.id == user_id)
        )
        return result.scalar_one_or_none() or default
