"""Repository for transaction operations."""

from datetime import date
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock
from components.core.config import get_settings
from components.core.exceptions import NotFoundError, ValidationError
from components.transaction.models import Transaction
from components.transaction import schemas
from components.user.repository import UserRepository

settings = get_settings()


class TransactionRepository:
    """Repository for transaction operations."""

    def __init__(self, session: AsyncSession, clock: Clock):
        """Initialize repository with database session and time source."""
        self.session = session
        self.clock = clock

    async def create(self, user_id: int, transaction: schemas.TransactionCreate) -> Transaction:
        """Record a plain transaction; currency defaults to the owner's preference."""
        if transaction.amount <= 0:
            raise ValidationError("Amount must be a positive number")
        currency = transaction.currency
        if currency is None:
            currency = await UserRepository(self.session).currency_for(user_id, settings.DEFAULT_CURRENCY)

        db_transaction = Transaction(
            user_id=user_id,
            type=transaction.type,
            amount=transaction.amount,
            category_id=transaction.category_id,
            date=transaction.date,
            description=transaction.description,
            currency=currency,
            created_at=self.clock.now(),
        )
        self.session.add(db_transaction)
        await self.session.commit()
        return db_transaction

    async def record_payment(
        self,
        user_id: int,
        type: str,
        amount: float,
        category_id: int,
        day: date,
        description: str,
        schedule_id: Optional[int] = None,
        entry_id: Optional[int] = None,
    ) -> Transaction:
        """Add (without committing) the Transaction standing for a paid payment."""
        currency = await UserRepository(self.session).currency_for(user_id, settings.DEFAULT_CURRENCY)
        db_transaction = Transaction(
            user_id=user_id,
            type=type or "expense",
            amount=amount,
            category_id=category_id,
            date=day,
            description=description,
            currency=currency,
            schedule_id=schedule_id,
            entry_id=None if schedule_id is not None else entry_id,
            created_at=self.clock.now(),
        )
        self.session.add(db_transaction)
        await self.session.flush()
        return db_transaction

    async def list_for_user(
        self,
        user_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Transaction]:
        """Transactions of a user, optionally limited to the inclusive range [start, end]."""
        query = select(Transaction).where(Transaction.user_id == user_id)
        if start is not None:
            query = query.where(Transaction.date >= start)
        if end is not None:
            query = query.where(Transaction.date <= end)
        result = await self.session.execute(query.order_by(Transaction.date, Transaction.id))
        return list(result.scalars().all())

    async def find_for_payment(
        self,
        schedule_id: Optional[int] = None,
        entry_id: Optional[int] = None,
    ) -> List[Transaction]:
        """Transactions carrying a payment key, most recent first."""
        conditions = []
        if schedule_id is not None:
            conditions.append(Transaction.schedule_id == schedule_id)
        if entry_id is not None:
            conditions.append(Transaction.entry_id == entry_id)
        if not conditions:
            return []
        result = await self.session.execute(
            select(Transaction)
            .where(or_(*conditions))
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        return list(result.scalars().all())

    async def list_linked(self, user_id: Optional[int] = None) -> List[Transaction]:
        """Transactions carrying any payment key."""
        query = select(Transaction).where(
            or_(Transaction.schedule_id.is_not(None), Transaction.entry_id.is_not(None))
        )
        if user_id is not None:
            query = query.where(Transaction.user_id == user_id)
        result = await self.session.execute(query.order_by(Transaction.id))
        return list(result.scalars().all())

    async def delete(self, user_id: int, transaction_id: int) -> None:
        """Delete a plain transaction owned by the user."""
        transaction = await self.session.get(Transaction, transaction_id)
        if transaction is None or transaction.user_id != user_id:
            raise NotFoundError("Transaction not found")
        if transaction.payment_key is not None:
            raise ValidationError("Payment transactions follow their payment status; change the payment instead")
        await self.session.delete(transaction)
        await self.session.commit()
