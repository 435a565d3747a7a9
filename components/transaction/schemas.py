from datetime import date as Date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class TransactionCreate(BaseModel):
    """Schema for a plain income or expense."""
    type: str = Field(..., pattern="^(income|expense)$")
    amount: float = Field(..., gt=0)
    category_id: int
    date: Date
    description: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class Transaction(BaseModel):
    id: int
    user_id: int
    type: str
    amount: float
    category_id: int
    date: Date
    description: Optional[str] = None
    currency: Optional[str] = None
    schedule_id: Optional[int] = None
    entry_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
