"""Category model for the database."""

from sqlalchemy import Column, Integer, String, ForeignKey

from components.core.database import Base


class Category(Base):
    """Spending or income category referenced by allocations and payments."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL for system categories
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)
    icon = Column(String(20), nullable=True)
    type = Column(String(10), nullable=False, default="expense")
