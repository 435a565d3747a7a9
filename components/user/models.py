"""User model for the database."""

from sqlalchemy import Column, Integer, String, Date

from components.core.database import Base


class User(Base):
    """User model representing a household member in the system."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    login = Column(String(50), unique=True, nullable=False)
    password = Column(String(255), nullable=False)  # Hashed password
    registration_date = Column(Date, nullable=False)
    currency = Column(String(3), nullable=True)  # Defaults new transactions
