"""Database initialization and dependency injection."""

from typing import AsyncGenerator

import fastapi
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import DatabaseManager
# Import all models to ensure they're registered
import components.user.models
import components.category.models
import components.period.models
import components.ledger.models
import components.schedule.models
import components.transaction.models
import components.notification.models

# Create a single instance of DatabaseManager
db_manager = DatabaseManager()

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database sessions."""
    async with db_manager.get_db() as session:
        yield session

def init_db(app: fastapi.FastAPI) -> None:
    """Expose the database manager on the application state."""
    app.state.db_manager = db_manager
