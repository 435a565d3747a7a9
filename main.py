"""Main entry point for the FastAPI application."""

import uvicorn
# Import all models to ensure they're loaded before app creation
import components.user.models
import components.category.models
import components.period.models
import components.ledger.models
import components.schedule.models
import components.transaction.models
import components.notification.models

from restapi.router import create_app

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", reload=True)
