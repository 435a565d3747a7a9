"""Application configuration and router setup."""

import asyncio
from contextlib import asynccontextmanager

import fastapi
from fastapi.middleware import cors
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from components.core import init_db
from components.core.clock import system_clock
from components.core.config import get_settings
from components.core.exceptions import DomainError
from components.core.log import configure_logging, get_logger
from components.maintenance.sweeps import start_background_tasks
from restapi.endpoints import (
    auth,
    categories,
    health_check,
    maintenance,
    payment_schedules,
    period_budgets,
    reports,
    transactions,
    weekly_ledgers,
)

settings = get_settings()
logger = get_logger(__name__)

TITLE = "Household Budget"
DESCRIPTION = "Budget hierarchy and payment reconciliation API"


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    """Configure logging and run maintenance jobs while the app is up."""
    configure_logging()
    tasks = []
    if settings.ENABLE_SCHEDULER:
        tasks = start_background_tasks(init_db.db_manager, system_clock)
    yield
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def domain_error_handler(request: fastapi.Request, exc: DomainError) -> JSONResponse:
    """Map domain exceptions to their HTTP status with a ``detail`` body."""
    if exc.status_code >= 409:
        logger.warning("request_rejected", path=request.url.path, status_code=exc.status_code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    app = fastapi.FastAPI(
        title=TITLE,
        description=DESCRIPTION,
        version="1.0.0",
        lifespan=lifespan,
    )

    # Initialize database
    init_db.init_db(app)

    app.add_exception_handler(DomainError, domain_error_handler)

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_check.router)
    app.include_router(auth.router)
    app.include_router(categories.router)
    app.include_router(period_budgets.router)
    app.include_router(weekly_ledgers.router)
    app.include_router(payment_schedules.router)
    app.include_router(transactions.router)
    app.include_router(reports.router)
    app.include_router(maintenance.router)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=TITLE,
            version="1.0.0",
            description=DESCRIPTION,
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
