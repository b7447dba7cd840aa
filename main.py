"""
Channel & Session API - Main Application Entry Point.

This module initializes and configures the FastAPI application for the
Channel & Session API, the account and relationship service of the video
platform. It sets up logging, configuration, the database, middleware and
routes.

Key Responsibilities:
- Validate configuration (signing secrets and lifetimes) before serving.
- Create the database tables and wire the session and graph services.
- Register middleware for correlation, error handling and performance logs.
- Mount the health, monitoring and user routers.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI

from api.dependencies import init_dependencies
from api.health_router import health_router, monitoring_router
from api.user_endpoints import router as user_router
from core import database
from core.config import AuthSettings
from core.logging_config import setup_logging, get_logger
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger = get_logger("api.startup")

    settings = AuthSettings.from_env()

    if database.async_session is None:
        database.init_database()
    await database.create_db_and_tables()
    logger.info("Database initialized successfully")

    init_dependencies(settings, database.async_session)
    logger.info("Session and graph services initialized")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down Channel API")
    await database.dispose_database()


app = FastAPI(
    title="Channel & Session API",
    description="Accounts, session credentials and channel relationships",
    version="1.0.0",
    lifespan=lifespan,
)

# Added last runs first: correlation wraps everything
app.add_middleware(PerformanceMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(CorrelationMiddleware)

app.include_router(health_router)
app.include_router(monitoring_router)
app.include_router(user_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
