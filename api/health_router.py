"""
Health and Monitoring Endpoints.

- `/healthcheck`: liveness probe, no dependencies touched.
- `/monitoring/ping`: connectivity check.
- `/monitoring/detailed`: readiness probe including the database.

None of these routes require authentication.
"""

from fastapi import APIRouter
from datetime import datetime, timezone
from typing import Dict, Any

from core.logging_config import get_logger
from core.database import get_database_info, health_check as database_health_check

logger = get_logger(__name__)

SERVICE_NAME = "Channel & Session API"
SERVICE_VERSION = "1.0.0"

health_router = APIRouter(tags=["Health & Monitoring"])

monitoring_router = APIRouter(prefix="/monitoring", tags=["Health & Monitoring"])


@health_router.get("/healthcheck")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint (no authentication required)"""
    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": SERVICE_VERSION,
        "service": SERVICE_NAME,
    }


@monitoring_router.get("/ping")
async def ping() -> Dict[str, str]:
    """Simple ping endpoint for connectivity testing"""
    return {
        "message": "pong",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": SERVICE_VERSION,
    }


@monitoring_router.get("/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """Detailed health check with database status"""
    logger.info("Detailed health check requested")

    db_info = await get_database_info()
    db_health = await database_health_check()

    status = "healthy"
    if not db_info["connection_healthy"] or db_health["status"] != "healthy":
        status = "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": SERVICE_VERSION,
        "service": SERVICE_NAME,
        "components": {
            "database": {
                "status": db_health["status"],
                "info": db_info,
            },
        },
    }
