"""
Health Check Endpoints

Provides:
1. /health - Application and database health
2. /health/live - Simple liveness probe (for k8s)
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings
from database.async_engine import check_database_connection

logger = logging.getLogger(__name__)


def create_health_router(engine: AsyncEngine, settings: Settings) -> APIRouter:
    router = APIRouter(tags=["Health"])

    @router.get("/health")
    async def health():
        database_ok = await check_database_connection(engine)
        if not database_ok:
            logger.warning("Health check: database unavailable")

        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "status": "healthy" if database_ok else "degraded",
                "service": settings.name,
                "version": settings.version,
                "database": "ok" if database_ok else "unavailable",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    @router.get("/health/live")
    async def liveness():
        return {"status": "alive"}

    return router
