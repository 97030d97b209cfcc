# backend/routes/health.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from backend.core.logging import get_structlog_logger
from backend.db.session import Database

logger = get_structlog_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


def process_uptime() -> float:
    """Seconds since this process started."""
    try:
        return round(time.time() - psutil.Process().create_time(), 2)
    except psutil.Error:
        return 0.0


@router.get("")
async def health(request: Request):
    settings = request.app.state.settings
    database: Database = request.app.state.database

    db_check = await database.ping()
    healthy = db_check.get("status") == "connected"

    body: Dict[str, Any] = {
        "status": "healthy" if healthy else "degraded",
        "service": settings.app_name,
        "environment": settings.environment,
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": process_uptime(),
        "database": db_check,
    }

    if not healthy:
        logger.warning("health.degraded", database=db_check)
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )


@router.get("/ready")
async def ready(request: Request):
    database: Database = request.app.state.database
    db_check = await database.ping()
    if db_check.get("status") != "connected":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ready": False, "error": db_check.get("error", "database unavailable")},
        )
    return {"ready": True}


@router.get("/live")
async def live():
    return {"alive": True}
