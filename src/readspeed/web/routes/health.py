"""Health check endpoint."""

import sqlite3
import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request

from readspeed.config.app_config import APP_VERSION
from readspeed.db.database import get_db
from readspeed.web.schemas import HealthResponse

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


def _database_status() -> str:
    try:
        with get_db() as conn:
            conn.execute("SELECT 1").fetchone()
    except sqlite3.Error as e:
        logger.error("health.database_unavailable", error=str(e))
        return "unavailable"
    return "connected"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check API health status. Answers 200 even when the database is down."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - started_at, 3),
        database=_database_status(),
    )
