"""Health check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db
from ..core.observability import SERVICE_VERSION
from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])

DB_DEPENDENCY = Depends(get_db)


@router.post("/ping", response_model=HealthResponse)
async def health_ping(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """
    Health check endpoint.

    Returns current service status, timestamp and database reachability.
    """
    try:
        await db.execute(text("SELECT 1"))
        database, status = "ok", HealthStatus.HEALTHY
    except SQLAlchemyError as e:
        logger.warning("Health check database probe failed", extra={"error": str(e)})
        database, status = "unreachable", HealthStatus.DEGRADED

    response_data = HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        version=SERVICE_VERSION,
        database=database,
    )

    logger.debug(
        "Health check requested",
        extra={
            "status": response_data.status.value,
            "timestamp": response_data.timestamp.isoformat()
        }
    )

    return JSONResponse(
        status_code=200 if status == HealthStatus.HEALTHY else 503,
        content=response_data.model_dump(mode="json")
    )
