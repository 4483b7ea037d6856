"""System health endpoint."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from database import ping

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    tags=["System"]
)

@router.get("/health")
async def health(request: Request):
    """Report whether the database answers and which environment is running."""
    settings = request.app.state.settings
    pool = request.app.state.pool

    database_status = 'unavailable'
    if pool is not None:
        try:
            database_status = 'ok' if await ping(pool, settings.get('acquire_timeout')) else 'error'
        except Exception as e:
            logger.warning(f"Health check database ping failed: {e}")
            database_status = 'error'

    return {
        "success": database_status == 'ok',
        "status": "healthy" if database_status == 'ok' else "degraded",
        "database": database_status,
        "environment": settings['environment'],
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
