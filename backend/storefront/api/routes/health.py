"""Health & Readiness Probes.

Invariants:
    - GET /api/v1/health/ always returns 200 if the process is up (liveness)
    - GET /api/v1/health/ready returns 503 if the database is unreachable
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from storefront.infrastructure import database

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    return {"status": "healthy", "service": "storefront-api", "version": "1.0.0"}


@router.get("/ready")
async def readiness_check():
    """Readiness probe including database connectivity."""
    manager = database.db_manager
    db_ok = await manager.ping() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {"status": "ready", "checks": {"database": "healthy"}}
