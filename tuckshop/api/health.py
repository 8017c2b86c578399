from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tuckshop.config import get_settings
from tuckshop.database import engine
from tuckshop.utils.cache import cache_service

router = APIRouter(prefix="/health", tags=["Health"])

settings = get_settings()


@router.get(
    "/",
    summary="Health check",
    description="Liveness probe."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy", "service": settings.APP_NAME}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check whether the database and the Redis cache are reachable."
)
def readiness_check():
    """
    Readiness check for all dependencies.

    The database is required. The cache only degrades performance, so a
    disabled or unreachable cache is reported without failing readiness.
    """
    checks = {"database": False}

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except SQLAlchemyError as e:
        checks["database_error"] = str(e)

    if cache_service.enabled:
        checks["cache"] = "up" if cache_service.ping() else "down"
    else:
        checks["cache"] = "disabled"

    return {
        "status": "ready" if checks["database"] else "not_ready",
        "checks": checks
    }
