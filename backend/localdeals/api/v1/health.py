"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.dependencies import get_db, get_ttl_store
from localdeals.schemas import HealthCheckResponse
from localdeals.services.ttl_store import RedisTTLStore, TTLStore

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    store: TTLStore = Depends(get_ttl_store),
):
    """Return service health status.

    Checks connectivity to:
    - Database
    - Redis (only when it backs the code store)
    """
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    redis_status = None
    if isinstance(store, RedisTTLStore):
        try:
            redis_status = "ok" if await store.health_check() else "error: ping failed"
        except Exception as e:
            redis_status = f"error: {str(e)}"

    checks = [db_status] + ([redis_status] if redis_status is not None else [])
    overall_status = "ok" if all(s == "ok" for s in checks) else "degraded"

    return HealthCheckResponse(status=overall_status, database=db_status, redis=redis_status)
