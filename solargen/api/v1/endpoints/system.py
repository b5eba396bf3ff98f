import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from solargen.config import settings
from solargen.db.session import get_db
from solargen.dependencies import require_api_key

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/status",
    summary="Service status",
    description=(
        "Returns service version, database connection status, and the simulated "
        "unit's generator configuration. Requires a valid X-API-Key header."
    ),
)
async def get_status(
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_api_key),
):
    # ── DB liveness ────────────────────────────────────────────────────────────
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("DB health check failed: %s", exc)
        db_status = "error"

    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "db": db_status,
        "generator": {
            "serial_number": settings.solar_unit_serial,
            "rated_capacity_watts": settings.rated_capacity_watts,
            "interval_hours": settings.interval_hours,
            "drip_enabled": settings.drip_enabled,
            "drip_interval_hours": settings.drip_interval_hours,
            "anomaly_windows": len(settings.anomaly_windows),
        },
    }
