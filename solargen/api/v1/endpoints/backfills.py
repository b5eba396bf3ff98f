"""Backfill endpoints.

POST /backfills            — validates a date range + anomaly windows, creates a
                             BackfillRun, and dispatches the Celery backfill task.
GET  /backfills/{run_id}   — poll run status and per-anomaly-kind counts.
"""

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solargen.config import settings
from solargen.db.session import get_db
from solargen.dependencies import require_api_key
from solargen.errors import InvalidConfiguration
from solargen.models.backfill_run import BackfillRun
from solargen.services.anomalies import AnomalyWindow, as_utc
from solargen.services.generator import validate_unit
from solargen.services.lifecycle import DriverState
from solargen.workers.tasks import run_backfill

logger = logging.getLogger(__name__)

router = APIRouter()


class BackfillRequest(BaseModel):
    """Omitted fields fall back to the configured unit and backfill scenario."""

    start: datetime | None = None
    end: datetime | None = None
    serial_number: str | None = Field(default=None, min_length=1, max_length=64)
    rated_capacity_watts: float | None = None
    interval_hours: float | None = Field(default=None, le=24)
    anomaly_windows: list[AnomalyWindow] | None = None


@router.post(
    "/backfills",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a historical backfill",
    description=(
        "Generates a dense sequence of readings between start and end (inclusive) "
        "with the given anomaly windows, then bulk-inserts them. Poll "
        "/backfills/{run_id} for progress."
    ),
)
async def create_backfill(
    body: BackfillRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_api_key),
):
    start = as_utc(body.start or settings.backfill_start)
    end = as_utc(body.end or settings.backfill_end)
    capacity = (
        body.rated_capacity_watts
        if body.rated_capacity_watts is not None
        else settings.rated_capacity_watts
    )
    interval = (
        body.interval_hours if body.interval_hours is not None else settings.interval_hours
    )
    windows = (
        body.anomaly_windows
        if body.anomaly_windows is not None
        else settings.anomaly_windows
    )

    try:
        validate_unit(capacity, interval)
        if end < start:
            raise InvalidConfiguration("end must not be before start")
    except InvalidConfiguration as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc

    # ── Create BackfillRun record ─────────────────────────────────────────────
    run = BackfillRun(
        id=uuid.uuid4(),
        status=DriverState.idle,
        serial_number=body.serial_number or settings.solar_unit_serial,
        start=start,
        end=end,
        interval_hours=interval,
        rated_capacity_watts=capacity,
        anomaly_windows=[w.model_dump(mode="json") for w in windows],
    )
    db.add(run)
    await db.commit()

    # ── Dispatch Celery task ──────────────────────────────────────────────────
    run_backfill.delay(str(run.id))
    logger.info("Dispatched run_backfill for run_id=%s", run.id)

    return {
        "run_id": str(run.id),
        "status": DriverState.idle,
        "message": "Backfill queued. Poll /api/v1/backfills/{run_id} for progress.",
    }


@router.get(
    "/backfills/{run_id}",
    summary="Poll backfill run status",
)
async def get_backfill(
    run_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(require_api_key),
):
    result = await db.execute(select(BackfillRun).where(BackfillRun.id == run_id))
    run = result.scalar_one_or_none()
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Backfill run not found"
        )

    return {
        "run_id": str(run.id),
        "status": run.status,
        "serial_number": run.serial_number,
        "start": run.start.isoformat(),
        "end": run.end.isoformat(),
        "interval_hours": run.interval_hours,
        "readings_generated": run.readings_generated,
        "readings_inserted": run.readings_inserted,
        "anomaly_counts": run.anomaly_counts or {},
        "created_at": run.created_at.isoformat() if run.created_at else None,
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        "error_message": run.error_message,
    }
