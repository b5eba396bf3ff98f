"""Celery task definitions.

drip_reading  — fired by celery beat; stores one reading for the configured unit.
run_backfill  — generates a historical range for a BackfillRun row and records
                the outcome on it.

BackfillRun:  idle → running → completed
                             ↘ failed
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select

from solargen.config import settings
from solargen.db.session import AsyncSessionLocal, engine
from solargen.models.backfill_run import BackfillRun
from solargen.services.anomalies import AnomalyWindow
from solargen.services.driver import BackfillDriver, BackfillReport, drip
from solargen.services.generator import make_rng
from solargen.services.lifecycle import DriverState
from solargen.services.sink import DatabaseSink
from solargen.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ── Entry points ───────────────────────────────────────────────────────────────

@celery_app.task(name="solargen.drip_reading", max_retries=0)
def drip_reading() -> int | None:
    """Celery entry point for one drip tick; returns the stored Wh, if any."""
    return asyncio.run(_run_drip())


@celery_app.task(bind=True, name="solargen.run_backfill", max_retries=0)
def run_backfill(self, run_id: str) -> None:
    """Celery entry point — runs the backfill in a new event loop."""
    asyncio.run(_run_backfill(run_id))


# ── Async bodies ───────────────────────────────────────────────────────────────

async def _run_drip() -> int | None:
    try:
        reading = await drip(
            DatabaseSink(),
            serial_number=settings.solar_unit_serial,
            rated_capacity_watts=settings.rated_capacity_watts,
            interval_hours=settings.interval_hours,
        )
    finally:
        # Each task gets its own event loop; pooled connections can't outlive it
        await engine.dispose()
    return reading.energy_generated if reading is not None else None


async def _run_backfill(run_id: str) -> None:
    try:
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(BackfillRun).where(BackfillRun.id == uuid.UUID(run_id))
            )
            run = result.scalar_one_or_none()
            if run is None:
                logger.error("run_backfill: run %s not found", run_id)
                return

            run.status = DriverState.running
            await db.commit()
            logger.info("Backfill run %s → %s", run.id, run.status.value)

            driver = BackfillDriver(
                DatabaseSink(),
                serial_number=run.serial_number,
                rated_capacity_watts=run.rated_capacity_watts,
                interval_hours=run.interval_hours,
                anomaly_windows=[
                    AnomalyWindow.model_validate(w) for w in run.anomaly_windows or []
                ],
                rng=make_rng(settings.random_seed),
            )

            try:
                report = await driver.run(run.start, run.end)
            except Exception as exc:
                logger.exception("Backfill run %s failed: %s", run_id, exc)
                _record_report(run, driver.report)
                run.status = DriverState.failed
                run.error_message = str(exc)
                await db.commit()
                raise

            _record_report(run, report)
            await db.commit()
            logger.info("Backfill run %s → %s", run.id, run.status.value)
    finally:
        await engine.dispose()


def _record_report(run: BackfillRun, report: BackfillReport) -> None:
    run.status = report.status
    run.readings_generated = report.readings_generated
    run.readings_inserted = report.readings_inserted
    run.anomaly_counts = report.anomaly_counts
    run.error_message = report.error
    run.completed_at = datetime.now(timezone.utc)
