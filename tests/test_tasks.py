"""Tests for the Celery task bodies with the database replaced by mocks."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from solargen.errors import SinkWriteFailure
from solargen.models.backfill_run import BackfillRun
from solargen.services.lifecycle import DriverState
from solargen.services.sink import MemorySink
from solargen.workers import tasks
from solargen.workers.celery_app import celery_app


def _session_factory(session) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def _run(**overrides) -> BackfillRun:
    fields = dict(
        id=uuid.uuid4(),
        status=DriverState.idle,
        serial_number="SU-0001",
        start=datetime(2025, 8, 10, tzinfo=timezone.utc),
        end=datetime(2025, 8, 12, 22, tzinfo=timezone.utc),
        interval_hours=2.0,
        rated_capacity_watts=5000.0,
        anomaly_windows=[
            {
                "kind": "NIGHTTIME_GENERATION",
                "start": "2025-08-10T00:00:00Z",
                "end": "2025-08-12T23:59:59Z",
                "hours": [2, 20, 22],
            }
        ],
    )
    fields.update(overrides)
    return BackfillRun(**fields)


@pytest.fixture
def mock_engine():
    with patch.object(tasks, "engine") as engine:
        engine.dispose = AsyncMock()
        yield engine


def test_drip_is_on_the_beat_schedule():
    entry = celery_app.conf.beat_schedule["drip-reading"]
    assert entry["task"] == "solargen.drip_reading"
    assert entry["schedule"].total_seconds() == 2 * 3600


def test_drip_reading_stores_one_reading(mock_engine):
    sink = MemorySink()
    with patch.object(tasks, "DatabaseSink", return_value=sink):
        energy = tasks.drip_reading()

    assert len(sink.readings) == 1
    assert energy == sink.readings[0].energy_generated
    assert sink.readings[0].serial_number == "SU-0001"
    mock_engine.dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_backfill_task_records_completed_run(mock_engine):
    run = _run()
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = run
    session.execute.return_value = result
    sink = MemorySink()

    with (
        patch.object(tasks, "AsyncSessionLocal", _session_factory(session)),
        patch.object(tasks, "DatabaseSink", return_value=sink),
    ):
        await tasks._run_backfill(str(run.id))

    assert run.status is DriverState.completed
    assert run.readings_generated == 36
    assert run.readings_inserted == 36
    assert run.anomaly_counts == {"NIGHTTIME_GENERATION": 9}
    assert run.error_message is None
    assert run.completed_at is not None
    assert len(sink.readings) == 36
    mock_engine.dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_backfill_task_records_sink_failure(mock_engine):
    run = _run()
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = run
    session.execute.return_value = result

    failing = MemorySink()
    failing.insert_many = AsyncMock(side_effect=SinkWriteFailure("disk full"))

    with (
        patch.object(tasks, "AsyncSessionLocal", _session_factory(session)),
        patch.object(tasks, "DatabaseSink", return_value=failing),
        pytest.raises(SinkWriteFailure),
    ):
        await tasks._run_backfill(str(run.id))

    assert run.status is DriverState.failed
    assert run.readings_generated == 36
    assert run.readings_inserted == 0
    assert run.error_message == "disk full"


@pytest.mark.asyncio
async def test_backfill_task_ignores_unknown_run(mock_engine):
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    session.execute.return_value = result

    with patch.object(tasks, "AsyncSessionLocal", _session_factory(session)):
        await tasks._run_backfill(str(uuid.uuid4()))

    session.commit.assert_not_awaited()
