"""Tests for DatabaseSink with the session factory replaced by mocks."""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from solargen.errors import SinkWriteFailure
from solargen.models.reading import EnergyGenerationRecord
from solargen.services.anomalies import AnomalyKind
from solargen.services.driver import drip
from solargen.services.generator import Reading
from solargen.services.sink import DatabaseSink
from solargen.services.weather import WeatherCondition

_SERIAL = "SU-0001"


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _readings(count: int) -> list[Reading]:
    start = _utc(2025, 8, 1)
    return [
        Reading(
            serial_number=_SERIAL,
            timestamp=start + timedelta(hours=2 * i),
            energy_generated=100 * i,
            interval_hours=2.0,
        )
        for i in range(count)
    ]


def _result(rowcount: int) -> MagicMock:
    result = MagicMock()
    result.rowcount = rowcount
    return result


def _compiled(stmt):
    return stmt.compile(dialect=postgresql.dialect())


def _sql(stmt) -> str:
    return str(_compiled(stmt)).replace('"', "")


def _param(params: dict, column: str):
    return next(v for k, v in params.items() if k.startswith(column))


@pytest.fixture
def session():
    return AsyncMock()


@pytest.fixture
def session_factory(session) -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


# ── insert_many ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_insert_many_chunks_and_sums_rowcount(session, session_factory, caplog):
    session.execute.side_effect = [_result(2), _result(1), _result(1)]
    sink = DatabaseSink(session_factory, chunk_size=2)

    with caplog.at_level(logging.INFO, logger="solargen.services.sink"):
        inserted = await sink.insert_many(_readings(5))

    assert inserted == 4
    assert session.execute.await_count == 3
    session.commit.assert_awaited_once()
    session.rollback.assert_not_awaited()
    assert "Inserted 4/5 readings" in caplog.text

    chunk_sizes = []
    for call in session.execute.await_args_list:
        compiled = _compiled(call.args[0])
        assert "ON CONFLICT (timestamp, serial_number) DO NOTHING" in _sql(call.args[0])
        chunk_sizes.append(len([k for k in compiled.params if k.startswith("serial_number")]))
    assert chunk_sizes == [2, 2, 1]


@pytest.mark.asyncio
async def test_insert_many_rolls_back_when_a_chunk_fails(session, session_factory):
    session.execute.side_effect = [_result(2), SQLAlchemyError("disk full")]
    sink = DatabaseSink(session_factory, chunk_size=2)

    with pytest.raises(SinkWriteFailure, match="5 reading") as exc_info:
        await sink.insert_many(_readings(5))

    assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
    assert session.execute.await_count == 2
    session.rollback.assert_awaited_once()
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_many_wraps_commit_failure(session, session_factory):
    session.execute.return_value = _result(3)
    session.commit.side_effect = OperationalError("COMMIT", {}, Exception("server closed"))
    sink = DatabaseSink(session_factory)

    with pytest.raises(SinkWriteFailure):
        await sink.insert_many(_readings(3))

    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_many_wraps_connection_refused(session, session_factory):
    session.execute.side_effect = ConnectionRefusedError("connection refused")
    sink = DatabaseSink(session_factory)

    with pytest.raises(SinkWriteFailure) as exc_info:
        await sink.insert_many(_readings(1))

    assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_many_empty_batch_skips_database(session_factory):
    assert await DatabaseSink(session_factory).insert_many([]) == 0
    session_factory.assert_not_called()


@pytest.mark.asyncio
async def test_insert_one_writes_a_single_row(session, session_factory):
    session.execute.return_value = _result(1)
    reading = Reading(
        serial_number=_SERIAL,
        timestamp=_utc(2025, 8, 1, 12),
        energy_generated=420,
        interval_hours=2.0,
        weather_condition=WeatherCondition.overcast,
        cloud_cover=90,
        injected_anomaly=AnomalyKind.ZERO_GENERATION_CLEAR_SKY,
    )

    await DatabaseSink(session_factory).insert_one(reading)

    params = _compiled(session.execute.await_args.args[0]).params
    assert _param(params, "energy_generated") == 420
    assert _param(params, "weather_condition") == "overcast"
    assert _param(params, "injected_anomaly") == "ZERO_GENERATION_CLEAR_SKY"
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_drip_logs_unreachable_database(session, session_factory, caplog):
    session.execute.side_effect = ConnectionRefusedError("connection refused")

    with caplog.at_level(logging.ERROR, logger="solargen.services.driver"):
        reading = await drip(
            DatabaseSink(session_factory),
            serial_number=_SERIAL,
            rated_capacity_watts=5000,
            now=_utc(2025, 6, 15, 12),
        )

    assert reading is None
    assert "Failed to generate energy record" in caplog.text


# ── readings_since / delete_all ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_readings_since_filters_and_orders_ascending(session, session_factory):
    row = EnergyGenerationRecord(
        timestamp=datetime(2025, 8, 1, 6),
        serial_number=_SERIAL,
        energy_generated=250,
        interval_hours=2.0,
        weather_condition="clear",
        cloud_cover=10,
        injected_anomaly=None,
    )
    result = MagicMock()
    result.scalars.return_value.all.return_value = [row]
    session.execute.return_value = result

    readings = await DatabaseSink(session_factory).readings_since(
        _SERIAL, since=_utc(2025, 8, 1, 4)
    )

    sql = _sql(session.execute.await_args.args[0])
    assert "energy_generation_records.serial_number =" in sql
    assert "energy_generation_records.timestamp >" in sql
    assert sql.rstrip().endswith("ORDER BY energy_generation_records.timestamp")

    [reading] = readings
    assert reading.timestamp == _utc(2025, 8, 1, 6)
    assert reading.weather_condition is WeatherCondition.clear
    assert reading.injected_anomaly is None


@pytest.mark.asyncio
async def test_readings_since_without_bound(session, session_factory):
    result = MagicMock()
    result.scalars.return_value.all.return_value = []
    session.execute.return_value = result

    assert await DatabaseSink(session_factory).readings_since(_SERIAL) == []
    sql = _sql(session.execute.await_args.args[0])
    assert "timestamp >" not in sql


@pytest.mark.asyncio
async def test_delete_all_for_unit(session, session_factory):
    session.execute.return_value = _result(7)

    assert await DatabaseSink(session_factory).delete_all(_SERIAL) == 7

    sql = _sql(session.execute.await_args.args[0])
    assert sql.startswith("DELETE FROM energy_generation_records")
    assert "serial_number =" in sql
    session.commit.assert_awaited_once()
