"""Storage sinks that receive generated readings.

The driver only needs ``insert_one`` and ``insert_many``; both either store
everything they were given or raise SinkWriteFailure. ``readings_since``
serves the read path: all readings of one unit after a timestamp, oldest
first.
"""

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solargen.db.session import AsyncSessionLocal
from solargen.errors import SinkWriteFailure
from solargen.models.reading import EnergyGenerationRecord
from solargen.services.anomalies import AnomalyKind, as_utc
from solargen.services.generator import Reading
from solargen.services.weather import WeatherCondition

logger = logging.getLogger(__name__)


class ReadingSink(Protocol):
    async def insert_one(self, reading: Reading) -> None: ...

    async def insert_many(self, readings: list[Reading]) -> int: ...


class MemorySink:
    """In-process sink for tests and dry runs."""

    def __init__(self) -> None:
        self.readings: list[Reading] = []

    async def insert_one(self, reading: Reading) -> None:
        self.readings.append(reading)

    async def insert_many(self, readings: list[Reading]) -> int:
        self.readings.extend(readings)
        return len(readings)

    async def readings_since(
        self, serial_number: str, since: datetime | None = None
    ) -> list[Reading]:
        since_utc = as_utc(since) if since is not None else None
        matches = [
            r
            for r in self.readings
            if r.serial_number == serial_number
            and (since_utc is None or r.timestamp > since_utc)
        ]
        return sorted(matches, key=lambda r: r.timestamp)

    async def delete_all(self, serial_number: str | None = None) -> int:
        before = len(self.readings)
        if serial_number is None:
            self.readings = []
        else:
            self.readings = [r for r in self.readings if r.serial_number != serial_number]
        return before - len(self.readings)


class DatabaseSink:
    """Writes readings to the energy_generation_records hypertable.

    A batch is inserted in chunks inside one transaction: it is committed as
    a whole or rolled back as a whole.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        chunk_size: int = 1000,
    ) -> None:
        self._session_factory = session_factory
        self._chunk_size = chunk_size

    async def insert_one(self, reading: Reading) -> None:
        await self.insert_many([reading])

    async def insert_many(self, readings: list[Reading]) -> int:
        if not readings:
            return 0
        rows = [r.to_row() for r in readings]

        async with self._session_factory() as db:
            try:
                inserted = 0
                for i in range(0, len(rows), self._chunk_size):
                    stmt = pg_insert(EnergyGenerationRecord).values(
                        rows[i : i + self._chunk_size]
                    )
                    stmt = stmt.on_conflict_do_nothing(
                        index_elements=["timestamp", "serial_number"]
                    )
                    result = await db.execute(stmt)
                    inserted += result.rowcount
                await db.commit()
            except (SQLAlchemyError, OSError) as exc:
                await db.rollback()
                raise SinkWriteFailure(
                    f"Failed to insert {len(rows)} reading(s): {exc}"
                ) from exc

        logger.info("Inserted %d/%d readings", inserted, len(rows))
        return inserted

    async def readings_since(
        self, serial_number: str, since: datetime | None = None
    ) -> list[Reading]:
        query = select(EnergyGenerationRecord).where(
            EnergyGenerationRecord.serial_number == serial_number
        )
        if since is not None:
            query = query.where(EnergyGenerationRecord.timestamp > as_utc(since))

        async with self._session_factory() as db:
            result = await db.execute(query.order_by(EnergyGenerationRecord.timestamp))
            rows = result.scalars().all()
        return [_to_reading(row) for row in rows]

    async def delete_all(self, serial_number: str | None = None) -> int:
        stmt = delete(EnergyGenerationRecord)
        if serial_number is not None:
            stmt = stmt.where(EnergyGenerationRecord.serial_number == serial_number)

        async with self._session_factory() as db:
            try:
                result = await db.execute(stmt)
                await db.commit()
            except (SQLAlchemyError, OSError) as exc:
                await db.rollback()
                raise SinkWriteFailure(f"Failed to delete readings: {exc}") from exc
        return result.rowcount


def _to_reading(row: EnergyGenerationRecord) -> Reading:
    return Reading(
        serial_number=row.serial_number,
        timestamp=as_utc(row.timestamp),
        energy_generated=row.energy_generated,
        interval_hours=row.interval_hours,
        weather_condition=(
            WeatherCondition(row.weather_condition) if row.weather_condition else None
        ),
        cloud_cover=row.cloud_cover,
        injected_anomaly=(
            AnomalyKind(row.injected_anomaly) if row.injected_anomaly else None
        ),
    )
