"""Drip and backfill drivers around the generation model.

Drip:      one reading at "now", no anomalies, one insert; failures are
           logged and the reading is dropped.
Backfill:  a dense ascending walk over [start, end] at a fixed step with the
           configured anomaly windows, one bulk insert at the end.

Backfill lifecycle:  idle → running → completed
                                    ↘ failed
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np
import pandas as pd

from solargen.errors import InvalidConfiguration, SinkWriteFailure
from solargen.services.anomalies import AnomalyWindow, as_utc
from solargen.services.generator import (
    DEFAULT_INTERVAL_HOURS,
    Reading,
    ReadingGenerator,
    validate_unit,
)
from solargen.services.lifecycle import DriverState
from solargen.services.sink import ReadingSink

logger = logging.getLogger(__name__)


# ── Drip mode ──────────────────────────────────────────────────────────────────

async def drip(
    sink: ReadingSink,
    *,
    serial_number: str,
    rated_capacity_watts: float,
    interval_hours: float = DEFAULT_INTERVAL_HOURS,
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
) -> Reading | None:
    """Generate and store one reading for the current tick.

    Returns the stored reading, or None if the sink rejected it. No retry:
    the next tick fires on schedule regardless.
    """
    timestamp = as_utc(now) if now is not None else datetime.now(timezone.utc)
    reading = ReadingGenerator(
        serial_number, rated_capacity_watts, interval_hours, rng=rng
    ).generate(timestamp)

    try:
        await sink.insert_one(reading)
    except SinkWriteFailure as exc:
        logger.error(
            "[%s] Failed to generate energy record for %s: %s",
            timestamp.isoformat(),
            serial_number,
            exc,
        )
        return None

    logger.info(
        "[%s] Generated energy record: %dWh for %s",
        timestamp.isoformat(),
        reading.energy_generated,
        serial_number,
    )
    return reading


# ── Backfill mode ──────────────────────────────────────────────────────────────

@dataclass
class BackfillReport:
    serial_number: str
    status: DriverState = DriverState.idle
    readings_generated: int = 0
    readings_inserted: int = 0
    anomaly_counts: dict[str, int] = field(default_factory=dict)
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    cancelled: bool = False
    error: str | None = None

    @property
    def anomalies_injected(self) -> int:
        return sum(self.anomaly_counts.values())


def backfill_timestamps(
    start: datetime, end: datetime, interval_hours: float
) -> list[datetime]:
    """Every timestamp from *start* to *end* inclusive, *interval_hours* apart."""
    start_utc, end_utc = as_utc(start), as_utc(end)
    if end_utc < start_utc:
        raise InvalidConfiguration(
            f"backfill end {end_utc.isoformat()} is before start {start_utc.isoformat()}"
        )
    if not interval_hours > 0:
        raise InvalidConfiguration(
            f"interval_hours must be positive, got {interval_hours!r}"
        )
    index = pd.date_range(
        start=start_utc, end=end_utc, freq=pd.Timedelta(hours=interval_hours)
    )
    return [ts.to_pydatetime() for ts in index]


class BackfillDriver:
    """Runs one historical backfill for one unit.

    Readings are generated strictly in timestamp order (the frozen latch
    depends on it) and handed to the sink in a single insert_many call.
    A driver runs once; build a new one for the next run.
    """

    def __init__(
        self,
        sink: ReadingSink,
        *,
        serial_number: str,
        rated_capacity_watts: float,
        interval_hours: float = DEFAULT_INTERVAL_HOURS,
        anomaly_windows: list[AnomalyWindow] | tuple[AnomalyWindow, ...] = (),
        rng: np.random.Generator | None = None,
    ) -> None:
        validate_unit(rated_capacity_watts, interval_hours)
        self.sink = sink
        self.serial_number = serial_number
        self.rated_capacity_watts = rated_capacity_watts
        self.interval_hours = interval_hours
        self.anomaly_windows = tuple(anomaly_windows)
        self.rng = rng
        self.state = DriverState.idle
        self.report = BackfillReport(serial_number=serial_number)
        self._cancel_requested = False

    def cancel(self) -> None:
        """Stop before the next timestamp; nothing is written to the sink."""
        self._cancel_requested = True

    async def run(self, start: datetime, end: datetime) -> BackfillReport:
        if self.state is not DriverState.idle:
            raise RuntimeError(f"Backfill driver already used (state={self.state.value})")

        timestamps = backfill_timestamps(start, end, self.interval_hours)
        self._set_state(DriverState.running)
        logger.info(
            "Backfill %s: %d readings from %s to %s every %sh",
            self.serial_number,
            len(timestamps),
            timestamps[0].isoformat(),
            timestamps[-1].isoformat(),
            self.interval_hours,
        )

        generator = ReadingGenerator(
            self.serial_number,
            self.rated_capacity_watts,
            self.interval_hours,
            self.anomaly_windows,
            self.rng,
        )
        readings: list[Reading] = []
        counts: Counter[str] = Counter()
        for ts in timestamps:
            # Let a concurrent cancel() land between readings
            await asyncio.sleep(0)
            if self._cancel_requested:
                self.report.cancelled = True
                self.report.error = "cancelled"
                self._set_state(DriverState.failed)
                logger.warning(
                    "Backfill %s cancelled after %d/%d readings; nothing stored",
                    self.serial_number,
                    len(readings),
                    len(timestamps),
                )
                return self.report

            reading = generator.generate(ts)
            readings.append(reading)
            if reading.injected_anomaly is not None:
                counts[reading.injected_anomaly.value] += 1

            self.report.readings_generated = len(readings)
            self.report.anomaly_counts = dict(counts)
            self.report.first_timestamp = readings[0].timestamp
            self.report.last_timestamp = reading.timestamp

        try:
            self.report.readings_inserted = await self.sink.insert_many(readings)
        except Exception as exc:
            self.report.error = str(exc)
            self._set_state(DriverState.failed)
            logger.error(
                "Backfill %s failed: %d generated readings not committed: %s",
                self.serial_number,
                len(readings),
                exc,
            )
            raise

        self._set_state(DriverState.completed)
        logger.info(
            "Backfill %s complete: %d readings, %d anomalies %s",
            self.serial_number,
            self.report.readings_generated,
            self.report.anomalies_injected,
            self.report.anomaly_counts,
        )
        return self.report

    def _set_state(self, state: DriverState) -> None:
        self.state = state
        self.report.status = state
