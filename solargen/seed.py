"""Seed the database with a historical backfill for the configured unit.

    python -m solargen.seed [--keep] [--start ISO] [--end ISO] [--seed N]

Clears the unit's existing readings (unless --keep), then generates every
interval between start and end with the configured anomaly windows and
bulk-inserts the result.
"""

import argparse
import asyncio
import logging
from datetime import datetime

from solargen.config import settings
from solargen.db.session import engine
from solargen.services.driver import BackfillDriver
from solargen.services.generator import make_rng
from solargen.services.sink import DatabaseSink

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed historical solar generation readings")
    p.add_argument(
        "--start", type=datetime.fromisoformat, default=settings.backfill_start,
        help="First timestamp, ISO 8601 (default from BACKFILL_START)",
    )
    p.add_argument(
        "--end", type=datetime.fromisoformat, default=settings.backfill_end,
        help="Last timestamp, ISO 8601, inclusive (default from BACKFILL_END)",
    )
    p.add_argument(
        "--seed", type=int, default=settings.random_seed,
        help="Random seed for a reproducible run",
    )
    p.add_argument(
        "--keep", action="store_true",
        help="Keep the unit's existing readings instead of clearing them first",
    )
    return p.parse_args(argv)


async def seed(args: argparse.Namespace) -> None:
    sink = DatabaseSink()
    try:
        if not args.keep:
            deleted = await sink.delete_all(settings.solar_unit_serial)
            logger.info("Cleared %d existing readings for %s", deleted, settings.solar_unit_serial)

        driver = BackfillDriver(
            sink,
            serial_number=settings.solar_unit_serial,
            rated_capacity_watts=settings.rated_capacity_watts,
            interval_hours=settings.interval_hours,
            anomaly_windows=settings.anomaly_windows,
            rng=make_rng(args.seed),
        )
        report = await driver.run(args.start, args.end)
    finally:
        await engine.dispose()

    logger.info(
        "Database seeded: %d readings from %s to %s",
        report.readings_generated,
        report.first_timestamp.isoformat() if report.first_timestamp else "-",
        report.last_timestamp.isoformat() if report.last_timestamp else "-",
    )
    for kind, count in sorted(report.anomaly_counts.items()):
        logger.info("Injected %d %s anomalies", count, kind)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(seed(parse_args(argv)))


if __name__ == "__main__":
    main()
