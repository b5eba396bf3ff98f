from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from solargen.db.base import Base


class EnergyGenerationRecord(Base):
    """Simulated solar generation reading, stored as a TimescaleDB hypertable.

    Keyed by (timestamp, serial_number) so a re-run backfill over the same
    range leaves existing rows untouched.
    injected_anomaly is NULL for clean readings.
    """

    __tablename__ = "energy_generation_records"

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True, nullable=False
    )
    serial_number: Mapped[str] = mapped_column(
        String(64), primary_key=True, nullable=False
    )
    energy_generated: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_hours: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    weather_condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cloud_cover: Mapped[int | None] = mapped_column(Integer, nullable=True)
    injected_anomaly: Mapped[str | None] = mapped_column(String(40), nullable=True)
