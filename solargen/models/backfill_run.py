import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from solargen.db.base import Base
from solargen.services.lifecycle import DriverState


class BackfillRun(Base):
    __tablename__ = "backfill_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    status: Mapped[DriverState] = mapped_column(
        Enum(DriverState, name="driverstate"), nullable=False, default=DriverState.idle
    )
    serial_number: Mapped[str] = mapped_column(String(64), nullable=False)
    start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    interval_hours: Mapped[float] = mapped_column(Float, nullable=False)
    rated_capacity_watts: Mapped[float] = mapped_column(Float, nullable=False)
    anomaly_windows: Mapped[list | None] = mapped_column(JSON, nullable=True)
    readings_generated: Mapped[int | None] = mapped_column(Integer, nullable=True)
    readings_inserted: Mapped[int | None] = mapped_column(Integer, nullable=True)
    anomaly_counts: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
