from datetime import datetime, timezone

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from solargen.services.anomalies import NIGHT_HOURS, AnomalyKind, AnomalyWindow


def _default_anomaly_windows() -> list[AnomalyWindow]:
    # Sensor malfunction reporting generation at night, Aug 10-12 2025
    return [
        AnomalyWindow(
            kind=AnomalyKind.NIGHTTIME_GENERATION,
            start=datetime(2025, 8, 10, 0, 0, 0, tzinfo=timezone.utc),
            end=datetime(2025, 8, 12, 23, 59, 59, tzinfo=timezone.utc),
            hours=NIGHT_HOURS,
        )
    ]


class Settings(BaseSettings):
    # ── Application ────────────────────────────────────────────────────────────
    app_name: str = "SolarGen API"
    app_version: str = "0.1.0"
    debug: bool = False

    # ── Authentication ─────────────────────────────────────────────────────────
    api_key: str = "dev-api-key"

    # ── Database ───────────────────────────────────────────────────────────────
    database_url: str = "postgresql+asyncpg://solargen:solargen@db:5432/solargen"

    # ── Redis / Celery ─────────────────────────────────────────────────────────
    redis_url: str = "redis://redis:6379/0"

    # ── Simulated unit ─────────────────────────────────────────────────────────
    solar_unit_serial: str = "SU-0001"
    rated_capacity_watts: float = 5000.0
    # Duration each reading covers; the record schema allows 0.1–24 h
    interval_hours: float = 2.0

    # None → OS entropy; set for reproducible runs
    random_seed: int | None = None

    # ── Drip timer ─────────────────────────────────────────────────────────────
    drip_enabled: bool = True
    drip_interval_hours: float = 2.0

    # ── Historical backfill ────────────────────────────────────────────────────
    backfill_start: datetime = datetime(2025, 8, 1, 8, 0, tzinfo=timezone.utc)
    backfill_end: datetime = datetime(2025, 11, 23, 8, 0, tzinfo=timezone.utc)
    # JSON list in the environment, e.g.
    # ANOMALY_WINDOWS='[{"kind": "FROZEN_GENERATION", "start": "...", "end": "..."}]'
    anomaly_windows: list[AnomalyWindow] = _default_anomaly_windows()

    @field_validator("rated_capacity_watts")
    @classmethod
    def validate_capacity(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("rated_capacity_watts must be positive")
        return v

    @field_validator("interval_hours")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if not 0 < v <= 24:
            raise ValueError("interval_hours must be in (0, 24]")
        return v

    @field_validator("drip_interval_hours")
    @classmethod
    def validate_drip_interval(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("drip_interval_hours must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
