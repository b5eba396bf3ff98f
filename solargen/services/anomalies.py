"""Anomaly kinds, anomaly windows and the frozen-value latch.

An anomaly window is a time range plus an optional hour-of-day predicate.
Most timestamps inside a window are left alone; only those whose UTC hour is
in ``hours`` get corrupted. A window without ``hours`` corrupts every
timestamp it contains.

When windows of different kinds are active at the same timestamp, the kind
earliest in ``PRIORITY`` wins. ``FROZEN_GENERATION`` is applied after all
other kinds and overwrites whatever they produced.
"""

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class AnomalyKind(str, enum.Enum):
    NIGHTTIME_GENERATION = "NIGHTTIME_GENERATION"
    ZERO_GENERATION_CLEAR_SKY = "ZERO_GENERATION_CLEAR_SKY"
    ENERGY_EXCEEDING_THRESHOLD = "ENERGY_EXCEEDING_THRESHOLD"
    HIGH_GENERATION_BAD_WEATHER = "HIGH_GENERATION_BAD_WEATHER"
    LOW_GENERATION_CLEAR_WEATHER = "LOW_GENERATION_CLEAR_WEATHER"
    FROZEN_GENERATION = "FROZEN_GENERATION"

    @classmethod
    def _missing_(cls, value):
        # Older seed data tags threshold readings as OVERPRODUCTION
        if isinstance(value, str) and value.upper() == "OVERPRODUCTION":
            return cls.ENERGY_EXCEEDING_THRESHOLD
        return None


# Evaluation order for overlapping windows; first active kind wins
PRIORITY: tuple[AnomalyKind, ...] = (
    AnomalyKind.NIGHTTIME_GENERATION,
    AnomalyKind.ZERO_GENERATION_CLEAR_SKY,
    AnomalyKind.ENERGY_EXCEEDING_THRESHOLD,
    AnomalyKind.HIGH_GENERATION_BAD_WEATHER,
    AnomalyKind.LOW_GENERATION_CLEAR_WEATHER,
)

NIGHT_HOURS: frozenset[int] = frozenset(
    h for h in range(24) if h >= 18 or h < 6
)


def as_utc(ts: datetime) -> datetime:
    """Return *ts* as an aware UTC datetime; naive values are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class AnomalyWindow(BaseModel):
    """A time range during which one anomaly kind is injected.

    ``start`` and ``end`` are both inclusive.
    """

    model_config = ConfigDict(frozen=True)

    kind: AnomalyKind
    start: datetime
    end: datetime
    hours: frozenset[int] | None = None

    @field_validator("start", "end")
    @classmethod
    def normalise_to_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("hours")
    @classmethod
    def validate_hours(cls, v: frozenset[int] | None) -> frozenset[int] | None:
        if v is not None and any(not 0 <= h <= 23 for h in v):
            raise ValueError("hours must be between 0 and 23")
        return v

    @model_validator(mode="after")
    def validate_range(self) -> "AnomalyWindow":
        if self.end < self.start:
            raise ValueError("anomaly window end must not be before start")
        return self

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end

    def is_active(self, ts: datetime) -> bool:
        """True when *ts* is inside the window and its hour matches."""
        if not self.contains(ts):
            return False
        return self.hours is None or ts.hour in self.hours


def select_anomaly(
    windows: list[AnomalyWindow] | tuple[AnomalyWindow, ...], ts: datetime
) -> AnomalyKind | None:
    """Return the winning non-frozen anomaly kind active at *ts*, if any."""
    active = {w.kind for w in windows if w.is_active(ts)}
    for kind in PRIORITY:
        if kind in active:
            return kind
    return None


class FrozenLatch:
    """Holds the latched energy value of every frozen window in one run.

    Keyed by ``(serial_number, window_index)`` so that two units simulated
    side by side never see each other's stuck values.
    """

    def __init__(self) -> None:
        self._values: dict[tuple[str, int], int] = {}

    def apply(
        self,
        serial_number: str,
        windows: list[AnomalyWindow] | tuple[AnomalyWindow, ...],
        ts: datetime,
        energy: int,
    ) -> int | None:
        """Return the frozen value for *ts*, or None if no frozen window is active.

        Latches *energy* the first time a window matches and drops the latch
        of every frozen window *ts* is outside of.
        """
        frozen: int | None = None
        for index, window in enumerate(windows):
            if window.kind != AnomalyKind.FROZEN_GENERATION:
                continue
            key = (serial_number, index)
            if not window.contains(ts):
                self._values.pop(key, None)
                continue
            if frozen is None and window.is_active(ts):
                frozen = self._values.setdefault(key, energy)
        return frozen

    def reset(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
