"""Solar energy generation model.

Produces one simulated reading for a unit at a given UTC timestamp:

    base    = season fraction × rated capacity × interval
    energy  = base × time-of-day multiplier × uniform(0.8, 1.2)
    energy *= weather factor                 (daylight only)
    energy  = anomaly overlay(energy)        (when a window is active)

All randomness comes from one numpy Generator so that a seeded run is fully
reproducible.
"""

from dataclasses import dataclass
from datetime import datetime

import numpy as np

from solargen.errors import InvalidConfiguration
from solargen.services.anomalies import (
    AnomalyKind,
    AnomalyWindow,
    FrozenLatch,
    as_utc,
    select_anomaly,
)
from solargen.services.weather import WeatherCondition, simulate_weather

DEFAULT_INTERVAL_HOURS = 2.0

# Fraction of the interval's physical maximum (capacity × hours) by season.
# With a 5 kW unit on a 1 h step these give 300/250/200/150 Wh.
SUMMER_FRACTION = 0.06
SPRING_FRACTION = 0.05
FALL_FRACTION = 0.04
WINTER_FRACTION = 0.03

DAYLIGHT_HOURS = (6, 18)
PEAK_HOURS = (10, 14)
DAYLIGHT_MULTIPLIER = 1.2
PEAK_MULTIPLIER = 1.5

VARIATION_RANGE = (0.8, 1.2)
NIGHTTIME_ANOMALY_WH = (30.0, 80.0)
OVERPRODUCTION_RANGE = (1.05, 1.20)
BAD_WEATHER_HIGH_SHARE = 0.8
CLEAR_WEATHER_LOW_SHARE = 0.2


@dataclass(frozen=True)
class Reading:
    """One simulated telemetry record for a solar unit over one interval."""

    serial_number: str
    timestamp: datetime
    energy_generated: int
    interval_hours: float
    weather_condition: WeatherCondition | None = None
    cloud_cover: int | None = None
    injected_anomaly: AnomalyKind | None = None

    def to_row(self) -> dict:
        """Column mapping for the energy_generation_records table."""
        return {
            "serial_number": self.serial_number,
            "timestamp": self.timestamp,
            "energy_generated": self.energy_generated,
            "interval_hours": self.interval_hours,
            "weather_condition": (
                self.weather_condition.value if self.weather_condition else None
            ),
            "cloud_cover": self.cloud_cover,
            "injected_anomaly": (
                self.injected_anomaly.value if self.injected_anomaly else None
            ),
        }


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Return the random source; ``None`` seeds from OS entropy."""
    return np.random.default_rng(seed)


def season_fraction(month: int) -> float:
    """Base-energy fraction for a 0-indexed month (0 = January)."""
    if 5 <= month <= 7:
        return SUMMER_FRACTION
    if 2 <= month <= 4:
        return SPRING_FRACTION
    if 8 <= month <= 10:
        return FALL_FRACTION
    return WINTER_FRACTION


def time_multiplier(hour: int) -> float:
    if not DAYLIGHT_HOURS[0] <= hour <= DAYLIGHT_HOURS[1]:
        return 0.0
    if PEAK_HOURS[0] <= hour <= PEAK_HOURS[1]:
        return PEAK_MULTIPLIER
    return DAYLIGHT_MULTIPLIER


def is_daylight(hour: int) -> bool:
    return DAYLIGHT_HOURS[0] <= hour <= DAYLIGHT_HOURS[1]


def validate_unit(rated_capacity_watts: float, interval_hours: float) -> None:
    """Raise InvalidConfiguration unless both values are strictly positive."""
    # `not x > 0` also rejects NaN
    if not rated_capacity_watts > 0:
        raise InvalidConfiguration(
            f"rated_capacity_watts must be positive, got {rated_capacity_watts!r}"
        )
    if not interval_hours > 0:
        raise InvalidConfiguration(
            f"interval_hours must be positive, got {interval_hours!r}"
        )


class ReadingGenerator:
    """Generates readings for one unit, carrying the frozen latch between calls.

    Build a fresh generator per run: the latch assumes timestamps arrive in
    ascending order.
    """

    def __init__(
        self,
        serial_number: str,
        rated_capacity_watts: float,
        interval_hours: float = DEFAULT_INTERVAL_HOURS,
        anomaly_windows: list[AnomalyWindow] | tuple[AnomalyWindow, ...] = (),
        rng: np.random.Generator | None = None,
    ) -> None:
        validate_unit(rated_capacity_watts, interval_hours)
        self.serial_number = serial_number
        self.rated_capacity_watts = float(rated_capacity_watts)
        self.interval_hours = float(interval_hours)
        self.anomaly_windows = tuple(anomaly_windows)
        self.rng = rng if rng is not None else make_rng()
        self.latch = FrozenLatch()

    @property
    def max_energy_wh(self) -> float:
        """Physical maximum for one interval at rated capacity."""
        return self.rated_capacity_watts * self.interval_hours

    def generate(self, timestamp: datetime) -> Reading:
        ts = as_utc(timestamp)
        hour = ts.hour
        # datetime months are 1-based
        base = season_fraction(ts.month - 1) * self.max_energy_wh

        multiplier = time_multiplier(hour)
        variation = self.rng.uniform(*VARIATION_RANGE)
        energy = base * multiplier * variation
        if multiplier == 0:
            energy = 0.0

        weather: WeatherCondition | None = None
        cloud_cover: int | None = None
        if is_daylight(hour):
            observation = simulate_weather(self.rng)
            weather = observation.condition
            cloud_cover = observation.cloud_cover
            energy *= observation.energy_factor

        anomaly = select_anomaly(self.anomaly_windows, ts)
        if anomaly is AnomalyKind.NIGHTTIME_GENERATION:
            energy = self.rng.uniform(*NIGHTTIME_ANOMALY_WH)
        elif anomaly is AnomalyKind.ZERO_GENERATION_CLEAR_SKY:
            energy = 0.0
        elif anomaly is AnomalyKind.ENERGY_EXCEEDING_THRESHOLD:
            energy = self.rng.uniform(*OVERPRODUCTION_RANGE) * self.max_energy_wh
        elif anomaly is AnomalyKind.HIGH_GENERATION_BAD_WEATHER:
            weather, cloud_cover = WeatherCondition.rain, 100
            energy = base * PEAK_MULTIPLIER * BAD_WEATHER_HIGH_SHARE
        elif anomaly is AnomalyKind.LOW_GENERATION_CLEAR_WEATHER:
            weather, cloud_cover = WeatherCondition.clear, 0
            energy = base * PEAK_MULTIPLIER * CLEAR_WEATHER_LOW_SHARE

        energy_wh = max(int(round(energy)), 0)

        frozen = self.latch.apply(
            self.serial_number, self.anomaly_windows, ts, energy_wh
        )
        if frozen is not None:
            energy_wh = frozen
            anomaly = AnomalyKind.FROZEN_GENERATION

        return Reading(
            serial_number=self.serial_number,
            timestamp=ts,
            energy_generated=energy_wh,
            interval_hours=self.interval_hours,
            weather_condition=weather,
            cloud_cover=cloud_cover,
            injected_anomaly=anomaly,
        )


def generate_reading(
    timestamp: datetime,
    rated_capacity_watts: float,
    interval_hours: float = DEFAULT_INTERVAL_HOURS,
    anomaly_windows: list[AnomalyWindow] | tuple[AnomalyWindow, ...] = (),
    *,
    serial_number: str,
    rng: np.random.Generator | None = None,
) -> Reading:
    """Generate a single reading with no state carried over from other calls."""
    generator = ReadingGenerator(
        serial_number, rated_capacity_watts, interval_hours, anomaly_windows, rng
    )
    return generator.generate(timestamp)
