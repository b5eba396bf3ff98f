"""Simulated weather observations for daylight readings.

A single uniform draw picks one of four conditions; a second draw picks the
cloud cover inside that condition's band. Overcast and rain also dampen the
energy the panel would otherwise have produced.
"""

import enum
from typing import NamedTuple

import numpy as np


class WeatherCondition(str, enum.Enum):
    clear = "clear"
    partly_cloudy = "partly_cloudy"
    overcast = "overcast"
    rain = "rain"


class WeatherObservation(NamedTuple):
    condition: WeatherCondition
    cloud_cover: int
    energy_factor: float


# (cumulative probability, condition, cloud cover band in %, energy factor)
_WEATHER_BUCKETS: tuple[tuple[float, WeatherCondition, tuple[int, int], float], ...] = (
    (0.50, WeatherCondition.clear, (0, 20), 1.0),
    (0.80, WeatherCondition.partly_cloudy, (20, 50), 1.0),
    (0.95, WeatherCondition.overcast, (80, 100), 0.5),
    (1.00, WeatherCondition.rain, (100, 100), 0.3),
)


def simulate_weather(rng: np.random.Generator) -> WeatherObservation:
    """Draw a weather observation from the fixed 50/30/15/5 distribution."""
    roll = rng.random()
    for threshold, condition, (low, high), factor in _WEATHER_BUCKETS:
        if roll < threshold:
            break
    if low == high:
        cloud_cover = low
    else:
        cloud_cover = int(round(rng.uniform(low, high)))
    return WeatherObservation(condition, min(max(cloud_cover, 0), 100), factor)
