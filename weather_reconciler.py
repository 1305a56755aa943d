# ABOUTME: Forecast reconciliation, hourly series merging and condition classification
# ABOUTME: Pure functions over provider data; no network or presentation concerns

import zoneinfo
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from weather_errors import MalformedResponse


NIGHT_STARTS_AFTER_HOUR = 21
NIGHT_ENDS_BEFORE_HOUR = 6
FORECAST_WINDOW = timedelta(hours=24)
TEMPERATURE_UNITS = ('C', 'F', 'K')


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float
    name: str | None = None


@dataclass(frozen=True)
class HourlyObservation:
    """One hour of primary-provider data, in the location's local time"""

    time: str
    temperature_c: float
    wind_kph: float
    humidity_pct: float
    weather_code: int

    @property
    def local_time(self) -> datetime:
        return datetime.fromisoformat(self.time)


@dataclass(frozen=True)
class PrimaryForecast:
    timezone: str
    observations: list[HourlyObservation] = field(default_factory=list)


@dataclass(frozen=True)
class ReconciledWeather:
    current: HourlyObservation | None = None
    next_24h: list[HourlyObservation] = field(default_factory=list)
    daily_forecasts: list[HourlyObservation] = field(default_factory=list)


@dataclass(frozen=True)
class ChartSeries:
    labels: list[str] = field(default_factory=list)
    series_a: list[float] = field(default_factory=list)
    series_b: list[float] = field(default_factory=list)


class WeatherCondition(str, Enum):
    SUNNY = 'sunny'
    CLOUDY = 'cloudy'
    RAINY = 'rainy'
    SNOWY = 'snowy'
    STORM = 'storm'
    NIGHT = 'night'


# WMO weather codes used by Open-Meteo
CONDITION_BY_CODE = {
    0: WeatherCondition.SUNNY,  # Clear sky
    1: WeatherCondition.CLOUDY,  # Mainly clear
    2: WeatherCondition.CLOUDY,  # Partly cloudy
    3: WeatherCondition.CLOUDY,  # Overcast
    45: WeatherCondition.CLOUDY,  # Fog
    48: WeatherCondition.CLOUDY,  # Depositing rime fog
    51: WeatherCondition.RAINY,  # Light drizzle
    63: WeatherCondition.RAINY,  # Moderate rain
    71: WeatherCondition.SNOWY,  # Slight snow fall
    95: WeatherCondition.STORM,  # Thunderstorm
}

ICON_BY_CONDITION = {
    WeatherCondition.SUNNY: 'weather-icons/sunny.svg',
    WeatherCondition.CLOUDY: 'weather-icons/cloudy.svg',
    WeatherCondition.RAINY: 'weather-icons/rainy.svg',
    WeatherCondition.SNOWY: 'weather-icons/snowy.svg',
    WeatherCondition.STORM: 'weather-icons/thunder.svg',
    WeatherCondition.NIGHT: 'weather-icons/night.svg',
}


def convert_temperature(temp_c: float, unit: str) -> float:
    """Convert a Celsius value to the given unit symbol (C, F or K)"""
    if unit == 'F':
        return temp_c * 9 / 5 + 32
    if unit == 'K':
        return temp_c + 273.15
    return temp_c


def normalize_unit(unit: str | None) -> str:
    """Map user-supplied unit input onto one of the supported symbols"""
    symbol = (unit or '').strip().upper()
    return symbol if symbol in TEMPERATURE_UNITS else 'C'


def local_now(tz_name: str) -> datetime:
    """Current wall-clock time in the given zone, as a naive datetime"""
    try:
        tz = zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
        msg = f"Unknown timezone '{tz_name}'"
        raise MalformedResponse(msg) from e
    return datetime.now(tz).replace(tzinfo=None)


def is_night(timestamp: datetime) -> bool:
    return (
        timestamp.hour < NIGHT_ENDS_BEFORE_HOUR
        or timestamp.hour > NIGHT_STARTS_AFTER_HOUR
    )


def classify_condition(code: int, timestamp: datetime | str) -> WeatherCondition:
    """Classify a weather code at a local time; night overrides the code"""
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    if is_night(timestamp):
        return WeatherCondition.NIGHT
    return CONDITION_BY_CODE.get(code, WeatherCondition.SUNNY)


def get_condition_icon(condition: WeatherCondition) -> str:
    return ICON_BY_CONDITION[condition]


def describe_weather(
    code: int, timestamp: datetime | str
) -> tuple[WeatherCondition, str]:
    """Return the condition and its icon for a code at a local time"""
    condition = classify_condition(code, timestamp)
    return condition, get_condition_icon(condition)


def reconcile_weather(
    observations: Sequence[HourlyObservation], now: datetime
) -> ReconciledWeather:
    """Bucket hourly observations into current, next-24h and daily views.

    ``now`` is a naive datetime in the same local time as the observations.
    An observation at now's hour on today's date becomes ``current`` (the
    last such match wins). The same hour on any other date goes to
    ``daily_forecasts``. Independently, anything within ``[now, now + 24h]``
    goes to ``next_24h``. Input order is preserved in both lists.
    """
    current = None
    next_24h: list[HourlyObservation] = []
    daily_forecasts: list[HourlyObservation] = []
    window_end = now + FORECAST_WINDOW

    for observation in observations:
        observed_at = observation.local_time

        if observed_at.hour == now.hour:
            if observed_at.date() == now.date():
                current = observation
            else:
                daily_forecasts.append(observation)

        if now <= observed_at <= window_end:
            next_24h.append(observation)

    return ReconciledWeather(
        current=current, next_24h=next_24h, daily_forecasts=daily_forecasts
    )


def start_of_hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


def hours_from(
    observations: Sequence[HourlyObservation], now: datetime
) -> list[HourlyObservation]:
    """Observations at or after the start of now's hour"""
    hour_start = start_of_hour(now)
    return [o for o in observations if o.local_time >= hour_start]


def merge_hourly_series(
    primary: Sequence[HourlyObservation],
    secondary: Sequence[float],
    now: datetime,
) -> ChartSeries:
    """Align two hourly temperature sources by hour offset from now.

    The secondary source defines the length. Both sources are matched by
    position, not by timestamp: index 0 of each must be the current hour and
    both must step one hour at a time. The first condition is checked against
    the primary timestamps; a primary series shorter than the secondary one
    is rejected rather than padded.
    """
    if len(primary) < len(secondary):
        msg = (
            f'Primary forecast has {len(primary)} hours but comparison series '
            f'has {len(secondary)}'
        )
        raise MalformedResponse(msg)

    if secondary and primary[0].local_time != start_of_hour(now):
        msg = (
            f'Primary forecast starts at {primary[0].time}, '
            f'expected the current hour {start_of_hour(now).isoformat()}'
        )
        raise MalformedResponse(msg)

    labels = [
        (now + timedelta(hours=offset)).strftime('%H:%M')
        for offset in range(len(secondary))
    ]
    series_a = [primary[i].temperature_c for i in range(len(secondary))]

    return ChartSeries(labels=labels, series_a=series_a, series_b=list(secondary))
