# ABOUTME: Provider classes for Open-Meteo geocoding/forecasts and WeatherAPI.com
# ABOUTME: Fetches raw JSON and normalizes it into reconciler data types

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import requests

from weather_errors import LookupFailure, MalformedResponse, NetworkFailure
from weather_reconciler import (
    Coordinate,
    FORECAST_WINDOW,
    HourlyObservation,
    PrimaryForecast,
    start_of_hour,
)


DEFAULT_TIMEOUT = 10
COMPARISON_HOURS = int(FORECAST_WINDOW.total_seconds() // 3600)


class ApiProvider:
    """Shared request handling for JSON HTTP APIs"""

    def __init__(self, name: str, base_url: str, timeout: int = DEFAULT_TIMEOUT):
        self.name = name
        self.base_url = base_url
        self.timeout = timeout

    def _request_json(self, params: dict[str, Any]) -> dict[str, Any]:
        """GET base_url with params and decode the JSON body"""
        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            print(f'🌤️  {self.name} API: {self.base_url} -> {response.status_code}')
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.JSONDecodeError as e:
            print(f'❌ {self.name} returned invalid JSON: {str(e)}')
            msg = f'{self.name} returned invalid JSON'
            raise MalformedResponse(msg) from e
        except requests.exceptions.RequestException as e:
            print(f'❌ {self.name} API error: {str(e)}')
            msg = f'{self.name} request failed: {e}'
            raise NetworkFailure(msg) from e

        if not isinstance(data, dict):
            msg = f'{self.name} returned an unexpected payload'
            raise MalformedResponse(msg)
        return data

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about this provider"""
        return {
            'name': self.name,
            'url': self.base_url,
            'timeout': self.timeout,
            'description': self.__doc__ or f'{self.name} provider',
        }


class GeocodingProvider(ApiProvider):
    """Open-Meteo geocoding - free-text city search"""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT) -> None:
        super().__init__(
            'OpenMeteoGeocoding',
            'https://geocoding-api.open-meteo.com/v1/search',
            timeout,
        )

    def lookup(self, city: str) -> Coordinate:
        """Resolve a city name to its best-match coordinate"""
        data = self._request_json({'name': city, 'count': 1})
        results = data.get('results') or []
        if not isinstance(results, list):
            msg = f'Geocoding results for {city!r} are not a list'
            raise MalformedResponse(msg)
        if not results:
            print(f'🔍 No geocoding match for {city!r}')
            raise LookupFailure(city)

        best = results[0]
        try:
            return Coordinate(
                latitude=float(best['latitude']),
                longitude=float(best['longitude']),
                name=best.get('name'),
            )
        except (KeyError, TypeError, ValueError) as e:
            msg = f'Geocoding result for {city!r} has no usable coordinates'
            raise MalformedResponse(msg) from e


class WeatherProvider(ApiProvider, ABC):
    """Abstract base class for forecast providers"""

    @abstractmethod
    def fetch_weather_data(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch raw weather data from the provider"""

    @abstractmethod
    def process_weather_data(
        self, raw_data: dict[str, Any], now: datetime | None = None
    ) -> Any:
        """Normalize raw weather data"""

    def get_weather(self, coordinate: Coordinate, now: datetime | None = None) -> Any:
        """Fetch and normalize weather data for a coordinate"""
        raw_data = self.fetch_weather_data(coordinate.latitude, coordinate.longitude)
        return self.process_weather_data(raw_data, now)


class OpenMeteoProvider(WeatherProvider):
    """Open-Meteo hourly forecast - temperature, humidity, weather code, wind"""

    HOURLY_FIELDS = (
        'temperature_2m',
        'relative_humidity_2m',
        'weather_code',
        'wind_speed_10m',
    )

    def __init__(self, timeout: int = DEFAULT_TIMEOUT) -> None:
        super().__init__('OpenMeteo', 'https://api.open-meteo.com/v1/forecast', timeout)

    def fetch_weather_data(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch hourly arrays from Open-Meteo in the location's timezone"""
        params: dict[str, str | float] = {
            'latitude': lat,
            'longitude': lon,
            'timezone': 'auto',
            'hourly': ','.join(self.HOURLY_FIELDS),
        }
        return self._request_json(params)

    def process_weather_data(
        self,
        raw_data: dict[str, Any],
        now: datetime | None = None,  # noqa: ARG002
    ) -> PrimaryForecast:
        """Zip the parallel hourly arrays into observations"""
        hourly = raw_data.get('hourly')
        if not isinstance(hourly, dict) or 'time' not in hourly:
            msg = 'Open-Meteo response has no hourly data'
            raise MalformedResponse(msg)

        missing = [name for name in self.HOURLY_FIELDS if name not in hourly]
        if missing:
            msg = f'Open-Meteo hourly data is missing {", ".join(missing)}'
            raise MalformedResponse(msg)

        times = hourly['time']
        columns = [hourly[name] for name in self.HOURLY_FIELDS]
        if not all(isinstance(array, list) for array in (times, *columns)):
            msg = 'Open-Meteo hourly data is not a set of arrays'
            raise MalformedResponse(msg)
        if any(len(column) != len(times) for column in columns):
            msg = 'Open-Meteo hourly arrays differ in length'
            raise MalformedResponse(msg)

        try:
            observations = [
                HourlyObservation(
                    time=time_str,
                    temperature_c=float(temp),
                    humidity_pct=float(humidity),
                    weather_code=int(code),
                    wind_kph=float(wind),
                )
                for time_str, temp, humidity, code, wind in zip(times, *columns)
            ]
            # Fail on unparsable timestamps here rather than during reconciliation
            for observation in observations:
                _ = observation.local_time
        except (TypeError, ValueError) as e:
            msg = f'Open-Meteo hourly data is invalid: {e}'
            raise MalformedResponse(msg) from e

        tz_name = raw_data.get('timezone') or 'UTC'
        if not isinstance(tz_name, str):
            msg = f'Open-Meteo timezone is invalid: {tz_name!r}'
            raise MalformedResponse(msg)
        print(f'🌍 {len(observations)} hourly observations in {tz_name}')
        return PrimaryForecast(timezone=tz_name, observations=observations)


class WeatherApiProvider(WeatherProvider):
    """WeatherAPI.com forecast - hourly temperature used as a comparison series"""

    def __init__(self, api_key: str, timeout: int = DEFAULT_TIMEOUT):
        super().__init__(
            'WeatherAPI', 'https://api.weatherapi.com/v1/forecast.json', timeout
        )
        self.api_key = api_key

    def fetch_weather_data(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch today's and tomorrow's hourly forecast"""
        params = {
            'key': self.api_key,
            'q': f'{lat},{lon}',
            'days': 2,
            'aqi': 'no',
            'alerts': 'no',
        }
        return self._request_json(params)

    def process_weather_data(
        self, raw_data: dict[str, Any], now: datetime | None = None
    ) -> list[float]:
        """Hourly Celsius temperatures starting at now's hour, at most 24.

        WeatherAPI reports hours in the location's local time; ``now`` must be
        naive local time for the same location (system time if omitted).
        """
        try:
            hours = [
                hour
                for day in raw_data['forecast']['forecastday']
                for hour in day['hour']
            ]
            hour_times = [
                datetime.strptime(hour['time'], '%Y-%m-%d %H:%M') for hour in hours
            ]
        except (KeyError, TypeError, ValueError) as e:
            msg = f'WeatherAPI response has no usable hourly forecast: {e}'
            raise MalformedResponse(msg) from e

        current_hour = start_of_hour(now or datetime.now())
        if current_hour not in hour_times:
            msg = f'WeatherAPI forecast does not cover {current_hour.isoformat()}'
            raise MalformedResponse(msg)

        start = hour_times.index(current_hour)
        window = hours[start : start + COMPARISON_HOURS]
        try:
            return [float(hour['temp_c']) for hour in window]
        except (KeyError, TypeError, ValueError) as e:
            msg = f'WeatherAPI hourly temperature is invalid: {e}'
            raise MalformedResponse(msg) from e


class WeatherDataSource:
    """Geocoding plus the primary and comparison forecast providers"""

    def __init__(
        self,
        geocoder: GeocodingProvider,
        primary: OpenMeteoProvider,
        secondary: WeatherApiProvider,
    ) -> None:
        self.geocoder = geocoder
        self.primary = primary
        self.secondary = secondary

    def locate(self, city: str) -> Coordinate:
        print(f'📍 Looking up coordinates for {city!r}')
        return self.geocoder.lookup(city)

    def fetch_forecast(self, coordinate: Coordinate) -> PrimaryForecast:
        print(f'🌤️  Fetching {self.primary.name} forecast for {coordinate}')
        return self.primary.get_weather(coordinate)

    def fetch_comparison(self, coordinate: Coordinate, now: datetime) -> list[float]:
        print(f'🌤️  Fetching {self.secondary.name} comparison series')
        return self.secondary.get_weather(coordinate, now)

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about all configured providers"""
        return {
            'geocoding': self.geocoder.get_provider_info(),
            'primary': self.primary.get_provider_info(),
            'secondary': self.secondary.get_provider_info(),
        }
