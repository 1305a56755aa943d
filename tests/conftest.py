import os
import sys
from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests
from flask import Flask
from flask.testing import FlaskClient


# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from main import app
from weather_presentation import RecordingView
from weather_providers import (
    OpenMeteoProvider,
    WeatherApiProvider,
    WeatherDataSource,
)
from weather_reconciler import Coordinate


# 2024-01-01 14:30 local time at the forecast location
FIXED_NOW = datetime(2024, 1, 1, 14, 30)
FORECAST_START = datetime(2024, 1, 1, 0, 0)
PRIMARY_HOURS = 72
SECONDARY_HOURS = 48
BERLIN_LAT = 52.52437
BERLIN_LON = 13.41053


def primary_temperature(index: int) -> float:
    """Celsius value the canned Open-Meteo payload holds at an hour index"""
    return float(index % 24)


def secondary_temperature(index: int) -> float:
    """Celsius value the canned WeatherAPI payload holds at an hour index"""
    return 100.0 + index


@pytest.fixture  # type: ignore[misc]
def flask_app() -> Flask:
    """Create a Flask app instance for testing"""
    app.config['TESTING'] = True
    return app


@pytest.fixture  # type: ignore[misc]
def client(flask_app: Flask) -> FlaskClient:
    """Create a test client for the Flask app"""
    return flask_app.test_client()


@pytest.fixture  # type: ignore[misc]
def fixed_clock() -> Callable[[str], datetime]:
    """Clock that always reports FIXED_NOW regardless of timezone"""
    return lambda _tz_name: FIXED_NOW


@pytest.fixture  # type: ignore[misc]
def mock_geocoding_response() -> dict[str, Any]:
    """Mock Open-Meteo geocoding API response"""
    return {
        'results': [
            {
                'id': 2950159,
                'name': 'Berlin',
                'latitude': BERLIN_LAT,
                'longitude': BERLIN_LON,
                'country': 'Germany',
                'timezone': 'Europe/Berlin',
            }
        ],
        'generationtime_ms': 0.5,
    }


@pytest.fixture  # type: ignore[misc]
def mock_open_meteo_response() -> dict[str, Any]:
    """Mock Open-Meteo forecast response: three days of hourly arrays"""
    times = [
        (FORECAST_START + timedelta(hours=i)).strftime('%Y-%m-%dT%H:%M')
        for i in range(PRIMARY_HOURS)
    ]
    return {
        'latitude': BERLIN_LAT,
        'longitude': BERLIN_LON,
        'timezone': 'Europe/Berlin',
        'utc_offset_seconds': 3600,
        'hourly_units': {
            'time': 'iso8601',
            'temperature_2m': '°C',
            'relative_humidity_2m': '%',
            'weather_code': 'wmo code',
            'wind_speed_10m': 'km/h',
        },
        'hourly': {
            'time': times,
            'temperature_2m': [primary_temperature(i) for i in range(PRIMARY_HOURS)],
            'relative_humidity_2m': [60] * PRIMARY_HOURS,
            'weather_code': [0] * PRIMARY_HOURS,
            'wind_speed_10m': [12.5] * PRIMARY_HOURS,
        },
    }


@pytest.fixture  # type: ignore[misc]
def mock_weatherapi_response() -> dict[str, Any]:
    """Mock WeatherAPI.com forecast response: two days of hourly data"""
    forecastday = []
    for day in range(SECONDARY_HOURS // 24):
        date = FORECAST_START + timedelta(days=day)
        hours = []
        for hour in range(24):
            index = day * 24 + hour
            hours.append(
                {
                    'time_epoch': 1704063600 + index * 3600,
                    'time': (date + timedelta(hours=hour)).strftime('%Y-%m-%d %H:%M'),
                    'temp_c': secondary_temperature(index),
                    'temp_f': secondary_temperature(index) * 9 / 5 + 32,
                }
            )
        forecastday.append({'date': date.strftime('%Y-%m-%d'), 'hour': hours})

    return {
        'location': {'name': 'Berlin', 'tz_id': 'Europe/Berlin'},
        'forecast': {'forecastday': forecastday},
    }


@pytest.fixture  # type: ignore[misc]
def mock_data_source(
    mock_geocoding_response: dict[str, Any],
    mock_open_meteo_response: dict[str, Any],
    mock_weatherapi_response: dict[str, Any],
) -> MagicMock:
    """WeatherDataSource stand-in returning data parsed from the canned payloads"""
    source = MagicMock(spec=WeatherDataSource)
    best = mock_geocoding_response['results'][0]
    source.locate.return_value = Coordinate(
        best['latitude'], best['longitude'], best['name']
    )
    source.fetch_forecast.return_value = OpenMeteoProvider().process_weather_data(
        mock_open_meteo_response
    )
    source.fetch_comparison.return_value = WeatherApiProvider(
        'test-key'
    ).process_weather_data(mock_weatherapi_response, FIXED_NOW)
    return source


@pytest.fixture  # type: ignore[misc]
def recording_view() -> RecordingView:
    return RecordingView()


def make_response(payload: Any, status_code: int = 200) -> MagicMock:
    """Build a requests.Response stand-in"""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:  # noqa: PLR2004
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f'{status_code} Client Error'
        )
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture  # type: ignore[misc]
def mock_requests_get(
    mock_geocoding_response: dict[str, Any],
    mock_open_meteo_response: dict[str, Any],
    mock_weatherapi_response: dict[str, Any],
) -> Generator[MagicMock, None, None]:
    """Route requests.get to the canned payload for each provider URL"""
    payloads = {
        'https://geocoding-api.open-meteo.com/v1/search': mock_geocoding_response,
        'https://api.open-meteo.com/v1/forecast': mock_open_meteo_response,
        'https://api.weatherapi.com/v1/forecast.json': mock_weatherapi_response,
    }

    def fake_get(url: str, **_kwargs: Any) -> MagicMock:
        return make_response(payloads[url])

    with patch('requests.get', side_effect=fake_get) as mock_get:
        yield mock_get


@pytest.fixture  # type: ignore[misc]
def frozen_local_now() -> Generator[MagicMock, None, None]:
    """Pin the controller's default clock to FIXED_NOW"""
    with patch('dashboard_controller.local_now', return_value=FIXED_NOW) as mock_now:
        yield mock_now
