from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests
from flask.testing import FlaskClient


# Test constants
HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_BAD_GATEWAY = 502
CHART_POINTS = 24
NEXT_24H_PANELS = 24  # 15:00 today through 14:00 tomorrow
DAILY_PANELS = 2  # 14:00 on Jan 2 and Jan 3
WEATHERAPI_URL = 'https://api.weatherapi.com/v1/forecast.json'
FIRST_COMPARISON_TEMP = 114.0


def make_response(payload: Any, status_code: int = HTTP_OK) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code != HTTP_OK:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f'{status_code} Client Error: Unauthorized'
        )
    return response


@pytest.mark.integration
class TestWeatherAPIIntegration:
    """Integration tests running the full fetch, reconcile and render flow"""

    def test_full_dashboard_flow(
        self,
        client: FlaskClient,
        mock_requests_get: MagicMock,
        frozen_local_now: MagicMock,
    ) -> None:
        """Geocode, fetch both providers and build the dashboard"""
        response = client.get('/api/weather?city=Berlin')

        assert response.status_code == HTTP_OK
        data = response.get_json()

        # Requests are made one after another in a fixed order
        assert [c.args[0] for c in mock_requests_get.call_args_list] == [
            'https://geocoding-api.open-meteo.com/v1/search',
            'https://api.open-meteo.com/v1/forecast',
            WEATHERAPI_URL,
        ]

        today, hourly, daily = data['sections']
        assert today['title'] == 'Berlin Today'
        assert len(today['panels']) == 1
        assert today['panels'][0]['details'][0]['value'] == '2024-01-01, 14:00'
        assert len(hourly['panels']) == NEXT_24H_PANELS
        assert hourly['panels'][0]['details'][0]['value'] == '2024-01-01, 15:00'
        assert len(daily['panels']) == DAILY_PANELS
        assert daily['title'] == 'Berlin Weather Forecast'

        chart = data['chart']
        labels = chart['data']['labels']
        assert len(labels) == CHART_POINTS
        assert labels[0] == '14:30'
        assert labels[-1] == '13:30'
        forecast_series, comparison_series = chart['data']['datasets']
        assert forecast_series['data'][0] == 14.0
        assert comparison_series['data'][0] == FIRST_COMPARISON_TEMP

    def test_night_panels_use_night_icon(
        self,
        client: FlaskClient,
        mock_requests_get: MagicMock,
        frozen_local_now: MagicMock,
    ) -> None:
        data = client.get('/api/weather?city=Berlin').get_json()

        hourly = data['sections'][1]['panels']
        by_time = {p['details'][0]['value']: p for p in hourly}
        assert by_time['2024-01-01, 23:00']['icon'] == 'weather-icons/night.svg'
        assert by_time['2024-01-01, 15:00']['icon'] == 'weather-icons/sunny.svg'

    def test_fahrenheit_flow(
        self,
        client: FlaskClient,
        mock_requests_get: MagicMock,
        frozen_local_now: MagicMock,
    ) -> None:
        data = client.get('/api/weather?city=Berlin&unit=F').get_json()

        assert data['unit'] == 'F'
        today = data['sections'][0]['panels'][0]
        assert today['details'][1]['value'] == '57.20°F'
        comparison = data['chart']['data']['datasets'][1]['data']
        assert comparison[0] == pytest.approx(FIRST_COMPARISON_TEMP * 9 / 5 + 32)

    def test_comparison_provider_rejects_key(
        self,
        client: FlaskClient,
        mock_geocoding_response: dict[str, Any],
        mock_open_meteo_response: dict[str, Any],
        frozen_local_now: MagicMock,
    ) -> None:
        """A WeatherAPI auth failure aborts the whole dashboard"""
        payloads = {
            'https://geocoding-api.open-meteo.com/v1/search': make_response(
                mock_geocoding_response
            ),
            'https://api.open-meteo.com/v1/forecast': make_response(
                mock_open_meteo_response
            ),
            WEATHERAPI_URL: make_response({'error': {'code': 2006}}, HTTP_UNAUTHORIZED),
        }

        def fake_get(url: str, **_kwargs: Any) -> MagicMock:
            return payloads[url]

        with patch('requests.get', side_effect=fake_get):
            response = client.get('/api/weather?city=Berlin')

        assert response.status_code == HTTP_BAD_GATEWAY
        error = response.get_json()['error']
        assert error.startswith('Error: WeatherAPI request failed')
        assert 'chart' not in response.get_json()
