# ABOUTME: Chart configuration, weather panel view-models and chart lifecycle
# ABOUTME: Turns reconciled data into structures the browser page draws

import itertools
from dataclasses import dataclass, field
from typing import Any, Protocol

from weather_reconciler import (
    ChartSeries,
    HourlyObservation,
    ReconciledWeather,
    convert_temperature,
    describe_weather,
)


PRIMARY_SERIES_LABEL = 'Forecast API'
SECONDARY_SERIES_LABEL = 'WeatherAPI'
PRIMARY_SERIES_COLOR = 'rgba(75, 192, 192, 1)'
SECONDARY_SERIES_COLOR = 'rgba(255, 99, 132, 1)'
HOURLY_SECTION_TITLE = 'Hourly Forecast for the Next 24 Hours'


class DashboardView(Protocol):
    """Sink for everything the controller shows to one client"""

    def clear(self) -> None: ...

    def show_error(self, message: str) -> None: ...

    def render_weather(self, payload: dict[str, Any]) -> None: ...

    def create_chart(self, chart_id: int, config: dict[str, Any]) -> None: ...

    def destroy_chart(self, chart_id: int) -> None: ...


def build_chart_config(series: ChartSeries, unit: str) -> dict[str, Any]:
    """Chart.js line chart comparing the two providers"""
    return {
        'type': 'line',
        'data': {
            'labels': list(series.labels),
            'datasets': [
                {
                    'label': PRIMARY_SERIES_LABEL,
                    'data': [convert_temperature(t, unit) for t in series.series_a],
                    'borderColor': PRIMARY_SERIES_COLOR,
                    'fill': False,
                },
                {
                    'label': SECONDARY_SERIES_LABEL,
                    'data': [convert_temperature(t, unit) for t in series.series_b],
                    'borderColor': SECONDARY_SERIES_COLOR,
                    'fill': False,
                },
            ],
        },
        'options': {
            'responsive': True,
            'maintainAspectRatio': False,
            'scales': {
                'x': {'title': {'display': True, 'text': 'Time'}},
                'y': {
                    'title': {'display': True, 'text': f'Temperature (°{unit})'},
                    'beginAtZero': False,
                },
            },
            'plugins': {'legend': {'display': True}},
        },
    }


def build_weather_panel(
    observation: HourlyObservation, unit: str, is_today: bool
) -> dict[str, Any]:
    """View-model for a single hour's weather panel"""
    condition, icon = describe_weather(observation.weather_code, observation.time)
    temperature = convert_temperature(observation.temperature_c, unit)

    return {
        'classes': [
            'weather-panel',
            'today' if is_today else 'forecast',
            condition.value,
        ],
        'condition': condition.value,
        'icon': icon,
        'details': [
            {'label': 'Date', 'value': observation.time.replace('T', ', ')},
            {'label': 'Temperature', 'value': f'{temperature:.2f}°{unit}'},
            {'label': 'Wind', 'value': f'{observation.wind_kph} km/h'},
            {'label': 'Humidity', 'value': f'{observation.humidity_pct} %'},
        ],
    }


def build_sections(
    location_name: str, reconciled: ReconciledWeather, unit: str
) -> list[dict[str, Any]]:
    """Today, next-24-hours and daily forecast sections, in display order"""
    today_panels = []
    if reconciled.current is not None:
        today_panels.append(build_weather_panel(reconciled.current, unit, True))

    return [
        {
            'key': 'today',
            'title': f'{location_name} Today',
            'panels': today_panels,
        },
        {
            'key': 'hourly',
            'title': HOURLY_SECTION_TITLE,
            'panels': [
                build_weather_panel(o, unit, False) for o in reconciled.next_24h
            ],
        },
        {
            'key': 'daily',
            'title': f'{location_name} Weather Forecast',
            'panels': [
                build_weather_panel(o, unit, False) for o in reconciled.daily_forecasts
            ],
        },
    ]


_chart_ids = itertools.count(1)


class ChartHandle:
    """One drawn chart; destroyed exactly once"""

    def __init__(self, view: DashboardView, config: dict[str, Any]) -> None:
        self.chart_id = next(_chart_ids)
        self.config = config
        self.destroyed = False
        self._view = view
        self._view.create_chart(self.chart_id, config)

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self._view.destroy_chart(self.chart_id)


class ChartSlot:
    """Owns at most one live chart for a view.

    ``replace`` tears down the previous chart before the new one is created,
    so a view never holds two charts at once.
    """

    def __init__(self, view: DashboardView) -> None:
        self.view = view
        self.handle: ChartHandle | None = None

    def replace(self, config: dict[str, Any]) -> ChartHandle:
        self.clear()
        self.handle = ChartHandle(self.view, config)
        return self.handle

    def clear(self) -> None:
        if self.handle is not None:
            self.handle.destroy()
            self.handle = None


@dataclass
class RecordingView:
    """In-memory view that records what would be shown to a client"""

    events: list[tuple[str, Any]] = field(default_factory=list)
    payload: dict[str, Any] | None = None
    error: str | None = None
    charts: dict[int, dict[str, Any]] = field(default_factory=dict)

    def clear(self) -> None:
        self.events.append(('clear', None))
        self.payload = None
        self.error = None

    def show_error(self, message: str) -> None:
        self.events.append(('error', message))
        self.error = message

    def render_weather(self, payload: dict[str, Any]) -> None:
        self.events.append(('render', payload))
        self.payload = payload

    def create_chart(self, chart_id: int, config: dict[str, Any]) -> None:
        self.events.append(('chart_created', chart_id))
        self.charts[chart_id] = config

    def destroy_chart(self, chart_id: int) -> None:
        self.events.append(('chart_destroyed', chart_id))
        self.charts.pop(chart_id, None)

    def snapshot(self) -> dict[str, Any]:
        """Rendered payload with the live chart config attached"""
        result = dict(self.payload or {})
        result['chart'] = next(iter(self.charts.values()), None)
        return result
