# ABOUTME: Per-client dashboard controller wiring user actions to fetch and render
# ABOUTME: Clear-then-fetch, latest action wins, unit changes reuse the last result

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from weather_errors import (
    GeolocationUnavailable,
    LookupFailure,
    WeatherDashboardError,
)
from weather_presentation import (
    ChartSlot,
    DashboardView,
    build_chart_config,
    build_sections,
)
from weather_providers import WeatherDataSource
from weather_reconciler import (
    ChartSeries,
    Coordinate,
    ReconciledWeather,
    hours_from,
    local_now,
    merge_hourly_series,
    normalize_unit,
    reconcile_weather,
)


CURRENT_LOCATION_LABEL = 'Your location'
MIN_LAT, MAX_LAT = -90, 90
MIN_LON, MAX_LON = -180, 180


def parse_coordinate(latitude: Any, longitude: Any) -> Coordinate:
    """Client-supplied lat/lon as a Coordinate, within the valid ranges"""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError) as e:
        msg = f'Invalid coordinates: {latitude!r}, {longitude!r}'
        raise GeolocationUnavailable(msg) from e

    if not (MIN_LAT <= lat <= MAX_LAT and MIN_LON <= lon <= MAX_LON):
        msg = f'Coordinates out of range: {lat}, {lon}'
        raise GeolocationUnavailable(msg)
    return Coordinate(latitude=lat, longitude=lon)


class DashboardState(str, Enum):
    IDLE = 'idle'
    FETCHING = 'fetching'
    RENDERED = 'rendered'
    ERROR = 'error'


@dataclass(frozen=True)
class DashboardQuery:
    label: str
    city: str | None = None
    coordinate: Coordinate | None = None


@dataclass(frozen=True)
class DashboardResult:
    """Last successful fetch, kept in Celsius"""

    location_name: str
    reconciled: ReconciledWeather
    series: ChartSeries


class DashboardController:
    """Runs dashboard actions for a single client view.

    Every action clears the view and its chart before fetching, so a failure
    leaves an empty view with the error message. Actions are numbered; when a
    newer action starts, an older one still in flight drops its results.
    """

    def __init__(
        self,
        source: WeatherDataSource,
        view: DashboardView,
        clock: Callable[[str], datetime] | None = None,
    ) -> None:
        self.source = source
        self.view = view
        self.clock = clock or local_now
        self.chart_slot = ChartSlot(view)
        self.state = DashboardState.IDLE
        self.unit = 'C'
        self.last_query: DashboardQuery | None = None
        self.last_result: DashboardResult | None = None
        self.last_error: WeatherDashboardError | None = None
        self._generation = 0
        self._lock = threading.Lock()

    def submit_city(self, city: str | None, unit: str | None = None) -> DashboardState:
        """Geocode a city and show its weather"""
        city_name = (city or '').strip()
        return self._run(DashboardQuery(label=city_name, city=city_name), unit)

    def use_location(
        self,
        latitude: float | None,
        longitude: float | None,
        unit: str | None = None,
    ) -> DashboardState:
        """Show the weather at client-supplied coordinates"""
        if latitude is None or longitude is None:
            generation = self._begin(unit)
            self._fail(generation, GeolocationUnavailable())
            return self.state

        try:
            coordinate = parse_coordinate(latitude, longitude)
        except GeolocationUnavailable as e:
            generation = self._begin(unit)
            self._fail(generation, e)
            return self.state

        query = DashboardQuery(label=CURRENT_LOCATION_LABEL, coordinate=coordinate)
        return self._run(query, unit)

    def change_unit(self, unit: str | None) -> DashboardState:
        """Re-render in another unit, reusing the last result when there is one"""
        if self.last_result is not None:
            result = self.last_result
            generation = self._begin(unit)
            self._show(generation, result)
        elif self.last_query is not None:
            return self._run(self.last_query, unit)
        else:
            self.unit = normalize_unit(unit)
        return self.state

    def _run(self, query: DashboardQuery, unit: str | None) -> DashboardState:
        generation = self._begin(unit)
        self.last_query = query
        try:
            result = self._load(query, generation)
        except WeatherDashboardError as e:
            self._fail(generation, e)
        else:
            if result is not None:
                self._show(generation, result)
        return self.state

    def _begin(self, unit: str | None) -> int:
        with self._lock:
            self._generation += 1
            if unit is not None:
                self.unit = normalize_unit(unit)
            self.state = DashboardState.FETCHING
            self.last_error = None
            self.view.clear()
            self.chart_slot.clear()
            return self._generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _load(self, query: DashboardQuery, generation: int) -> DashboardResult | None:
        """Fetch sequentially: geocode, primary, comparison"""
        if query.coordinate is not None:
            coordinate = query.coordinate
        elif query.city:
            coordinate = self.source.locate(query.city)
        else:
            raise LookupFailure(query.city or '')

        if self._is_stale(generation):
            return None
        forecast = self.source.fetch_forecast(coordinate)

        now = self.clock(forecast.timezone)
        if self._is_stale(generation):
            return None
        comparison = self.source.fetch_comparison(coordinate, now)

        reconciled = reconcile_weather(forecast.observations, now)
        series = merge_hourly_series(
            hours_from(forecast.observations, now), comparison, now
        )
        return DashboardResult(
            location_name=query.label, reconciled=reconciled, series=series
        )

    def _show(self, generation: int, result: DashboardResult) -> None:
        with self._lock:
            if self._is_stale(generation):
                print(f'⏭️  Dropping superseded results for {result.location_name}')
                return
            self.last_result = result
            self.chart_slot.replace(build_chart_config(result.series, self.unit))
            self.view.render_weather(
                {
                    'location': result.location_name,
                    'unit': self.unit,
                    'sections': build_sections(
                        result.location_name, result.reconciled, self.unit
                    ),
                }
            )
            self.state = DashboardState.RENDERED

    def _fail(self, generation: int, error: WeatherDashboardError) -> None:
        with self._lock:
            if self._is_stale(generation):
                print(f'⏭️  Dropping superseded failure: {error}')
                return
            print(f'❌ Dashboard action failed: {error}')
            self.last_error = error
            self.last_result = None
            self.view.show_error(f'Error: {error}')
            self.state = DashboardState.ERROR
