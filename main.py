import os
from typing import Any

from cachetools import TTLCache
from dotenv import load_dotenv
from flask import Flask, Response, jsonify, render_template, request
from flask_compress import Compress
from flask_socketio import SocketIO, emit

from dashboard_controller import DashboardController, DashboardState
from weather_errors import GeolocationUnavailable, LookupFailure
from weather_presentation import RecordingView
from weather_providers import (
    DEFAULT_TIMEOUT,
    GeocodingProvider,
    OpenMeteoProvider,
    WeatherApiProvider,
    WeatherDataSource,
)
from weather_reconciler import TEMPERATURE_UNITS


load_dotenv()

app = Flask(__name__)
secret_key = os.getenv('SECRET_KEY')
if not secret_key:
    import secrets

    secret_key = secrets.token_hex(16)
    print(
        'Warning: No SECRET_KEY environment variable set. '
        'Generated temporary key for this session.'
    )
app.config['SECRET_KEY'] = secret_key

# Enable gzip compression for all responses
Compress(app)

# Initialize SocketIO with secure CORS settings
cors_origins = os.getenv(
    'CORS_ALLOWED_ORIGINS', 'http://localhost:5001,http://127.0.0.1:5001'
).split(',')
socketio = SocketIO(app, cors_allowed_origins=cors_origins)

provider_timeout = int(os.getenv('PROVIDER_TIMEOUT', str(DEFAULT_TIMEOUT)))

weatherapi_key = os.getenv('WEATHERAPI_KEY', '')
if weatherapi_key:
    print('🔑 WeatherAPI key found - comparison forecasts available')
else:
    print('⚠️  No WEATHERAPI_KEY set - WeatherAPI requests will be rejected')

data_source = WeatherDataSource(
    GeocodingProvider(provider_timeout),
    OpenMeteoProvider(provider_timeout),
    WeatherApiProvider(weatherapi_key, provider_timeout),
)

# One controller per connected browser tab, dropped after an hour of inactivity
session_controllers: TTLCache[str, DashboardController] = TTLCache(
    maxsize=100, ttl=3600
)

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_BAD_GATEWAY = 502


class SocketView:
    """Dashboard view that forwards to one Socket.IO client"""

    def __init__(self, sid: str) -> None:
        self.sid = sid

    def clear(self) -> None:
        socketio.emit('dashboard_cleared', {}, to=self.sid)

    def show_error(self, message: str) -> None:
        socketio.emit('weather_error', {'error': message}, to=self.sid)

    def render_weather(self, payload: dict[str, Any]) -> None:
        socketio.emit('weather_rendered', payload, to=self.sid)

    def create_chart(self, chart_id: int, config: dict[str, Any]) -> None:
        socketio.emit(
            'chart_created', {'chart_id': chart_id, 'config': config}, to=self.sid
        )

    def destroy_chart(self, chart_id: int) -> None:
        socketio.emit('chart_destroyed', {'chart_id': chart_id}, to=self.sid)


def get_controller(sid: str) -> DashboardController:
    """Controller for a Socket.IO session, created on first use"""
    controller = session_controllers.get(sid)
    if controller is None:
        controller = DashboardController(data_source, SocketView(sid))
    # Re-inserting refreshes the TTL
    session_controllers[sid] = controller
    return controller


def error_status(controller: DashboardController) -> int:
    if isinstance(controller.last_error, LookupFailure):
        return HTTP_NOT_FOUND
    if isinstance(controller.last_error, GeolocationUnavailable):
        return HTTP_BAD_REQUEST
    return HTTP_BAD_GATEWAY


@app.route('/')  # type: ignore[misc]
def index() -> str:
    """Main dashboard page"""
    return str(
        render_template('dashboard.html', initial_city='', units=TEMPERATURE_UNITS)
    )


@app.route('/<city>')  # type: ignore[misc]
def dashboard_for_city(city: str) -> str:
    """Dashboard page with the city search pre-filled"""
    return str(
        render_template('dashboard.html', initial_city=city, units=TEMPERATURE_UNITS)
    )


@app.route('/api/weather')  # type: ignore[misc]
def weather_api() -> Response:
    """Rendered dashboard (sections and chart config) as JSON"""
    city = request.args.get('city', '').strip()
    lat = request.args.get('lat', type=float)
    lon = request.args.get('lon', type=float)
    unit = request.args.get('unit', 'C')

    view = RecordingView()
    controller = DashboardController(data_source, view)

    if city:
        print(f'🌤️  API dashboard request for {city}')
        controller.submit_city(city, unit)
    elif lat is not None and lon is not None:
        print(f'🌤️  API dashboard request for {lat:.4f},{lon:.4f}')
        controller.use_location(lat, lon, unit)
    else:
        response = jsonify({'error': 'A city or lat/lon pair is required'})
        response.status_code = HTTP_BAD_REQUEST
        return response

    if controller.state is DashboardState.ERROR:
        response = jsonify({'error': view.error})
        response.status_code = error_status(controller)
        return response

    return jsonify(view.snapshot())


@app.route('/api/providers')  # type: ignore[misc]
def get_providers() -> Response:
    """API endpoint to get weather provider information"""
    return jsonify(data_source.get_provider_info())


# WebSocket event handlers
@socketio.on('connect')  # type: ignore[misc]
def handle_connect() -> None:
    """Handle client connection"""
    print(f'🔗 Client connected: {request.sid}')
    get_controller(request.sid)
    emit(
        'dashboard_ready',
        {
            'units': list(TEMPERATURE_UNITS),
            'providers': data_source.get_provider_info(),
        },
    )


@socketio.on('disconnect')  # type: ignore[misc]
def handle_disconnect() -> None:
    """Handle client disconnection"""
    print(f'📡 Client disconnected: {request.sid}')
    session_controllers.pop(request.sid, None)


@socketio.on('search_city')  # type: ignore[misc]
def handle_search_city(data: dict) -> None:
    """Handle city form submission"""
    city = data.get('city', '')
    print(f'🌤️  City search requested: {city}')
    get_controller(request.sid).submit_city(city, data.get('unit'))


@socketio.on('use_location')  # type: ignore[misc]
def handle_use_location(data: dict) -> None:
    """Handle the browser's geolocation result (or its absence)"""
    controller = get_controller(request.sid)
    if data.get('error'):
        print(f'📍 Client geolocation unavailable: {data["error"]}')
        controller.use_location(None, None, data.get('unit'))
        return
    controller.use_location(data.get('lat'), data.get('lon'), data.get('unit'))


@socketio.on('change_unit')  # type: ignore[misc]
def handle_change_unit(data: dict) -> None:
    """Handle the unit selector changing"""
    get_controller(request.sid).change_unit(data.get('unit'))


if __name__ == '__main__':
    port = int(os.getenv('PORT', '5001'))
    host = os.getenv('HOST', '127.0.0.1')  # Default to localhost, allow override
    socketio.run(app, debug=False, host=host, port=port, allow_unsafe_werkzeug=True)
