# ABOUTME: Error types raised by weather providers and the dashboard controller
# ABOUTME: Each failure surfaces to the user as a single display string


class WeatherDashboardError(Exception):
    """Base class for failures that abort a dashboard action"""


class LookupFailure(WeatherDashboardError):
    """Geocoding returned no coordinate for the requested city"""

    def __init__(self, city: str):
        super().__init__(f"City '{city}' not found")
        self.city = city


class NetworkFailure(WeatherDashboardError):
    """A provider request failed or could not be completed"""


class MalformedResponse(WeatherDashboardError):
    """A provider response is missing expected fields or is inconsistent"""


class GeolocationUnavailable(WeatherDashboardError):
    """The client has no location capability"""

    def __init__(self, message: str = 'Geolocation API not available'):
        super().__init__(message)
