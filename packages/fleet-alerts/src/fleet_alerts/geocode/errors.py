class GeocodeError(Exception):
    """Base geocode exception."""


class GeocodeProviderError(GeocodeError):
    """Raised when the reverse geocoder cannot resolve a coordinate."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GeocodeLockTimeout(GeocodeError):
    """Raised when a grid-cell lock could not be acquired in time."""
