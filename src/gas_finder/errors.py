"""Error kinds raised across the station search pipeline."""

from __future__ import annotations

from gas_finder.models import GeolocationErrorCode


class GasFinderError(RuntimeError):
    """Base error; ``user_message`` is the only text that may reach the UI."""

    user_message = "Something went wrong. Please try again."


class CapabilityLoadError(GasFinderError):
    """Raised when the map capability (or its provider credentials) cannot be initialized."""

    user_message = "The map could not be loaded. Check your API key and network."


class GeolocationError(GasFinderError):
    """Raised by position sources; always recoverable."""

    user_message = "An error occurred while detecting your location."

    def __init__(self, code: GeolocationErrorCode, message: str = "") -> None:
        self.code = code
        self.message = message or "Geolocation error"
        super().__init__(f"{code.value}: {self.message}")


class ProviderQueryError(GasFinderError):
    """Raised when the nearby-search provider fails or returns a malformed payload."""

    user_message = "Failed to load nearby stations. Please try again shortly."


class EnrichmentError(GasFinderError):
    """Raised when the road-network distance method fails; always recovered by fallback."""
