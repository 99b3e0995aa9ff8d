"""Runtime configuration for Nearby Gas Finder."""

from collections.abc import Mapping

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gas_finder.feature_flags import parse_feature_flags
from gas_finder.models import Coordinate


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="GAS_FINDER_", env_file=".env", extra="ignore")

    app_name: str = "nearby-gas-finder"
    log_level: str = "WARNING"
    google_maps_api_key: str | None = Field(
        default=None,
        description="Key for the Google Places / Distance Matrix web services.",
    )
    places_base_url: str = "https://maps.googleapis.com/maps/api"
    feature_flags: str = Field(
        default="",
        description='Comma or semicolon separated flags, e.g. "enableDistanceMatrix=true".',
    )
    default_center_lat: float = 39.8283
    default_center_lng: float = -98.5795
    search_radius_m: int = 5000
    result_limit: int = 50
    category_tag: str = "gas_station"
    debounce_seconds: float = 0.5
    center_epsilon: float = 1e-7
    initial_fix_timeout_seconds: float = 10.0
    request_timeout_seconds: float = 8.0
    highlight_seconds: float = 1.4
    page_size: int = 10

    @property
    def flags(self) -> Mapping[str, bool]:
        return parse_feature_flags(self.feature_flags)

    @property
    def default_center(self) -> Coordinate:
        return Coordinate(lat=self.default_center_lat, lng=self.default_center_lng)


settings = Settings()
