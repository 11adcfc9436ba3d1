from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./geolocation.db"
    project_name: str = "Local Business Locations API"
    api_v1_prefix: str = "/api/v1"

    # Authentication provider configuration
    # AUTH_ISSUER_URL: base URL of the identity provider (e.g., https://auth.example.com)
    #   Used to derive JWKS URL and issuer for JWT verification
    auth_issuer_url: str = "http://localhost:9999"

    # AUTH_JWT_AUDIENCE: JWT audience claim to validate (default: "authenticated")
    auth_jwt_audience: str = "authenticated"

    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = "INFO"

    # Google Maps API key for geocoding / places (optional).
    # When missing, the geocoding client runs in degraded mode and returns fallback values.
    google_maps_api_key: str | None = None
    google_maps_base_url: str = "https://maps.googleapis.com/maps/api"
    geocoding_timeout_seconds: float = 10.0

    # Degraded-mode location returned when the provider is unavailable (Amsterdam center)
    fallback_lat: float = 52.3676
    fallback_lng: float = 4.9041
    fallback_city: str = "Amsterdam"
    fallback_country: str = "Netherlands"

    # Search defaults
    default_search_radius_m: int = 5000
    default_search_limit: int = 50
    default_map_zoom: int = 12
    bounds_default_limit: int = 200
    bounds_max_results: int = 500

    @property
    def auth_jwks_url(self) -> str:
        """Derive JWKS URL from the issuer base URL."""
        return f"{self.auth_issuer_url.rstrip('/')}/auth/v1/.well-known/jwks.json"

    @property
    def auth_issuer(self) -> str:
        """Derive issuer from the issuer base URL."""
        return f"{self.auth_issuer_url.rstrip('/')}/auth/v1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )


settings = Settings()
