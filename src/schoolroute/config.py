"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SCHOOLROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "School Route Monitoring API"
    api_prefix: str = "/api"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_timeout_seconds: float = Field(default=15.0, gt=0.0)
    osrm_max_retries: int = Field(default=2, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)

    route_staleness_hours: float = Field(
        default=24.0,
        gt=0.0,
        description="Age after which a stored route is regenerated on read.",
    )
    gps_timeout_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Silence between two pings of a driver that raises a no_gps alert.",
    )
    deviation_threshold_meters: float = Field(default=500.0, gt=0.0)
    deviation_match_mode: Literal["vertex", "segment"] = Field(
        default="vertex",
        description="'vertex' matches the nearest route vertex, 'segment' projects onto route segments.",
    )
    late_grace_minutes: float = Field(default=10.0, ge=0.0)

    max_tracked_drivers: int = Field(default=5000, ge=1)
    driver_state_ttl_seconds: float = Field(default=12 * 3600.0, gt=0.0)
    max_cached_trips: int = Field(default=2000, ge=1)
    route_cache_ttl_seconds: float = Field(default=3600.0, gt=0.0)

    alert_webhook_url: Optional[str] = Field(
        default=None,
        description="Notification fan-out endpoint receiving alerts as JSON (optional).",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:4200",
            "http://127.0.0.1:4200",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("osrm_base_url", "alert_webhook_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None


settings = Settings()
