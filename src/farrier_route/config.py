"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FARRIER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Farrier Day Route API"
    api_prefix: str = "/api"
    timezone: str = Field(
        default="Europe/Rome",
        description="Timezone used to derive day boundaries when no session timezone is given.",
    )
    work_minutes_per_horse: int = Field(default=45, ge=1)
    travel_minutes_per_km: float = Field(default=1.0, ge=0.0)
    day_start: str = Field(default="08:00", description="Default start of the working day (HH:MM).")
    fallback_interval_hours: int = Field(
        default=2,
        ge=1,
        description="Spacing between stops in the degraded optimizer schedule.",
    )
    default_region_center: tuple[float, float] = Field(
        default=(45.4642, 9.19),
        description="Map center used when no stop has coordinates.",
    )
    default_region_delta: float = Field(default=0.5, gt=0.0)
    single_stop_region_delta: float = Field(default=0.1, gt=0.0)
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:8081",
            "http://127.0.0.1:8081",
            "http://localhost:19006",
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

    # Enhanced optimizer (chat completions backend)
    optimizer_api_key: Optional[str] = Field(
        default=None,
        description="API key for the reasoning service. When unset the deterministic fallback is used.",
    )
    optimizer_base_url: str = Field(default="https://api.openai.com/v1")
    optimizer_model: str = Field(default="gpt-4o-mini")
    optimizer_temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    optimizer_timeout_seconds: float = Field(default=30.0, gt=0.0)
    optimizer_max_retries: int = Field(default=1, ge=0)

    @field_validator("day_start")
    @classmethod
    def _validate_day_start(cls, value: str) -> str:
        hours, _, minutes = value.partition(":")
        if not (hours.isdigit() and minutes.isdigit()) or int(hours) > 23 or int(minutes) > 59:
            raise ValueError(f"day_start must be HH:MM, got '{value}'")
        return f"{int(hours):02d}:{int(minutes):02d}"

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        # Return empty tuple if value is None or empty
        return tuple()

    @field_validator("default_region_center", mode="before")
    @classmethod
    def _parse_center_from_env(cls, value: Any) -> tuple[float, float]:
        """Parse a "lat,lon" pair (comma-separated or JSON array)."""
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                parsed = [item.strip() for item in value.split(",") if item.strip()]
            value = parsed
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        raise ValueError("default_region_center must be a latitude/longitude pair")

    @property
    def optimizer_configured(self) -> bool:
        return bool(self.optimizer_api_key)


settings = Settings()
