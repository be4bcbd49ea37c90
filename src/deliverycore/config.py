"""Application configuration and settings management."""

from decimal import Decimal
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DELIVERY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Delivery Dispatch Core API"
    api_prefix: str = "/api"
    delivery_rate_per_km: Decimal = Field(
        default=Decimal("100"),
        ge=0,
        description="Delivery fee charged per kilometre between pickup and drop-off.",
    )
    currency: str = Field(default="KSH", description="Currency label attached to fee quotes.")
    fee_decimal_places: int = Field(default=2, ge=0, le=6)
    store_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Document store used for carts, orders and agents.",
    )
    store_write_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Writes that have not resolved after this many seconds are treated as failed.",
    )
    carts_collection: str = "carts"
    orders_collection: str = "orders"
    agents_collection: str = "delivery_agents"
    settings_collection: str = "store_settings"
    store_location_document: str = "location"
    geocoding_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Base URL of the geocoding/places service.",
    )
    geocoding_timeout_seconds: float = Field(default=10.0, gt=0.0)
    geocoding_user_agent: str = "delivery-core/0.1"
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
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("geocoding_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


settings = Settings()
