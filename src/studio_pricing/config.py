"""Application configuration."""

import os
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    studio_owner_id: str | None = None
    environment: str = _ENVIRONMENT
    default_extra_photo_value: Decimal = Decimal("35")
    recalculation_tolerance: Decimal = Decimal("0.01")
    recalculation_settle_seconds: float = 0.4

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
