from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_SQLITE_PATH = BASE_DIR / "attendance_qr.db"
DEFAULT_SQLITE_URL = f"sqlite:///{DEFAULT_SQLITE_PATH}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BASE_DIR / ".env", env_prefix="APP_", case_sensitive=False)

    api_token: str = Field(default="dev-token", description="Bearer token required for authenticated API calls")
    database_url: str = Field(default=DEFAULT_SQLITE_URL, description="SQLAlchemy database URL")
    # Comma-separated values or '*' for all
    cors_origins: str = Field(default="*")
    environment: str = Field(default="development")

    # Rate limiting (per key+IP per minute)
    rate_limit_enabled: bool = Field(default=False)
    rate_limit_per_minute: int = Field(default=600)
    scan_rate_limit_per_minute: int = Field(default=60, description="Applies to the unauthenticated scan endpoint")

    # QR token registry
    qr_scope: str = Field(default="default", description="Scope holding the single active token")
    qr_token_bytes: int = Field(default=32)
    qr_description_max_length: int = Field(default=255)
    qr_max_expires_hours: float = Field(default=24 * 365 * 10, description="Upper bound for a token lifetime")
    qr_generate_retries: int = Field(default=3)

    # Desktop client
    api_base_url: str = Field(default="http://localhost:8000")
    client_timeout_seconds: float = Field(default=5.0)
    success_clear_seconds: float = Field(default=3.0)
    camera_index: int = Field(default=0)

    @property
    def cors_origins_list(self) -> List[str]:
        s = (self.cors_origins or "").strip()
        if not s or s == "*":
            return ["*"]
        return [part.strip() for part in s.split(",") if part.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
