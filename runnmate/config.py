from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str
    app_public_base_url: str
    cors_allow_origins: str = "http://localhost:3000"

    supabase_url: str
    supabase_service_role_key: str
    supabase_anon_key: str
    identity_http_timeout_seconds: float = 10.0

    resend_api_key: str | None = None
    email_from: str = "Runnmate <admin@runnmate.com>"
    offers_email_from: str = "Runnmate <offers@runnmate.com>"
    admin_email: str = "admin@runnmate.com"
    email_http_timeout_seconds: float = 10.0
    magic_link_default_language: str = "en"
    magic_link_expiry_hours: int = 24

    strava_client_id: str | None = None
    strava_client_secret: str | None = None
    strava_scopes: str = "read,activity:read"
    strava_refresh_buffer_minutes: int = 5
    strava_state_max_age_minutes: int = 30
    strava_http_timeout_seconds: float = 20.0

    encryption_key: str | None = None

    maintenance_mode: bool = False
    session_cookie_secure: bool = True
    log_level: str = "INFO"

    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout_seconds: int = 30
    db_pool_recycle_seconds: int = 300
    db_statement_cache_size: int | None = None
    db_echo_sql: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("app_public_base_url", "supabase_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("base URL must be provided")
        return value.strip().rstrip("/")

    def cors_allow_origin_list(self) -> list[str]:
        return [item.strip() for item in self.cors_allow_origins.split(",") if item.strip()]

    def site_url(self, path: str = "/") -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.app_public_base_url}{path}"

    @property
    def strava_redirect_uri(self) -> str:
        return self.site_url("/api/strava/callback")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
