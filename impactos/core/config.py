"""Configuration settings using Pydantic Settings."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str
    # Postgres role every transaction switches to, so row-level security
    # applies even when the login role owns the tables. Empty disables it.
    database_role: str | None = "impactos_app"

    # Identity provider (JWT sessions)
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    session_token_expire_minutes: int = 60 * 24 * 7
    email_confirmation_expire_hours: int = 24
    bcrypt_rounds: int = 12
    min_password_length: int = 8

    environment: Literal["development", "test", "production"] = "development"
    api_docs_enabled: bool | None = None
    app_url: str = "http://localhost:3000"

    # Tenancy
    invitation_expire_days: int = 7
    org_delete_confirmation: str = "DELETE"
    active_org_session_max_age_days: int = 365

    # Cookies
    session_cookie_name: str = "impactos_session"
    active_org_cookie_name: str = "active_organization_id"
    active_org_cookie_max_age: int = 60 * 60 * 24 * 365
    sidebar_cookie_name: str = "sidebar_state"
    sidebar_cookie_max_age: int = 60 * 60 * 24 * 7
    cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    cookie_secure: bool | None = None

    # CORS
    cors_allow_origins: list[str] = ["http://localhost:3000"]
    cors_allow_methods: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: list[str] = [
        "Accept",
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "X-Metrics-Token",
    ]
    cors_allow_credentials: bool = True

    # Rate limiting (production-only safeguard)
    rate_limit_login_per_minute: int = 10
    rate_limit_signup_per_hour: int = 20
    rate_limit_invite_per_hour: int = 30
    rate_limit_accept_invite_per_hour: int = 20

    # Transactional email (Resend)
    resend_api_key: str | None = None
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "impact OS <onboarding@impactos.xyz>"
    email_timeout_seconds: float = 10.0

    # Prometheus scrape token (required in production)
    metrics_token: str | None = None

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _parse_csv_lists(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("database_role")
    @classmethod
    def _validate_database_role(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not re.fullmatch(r"[a-z_][a-z0-9_]{0,62}", v):
            raise ValueError("DATABASE_ROLE must be a plain lower-case identifier")
        return v

    @property
    def secure_cookies(self) -> bool:
        if self.cookie_secure is not None:
            return self.cookie_secure
        return self.environment == "production"

    @model_validator(mode="after")
    def _validate_production_settings(self) -> Settings:
        if self.environment != "production":
            return self

        insecure_jwt_secrets = {
            "dev-secret-change-in-production",
            "your-secret-key-change-in-production",
            "change-me",
            "changeme",
        }
        if self.jwt_secret in insecure_jwt_secrets or len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be a strong secret in production")

        if not self.resend_api_key:
            raise ValueError("RESEND_API_KEY must be set in production")

        if any(x == "*" for x in self.cors_allow_origins):
            raise ValueError("CORS_ALLOW_ORIGINS cannot contain '*' in production")
        if any(x == "*" for x in self.cors_allow_methods):
            raise ValueError("CORS_ALLOW_METHODS cannot contain '*' in production")

        if self.cookie_samesite == "none" and self.cookie_secure is False:
            raise ValueError("COOKIE_SECURE must be true when COOKIE_SAMESITE=none")

        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
