"""Fixture-layer settings via Pydantic BaseSettings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from authmimic.constants import DEFAULT_LIVE_LOGIN_TIMEOUT_S, DEFAULT_SESSION_LIFETIME_S
from authmimic.types import Role


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="E2E_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Mode selection (unset means synthetic)
    auth_mode: Literal["synthetic", "live"] | None = None
    ci: bool = Field(default=False, validation_alias="CI")
    allow_live_fallback: bool = True

    # Targets
    app_base_url: str = "http://localhost:3000"
    api_base_url: str = "http://localhost:8080"

    # Cookie contract
    cookie_domain: str = "localhost"
    cookie_secure: bool = False

    # Timing
    live_login_timeout_s: float = DEFAULT_LIVE_LOGIN_TIMEOUT_S
    session_lifetime_s: int = DEFAULT_SESSION_LIFETIME_S

    # Behaviour
    layer_listing_rules_in_live: bool = True
    strict_ordering: bool = True
    headless: bool = True

    # Pre-provisioned live accounts (seeded by backend/scripts/setup-test-accounts)
    user_email: str = "user@test.com"
    owner_email: str = "owner@test.com"
    admin_email: str = "admin@test.com"
    super_admin_email: str = "admin@test.com"
    user_password: str | None = None
    owner_password: str | None = None
    admin_password: str | None = None
    super_admin_password: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    def email_for(self, role: Role) -> str | None:
        """Return the pre-provisioned live account email for ``role``."""
        return getattr(self, f"{role.value}_email", None)

    def password_for(self, role: Role) -> str | None:
        """Return the pre-provisioned live account password for ``role``."""
        return getattr(self, f"{role.value}_password", None)

    @staticmethod
    def password_env_var(role: Role) -> str:
        return f"E2E_{role.value.upper()}_PASSWORD"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
