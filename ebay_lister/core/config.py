"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI routes, the OAuth service and
the command line tooling share a consistent configuration surface.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


SCOPE_BASE = "https://api.ebay.com/oauth/api_scope"

# Every scope here is known to the marketplace. One unknown scope makes the
# authorization server reject the entire grant request.
ALLOWED_USER_SCOPES: tuple[str, ...] = (
    SCOPE_BASE,
    f"{SCOPE_BASE}/sell.inventory",
    f"{SCOPE_BASE}/sell.account",
    f"{SCOPE_BASE}/sell.fulfillment",
)

APPLICATION_SCOPES: tuple[str, ...] = (SCOPE_BASE,)

_ENVIRONMENT_HOSTS = {
    "PRODUCTION": ("https://api.ebay.com", "https://auth.ebay.com"),
    "SANDBOX": ("https://api.sandbox.ebay.com", "https://auth.sandbox.ebay.com"),
}

_BASE_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class EbaySettings(BaseSettings):
    """Marketplace credentials and endpoint selection."""

    model_config = _BASE_CONFIG

    client_id: Optional[str] = Field(None, validation_alias="EBAY_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="EBAY_CLIENT_SECRET")
    ru_name: Optional[str] = Field(
        None,
        validation_alias="EBAY_RUNAME",
        description="Registered redirect identifier used in place of a redirect URL.",
    )
    environment: str = Field("PRODUCTION", validation_alias="EBAY_ENVIRONMENT")
    marketplace_id: str = Field("EBAY_DE", validation_alias="EBAY_MARKETPLACE_ID")
    content_language: str = Field("de-DE", validation_alias="EBAY_CONTENT_LANGUAGE")
    currency: str = Field("EUR", validation_alias="EBAY_CURRENCY")
    category_tree_id: str = Field("77", validation_alias="EBAY_CATEGORY_TREE_ID")

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        normalized = str(value).strip().upper()
        if normalized not in _ENVIRONMENT_HOSTS:
            raise ValueError(
                f"EBAY_ENVIRONMENT must be one of {sorted(_ENVIRONMENT_HOSTS)}."
            )
        return normalized

    @property
    def api_base_url(self) -> str:
        return _ENVIRONMENT_HOSTS[self.environment][0]

    @property
    def auth_base_url(self) -> str:
        return _ENVIRONMENT_HOSTS[self.environment][1]

    @property
    def token_url(self) -> str:
        return f"{self.api_base_url}/identity/v1/oauth2/token"

    def missing_oauth_settings(self) -> list[str]:
        """Return the env names of OAuth settings that are not configured."""
        required = {
            "EBAY_CLIENT_ID": self.client_id,
            "EBAY_CLIENT_SECRET": self.client_secret,
            "EBAY_RUNAME": self.ru_name,
        }
        return [name for name, value in required.items() if not value]


class ListingPolicySettings(BaseSettings):
    """Default business policies and inventory location for new offers."""

    model_config = _BASE_CONFIG

    fulfillment_policy_id: Optional[str] = Field(
        None, validation_alias="EBAY_FULFILLMENT_POLICY_ID"
    )
    payment_policy_id: Optional[str] = Field(
        None, validation_alias="EBAY_PAYMENT_POLICY_ID"
    )
    return_policy_id: Optional[str] = Field(
        None, validation_alias="EBAY_RETURN_POLICY_ID"
    )
    merchant_location_key: Optional[str] = Field(
        None, validation_alias="EBAY_MERCHANT_LOCATION_KEY"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _BASE_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for the token cookie and "
            "the encrypted token store."
        ),
    )
    cookie_name: str = Field("ebay_tokens", validation_alias="TOKEN_COOKIE_NAME")
    cookie_max_age_seconds: int = Field(
        30 * 24 * 3600, validation_alias="TOKEN_COOKIE_MAX_AGE"
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _BASE_CONFIG

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ALLOWED_USER_SCOPES,
        validation_alias="EBAY_OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, str):
            value = [scope.strip() for scope in value.split(",") if scope.strip()]
        scopes = tuple(value)
        unknown = [scope for scope in scopes if scope not in ALLOWED_USER_SCOPES]
        if unknown:
            raise ValueError(f"Unsupported OAuth scopes requested: {unknown}")
        if not scopes:
            raise ValueError("At least one OAuth scope is required.")
        return scopes


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    token_store_path: str = Field(
        "data/ebay_tokens.db",
        validation_alias="TOKEN_STORE_PATH",
        description="SQLite file holding encrypted OAuth state.",
    )
    ebay: EbaySettings = Field(default_factory=EbaySettings)
    policies: ListingPolicySettings = Field(default_factory=ListingPolicySettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "ALLOWED_USER_SCOPES",
    "APPLICATION_SCOPES",
    "AppSettings",
    "EbaySettings",
    "ListingPolicySettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
