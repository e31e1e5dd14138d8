"""
Domain models for OAuth token persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ConnectionState(str, Enum):
    """Lifecycle of the seller's marketplace connection."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    PENDING_CREDENTIALS = "PENDING_CREDENTIALS"
    AUTHORIZING = "AUTHORIZING"
    AUTHENTICATED = "AUTHENTICATED"
    REFRESHING = "REFRESHING"


class ClientCredentials(BaseModel):
    """Application keyset used for the authorization and refresh grants."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)


class TokenPair(BaseModel):
    """User access/refresh tokens issued by the authorization-code grant."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    refresh_expires_at: Optional[datetime] = None
    token_type: str = "User Access Token"

    @field_validator("expires_at", "refresh_expires_at")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None

    def expires_within(self, window: timedelta, *, now: datetime | None = None) -> bool:
        """Return True when the access token expires inside ``window``."""
        current = now or utcnow()
        return current >= self.expires_at - window

    @classmethod
    def from_grant(
        cls,
        payload: Mapping[str, Any],
        *,
        issued_at: datetime,
        previous: "TokenPair | None" = None,
    ) -> "TokenPair":
        """Build a pair from a token endpoint response.

        Refresh responses usually omit the refresh token; the previous one is
        carried over in that case.
        """
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not access_token or not expires_in:
            raise ValueError("Token payload is missing access_token or expires_in.")

        refresh_token = payload.get("refresh_token")
        refresh_expires_in = payload.get("refresh_token_expires_in")
        refresh_expires_at: Optional[datetime] = None
        if refresh_expires_in:
            refresh_expires_at = issued_at + timedelta(seconds=int(refresh_expires_in))

        if previous is not None:
            if not refresh_token:
                refresh_token = previous.refresh_token
                refresh_expires_at = refresh_expires_at or previous.refresh_expires_at

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=issued_at + timedelta(seconds=int(expires_in)),
            refresh_expires_at=refresh_expires_at,
            token_type=payload.get("token_type") or "User Access Token",
        )


class ApplicationToken(BaseModel):
    """Client-credentials token representing the integration itself."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_at: datetime
    scope_owner_id: str

    @field_validator("expires_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_usable(self, skew: timedelta, *, now: datetime | None = None) -> bool:
        current = now or utcnow()
        return current < self.expires_at - skew


__all__ = [
    "ApplicationToken",
    "ClientCredentials",
    "ConnectionState",
    "TokenPair",
    "utcnow",
]
