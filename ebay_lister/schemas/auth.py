"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ebay_lister.models.oauth import ConnectionState


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialsPayload(_CamelModel):
    """Application keyset submitted before starting authorization."""

    client_id: str = Field(..., min_length=1, description="eBay App ID (Client ID).")
    client_secret: str = Field(..., min_length=1, description="eBay Cert ID (Client Secret).")


class AuthorizationRedirect(_CamelModel):
    """Where to send the seller to grant consent."""

    auth_url: str
    state: str
    redirect_identifier: str
    scopes: list[str]


class ConnectionStatus(_CamelModel):
    """Read-only view of the seller connection."""

    connected: bool
    expires_at: Optional[datetime] = None
    needs_refresh: bool = False
    has_refresh_token: bool = False
    refresh_expires_at: Optional[datetime] = None
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    environment: str
    last_error: Optional[str] = None


class RefreshResponse(_CamelModel):
    success: bool
    expires_at: Optional[datetime] = None


__all__ = [
    "AuthorizationRedirect",
    "ConnectionStatus",
    "CredentialsPayload",
    "RefreshResponse",
]
