"""
Error taxonomy for the marketplace integration.

OAuth failures and marketplace API failures are mapped onto a small set of
exception and error-kind types so route handlers and the publish pipeline do
not need to inspect raw marketplace JSON.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class EbayIntegrationError(Exception):
    """Base class for integration failures."""


class MissingConfigurationError(EbayIntegrationError):
    """Raised when credentials or the redirect identifier are not configured."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Missing marketplace configuration: " + ", ".join(self.missing)
        )


class AuthorizationError(EbayIntegrationError):
    """Raised when the authorization server returns an error to the callback."""

    def __init__(self, error: str, description: Optional[str] = None) -> None:
        self.error = error
        self.description = description
        message = f"{error}: {description}" if description else error
        super().__init__(message)


class InvalidScopeError(AuthorizationError):
    """The marketplace rejected the requested scopes; re-authorization needed."""


class InvalidStateError(EbayIntegrationError):
    """Raised when the OAuth state value was tampered with or has expired."""


class NoPendingCredentialsError(EbayIntegrationError):
    """No credentials were submitted before the authorization code arrived."""


class NotAuthenticatedError(EbayIntegrationError):
    """No marketplace token is available."""


class TokenExpiredError(EbayIntegrationError):
    """The access token expired and there is no refresh token to renew it."""


class _GrantError(EbayIntegrationError):
    def __init__(
        self,
        error: str,
        description: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.error = error
        self.description = description
        self.status_code = status_code
        super().__init__(description or error)


class TokenExchangeError(_GrantError):
    """Raised when the token endpoint rejects a code or client-credentials grant."""


class RefreshFailedError(_GrantError):
    """Raised when refreshing the user access token fails."""

    @property
    def invalid_grant(self) -> bool:
        return classify_oauth_error(self.error) is OAuthErrorKind.INVALID_GRANT


class OAuthErrorKind(str, Enum):
    INVALID_SCOPE = "invalid_scope"
    INVALID_GRANT = "invalid_grant"
    ACCESS_DENIED = "access_denied"
    OTHER = "other"


def classify_oauth_error(error: Optional[str]) -> OAuthErrorKind:
    """Map an OAuth ``error`` string to a known kind."""
    normalized = (error or "").strip().lower()
    for kind in OAuthErrorKind:
        if kind.value == normalized:
            return kind
    return OAuthErrorKind.OTHER


class MarketplaceErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    UNCLASSIFIED = "unclassified"


# Error identifiers documented by the Sell Inventory / Account APIs.
KNOWN_MARKETPLACE_ERRORS: dict[int, MarketplaceErrorKind] = {
    1001: MarketplaceErrorKind.AUTHENTICATION,
    1100: MarketplaceErrorKind.AUTHENTICATION,
    25001: MarketplaceErrorKind.UNAVAILABLE,
    25002: MarketplaceErrorKind.VALIDATION,
    25003: MarketplaceErrorKind.VALIDATION,
    25004: MarketplaceErrorKind.VALIDATION,
    25005: MarketplaceErrorKind.VALIDATION,
    25006: MarketplaceErrorKind.VALIDATION,
    25007: MarketplaceErrorKind.VALIDATION,
    25021: MarketplaceErrorKind.VALIDATION,
    25604: MarketplaceErrorKind.NOT_FOUND,
    25702: MarketplaceErrorKind.NOT_FOUND,
    25709: MarketplaceErrorKind.VALIDATION,
    25710: MarketplaceErrorKind.NOT_FOUND,
    25713: MarketplaceErrorKind.NOT_FOUND,
}


@dataclass(frozen=True)
class MarketplaceError:
    """Typed view of a failed marketplace response."""

    kind: MarketplaceErrorKind
    status_code: int
    message: str
    error_id: Optional[int] = None


def _kind_for_status(status_code: int) -> MarketplaceErrorKind:
    if status_code in (401, 403):
        return MarketplaceErrorKind.AUTHENTICATION
    if status_code == 404:
        return MarketplaceErrorKind.NOT_FOUND
    if status_code == 429:
        return MarketplaceErrorKind.RATE_LIMITED
    if status_code >= 500:
        return MarketplaceErrorKind.UNAVAILABLE
    if status_code in (400, 409, 422):
        return MarketplaceErrorKind.VALIDATION
    return MarketplaceErrorKind.UNCLASSIFIED


def classify_marketplace_error(
    status_code: int, payload: Any = None
) -> MarketplaceError:
    """Classify a non-2xx marketplace response body into a ``MarketplaceError``."""
    error_id: Optional[int] = None
    message: Optional[str] = None

    errors = payload.get("errors") if isinstance(payload, Mapping) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        first = errors[0]
        raw_id = first.get("errorId")
        try:
            error_id = int(raw_id) if raw_id is not None else None
        except (TypeError, ValueError):
            error_id = None
        message = first.get("longMessage") or first.get("message")
    elif isinstance(payload, Mapping):
        message = payload.get("error_description") or payload.get("error")

    if error_id is not None and error_id in KNOWN_MARKETPLACE_ERRORS:
        kind = KNOWN_MARKETPLACE_ERRORS[error_id]
    else:
        kind = _kind_for_status(status_code)

    return MarketplaceError(
        kind=kind,
        status_code=status_code,
        message=message or f"Marketplace returned HTTP {status_code}",
        error_id=error_id,
    )


class PublishFailedError(EbayIntegrationError):
    """A publish pipeline step failed for one listing."""

    def __init__(self, step: str, error: MarketplaceError) -> None:
        self.step = step
        self.error = error
        super().__init__(f"{step}: {error.message}")


__all__ = [
    "AuthorizationError",
    "EbayIntegrationError",
    "InvalidScopeError",
    "InvalidStateError",
    "KNOWN_MARKETPLACE_ERRORS",
    "MarketplaceError",
    "MarketplaceErrorKind",
    "MissingConfigurationError",
    "NoPendingCredentialsError",
    "NotAuthenticatedError",
    "OAuthErrorKind",
    "PublishFailedError",
    "RefreshFailedError",
    "TokenExchangeError",
    "TokenExpiredError",
    "classify_marketplace_error",
    "classify_oauth_error",
]
