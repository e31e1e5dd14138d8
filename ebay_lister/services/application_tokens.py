"""
Client-credentials tokens for anonymous marketplace reads.

The application token lives in its own store slot so a price lookup can never
evict the seller's session and a reconnect never discards the cached
application token.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ebay_lister.clients.ebay_auth import EbayOAuthClient
from ebay_lister.core.config import APPLICATION_SCOPES, EbaySettings
from ebay_lister.core.errors import MissingConfigurationError, TokenExchangeError
from ebay_lister.core.logging import mask_identifier
from ebay_lister.models.oauth import ApplicationToken, ClientCredentials, utcnow
from ebay_lister.services.token_store import TokenStore
from ebay_lister.utils.singleflight import SingleFlight

logger = logging.getLogger(__name__)


class ApplicationTokenProvider:
    """Mint and cache application tokens."""

    _EXPIRY_SKEW = timedelta(seconds=60)

    def __init__(
        self,
        store: TokenStore,
        oauth_client: EbayOAuthClient,
        ebay_settings: EbaySettings,
        *,
        scopes: tuple[str, ...] = APPLICATION_SCOPES,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._ebay = ebay_settings
        self._scopes = scopes
        self._clock = clock
        self._mints: SingleFlight[ApplicationToken] = SingleFlight()

    def _credentials(self) -> ClientCredentials:
        if self._ebay.client_id and self._ebay.client_secret:
            return ClientCredentials(
                client_id=self._ebay.client_id, client_secret=self._ebay.client_secret
            )
        connected = self._store.get_client_credentials()
        if connected is not None:
            return connected
        raise MissingConfigurationError(["EBAY_CLIENT_ID", "EBAY_CLIENT_SECRET"])

    def _cached(self, client_id: str) -> Optional[ApplicationToken]:
        token = self._store.get_application_token()
        if token is None or token.scope_owner_id != client_id:
            return None
        if not token.is_usable(self._EXPIRY_SKEW, now=self._clock()):
            return None
        return token

    async def get_application_token(self) -> ApplicationToken:
        credentials = self._credentials()
        cached = self._cached(credentials.client_id)
        if cached is not None:
            return cached
        return await self._mints.run(credentials.client_id, lambda: self._mint(credentials))

    async def get_access_token(self) -> str:
        token = await self.get_application_token()
        return token.access_token

    async def _mint(self, credentials: ClientCredentials) -> ApplicationToken:
        issued_at = self._clock()
        payload = await self._oauth.client_credentials_token(
            credentials=credentials, scopes=self._scopes
        )
        expires_in = payload.get("expires_in")
        if not expires_in:
            raise TokenExchangeError(
                "invalid_response", "Application token payload has no expires_in."
            )
        token = ApplicationToken(
            access_token=payload["access_token"],
            expires_at=issued_at + timedelta(seconds=int(expires_in)),
            scope_owner_id=credentials.client_id,
        )
        self._store.save_application_token(token)
        logger.info(
            "Application token minted for client %s; valid until %s.",
            mask_identifier(credentials.client_id),
            token.expires_at.isoformat(),
        )
        return token


__all__ = ["ApplicationTokenProvider"]
