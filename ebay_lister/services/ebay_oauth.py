"""
Seller authorization lifecycle for the eBay REST APIs.

Drives the authorization-code flow, keeps the user token pair fresh and
reports the connection state. Access tokens handed to callers are always
valid for at least the refresh window.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ebay_lister.clients.ebay_auth import EbayOAuthClient, OAuthStateEncoder
from ebay_lister.core.config import EbaySettings, OAuthSettings
from ebay_lister.core.errors import (
    AuthorizationError,
    InvalidScopeError,
    InvalidStateError,
    MissingConfigurationError,
    NoPendingCredentialsError,
    NotAuthenticatedError,
    OAuthErrorKind,
    RefreshFailedError,
    TokenExchangeError,
    TokenExpiredError,
    classify_oauth_error,
)
from ebay_lister.core.logging import mask_identifier
from ebay_lister.models.oauth import ClientCredentials, ConnectionState, TokenPair, utcnow
from ebay_lister.schemas.auth import AuthorizationRedirect, ConnectionStatus
from ebay_lister.services.token_store import TokenStore
from ebay_lister.utils.singleflight import SingleFlight

logger = logging.getLogger(__name__)


class EbayOAuthService:
    """Manages the seller's marketplace tokens."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        store: TokenStore,
        oauth_client: EbayOAuthClient,
        ebay_settings: EbaySettings,
        oauth_settings: OAuthSettings,
        state_encoder: OAuthStateEncoder,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._ebay = ebay_settings
        self._oauth_settings = oauth_settings
        self._state_encoder = state_encoder
        self._clock = clock
        self._refreshes: SingleFlight[TokenPair] = SingleFlight()
        self._authorizing = False
        self._last_error: Optional[str] = None
        self._generation = 0
        self._used_nonces: dict[str, datetime] = {}

    @property
    def state(self) -> ConnectionState:
        if self._refreshes.in_flight():
            return ConnectionState.REFRESHING
        if self._store.get_token_pair() is not None:
            return ConnectionState.AUTHENTICATED
        if self._store.get_pending_credentials() is not None:
            if self._authorizing:
                return ConnectionState.AUTHORIZING
            return ConnectionState.PENDING_CREDENTIALS
        return ConnectionState.UNAUTHENTICATED

    def current_token_pair(self) -> Optional[TokenPair]:
        return self._store.get_token_pair()

    def submit_credentials(self, client_id: str, client_secret: str) -> None:
        """Remember the keyset to use once the authorization code arrives."""
        client_id = (client_id or "").strip()
        client_secret = (client_secret or "").strip()
        if not client_id or not client_secret:
            raise ValueError("Both client id and client secret are required.")
        self._store.save_pending_credentials(
            ClientCredentials(client_id=client_id, client_secret=client_secret)
        )
        logger.info("Pending credentials stored for client %s.", mask_identifier(client_id))

    def _settings_credentials(self) -> Optional[ClientCredentials]:
        if self._ebay.client_id and self._ebay.client_secret:
            return ClientCredentials(
                client_id=self._ebay.client_id, client_secret=self._ebay.client_secret
            )
        return None

    def build_authorization_redirect(self) -> AuthorizationRedirect:
        """Return the consent URL for the configured keyset and RuName."""
        credentials = (
            self._store.get_pending_credentials()
            or self._store.get_client_credentials()
            or self._settings_credentials()
        )
        missing: list[str] = []
        if credentials is None:
            if not self._ebay.client_id:
                missing.append("EBAY_CLIENT_ID")
            if not self._ebay.client_secret:
                missing.append("EBAY_CLIENT_SECRET")
        if not self._ebay.ru_name:
            missing.append("EBAY_RUNAME")
        if missing:
            raise MissingConfigurationError(missing)

        self._store.save_pending_credentials(credentials)
        state = self._state_encoder.encode(
            {
                "nonce": uuid.uuid4().hex,
                "issued_at": self._clock().isoformat(),
            }
        )
        url = self._oauth.build_authorization_url(
            client_id=credentials.client_id,
            redirect_identifier=self._ebay.ru_name,
            state=state,
        )
        self._authorizing = True
        logger.info(
            "Authorization redirect built for client %s (%d scopes).",
            mask_identifier(credentials.client_id),
            len(self._oauth.scopes),
        )
        return AuthorizationRedirect(
            auth_url=url,
            state=state,
            redirect_identifier=self._ebay.ru_name,
            scopes=list(self._oauth.scopes),
        )

    def _verify_state(self, state: Optional[str]) -> None:
        if not state:
            raise InvalidStateError("Missing OAuth state.")
        data = self._state_encoder.decode(state)
        nonce = data.get("nonce")
        if not nonce:
            raise InvalidStateError("Missing nonce in state token.")
        issued_at_raw = data.get("issued_at")
        if not issued_at_raw:
            raise InvalidStateError("Missing issued_at in state token.")
        try:
            issued_at = datetime.fromisoformat(issued_at_raw)
        except ValueError as exc:
            raise InvalidStateError("Invalid issued_at in state token.") from exc
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        ttl = timedelta(seconds=self._oauth_settings.state_ttl_seconds)
        now = self._clock()
        if now - issued_at > ttl:
            raise InvalidStateError("OAuth state token has expired.")

        self._used_nonces = {
            seen: used_at for seen, used_at in self._used_nonces.items() if now - used_at <= ttl
        }
        if nonce in self._used_nonces:
            raise InvalidStateError("OAuth state token was already used.")
        self._used_nonces[nonce] = now

    async def handle_authorization_result(
        self,
        *,
        code: Optional[str] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        state: Optional[str] = None,
    ) -> TokenPair:
        """Complete the authorization-code flow."""
        if error:
            self._authorizing = False
            self._last_error = error_description or error
            if classify_oauth_error(error) is OAuthErrorKind.INVALID_SCOPE:
                logger.error("Authorization rejected requested scopes: %s", error_description)
                raise InvalidScopeError(error, error_description)
            logger.error("Authorization failed: %s (%s)", error, error_description)
            raise AuthorizationError(error, error_description)
        if not code:
            raise AuthorizationError("missing_code", "No authorization code was returned.")
        self._verify_state(state)

        credentials = self._store.get_pending_credentials()
        if credentials is None:
            raise NoPendingCredentialsError(
                "No pending credentials; submit credentials and start authorization again."
            )
        if not self._ebay.ru_name:
            raise MissingConfigurationError(["EBAY_RUNAME"])

        issued_at = self._clock()
        try:
            payload = await self._oauth.exchange_authorization_code(
                code, credentials=credentials, redirect_identifier=self._ebay.ru_name
            )
            pair = TokenPair.from_grant(payload, issued_at=issued_at)
        except TokenExchangeError as exc:
            self._last_error = str(exc)
            logger.error("Authorization code exchange failed: %s", exc.error)
            raise
        except ValueError as exc:
            self._last_error = str(exc)
            raise TokenExchangeError("invalid_response", str(exc)) from exc

        self._store.save_token_pair(pair)
        self._store.save_client_credentials(credentials)
        self._store.clear_pending_credentials()
        self._generation += 1
        self._authorizing = False
        self._last_error = None
        logger.info(
            "Seller connected with client %s; access token valid until %s.",
            mask_identifier(credentials.client_id),
            pair.expires_at.isoformat(),
        )
        return pair

    async def get_valid_access_token(self) -> str:
        """Return an access token valid for at least the refresh window."""
        pair = self._store.get_token_pair()
        if pair is None:
            raise NotAuthenticatedError("eBay account is not connected.")
        if not pair.expires_within(self._REFRESH_WINDOW, now=self._clock()):
            return pair.access_token
        refreshed = await self._refresh_pair(pair)
        return refreshed.access_token

    async def refresh(self, *, force: bool = True) -> TokenPair:
        """Refresh the access token; without ``force`` only inside the window."""
        pair = self._store.get_token_pair()
        if pair is None:
            raise NotAuthenticatedError("eBay account is not connected.")
        if not force and not pair.expires_within(self._REFRESH_WINDOW, now=self._clock()):
            return pair
        return await self._refresh_pair(pair)

    async def _refresh_pair(self, pair: TokenPair) -> TokenPair:
        if not pair.refresh_token:
            raise TokenExpiredError("Access token expired and no refresh token is available.")
        return await self._refreshes.run(pair.refresh_token, lambda: self._do_refresh(pair))

    async def _do_refresh(self, pair: TokenPair) -> TokenPair:
        current = self._store.get_token_pair()
        if (
            current is not None
            and current.access_token != pair.access_token
            and not current.expires_within(self._REFRESH_WINDOW, now=self._clock())
        ):
            return current

        credentials = self._store.get_client_credentials() or self._settings_credentials()
        if credentials is None:
            raise MissingConfigurationError(["EBAY_CLIENT_ID", "EBAY_CLIENT_SECRET"])

        generation = self._generation
        issued_at = self._clock()
        try:
            payload = await self._oauth.refresh_token(
                pair.refresh_token or "", credentials=credentials
            )
            refreshed = TokenPair.from_grant(payload, issued_at=issued_at, previous=pair)
        except TokenExchangeError as exc:
            failure = RefreshFailedError(exc.error, exc.description, exc.status_code)
            if failure.invalid_grant:
                self._store.clear_user_tokens()
                self._last_error = "Refresh token is no longer valid; reconnect the account."
                logger.warning("Refresh token rejected (invalid_grant); tokens cleared.")
            else:
                self._last_error = str(failure)
                logger.error("Token refresh failed: %s", exc.error)
            raise failure from exc
        except ValueError as exc:
            raise RefreshFailedError("invalid_response", str(exc)) from exc

        if generation != self._generation or self._store.get_token_pair() is None:
            logger.info("Session was cleared while refreshing; discarding the new token.")
            raise NotAuthenticatedError("eBay account was disconnected during refresh.")

        if refreshed.expires_within(self._REFRESH_WINDOW, now=self._clock()):
            raise RefreshFailedError(
                "invalid_response", "Refreshed access token expires inside the refresh window."
            )

        self._store.save_token_pair(refreshed)
        self._last_error = None
        logger.info("Access token refreshed; valid until %s.", refreshed.expires_at.isoformat())
        return refreshed

    def adopt_token_pair(self, pair: TokenPair) -> bool:
        """Seed an empty store with a pair carried by the client cookie."""
        if self._store.get_token_pair() is not None:
            return False
        self._store.save_token_pair(pair)
        logger.info("Token pair restored from client cookie.")
        return True

    def status(self) -> ConnectionStatus:
        """Report the connection without refreshing anything."""
        pair = self._store.get_token_pair()
        if pair is None:
            return ConnectionStatus(
                connected=False,
                state=self.state,
                environment=self._ebay.environment,
                last_error=self._last_error,
            )
        now = self._clock()
        refresh_alive = bool(pair.refresh_token) and (
            pair.refresh_expires_at is None or pair.refresh_expires_at > now
        )
        return ConnectionStatus(
            connected=refresh_alive or pair.expires_at > now,
            expires_at=pair.expires_at,
            needs_refresh=pair.expires_within(self._REFRESH_WINDOW, now=now),
            has_refresh_token=bool(pair.refresh_token),
            refresh_expires_at=pair.refresh_expires_at,
            state=self.state,
            environment=self._ebay.environment,
            last_error=self._last_error,
        )

    def disconnect(self) -> None:
        """Forget every piece of user token state."""
        self._generation += 1
        self._store.clear_user_tokens()
        self._store.clear_pending_credentials()
        self._authorizing = False
        self._last_error = None
        logger.info("eBay account disconnected.")


__all__ = ["EbayOAuthService"]
