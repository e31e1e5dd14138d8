"""
eBay OAuth utilities.

These helpers build authorization URLs and talk to the identity token
endpoint for the authorization-code, refresh and client-credentials grants.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
from hashlib import sha256
from typing import Any, Dict, Iterable
from urllib.parse import quote, urlencode

import httpx

from ebay_lister.core.config import EbaySettings, OAuthSettings
from ebay_lister.core.errors import InvalidStateError, TokenExchangeError
from ebay_lister.models.oauth import ClientCredentials
from ebay_lister.utils.http import safe_json


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidStateError("Invalid OAuth state signature.")
        return json.loads(serialized)


class EbayOAuthClient:
    """Build eBay authorization URLs and call the token endpoint."""

    def __init__(
        self,
        ebay_settings: EbaySettings,
        oauth_settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._ebay = ebay_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def scopes(self) -> tuple[str, ...]:
        return tuple(self._oauth.scopes)

    def build_authorization_url(self, *, client_id: str, redirect_identifier: str, state: str) -> str:
        """Construct the consent URL; the RuName goes where a redirect URL would."""
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_identifier,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
        }
        query = urlencode(params, quote_via=quote)
        return f"{self._ebay.auth_base_url}/oauth2/authorize?{query}"

    async def exchange_authorization_code(
        self, code: str, *, credentials: ClientCredentials, redirect_identifier: str
    ) -> Dict[str, Any]:
        """Exchange an authorization code for the raw token payload."""
        return await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_identifier,
            },
            credentials=credentials,
        )

    async def refresh_token(
        self, refresh_token: str, *, credentials: ClientCredentials
    ) -> Dict[str, Any]:
        """Mint a new access token from a refresh token."""
        return await self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": " ".join(self.scopes),
            },
            credentials=credentials,
        )

    async def client_credentials_token(
        self, *, credentials: ClientCredentials, scopes: Iterable[str]
    ) -> Dict[str, Any]:
        """Request an application token; these never carry a refresh token."""
        return await self._request_token(
            {"grant_type": "client_credentials", "scope": " ".join(scopes)},
            credentials=credentials,
        )

    async def _request_token(
        self, form: Dict[str, str], *, credentials: ClientCredentials
    ) -> Dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self._ebay.token_url,
                data=form,
                auth=(credentials.client_id, credentials.client_secret),
                headers={"Accept": "application/json"},
            )

        payload = safe_json(response)
        if response.status_code != httpx.codes.OK:
            error = payload.get("error") if isinstance(payload, dict) else None
            description = (
                payload.get("error_description") if isinstance(payload, dict) else None
            )
            raise TokenExchangeError(
                error or f"http_{response.status_code}",
                description or response.text,
                response.status_code,
            )
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise TokenExchangeError(
                "invalid_response", "Incomplete token payload returned from eBay."
            )
        return payload


__all__ = ["EbayOAuthClient", "OAuthStateEncoder"]
