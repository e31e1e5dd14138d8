"""Shared request plumbing for the eBay REST API clients."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx

from ebay_lister.core.config import EbaySettings
from ebay_lister.utils.http import MarketplaceResponse, bearer_headers


class EbayApiClient:
    """Send bearer-authenticated requests to the configured API host."""

    def __init__(
        self,
        ebay_settings: EbaySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._ebay = ebay_settings
        self._transport = transport

    @property
    def marketplace_id(self) -> str:
        return self._ebay.marketplace_id

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> MarketplaceResponse:
        request_headers = bearer_headers(access_token, **(headers or {}))
        if json is not None:
            request_headers.setdefault("Content-Type", "application/json")
        async with httpx.AsyncClient(
            base_url=self._ebay.api_base_url,
            transport=self._transport,
        ) as client:
            response = await client.request(
                method,
                path,
                params=params,
                json=json,
                headers=request_headers,
            )
        return MarketplaceResponse.from_httpx(response)


__all__ = ["EbayApiClient"]
