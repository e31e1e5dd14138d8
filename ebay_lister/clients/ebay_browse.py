"""Client for the Buy Browse API item search."""

from __future__ import annotations

from typing import Optional

from ebay_lister.clients.ebay_api import EbayApiClient
from ebay_lister.utils.http import MarketplaceResponse


class EbayBrowseClient(EbayApiClient):
    """Search live listings on the configured marketplace."""

    async def search(
        self,
        query: str,
        *,
        access_token: str,
        limit: int = 10,
        filter_: Optional[str] = "buyingOptions:{FIXED_PRICE}",
    ) -> MarketplaceResponse:
        params = {"q": query, "limit": limit}
        if filter_:
            params["filter"] = filter_
        return await self._request(
            "GET",
            "/buy/browse/v1/item_summary/search",
            access_token=access_token,
            params=params,
            headers={"X-EBAY-C-MARKETPLACE-ID": self.marketplace_id},
        )


__all__ = ["EbayBrowseClient"]
