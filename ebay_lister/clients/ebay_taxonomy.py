"""Client for the Commerce Taxonomy API."""

from __future__ import annotations

from ebay_lister.clients.ebay_api import EbayApiClient
from ebay_lister.utils.http import MarketplaceResponse

_TAXONOMY = "/commerce/taxonomy/v1"


class EbayTaxonomyClient(EbayApiClient):
    """Category tree lookups and per-category aspect metadata."""

    async def get_default_category_tree_id(self, *, access_token: str) -> MarketplaceResponse:
        return await self._request(
            "GET",
            f"{_TAXONOMY}/get_default_category_tree_id",
            access_token=access_token,
            params={"marketplace_id": self.marketplace_id},
        )

    async def get_item_aspects_for_category(
        self, category_id: str, *, access_token: str
    ) -> MarketplaceResponse:
        return await self._request(
            "GET",
            f"{_TAXONOMY}/category_tree/{self._ebay.category_tree_id}/get_item_aspects_for_category",
            access_token=access_token,
            params={"category_id": category_id},
        )


__all__ = ["EbayTaxonomyClient"]
