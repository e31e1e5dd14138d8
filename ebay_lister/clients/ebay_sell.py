"""Client for the Sell Inventory and Sell Account APIs."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

from ebay_lister.clients.ebay_api import EbayApiClient
from ebay_lister.utils.http import MarketplaceResponse

POLICY_TYPES = ("fulfillment", "payment", "return")

_INVENTORY = "/sell/inventory/v1"
_ACCOUNT = "/sell/account/v1"


def _segment(value: str) -> str:
    return quote(value, safe="")


class EbaySellClient(EbayApiClient):
    """Inventory items, offers, business policies and merchant locations."""

    def _language_headers(self) -> Dict[str, str]:
        return {"Content-Language": self._ebay.content_language}

    async def get_inventory_item(self, sku: str, *, access_token: str) -> MarketplaceResponse:
        return await self._request(
            "GET", f"{_INVENTORY}/inventory_item/{_segment(sku)}", access_token=access_token
        )

    async def put_inventory_item(
        self, sku: str, payload: Dict[str, Any], *, access_token: str
    ) -> MarketplaceResponse:
        """Create or replace the inventory record for ``sku``."""
        return await self._request(
            "PUT",
            f"{_INVENTORY}/inventory_item/{_segment(sku)}",
            access_token=access_token,
            json=payload,
            headers=self._language_headers(),
        )

    async def delete_inventory_item(self, sku: str, *, access_token: str) -> MarketplaceResponse:
        return await self._request(
            "DELETE", f"{_INVENTORY}/inventory_item/{_segment(sku)}", access_token=access_token
        )

    async def get_offers(
        self, sku: str, *, access_token: str, marketplace_id: Optional[str] = None
    ) -> MarketplaceResponse:
        return await self._request(
            "GET",
            f"{_INVENTORY}/offer",
            access_token=access_token,
            params={"sku": sku, "marketplace_id": marketplace_id or self.marketplace_id},
        )

    async def get_offer(self, offer_id: str, *, access_token: str) -> MarketplaceResponse:
        return await self._request(
            "GET", f"{_INVENTORY}/offer/{_segment(offer_id)}", access_token=access_token
        )

    async def create_offer(
        self, payload: Dict[str, Any], *, access_token: str
    ) -> MarketplaceResponse:
        return await self._request(
            "POST",
            f"{_INVENTORY}/offer",
            access_token=access_token,
            json=payload,
            headers=self._language_headers(),
        )

    async def update_offer(
        self, offer_id: str, payload: Dict[str, Any], *, access_token: str
    ) -> MarketplaceResponse:
        return await self._request(
            "PUT",
            f"{_INVENTORY}/offer/{_segment(offer_id)}",
            access_token=access_token,
            json=payload,
            headers=self._language_headers(),
        )

    async def delete_offer(self, offer_id: str, *, access_token: str) -> MarketplaceResponse:
        return await self._request(
            "DELETE", f"{_INVENTORY}/offer/{_segment(offer_id)}", access_token=access_token
        )

    async def publish_offer(self, offer_id: str, *, access_token: str) -> MarketplaceResponse:
        return await self._request(
            "POST",
            f"{_INVENTORY}/offer/{_segment(offer_id)}/publish",
            access_token=access_token,
        )

    async def get_policies(self, policy_type: str, *, access_token: str) -> MarketplaceResponse:
        """List business policies of one type for the configured marketplace."""
        if policy_type not in POLICY_TYPES:
            raise ValueError(f"Unknown policy type: {policy_type}")
        return await self._request(
            "GET",
            f"{_ACCOUNT}/{policy_type}_policy",
            access_token=access_token,
            params={"marketplace_id": self.marketplace_id},
        )

    async def get_locations(self, *, access_token: str, limit: int = 100) -> MarketplaceResponse:
        return await self._request(
            "GET",
            f"{_INVENTORY}/location",
            access_token=access_token,
            params={"limit": limit},
        )

    async def create_location(
        self, merchant_location_key: str, payload: Dict[str, Any], *, access_token: str
    ) -> MarketplaceResponse:
        return await self._request(
            "POST",
            f"{_INVENTORY}/location/{_segment(merchant_location_key)}",
            access_token=access_token,
            json=payload,
        )


__all__ = ["EbaySellClient", "POLICY_TYPES"]
