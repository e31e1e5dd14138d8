"""Competitor price lookups backed by the Browse API."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ebay_lister.clients.ebay_browse import EbayBrowseClient
from ebay_lister.core.errors import EbayIntegrationError
from ebay_lister.schemas.listing import CompetitorPrice
from ebay_lister.services.application_tokens import ApplicationTokenProvider

logger = logging.getLogger(__name__)


class PriceLookupError(EbayIntegrationError):
    """The marketplace search did not return results."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)


def _amount(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_competitor_price(item: Mapping[str, Any]) -> CompetitorPrice:
    price = item.get("price") or {}
    shipping_options = item.get("shippingOptions") or [{}]
    shipping_cost = (shipping_options[0] or {}).get("shippingCost") or {}
    price_value = _amount(price.get("value"))
    shipping_value = _amount(shipping_cost.get("value"))
    return CompetitorPrice(
        item_id=item.get("itemId"),
        title=item.get("title"),
        price=price_value,
        shipping=shipping_value,
        total=round(price_value + shipping_value, 2),
        currency=price.get("currency"),
        seller=(item.get("seller") or {}).get("username") or "unknown",
    )


class PriceLookupService:
    """Find fixed-price competitor listings for a product."""

    def __init__(
        self,
        browse_client: EbayBrowseClient,
        application_tokens: ApplicationTokenProvider,
    ) -> None:
        self._browse = browse_client
        self._application_tokens = application_tokens

    async def lookup(self, query: str, *, limit: int = 10) -> List[CompetitorPrice]:
        """Return up to ``limit`` competitor prices, cheapest total first."""
        query = query.strip()
        if not query:
            raise ValueError("Search query must not be empty.")

        access_token = await self._application_tokens.get_access_token()
        response = await self._browse.search(query, access_token=access_token, limit=limit)
        if not response.ok:
            error = response.error()
            logger.error(
                "Price lookup for %r failed (HTTP %s): %s", query, error.status_code, error.message
            )
            raise PriceLookupError(error.status_code, error.message)

        items = response.payload.get("itemSummaries") if isinstance(response.payload, dict) else None
        prices = [_to_competitor_price(item) for item in (items or [])[:limit]]
        prices.sort(key=lambda entry: entry.total)
        logger.info("Price lookup for %r returned %d listing(s).", query, len(prices))
        return prices


__all__ = ["PriceLookupError", "PriceLookupService"]
