"""
Publish listing drafts through the Sell Inventory API.

Each draft runs inventory upsert, offer reconciliation, aspect enrichment,
offer creation and publish in that order. The first failing step ends the
run for that draft and is reported in its ``PublishOutcome``; nothing already
sent to the marketplace is rolled back.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from ebay_lister.clients.ebay_sell import EbaySellClient
from ebay_lister.core.config import EbaySettings
from ebay_lister.core.errors import (
    EbayIntegrationError,
    MarketplaceError,
    MarketplaceErrorKind,
    PublishFailedError,
)
from ebay_lister.schemas.listing import (
    ListingDraft,
    ListingPolicies,
    PublishOutcome,
    PublishStep,
)
from ebay_lister.services.aspects import AspectResolver, derive_title_aspects
from ebay_lister.utils.http import MarketplaceResponse

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


def build_inventory_payload(
    draft: ListingDraft, aspects: Dict[str, List[str]]
) -> Dict[str, Any]:
    product: Dict[str, Any] = {
        "title": draft.title,
        "description": draft.description_html,
        "aspects": aspects,
    }
    if draft.images:
        product["imageUrls"] = list(draft.images)
    brand = aspects.get("Marke")
    if brand:
        product["brand"] = brand[0]
    if draft.ean:
        product["ean"] = [draft.ean]
    return {
        "availability": {"shipToLocationAvailability": {"quantity": draft.quantity}},
        "condition": draft.condition.value,
        "product": product,
    }


def build_offer_payload(
    draft: ListingDraft, policies: ListingPolicies, ebay_settings: EbaySettings
) -> Dict[str, Any]:
    listing_policies = {
        key: value
        for key, value in (
            ("fulfillmentPolicyId", policies.fulfillment_policy_id),
            ("paymentPolicyId", policies.payment_policy_id),
            ("returnPolicyId", policies.return_policy_id),
        )
        if value
    }
    payload: Dict[str, Any] = {
        "sku": draft.sku,
        "marketplaceId": ebay_settings.marketplace_id,
        "format": "FIXED_PRICE",
        "listingDescription": draft.description_html,
        "availableQuantity": draft.quantity,
        "categoryId": draft.category_id,
        "pricingSummary": {
            "price": {
                "value": f"{draft.price_gross:.2f}",
                "currency": ebay_settings.currency,
            }
        },
        "listingPolicies": listing_policies,
    }
    if policies.merchant_location_key:
        payload["merchantLocationKey"] = policies.merchant_location_key
    return payload


class ListingPublisher:
    """Run the publish pipeline for one draft or a sequential batch."""

    def __init__(
        self,
        sell_client: EbaySellClient,
        aspect_resolver: AspectResolver,
        token_provider: TokenProvider,
        ebay_settings: EbaySettings,
        *,
        default_policies: ListingPolicies | None = None,
    ) -> None:
        self._sell = sell_client
        self._aspects = aspect_resolver
        self._token_provider = token_provider
        self._ebay = ebay_settings
        self._default_policies = default_policies or ListingPolicies()

    async def _token(self, step: PublishStep, access_token: Optional[str]) -> str:
        if access_token:
            return access_token
        try:
            return await self._token_provider()
        except EbayIntegrationError as exc:
            raise PublishFailedError(
                step.value,
                MarketplaceError(
                    kind=MarketplaceErrorKind.AUTHENTICATION,
                    status_code=httpx.codes.UNAUTHORIZED,
                    message=str(exc),
                ),
            ) from exc

    async def _call(
        self,
        step: PublishStep,
        operation: Callable[[str], Awaitable[MarketplaceResponse]],
        access_token: Optional[str],
    ) -> MarketplaceResponse:
        token = await self._token(step, access_token)
        try:
            response = await operation(token)
        except httpx.HTTPError as exc:
            raise PublishFailedError(
                step.value,
                MarketplaceError(
                    kind=MarketplaceErrorKind.UNAVAILABLE,
                    status_code=httpx.codes.BAD_GATEWAY,
                    message=f"Marketplace request failed: {exc}",
                ),
            ) from exc
        if not response.ok:
            raise PublishFailedError(step.value, response.error())
        return response

    async def _reconcile_offers(self, sku: str, access_token: Optional[str]) -> List[str]:
        """Delete every existing offer for ``sku``; failures are not fatal."""
        token = await self._token(PublishStep.OFFER, access_token)
        try:
            lookup = await self._sell.get_offers(sku, access_token=token)
        except httpx.HTTPError as exc:
            logger.info("Offer lookup for sku %s failed (%s); assuming none.", sku, exc)
            return []
        if not lookup.ok:
            logger.info(
                "Offer lookup for sku %s returned HTTP %s; assuming none.",
                sku,
                lookup.status_code,
            )
            return []

        offers = lookup.payload.get("offers") if isinstance(lookup.payload, dict) else None
        deleted: List[str] = []
        for offer in offers or []:
            offer_id = offer.get("offerId")
            if not offer_id:
                continue
            try:
                response = await self._sell.delete_offer(offer_id, access_token=token)
            except httpx.HTTPError as exc:
                logger.warning(
                    "Stale offer %s for sku %s could not be deleted: %s", offer_id, sku, exc
                )
                continue
            if not response.ok:
                logger.warning(
                    "Stale offer %s for sku %s could not be deleted (HTTP %s): %s",
                    offer_id,
                    sku,
                    response.status_code,
                    response.error().message,
                )
                continue
            deleted.append(offer_id)
        if deleted:
            logger.info("Deleted %d stale offer(s) for sku %s.", len(deleted), sku)
        return deleted

    async def publish(
        self,
        draft: ListingDraft,
        policies: ListingPolicies | None = None,
        *,
        access_token: Optional[str] = None,
    ) -> PublishOutcome:
        """Publish one draft. Never raises for marketplace or auth failures."""
        effective = (policies or ListingPolicies()).merged_over(self._default_policies)
        aspects = derive_title_aspects(draft.title, draft.ean)
        inventory_payload = build_inventory_payload(draft, aspects)
        offer_payload: Optional[Dict[str, Any]] = None

        try:
            await self._call(
                PublishStep.INVENTORY,
                lambda token: self._sell.put_inventory_item(
                    draft.sku, inventory_payload, access_token=token
                ),
                access_token,
            )

            await self._reconcile_offers(draft.sku, access_token)

            resolved = await self._aspects.resolve_required_aspects(
                draft.category_id, draft.title, draft.ean
            )
            additions = {name: values for name, values in resolved.items() if name not in aspects}
            if additions:
                aspects = {**aspects, **additions}
                inventory_payload = build_inventory_payload(draft, aspects)
                await self._call(
                    PublishStep.INVENTORY,
                    lambda token: self._sell.put_inventory_item(
                        draft.sku, inventory_payload, access_token=token
                    ),
                    access_token,
                )

            offer_payload = build_offer_payload(draft, effective, self._ebay)
            created = await self._call(
                PublishStep.OFFER,
                lambda token: self._sell.create_offer(offer_payload, access_token=token),
                access_token,
            )
            offer_id = created.payload.get("offerId") if isinstance(created.payload, dict) else None
            if not offer_id:
                raise PublishFailedError(
                    PublishStep.OFFER.value,
                    MarketplaceError(
                        kind=MarketplaceErrorKind.UNCLASSIFIED,
                        status_code=created.status_code,
                        message="Offer response did not include an offerId.",
                    ),
                )

            published = await self._call(
                PublishStep.PUBLISH,
                lambda token: self._sell.publish_offer(offer_id, access_token=token),
                access_token,
            )
        except PublishFailedError as exc:
            logger.error(
                "Publishing sku %s failed at %s (%s): %s",
                draft.sku,
                exc.step,
                exc.error.kind.value,
                exc.error.message,
            )
            return PublishOutcome(
                sku=draft.sku,
                success=False,
                step=PublishStep(exc.step),
                error_message=exc.error.message,
                marketplace_error_id=exc.error.error_id,
                error_kind=exc.error.kind,
                inventory_payload=inventory_payload,
                offer_payload=offer_payload,
            )

        listing_id = (
            published.payload.get("listingId") if isinstance(published.payload, dict) else None
        )
        logger.info("Published sku %s as listing %s (offer %s).", draft.sku, listing_id, offer_id)
        return PublishOutcome(
            sku=draft.sku,
            success=True,
            step=PublishStep.PUBLISH,
            listing_id=listing_id,
            offer_id=offer_id,
            inventory_payload=inventory_payload,
            offer_payload=offer_payload,
        )

    async def publish_batch(
        self,
        drafts: Sequence[ListingDraft],
        policies: ListingPolicies | None = None,
        *,
        access_token: Optional[str] = None,
    ) -> List[PublishOutcome]:
        """Publish drafts one after another; one failure never stops the rest."""
        outcomes: List[PublishOutcome] = []
        for draft in drafts:
            try:
                outcome = await self.publish(draft, policies, access_token=access_token)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Unexpected error while publishing sku %s", draft.sku)
                outcome = PublishOutcome(
                    sku=draft.sku,
                    success=False,
                    error_message=str(exc),
                    error_kind=MarketplaceErrorKind.UNCLASSIFIED,
                )
            outcomes.append(outcome)
        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info("Batch publish finished: %d/%d succeeded.", succeeded, len(outcomes))
        return outcomes


__all__ = [
    "ListingPublisher",
    "TokenProvider",
    "build_inventory_payload",
    "build_offer_payload",
]
