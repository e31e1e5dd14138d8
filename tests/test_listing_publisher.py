try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
import logging
from decimal import Decimal

import httpx
import pytest

from ebay_lister.clients.ebay_sell import EbaySellClient
from ebay_lister.clients.ebay_taxonomy import EbayTaxonomyClient
from ebay_lister.core.config import EbaySettings
from ebay_lister.core.errors import MarketplaceErrorKind, NotAuthenticatedError
from ebay_lister.schemas.listing import (
    ListingDraft,
    ListingPolicies,
    ProductStatus,
    PublishStep,
)
from ebay_lister.services.aspects import AspectResolver
from ebay_lister.services.listing_publisher import ListingPublisher

INVENTORY = "/sell/inventory/v1"


class StubApplicationTokens:
    async def get_access_token(self) -> str:
        return "app-token"


def _error(status: int, error_id: int, message: str) -> httpx.Response:
    return httpx.Response(
        status,
        json={"errors": [{"errorId": error_id, "message": message, "longMessage": message}]},
    )


class FakeMarketplace:
    """In-memory stand-in for the inventory, offer and taxonomy endpoints."""

    def __init__(self) -> None:
        self.inventory: dict[str, list[dict]] = {}
        self.offers: dict[str, dict] = {}
        self.required_aspects: list[dict] = []
        self.calls: list[tuple[str, str]] = []
        self.fail_inventory = False
        self.fail_offer_for: set[str] = set()
        self.fail_publish = False
        self.fail_delete = False
        self._next_offer = 0

    def seed_offer(self, offer_id: str, sku: str) -> None:
        self.offers[offer_id] = {"offerId": offer_id, "sku": sku, "status": "PUBLISHED"}

    def offers_for(self, sku: str) -> list[dict]:
        return [offer for offer in self.offers.values() if offer["sku"] == sku]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))
        body = json.loads(request.content) if request.content else None

        if path.startswith("/commerce/taxonomy/"):
            return httpx.Response(200, json={"aspects": self.required_aspects})

        if path.startswith(f"{INVENTORY}/inventory_item/") and method == "PUT":
            if self.fail_inventory:
                return _error(400, 25002, "Invalid condition value.")
            sku = path.rsplit("/", 1)[-1]
            self.inventory.setdefault(sku, []).append(body)
            return httpx.Response(204)

        if path == f"{INVENTORY}/offer" and method == "GET":
            matches = self.offers_for(request.url.params["sku"])
            if not matches:
                return _error(404, 25713, "This Offer is not available.")
            return httpx.Response(200, json={"offers": matches, "total": len(matches)})

        if path == f"{INVENTORY}/offer" and method == "POST":
            if body["sku"] in self.fail_offer_for:
                return _error(400, 25002, "Missing fulfillment policy.")
            self._next_offer += 1
            offer_id = f"offer-{self._next_offer}"
            self.offers[offer_id] = {"offerId": offer_id, "sku": body["sku"], "status": "UNPUBLISHED"}
            return httpx.Response(201, json={"offerId": offer_id})

        if path.startswith(f"{INVENTORY}/offer/"):
            parts = path[len(f"{INVENTORY}/offer/"):].split("/")
            offer_id = parts[0]
            if offer_id not in self.offers:
                return _error(404, 25713, "This Offer is not available.")
            if method == "GET":
                return httpx.Response(200, json=self.offers[offer_id])
            if method == "DELETE":
                if self.fail_delete:
                    return _error(500, 25001, "System error.")
                del self.offers[offer_id]
                return httpx.Response(204)
            if method == "POST" and parts[1:] == ["publish"]:
                if self.fail_publish:
                    return _error(400, 25021, "Invalid item condition for category.")
                self.offers[offer_id]["status"] = "PUBLISHED"
                return httpx.Response(200, json={"listingId": f"listing-{offer_id}"})

        return httpx.Response(404, json={})


def _draft(sku: str = "SKU-1", **overrides) -> ListingDraft:
    values = {
        "sku": sku,
        "title": "Bosch GSR 12V-15 Akkuschrauber",
        "description_html": "<p>Neu und originalverpackt.</p>",
        "ean": "3165140871234",
        "images": ["https://img.example.com/1.jpg"],
        "quantity": 2,
        "category_id": "42279",
        "price_gross": Decimal("19.9"),
    }
    values.update(overrides)
    return ListingDraft(**values)


def _publisher(marketplace: FakeMarketplace, token_provider=None) -> ListingPublisher:
    ebay = EbaySettings(EBAY_ENVIRONMENT="PRODUCTION")
    transport = httpx.MockTransport(marketplace)
    resolver = AspectResolver(
        EbayTaxonomyClient(ebay, transport=transport), StubApplicationTokens()
    )

    async def seller_token() -> str:
        return "seller-token"

    return ListingPublisher(
        EbaySellClient(ebay, transport=transport),
        resolver,
        token_provider or seller_token,
        ebay,
        default_policies=ListingPolicies(
            fulfillment_policy_id="ship-1",
            payment_policy_id="pay-1",
            return_policy_id="ret-1",
            merchant_location_key="berlin",
        ),
    )


@pytest.mark.anyio
async def test_publish_creates_inventory_offer_and_listing() -> None:
    marketplace = FakeMarketplace()

    outcome = await _publisher(marketplace).publish(
        _draft(), ListingPolicies(payment_policy_id="pay-override")
    )

    assert outcome.success is True
    assert outcome.step == PublishStep.PUBLISH
    assert outcome.product_status == ProductStatus.PUBLISHED
    assert outcome.offer_id == "offer-1"
    assert outcome.listing_id == "listing-offer-1"

    inventory = marketplace.inventory["SKU-1"][-1]
    assert inventory["condition"] == "NEW"
    assert inventory["availability"]["shipToLocationAvailability"]["quantity"] == 2
    assert inventory["product"]["aspects"]["Marke"] == ["Bosch"]
    assert inventory["product"]["ean"] == ["3165140871234"]
    assert inventory["product"]["imageUrls"] == ["https://img.example.com/1.jpg"]

    offer = outcome.offer_payload
    assert offer["pricingSummary"]["price"] == {"value": "19.90", "currency": "EUR"}
    assert offer["marketplaceId"] == "EBAY_DE"
    assert offer["format"] == "FIXED_PRICE"
    assert offer["listingPolicies"] == {
        "fulfillmentPolicyId": "ship-1",
        "paymentPolicyId": "pay-override",
        "returnPolicyId": "ret-1",
    }
    assert offer["merchantLocationKey"] == "berlin"


@pytest.mark.anyio
async def test_existing_offer_is_deleted_before_a_new_one_is_created() -> None:
    marketplace = FakeMarketplace()
    marketplace.seed_offer("old-offer", "SKU-1")

    outcome = await _publisher(marketplace).publish(_draft())

    assert outcome.success is True
    assert outcome.offer_id != "old-offer"
    assert [offer["offerId"] for offer in marketplace.offers_for("SKU-1")] == [outcome.offer_id]
    assert marketplace(httpx.Request("GET", f"https://api.ebay.com{INVENTORY}/offer/old-offer")).status_code == 404


@pytest.mark.anyio
async def test_failed_stale_offer_delete_is_logged_and_ignored(
    caplog: pytest.LogCaptureFixture,
) -> None:
    marketplace = FakeMarketplace()
    marketplace.seed_offer("old-offer", "SKU-1")
    marketplace.fail_delete = True

    with caplog.at_level(logging.WARNING, logger="ebay_lister.services.listing_publisher"):
        outcome = await _publisher(marketplace).publish(_draft())

    assert outcome.success is True
    assert any("could not be deleted" in record.message for record in caplog.records)


@pytest.mark.anyio
async def test_offer_rejection_reports_offer_step_with_payloads() -> None:
    marketplace = FakeMarketplace()
    marketplace.fail_offer_for = {"SKU-1"}

    outcome = await _publisher(marketplace).publish(_draft())

    assert outcome.success is False
    assert outcome.step == PublishStep.OFFER
    assert outcome.product_status == ProductStatus.ERROR_PUBLISH
    assert outcome.marketplace_error_id == 25002
    assert outcome.error_kind == MarketplaceErrorKind.VALIDATION
    assert outcome.error_message == "Missing fulfillment policy."
    assert outcome.inventory_payload == marketplace.inventory["SKU-1"][-1]
    assert outcome.offer_payload["sku"] == "SKU-1"
    assert ("POST", f"{INVENTORY}/offer/offer-1/publish") not in marketplace.calls


@pytest.mark.anyio
async def test_inventory_rejection_stops_before_offers() -> None:
    marketplace = FakeMarketplace()
    marketplace.fail_inventory = True

    outcome = await _publisher(marketplace).publish(_draft())

    assert outcome.step == PublishStep.INVENTORY
    assert outcome.offer_payload is None
    assert outcome.inventory_payload["product"]["title"] == "Bosch GSR 12V-15 Akkuschrauber"
    assert all(not path.startswith(f"{INVENTORY}/offer") for _, path in marketplace.calls)


@pytest.mark.anyio
async def test_publish_rejection_reports_publish_step() -> None:
    marketplace = FakeMarketplace()
    marketplace.fail_publish = True

    outcome = await _publisher(marketplace).publish(_draft())

    assert outcome.step == PublishStep.PUBLISH
    assert outcome.success is False
    assert outcome.marketplace_error_id == 25021
    assert outcome.listing_id is None


@pytest.mark.anyio
async def test_required_aspects_trigger_a_second_inventory_write() -> None:
    marketplace = FakeMarketplace()
    marketplace.required_aspects = [
        {
            "localizedAspectName": "Farbe",
            "aspectConstraint": {"aspectRequired": True, "aspectMode": "SELECTION_ONLY"},
            "aspectValues": [{"localizedValue": "Blau"}, {"localizedValue": "Grün"}],
        }
    ]

    outcome = await _publisher(marketplace).publish(_draft())

    writes = marketplace.inventory["SKU-1"]
    assert len(writes) == 2
    assert "Farbe" not in writes[0]["product"]["aspects"]
    assert writes[1]["product"]["aspects"]["Farbe"] == ["Blau"]
    assert outcome.inventory_payload == writes[1]


@pytest.mark.anyio
async def test_missing_session_is_reported_as_authentication_failure() -> None:
    marketplace = FakeMarketplace()

    async def no_session() -> str:
        raise NotAuthenticatedError("Not connected to eBay.")

    outcome = await _publisher(marketplace, token_provider=no_session).publish(_draft())

    assert outcome.success is False
    assert outcome.step == PublishStep.INVENTORY
    assert outcome.error_kind == MarketplaceErrorKind.AUTHENTICATION
    assert marketplace.calls == []


@pytest.mark.anyio
async def test_explicit_access_token_bypasses_provider() -> None:
    marketplace = FakeMarketplace()
    seen: list[str] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["authorization"])
        return marketplace(request)

    ebay = EbaySettings(EBAY_ENVIRONMENT="PRODUCTION")
    transport = httpx.MockTransport(record)

    async def unused() -> str:
        raise AssertionError("provider must not be called")

    publisher = ListingPublisher(
        EbaySellClient(ebay, transport=transport),
        AspectResolver(EbayTaxonomyClient(ebay, transport=transport), StubApplicationTokens()),
        unused,
        ebay,
    )

    outcome = await publisher.publish(_draft(), access_token="header-token")

    assert outcome.success is True
    sell_headers = [header for header in seen if header != "Bearer app-token"]
    assert sell_headers and set(sell_headers) == {"Bearer header-token"}


@pytest.mark.anyio
async def test_batch_items_are_independent() -> None:
    marketplace = FakeMarketplace()
    marketplace.fail_offer_for = {"SKU-2"}

    outcomes = await _publisher(marketplace).publish_batch(
        [_draft("SKU-1"), _draft("SKU-2"), _draft("SKU-3")]
    )

    assert [outcome.sku for outcome in outcomes] == ["SKU-1", "SKU-2", "SKU-3"]
    assert [outcome.success for outcome in outcomes] == [True, False, True]
    assert outcomes[1].step == PublishStep.OFFER
    dumped = outcomes[1].model_dump(by_alias=True)
    assert dumped["productStatus"] == "ERROR_PUBLISH"
    assert dumped["marketplaceErrorId"] == 25002


def test_draft_validation() -> None:
    draft = _draft(sku="  SKU-9  ", ean="  ")
    assert draft.sku == "SKU-9"
    assert draft.ean is None

    with pytest.raises(ValueError):
        _draft(price_gross=Decimal("0"))
    with pytest.raises(ValueError):
        _draft(title="x" * 81)
    with pytest.raises(ValueError):
        _draft(quantity=0)
