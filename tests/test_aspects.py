try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import logging

import httpx
import pytest

from ebay_lister.clients.ebay_taxonomy import EbayTaxonomyClient
from ebay_lister.core.config import EbaySettings
from ebay_lister.core.errors import MissingConfigurationError
from ebay_lister.services.aspects import AspectDefaults, AspectResolver, derive_title_aspects


class StubApplicationTokens:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def get_access_token(self) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return "app-token"


def _aspect(name: str, *, required: bool = True, mode: str = "FREE_TEXT", values=()) -> dict:
    return {
        "localizedAspectName": name,
        "aspectConstraint": {"aspectRequired": required, "aspectMode": mode},
        "aspectValues": [{"localizedValue": value} for value in values],
    }


class TaxonomyEndpoint:
    def __init__(self, aspects: list[dict], status: int = 200) -> None:
        self.aspects = aspects
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(
                self.status, json={"errors": [{"errorId": 62004, "message": "boom"}]}
            )
        return httpx.Response(200, json={"categoryId": "11700", "aspects": self.aspects})


def _resolver(endpoint: TaxonomyEndpoint, tokens=None, defaults=None) -> AspectResolver:
    client = EbayTaxonomyClient(
        EbaySettings(EBAY_ENVIRONMENT="PRODUCTION"), transport=httpx.MockTransport(endpoint)
    )
    return AspectResolver(client, tokens or StubApplicationTokens(), defaults=defaults)


def test_brand_and_model_come_from_title_tokens() -> None:
    aspects = derive_title_aspects("Bosch GSR 12V-15 Akkuschrauber", ean="3165140871234")

    assert aspects == {
        "Marke": ["Bosch"],
        "Modell": ["GSR 12V-15 Akkuschrauber"],
        "EAN": ["3165140871234"],
    }
    assert derive_title_aspects("Kaffeemaschine") == {
        "Marke": ["Kaffeemaschine"],
        "Modell": ["Kaffeemaschine"],
    }


@pytest.mark.anyio
async def test_required_aspects_are_filled_from_defaults() -> None:
    endpoint = TaxonomyEndpoint(
        [
            _aspect("Marke"),
            _aspect("Brand"),
            _aspect("Farbe", mode="SELECTION_ONLY", values=["Schwarz", "Weiß"]),
            _aspect("Material"),
            _aspect("Besonderheiten"),
            _aspect("Stil", required=False),
        ]
    )
    resolver = _resolver(endpoint)

    aspects = await resolver.resolve_required_aspects("11700", "Bosch GSR 12V-15")

    assert aspects == {
        "Marke": ["Bosch"],
        "Modell": ["GSR 12V-15"],
        "Brand": ["Bosch"],
        "Farbe": ["Schwarz"],
        "Material": ["Sonstige"],
        "Besonderheiten": ["Nicht zutreffend"],
    }
    request = endpoint.requests[0]
    assert request.url.path == "/commerce/taxonomy/v1/category_tree/77/get_item_aspects_for_category"
    assert request.url.params["category_id"] == "11700"
    assert request.headers["authorization"] == "Bearer app-token"


@pytest.mark.anyio
async def test_selection_only_default_is_kept_when_allowed() -> None:
    endpoint = TaxonomyEndpoint(
        [_aspect("Farbe", mode="SELECTION_ONLY", values=["Schwarz", "Mehrfarbig"])]
    )

    aspects = await _resolver(endpoint).resolve_required_aspects("1", "Acme Lamp")

    assert aspects["Farbe"] == ["Mehrfarbig"]


@pytest.mark.anyio
async def test_defaults_table_is_replaceable() -> None:
    endpoint = TaxonomyEndpoint([_aspect("Farbe"), _aspect("Zustand")])
    defaults = AspectDefaults(values={"farbe": "Blau"}, fallback="Siehe Beschreibung")

    aspects = await _resolver(endpoint, defaults=defaults).resolve_required_aspects(
        "1", "Acme Lamp"
    )

    assert aspects["Farbe"] == ["Blau"]
    assert aspects["Zustand"] == ["Siehe Beschreibung"]


@pytest.mark.anyio
async def test_metadata_is_cached_per_category() -> None:
    endpoint = TaxonomyEndpoint([_aspect("Farbe")])
    resolver = _resolver(endpoint)

    await resolver.resolve_required_aspects("1", "Acme Lamp")
    await resolver.resolve_required_aspects("1", "Other Thing")
    await resolver.resolve_required_aspects("2", "Acme Lamp")

    assert [request.url.params["category_id"] for request in endpoint.requests] == ["1", "2"]


@pytest.mark.anyio
async def test_metadata_failure_returns_title_aspects(caplog: pytest.LogCaptureFixture) -> None:
    endpoint = TaxonomyEndpoint([], status=500)
    resolver = _resolver(endpoint)

    with caplog.at_level(logging.WARNING, logger="ebay_lister.services.aspects"):
        aspects = await resolver.resolve_required_aspects("1", "Acme Lamp", ean="123")

    assert aspects == {"Marke": ["Acme"], "Modell": ["Lamp"], "EAN": ["123"]}
    assert any("unavailable" in record.message for record in caplog.records)

    await resolver.resolve_required_aspects("1", "Acme Lamp")
    assert len(endpoint.requests) == 2


@pytest.mark.anyio
async def test_missing_application_credentials_degrade_gracefully() -> None:
    endpoint = TaxonomyEndpoint([_aspect("Farbe")])
    tokens = StubApplicationTokens(error=MissingConfigurationError(["EBAY_CLIENT_ID"]))

    aspects = await _resolver(endpoint, tokens=tokens).resolve_required_aspects(
        "1", "Acme Lamp"
    )

    assert aspects == {"Marke": ["Acme"], "Modell": ["Lamp"]}
    assert endpoint.requests == []
