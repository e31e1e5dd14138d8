"""
Resolve the item aspects a category requires before a listing is published.

Brand and model are guessed from the product title. Every other required
aspect that cannot be derived is filled from a defaults table, trading
attribute accuracy for a publish that does not fail on missing aspects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import httpx

from ebay_lister.clients.ebay_taxonomy import EbayTaxonomyClient
from ebay_lister.core.errors import EbayIntegrationError
from ebay_lister.services.application_tokens import ApplicationTokenProvider

logger = logging.getLogger(__name__)

# Aspect name -> title-derived field that supplies its value.
TITLE_DERIVED_ASPECTS: Dict[str, str] = {
    "Marke": "brand",
    "Brand": "brand",
    "Modell": "model",
    "Model": "model",
    "EAN": "ean",
}

DEFAULT_ASPECT_VALUES: Dict[str, str] = {
    "Farbe": "Mehrfarbig",
    "Color": "Multicolor",
    "Material": "Sonstige",
    "Produktart": "Sonstige",
    "Größe": "Einheitsgröße",
    "Abteilung": "Unisex Erwachsene",
    "Herstellernummer": "Nicht zutreffend",
    "EAN": "Nicht zutreffend",
    "Marke": "Markenlos",
    "Modell": "Nicht zutreffend",
}


@dataclass(frozen=True)
class AspectDefaults:
    """Fallback values for required aspects, looked up by name."""

    values: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ASPECT_VALUES))
    fallback: str = "Nicht zutreffend"

    def value_for(self, name: str) -> str:
        if name in self.values:
            return self.values[name]
        lowered = name.casefold()
        for key, value in self.values.items():
            if key.casefold() == lowered:
                return value
        return self.fallback


@dataclass(frozen=True)
class RequiredAspect:
    name: str
    selection_only: bool = False
    allowed_values: tuple[str, ...] = ()


def derive_title_aspects(product_title: str, ean: Optional[str] = None) -> Dict[str, List[str]]:
    """Guess brand (first token) and model (the rest) from the title."""
    tokens = product_title.split()
    if not tokens:
        sources: Dict[str, Optional[str]] = {"brand": None, "model": None}
    else:
        sources = {
            "brand": tokens[0],
            "model": " ".join(tokens[1:]) or product_title.strip(),
        }
    sources["ean"] = ean or None

    aspects: Dict[str, List[str]] = {}
    for name in ("Marke", "Modell", "EAN"):
        value = sources[TITLE_DERIVED_ASPECTS[name]]
        if value:
            aspects[name] = [value]
    return aspects


def _parse_required(payload: object) -> List[RequiredAspect]:
    aspects = payload.get("aspects", []) if isinstance(payload, dict) else []
    required: List[RequiredAspect] = []
    for aspect in aspects:
        constraint = aspect.get("aspectConstraint") or {}
        if not constraint.get("aspectRequired"):
            continue
        name = aspect.get("localizedAspectName")
        if not name:
            continue
        allowed = tuple(
            value["localizedValue"]
            for value in aspect.get("aspectValues") or []
            if value.get("localizedValue")
        )
        required.append(
            RequiredAspect(
                name=name,
                selection_only=constraint.get("aspectMode") == "SELECTION_ONLY",
                allowed_values=allowed,
            )
        )
    return required


class AspectResolver:
    """Build a complete aspect map for a category."""

    def __init__(
        self,
        taxonomy_client: EbayTaxonomyClient,
        application_tokens: ApplicationTokenProvider,
        *,
        defaults: AspectDefaults | None = None,
    ) -> None:
        self._taxonomy = taxonomy_client
        self._application_tokens = application_tokens
        self._defaults = defaults or AspectDefaults()
        self._cache: Dict[str, List[RequiredAspect]] = {}

    async def required_aspects(self, category_id: str) -> Optional[List[RequiredAspect]]:
        """Return the category's required aspects, or None when unavailable."""
        cached = self._cache.get(category_id)
        if cached is not None:
            return cached

        access_token = await self._application_tokens.get_access_token()
        response = await self._taxonomy.get_item_aspects_for_category(
            category_id, access_token=access_token
        )
        if not response.ok:
            error = response.error()
            logger.warning(
                "Aspect metadata for category %s unavailable (%s, HTTP %s): %s",
                category_id,
                error.kind.value,
                error.status_code,
                error.message,
            )
            return None

        required = _parse_required(response.payload)
        self._cache[category_id] = required
        return required

    def _default_for(self, aspect: RequiredAspect) -> str:
        value = self._defaults.value_for(aspect.name)
        if aspect.selection_only and aspect.allowed_values:
            allowed = {item.casefold() for item in aspect.allowed_values}
            if value.casefold() not in allowed:
                return aspect.allowed_values[0]
        return value

    async def resolve_required_aspects(
        self,
        category_id: str,
        product_title: str,
        ean: Optional[str] = None,
    ) -> Dict[str, List[str]]:
        """Return title-derived aspects plus defaults for missing required ones."""
        aspects = derive_title_aspects(product_title, ean)
        try:
            required = await self.required_aspects(category_id)
        except (EbayIntegrationError, httpx.HTTPError) as exc:
            logger.warning("Aspect lookup for category %s failed: %s", category_id, exc)
            return aspects
        if required is None:
            return aspects

        derived_sources = {
            "brand": aspects.get("Marke"),
            "model": aspects.get("Modell"),
            "ean": aspects.get("EAN"),
        }
        for aspect in required:
            if aspect.name in aspects:
                continue
            source = TITLE_DERIVED_ASPECTS.get(aspect.name)
            if source and derived_sources.get(source):
                aspects[aspect.name] = list(derived_sources[source])
                continue
            aspects[aspect.name] = [self._default_for(aspect)]
        return aspects


__all__ = [
    "AspectDefaults",
    "AspectResolver",
    "DEFAULT_ASPECT_VALUES",
    "RequiredAspect",
    "TITLE_DERIVED_ASPECTS",
    "derive_title_aspects",
]
