"""
Pydantic models for listing publication and price lookups.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from ebay_lister.core.errors import MarketplaceErrorKind


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListingCondition(str, Enum):
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    USED_EXCELLENT = "USED_EXCELLENT"
    USED_GOOD = "USED_GOOD"
    FOR_PARTS_OR_NOT_WORKING = "FOR_PARTS_OR_NOT_WORKING"


class PublishStep(str, Enum):
    INVENTORY = "inventory"
    OFFER = "offer"
    PUBLISH = "publish"


class ProductStatus(str, Enum):
    PUBLISHED = "PUBLISHED"
    ERROR_PUBLISH = "ERROR_PUBLISH"


class ListingDraft(_CamelModel):
    """The part of a prepared product needed to publish it."""

    sku: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=80)
    description_html: str = Field("", description="Listing description (HTML allowed).")
    ean: Optional[str] = Field(None, description="European Article Number, if known.")
    images: List[str] = Field(default_factory=list, description="Public image URLs.")
    condition: ListingCondition = ListingCondition.NEW
    quantity: int = Field(1, ge=1)
    category_id: str = Field(..., min_length=1)
    price_gross: Decimal = Field(..., gt=0, description="Gross price in marketplace currency.")

    @field_validator("sku", "title")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("ean")
    @classmethod
    def _blank_ean_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ListingPolicies(_CamelModel):
    """Business policies and inventory location applied to new offers."""

    fulfillment_policy_id: Optional[str] = None
    payment_policy_id: Optional[str] = None
    return_policy_id: Optional[str] = None
    merchant_location_key: Optional[str] = None

    def merged_over(self, defaults: "ListingPolicies") -> "ListingPolicies":
        """Fill unset fields from ``defaults``."""
        values = defaults.model_dump()
        values.update({key: value for key, value in self.model_dump().items() if value})
        return ListingPolicies(**values)


class PublishOutcome(_CamelModel):
    """Result of publishing one draft."""

    sku: str
    success: bool
    step: Optional[PublishStep] = None
    listing_id: Optional[str] = None
    offer_id: Optional[str] = None
    error_message: Optional[str] = None
    marketplace_error_id: Optional[int] = None
    error_kind: Optional[MarketplaceErrorKind] = None
    inventory_payload: Optional[Dict[str, Any]] = None
    offer_payload: Optional[Dict[str, Any]] = None

    @computed_field(alias="productStatus")  # type: ignore[prop-decorator]
    @property
    def product_status(self) -> ProductStatus:
        return ProductStatus.PUBLISHED if self.success else ProductStatus.ERROR_PUBLISH


class PublishBatchRequest(_CamelModel):
    products: List[ListingDraft] = Field(..., min_length=1)
    policies: Optional[ListingPolicies] = None


class PublishBatchResponse(_CamelModel):
    results: List[PublishOutcome]


class LocationAddress(_CamelModel):
    city: str = "Berlin"
    postal_code: str = "10115"
    country: str = "DE"


class LocationRequest(_CamelModel):
    merchant_location_key: str = Field(..., min_length=1, max_length=36)
    name: Optional[str] = None
    address: LocationAddress = Field(default_factory=LocationAddress)


class CompetitorPrice(_CamelModel):
    """A live listing found by the price lookup."""

    item_id: Optional[str] = None
    title: Optional[str] = None
    price: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    currency: Optional[str] = None
    seller: str = "unknown"


__all__ = [
    "CompetitorPrice",
    "ListingCondition",
    "ListingDraft",
    "ListingPolicies",
    "LocationAddress",
    "LocationRequest",
    "ProductStatus",
    "PublishBatchRequest",
    "PublishBatchResponse",
    "PublishOutcome",
    "PublishStep",
]
