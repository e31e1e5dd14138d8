"""Public schema exports."""

from .auth import AuthorizationRedirect, ConnectionStatus, CredentialsPayload, RefreshResponse
from .listing import (
    CompetitorPrice,
    ListingCondition,
    ListingDraft,
    ListingPolicies,
    LocationRequest,
    ProductStatus,
    PublishBatchRequest,
    PublishBatchResponse,
    PublishOutcome,
    PublishStep,
)

__all__ = [
    "AuthorizationRedirect",
    "CompetitorPrice",
    "ConnectionStatus",
    "CredentialsPayload",
    "ListingCondition",
    "ListingDraft",
    "ListingPolicies",
    "LocationRequest",
    "ProductStatus",
    "PublishBatchRequest",
    "PublishBatchResponse",
    "PublishOutcome",
    "PublishStep",
    "RefreshResponse",
]
