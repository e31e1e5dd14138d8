"""Service layer exports."""

from .application_tokens import ApplicationTokenProvider
from .aspects import AspectDefaults, AspectResolver
from .ebay_oauth import EbayOAuthService
from .listing_publisher import ListingPublisher
from .price_lookup import PriceLookupError, PriceLookupService
from .token_cipher import TokenCipherService
from .token_store import InMemoryTokenStore, SQLiteTokenStore, TokenStore

__all__ = [
    "ApplicationTokenProvider",
    "AspectDefaults",
    "AspectResolver",
    "EbayOAuthService",
    "InMemoryTokenStore",
    "ListingPublisher",
    "PriceLookupError",
    "PriceLookupService",
    "SQLiteTokenStore",
    "TokenCipherService",
    "TokenStore",
]
