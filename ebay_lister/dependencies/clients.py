"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
import secrets
from functools import lru_cache

from ebay_lister.clients import (
    EbayBrowseClient,
    EbayOAuthClient,
    EbaySellClient,
    EbayTaxonomyClient,
    OAuthStateEncoder,
    SQLiteStore,
)
from ebay_lister.core.config import get_settings
from ebay_lister.schemas.listing import ListingPolicies
from ebay_lister.services import (
    ApplicationTokenProvider,
    AspectResolver,
    EbayOAuthService,
    ListingPublisher,
    PriceLookupService,
    SQLiteTokenStore,
    TokenCipherService,
    TokenStore,
)

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def _signing_secret() -> str:
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.ebay.client_secret
    if secret:
        return secret
    logger.warning(
        "Neither TOKEN_ENCRYPTION_SECRET nor EBAY_CLIENT_SECRET is set; using an "
        "ephemeral key. Stored tokens and cookies will not survive a restart."
    )
    return secrets.token_urlsafe(48)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for cookies and token storage."""
    return TokenCipherService(secret=_signing_secret())


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder sharing the token secret."""
    return OAuthStateEncoder(secret_key=_signing_secret())


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide shared SQLite record store."""
    settings = _settings()
    return SQLiteStore(settings.token_store_path)


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the durable, encrypted token store."""
    return SQLiteTokenStore(get_sqlite_store(), get_token_cipher_service())


@lru_cache()
def get_ebay_oauth_client() -> EbayOAuthClient:
    """Create a singleton eBay OAuth client."""
    settings = _settings()
    return EbayOAuthClient(settings.ebay, settings.oauth)


@lru_cache()
def get_sell_client() -> EbaySellClient:
    settings = _settings()
    return EbaySellClient(settings.ebay)


@lru_cache()
def get_taxonomy_client() -> EbayTaxonomyClient:
    settings = _settings()
    return EbayTaxonomyClient(settings.ebay)


@lru_cache()
def get_browse_client() -> EbayBrowseClient:
    settings = _settings()
    return EbayBrowseClient(settings.ebay)


@lru_cache()
def get_ebay_oauth_service() -> EbayOAuthService:
    """Provide the process-wide seller authorization service."""
    settings = _settings()
    return EbayOAuthService(
        store=get_token_store(),
        oauth_client=get_ebay_oauth_client(),
        ebay_settings=settings.ebay,
        oauth_settings=settings.oauth,
        state_encoder=get_oauth_state_encoder(),
    )


@lru_cache()
def get_application_token_provider() -> ApplicationTokenProvider:
    """Provide the client-credentials token cache."""
    settings = _settings()
    return ApplicationTokenProvider(
        store=get_token_store(),
        oauth_client=get_ebay_oauth_client(),
        ebay_settings=settings.ebay,
    )


@lru_cache()
def get_aspect_resolver() -> AspectResolver:
    """Provide the aspect resolver; its category cache lives for the process."""
    return AspectResolver(get_taxonomy_client(), get_application_token_provider())


def get_listing_publisher() -> ListingPublisher:
    """Build a listing publisher using the seller's access token."""
    settings = _settings()
    return ListingPublisher(
        sell_client=get_sell_client(),
        aspect_resolver=get_aspect_resolver(),
        token_provider=get_ebay_oauth_service().get_valid_access_token,
        ebay_settings=settings.ebay,
        default_policies=ListingPolicies(**settings.policies.model_dump()),
    )


def get_price_lookup_service() -> PriceLookupService:
    """Build a price lookup service using the application token."""
    return PriceLookupService(get_browse_client(), get_application_token_provider())


__all__ = [
    "get_application_token_provider",
    "get_aspect_resolver",
    "get_browse_client",
    "get_ebay_oauth_client",
    "get_ebay_oauth_service",
    "get_listing_publisher",
    "get_oauth_state_encoder",
    "get_price_lookup_service",
    "get_sell_client",
    "get_sqlite_store",
    "get_taxonomy_client",
    "get_token_cipher_service",
    "get_token_store",
]
