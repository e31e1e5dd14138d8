"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_application_token_provider,
    get_aspect_resolver,
    get_browse_client,
    get_ebay_oauth_client,
    get_ebay_oauth_service,
    get_listing_publisher,
    get_oauth_state_encoder,
    get_price_lookup_service,
    get_sell_client,
    get_sqlite_store,
    get_taxonomy_client,
    get_token_cipher_service,
    get_token_store,
)

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
    "get_taxonomy_client",
    "get_token_cipher_service",
    "get_token_store",
    "get_sqlite_store",
]
