"""Expose constructed client wrappers."""

from .ebay_api import EbayApiClient
from .ebay_auth import EbayOAuthClient, OAuthStateEncoder
from .ebay_browse import EbayBrowseClient
from .ebay_sell import POLICY_TYPES, EbaySellClient
from .ebay_taxonomy import EbayTaxonomyClient
from .sqlite_store import SQLiteStore

__all__ = [
    "EbayApiClient",
    "EbayBrowseClient",
    "EbayOAuthClient",
    "EbaySellClient",
    "EbayTaxonomyClient",
    "OAuthStateEncoder",
    "POLICY_TYPES",
    "SQLiteStore",
]
