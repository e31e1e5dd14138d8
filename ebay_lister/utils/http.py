"""HTTP utilities shared by the marketplace clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from ebay_lister.core.errors import MarketplaceError, classify_marketplace_error

NO_CONTENT_STATUSES = frozenset({httpx.codes.NO_CONTENT, httpx.codes.RESET_CONTENT})


def safe_json(response: httpx.Response) -> Any:
    """Return the decoded JSON body, or an empty dict when there is none."""
    if response.status_code in NO_CONTENT_STATUSES or not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {"message": response.text}


def bearer_headers(access_token: str, **extra: str) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }
    headers.update(extra)
    return headers


@dataclass(frozen=True)
class MarketplaceResponse:
    """Status code and decoded body of a marketplace call."""

    status_code: int
    payload: Any = field(default_factory=dict)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "MarketplaceResponse":
        return cls(status_code=response.status_code, payload=safe_json(response))

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def error(self) -> MarketplaceError:
        return classify_marketplace_error(self.status_code, self.payload)


__all__ = [
    "MarketplaceResponse",
    "NO_CONTENT_STATUSES",
    "bearer_headers",
    "safe_json",
]
