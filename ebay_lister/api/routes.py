"""
FastAPI routes for the eBay listing publisher.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Annotated, Any, Optional

import httpx
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import ValidationError

from ebay_lister.clients import POLICY_TYPES
from ebay_lister.core.config import AppSettings, get_settings
from ebay_lister.core.errors import (
    AuthorizationError,
    EbayIntegrationError,
    InvalidScopeError,
    InvalidStateError,
    MissingConfigurationError,
    NoPendingCredentialsError,
    NotAuthenticatedError,
    RefreshFailedError,
    TokenExchangeError,
    TokenExpiredError,
)
from ebay_lister.dependencies import (
    get_ebay_oauth_service,
    get_listing_publisher,
    get_price_lookup_service,
    get_sell_client,
    get_taxonomy_client,
    get_token_cipher_service,
)
from ebay_lister.models.oauth import TokenPair
from ebay_lister.schemas import (
    AuthorizationRedirect,
    ConnectionStatus,
    CredentialsPayload,
    LocationRequest,
    PublishBatchRequest,
    PublishBatchResponse,
    RefreshResponse,
)
from ebay_lister.services.price_lookup import PriceLookupError
from ebay_lister.utils.http import NO_CONTENT_STATUSES, MarketplaceResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SellerSession:
    """Access token for a pass-through call and where it came from."""

    access_token: str
    from_bearer_header: bool = False


def _pair_from_cookie(value: str, token_cipher: Any) -> Optional[TokenPair]:
    raw = token_cipher.reveal(value)
    if raw is None:
        return None
    try:
        return TokenPair.model_validate_json(raw)
    except ValidationError:
        logger.info("Token cookie did not contain a valid token pair; ignoring.")
        return None


def _set_token_cookie(
    response: Response, pair: TokenPair, settings: AppSettings, token_cipher: Any
) -> None:
    response.set_cookie(
        key=settings.security.cookie_name,
        value=token_cipher.obscure(pair.model_dump_json()),
        max_age=settings.security.cookie_max_age_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def _adopt_cookie(
    request: Request, oauth_service: Any, token_cipher: Any, settings: AppSettings
) -> None:
    cookie = request.cookies.get(settings.security.cookie_name)
    if not cookie:
        return
    pair = _pair_from_cookie(cookie, token_cipher)
    if pair is not None:
        oauth_service.adopt_token_pair(pair)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_seller_session(
    request: Request,
    response: Response,
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    token_cipher: Annotated[Any, Depends(get_token_cipher_service)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> SellerSession:
    """Resolve the seller's access token for pass-through calls.

    The server-side session (seeded from the token cookie when empty) wins;
    a bearer header is only used when no session exists.
    """
    _adopt_cookie(request, oauth_service, token_cipher, settings)
    before = oauth_service.current_token_pair()
    if before is not None:
        access_token = await oauth_service.get_valid_access_token()
        after = oauth_service.current_token_pair()
        if after is not None and after != before:
            _set_token_cookie(response, after, settings, token_cipher)
        return SellerSession(access_token=access_token)

    bearer = _bearer_token(request)
    if bearer:
        return SellerSession(access_token=bearer, from_bearer_header=True)
    raise NotAuthenticatedError("eBay account is not connected.")


SellerSessionDependency = Annotated[SellerSession, Depends(get_seller_session)]


def _relay(result: MarketplaceResponse, response: Response, **on_empty: Any) -> Any:
    """Mirror a marketplace response; empty successes become ``{"success": true}``."""
    if result.ok and (result.status_code in NO_CONTENT_STATUSES or not result.payload):
        response.status_code = HTTPStatus.OK
        return {"success": True, **on_empty}
    response.status_code = result.status_code
    return result.payload


def _error_body(error: str, message: str, **extra: Any) -> dict:
    return {"success": False, "error": error, "message": message, **extra}


def register_exception_handlers(app: FastAPI) -> None:
    """Translate integration failures into JSON responses."""

    async def _missing_configuration(_: Request, exc: MissingConfigurationError) -> JSONResponse:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST,
            content=_error_body("missing_configuration", str(exc), missing=exc.missing),
        )

    async def _unauthenticated(_: Request, exc: EbayIntegrationError) -> JSONResponse:
        extra: dict[str, Any] = {}
        error = "not_authenticated"
        dead_session = False
        if isinstance(exc, TokenExpiredError):
            error = "token_expired"
        elif isinstance(exc, RefreshFailedError):
            error = exc.error
            dead_session = exc.invalid_grant
            extra["reauthorize"] = dead_session
        response = JSONResponse(
            status_code=HTTPStatus.UNAUTHORIZED,
            content=_error_body(error, str(exc), **extra),
        )
        if dead_session:
            # The cookie would otherwise re-seed the cleared store.
            response.delete_cookie(get_settings().security.cookie_name, path="/")
        return response

    async def _bad_request(_: Request, exc: EbayIntegrationError) -> JSONResponse:
        error = exc.error if isinstance(exc, AuthorizationError) else type(exc).__name__
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST, content=_error_body(error, str(exc))
        )

    async def _upstream(_: Request, exc: Exception) -> JSONResponse:
        error = exc.error if isinstance(exc, TokenExchangeError) else "marketplace_unavailable"
        logger.error("Marketplace call failed: %s", exc)
        return JSONResponse(
            status_code=HTTPStatus.BAD_GATEWAY, content=_error_body(error, str(exc))
        )

    app.add_exception_handler(MissingConfigurationError, _missing_configuration)
    for exc_type in (NotAuthenticatedError, TokenExpiredError, RefreshFailedError):
        app.add_exception_handler(exc_type, _unauthenticated)
    for exc_type in (AuthorizationError, InvalidStateError, NoPendingCredentialsError):
        app.add_exception_handler(exc_type, _bad_request)
    for exc_type in (TokenExchangeError, PriceLookupError, httpx.HTTPError):
        app.add_exception_handler(exc_type, _upstream)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


# --- OAuth -----------------------------------------------------------------


@router.post("/oauth/credentials", status_code=HTTPStatus.OK)
async def submit_credentials(
    payload: CredentialsPayload,
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
) -> dict:
    """Store the application keyset used once the authorization code arrives."""
    try:
        oauth_service.submit_credentials(payload.client_id, payload.client_secret)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return {"success": True}


@router.get("/oauth/start")
async def start_oauth_flow(
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
) -> RedirectResponse:
    """Send the browser to the marketplace consent screen."""
    redirect = oauth_service.build_authorization_redirect()
    return RedirectResponse(url=redirect.auth_url, status_code=HTTPStatus.FOUND)


@router.post("/oauth/authorize-url", response_model=AuthorizationRedirect)
async def build_authorize_url(
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    credentials: Annotated[Optional[CredentialsPayload], Body()] = None,
) -> AuthorizationRedirect:
    """Return the consent URL as JSON, optionally submitting credentials first."""
    if credentials is not None:
        oauth_service.submit_credentials(credentials.client_id, credentials.client_secret)
    return oauth_service.build_authorization_redirect()


def _callback_page(title: str, message: str, settings: AppSettings, *, success: bool) -> str:
    link = ""
    if settings.frontend_base_url:
        link = (
            f'<p><a href="{html.escape(str(settings.frontend_base_url))}">'
            "Back to the application</a></p>"
        )
    colour = "#1a7f37" if success else "#cf222e"
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head>"
        "<body style=\"font-family: sans-serif; max-width: 40rem; margin: 3rem auto;\">"
        f"<h1 style=\"color: {colour};\">{html.escape(title)}</h1>"
        f"<p>{html.escape(message)}</p>{link}</body></html>"
    )


@router.get("/oauth/callback", response_class=HTMLResponse)
async def handle_oauth_callback(
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    token_cipher: Annotated[Any, Depends(get_token_cipher_service)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    code: Optional[str] = Query(default=None, description="Authorization code."),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None, description="Signed OAuth state."),
) -> HTMLResponse:
    """Finish authorization and render a small status page."""
    try:
        pair = await oauth_service.handle_authorization_result(
            code=code, error=error, error_description=error_description, state=state
        )
    except InvalidScopeError:
        page = _callback_page(
            "Authorization failed: invalid scope",
            "eBay rejected the requested permissions. Check the scopes enabled for "
            "this keyset, then connect again.",
            settings,
            success=False,
        )
        return HTMLResponse(page, status_code=HTTPStatus.BAD_REQUEST)
    except NoPendingCredentialsError:
        page = _callback_page(
            "Authorization failed",
            "No pending credentials were found. Submit your App ID and Cert ID and "
            "start the connection again.",
            settings,
            success=False,
        )
        return HTMLResponse(page, status_code=HTTPStatus.BAD_REQUEST)
    except (AuthorizationError, InvalidStateError, MissingConfigurationError) as exc:
        page = _callback_page("Authorization failed", str(exc), settings, success=False)
        return HTMLResponse(page, status_code=HTTPStatus.BAD_REQUEST)
    except TokenExchangeError as exc:
        page = _callback_page(
            "Authorization failed", f"Token exchange failed: {exc}", settings, success=False
        )
        return HTMLResponse(page, status_code=HTTPStatus.BAD_GATEWAY)

    page = _callback_page(
        "eBay account connected",
        f"Access token valid until {pair.expires_at.isoformat()}. You can close this window.",
        settings,
        success=True,
    )
    response = HTMLResponse(page, status_code=HTTPStatus.OK)
    _set_token_cookie(response, pair, settings, token_cipher)
    return response


@router.post("/oauth/refresh", response_model=RefreshResponse)
async def refresh_oauth_token(
    request: Request,
    response: Response,
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    token_cipher: Annotated[Any, Depends(get_token_cipher_service)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> RefreshResponse:
    """Force a refresh of the seller's access token."""
    _adopt_cookie(request, oauth_service, token_cipher, settings)
    pair = await oauth_service.refresh(force=True)
    _set_token_cookie(response, pair, settings, token_cipher)
    return RefreshResponse(success=True, expires_at=pair.expires_at)


@router.get("/oauth/status", response_model=ConnectionStatus)
async def get_oauth_status(
    request: Request,
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    token_cipher: Annotated[Any, Depends(get_token_cipher_service)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> ConnectionStatus:
    _adopt_cookie(request, oauth_service, token_cipher, settings)
    return oauth_service.status()


@router.post("/oauth/disconnect", status_code=HTTPStatus.OK)
async def disconnect_oauth(
    response: Response,
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> dict:
    oauth_service.disconnect()
    response.delete_cookie(settings.security.cookie_name, path="/")
    return {"success": True}


@router.post("/test")
async def test_connection(
    response: Response,
    session: SellerSessionDependency,
    taxonomy_client: Annotated[Any, Depends(get_taxonomy_client)],
) -> dict:
    """Verify the token works by reading the default category tree."""
    result = await taxonomy_client.get_default_category_tree_id(
        access_token=session.access_token
    )
    if not result.ok:
        error = result.error()
        response.status_code = result.status_code
        return _error_body(error.kind.value, error.message, errorId=error.error_id)
    return {
        "success": True,
        "categoryTreeId": result.payload.get("categoryTreeId"),
        "categoryTreeVersion": result.payload.get("categoryTreeVersion"),
    }


# --- Inventory and offers --------------------------------------------------


@router.get("/inventory/{sku}")
async def get_inventory_item(
    sku: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    result = await sell_client.get_inventory_item(sku, access_token=session.access_token)
    return _relay(result, response)


@router.put("/inventory/{sku}")
async def put_inventory_item(
    sku: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
    payload: Annotated[dict[str, Any], Body()],
) -> Any:
    """Create or replace an inventory item."""
    result = await sell_client.put_inventory_item(
        sku, payload, access_token=session.access_token
    )
    return _relay(result, response, sku=sku)


@router.delete("/inventory/{sku}")
async def delete_inventory_item(
    sku: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    result = await sell_client.delete_inventory_item(sku, access_token=session.access_token)
    return _relay(result, response, sku=sku)


@router.get("/offer")
async def list_offers_by_query(
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
    sku: str = Query(..., min_length=1),
) -> Any:
    result = await sell_client.get_offers(sku, access_token=session.access_token)
    return _relay(result, response, offers=[])


@router.get("/offers/{sku}")
async def list_offers(
    sku: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    result = await sell_client.get_offers(sku, access_token=session.access_token)
    return _relay(result, response, offers=[])


@router.post("/offer")
async def create_offer(
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
    payload: Annotated[dict[str, Any], Body()],
) -> Any:
    result = await sell_client.create_offer(payload, access_token=session.access_token)
    return _relay(result, response)


@router.get("/offer/{offer_id}")
async def get_offer(
    offer_id: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    result = await sell_client.get_offer(offer_id, access_token=session.access_token)
    return _relay(result, response)


@router.put("/offer/{offer_id}")
async def update_offer(
    offer_id: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
    payload: Annotated[dict[str, Any], Body()],
) -> Any:
    result = await sell_client.update_offer(
        offer_id, payload, access_token=session.access_token
    )
    return _relay(result, response, offerId=offer_id)


@router.delete("/offer/{offer_id}")
async def delete_offer(
    offer_id: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    result = await sell_client.delete_offer(offer_id, access_token=session.access_token)
    return _relay(result, response, offerId=offer_id)


@router.post("/offer/{offer_id}/publish")
async def publish_offer(
    offer_id: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    result = await sell_client.publish_offer(offer_id, access_token=session.access_token)
    return _relay(result, response, offerId=offer_id)


# --- Account data ----------------------------------------------------------


def _simplify_policies(policy_type: str, result: MarketplaceResponse) -> list[dict]:
    if not result.ok or not isinstance(result.payload, dict):
        return []
    return [
        {
            "policyId": policy.get(f"{policy_type}PolicyId"),
            "name": policy.get("name"),
            "description": policy.get("description"),
        }
        for policy in result.payload.get(f"{policy_type}Policies", [])
    ]


@router.get("/policies")
async def list_all_policies(
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> dict:
    """Return fulfillment, payment and return policies in a compact shape."""
    results = await asyncio.gather(
        *(
            sell_client.get_policies(policy_type, access_token=session.access_token)
            for policy_type in POLICY_TYPES
        )
    )
    return {
        f"{policy_type}Policies": _simplify_policies(policy_type, result)
        for policy_type, result in zip(POLICY_TYPES, results)
    }


@router.get("/policies/{policy_type}")
async def list_policies(
    policy_type: str,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    if policy_type not in POLICY_TYPES:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Invalid policy type; expected one of {', '.join(POLICY_TYPES)}.",
        )
    result = await sell_client.get_policies(policy_type, access_token=session.access_token)
    return _relay(result, response)


@router.get("/locations")
async def list_locations(
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> dict:
    result = await sell_client.get_locations(access_token=session.access_token)
    if not result.ok:
        error = result.error()
        response.status_code = result.status_code
        return _error_body(error.kind.value, error.message)
    locations = [
        {
            "merchantLocationKey": location.get("merchantLocationKey"),
            "name": location.get("name"),
            "address": (location.get("location") or {}).get("address"),
        }
        for location in result.payload.get("locations", [])
    ]
    return {"locations": locations}


@router.post("/locations")
async def create_location(
    request_body: LocationRequest,
    response: Response,
    session: SellerSessionDependency,
    sell_client: Annotated[Any, Depends(get_sell_client)],
) -> Any:
    """Create a warehouse location; the address defaults to Berlin."""
    payload = {
        "location": {
            "address": {
                "city": request_body.address.city,
                "postalCode": request_body.address.postal_code,
                "country": request_body.address.country,
            }
        },
        "name": request_body.name or request_body.merchant_location_key,
        "merchantLocationStatus": "ENABLED",
        "locationTypes": ["WAREHOUSE"],
    }
    result = await sell_client.create_location(
        request_body.merchant_location_key, payload, access_token=session.access_token
    )
    return _relay(result, response, merchantLocationKey=request_body.merchant_location_key)


# --- Pipeline and lookups --------------------------------------------------


@router.post("/listings/publish", response_model=PublishBatchResponse)
async def publish_listings(
    request_body: PublishBatchRequest,
    response: Response,
    session: SellerSessionDependency,
    publisher: Annotated[Any, Depends(get_listing_publisher)],
    oauth_service: Annotated[Any, Depends(get_ebay_oauth_service)],
    token_cipher: Annotated[Any, Depends(get_token_cipher_service)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> PublishBatchResponse:
    """Publish a batch of drafts sequentially and report each outcome."""
    before = oauth_service.current_token_pair()
    results = await publisher.publish_batch(
        request_body.products,
        request_body.policies,
        access_token=session.access_token if session.from_bearer_header else None,
    )
    after = oauth_service.current_token_pair()
    if after is not None and after != before:
        _set_token_cookie(response, after, settings, token_cipher)
    return PublishBatchResponse(results=results)


@router.get("/prices")
async def lookup_prices(
    price_lookup: Annotated[Any, Depends(get_price_lookup_service)],
    q: str = Query(..., min_length=1, description="EAN or product title."),
    limit: int = Query(default=10, ge=1, le=50),
) -> dict:
    """Competitor prices for a product, cheapest total first."""
    prices = await price_lookup.lookup(q, limit=limit)
    return {"results": [price.model_dump(by_alias=True) for price in prices]}


__all__ = ["SellerSession", "get_seller_session", "register_exception_handlers", "router"]
