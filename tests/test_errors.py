try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from ebay_lister.core.errors import (
    MarketplaceErrorKind,
    OAuthErrorKind,
    RefreshFailedError,
    classify_marketplace_error,
    classify_oauth_error,
)


@pytest.mark.parametrize(
    ("error_id", "status_code", "expected"),
    [
        (25002, 400, MarketplaceErrorKind.VALIDATION),
        (25713, 404, MarketplaceErrorKind.NOT_FOUND),
        (25001, 500, MarketplaceErrorKind.UNAVAILABLE),
        (1001, 401, MarketplaceErrorKind.AUTHENTICATION),
        # A known identifier wins over the HTTP status.
        (25710, 400, MarketplaceErrorKind.NOT_FOUND),
    ],
)
def test_known_error_ids(error_id: int, status_code: int, expected: MarketplaceErrorKind) -> None:
    payload = {"errors": [{"errorId": error_id, "message": "short", "longMessage": "long"}]}

    error = classify_marketplace_error(status_code, payload)

    assert error.kind is expected
    assert error.error_id == error_id
    assert error.status_code == status_code
    assert error.message == "long"


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (400, MarketplaceErrorKind.VALIDATION),
        (403, MarketplaceErrorKind.AUTHENTICATION),
        (404, MarketplaceErrorKind.NOT_FOUND),
        (429, MarketplaceErrorKind.RATE_LIMITED),
        (503, MarketplaceErrorKind.UNAVAILABLE),
        (418, MarketplaceErrorKind.UNCLASSIFIED),
    ],
)
def test_unknown_ids_fall_back_to_status(status_code: int, expected: MarketplaceErrorKind) -> None:
    error = classify_marketplace_error(
        status_code, {"errors": [{"errorId": 99999, "message": "odd"}]}
    )

    assert error.kind is expected
    assert error.error_id == 99999
    assert error.message == "odd"


def test_unparseable_body_gets_generic_message() -> None:
    error = classify_marketplace_error(502, "<html>Bad gateway</html>")

    assert error.kind is MarketplaceErrorKind.UNAVAILABLE
    assert error.error_id is None
    assert error.message == "Marketplace returned HTTP 502"


def test_oauth_style_body_uses_description() -> None:
    error = classify_marketplace_error(
        401, {"error": "invalid_token", "error_description": "Token expired"}
    )

    assert error.kind is MarketplaceErrorKind.AUTHENTICATION
    assert error.message == "Token expired"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("invalid_scope", OAuthErrorKind.INVALID_SCOPE),
        (" INVALID_GRANT ", OAuthErrorKind.INVALID_GRANT),
        ("access_denied", OAuthErrorKind.ACCESS_DENIED),
        ("server_error", OAuthErrorKind.OTHER),
        (None, OAuthErrorKind.OTHER),
    ],
)
def test_classify_oauth_error(raw, expected: OAuthErrorKind) -> None:
    assert classify_oauth_error(raw) is expected


def test_refresh_failure_flags_invalid_grant() -> None:
    assert RefreshFailedError("invalid_grant", "revoked", 400).invalid_grant is True
    assert RefreshFailedError("temporarily_unavailable").invalid_grant is False
