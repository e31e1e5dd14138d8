"""
FastAPI application entrypoint for the eBay listing publisher.
"""

from __future__ import annotations

from fastapi import FastAPI

from ebay_lister.api.routes import register_exception_handlers, router as api_router
from ebay_lister.core.config import get_settings
from ebay_lister.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="eBay Listing Publisher",
        version="0.1.0",
        description="Seller OAuth, marketplace pass-through and listing publication.",
    )
    app.include_router(api_router, prefix="/api/ebay")
    register_exception_handlers(app)
    return app


app = create_app()

__all__ = ["app", "create_app"]
