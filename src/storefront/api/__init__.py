"""Storefront API package."""

from storefront.api.routes import admin_router, cart_router, checkout_router

__all__ = ["cart_router", "checkout_router", "admin_router"]
