"""Ordering domain API package."""

from ordering.api.routes import config_router, order_router, product_router

__all__ = ["order_router", "product_router", "config_router"]
