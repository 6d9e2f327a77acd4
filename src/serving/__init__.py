"""
Serving Module

HTTP API plus the optional Redis response cache it reads through.
"""
from .cache import (
    CacheManager,
    close_redis,
    customers_cache,
    get_redis,
    init_redis,
    invalidate_order_views,
    products_cache,
    reports_cache,
)

__all__ = [
    "CacheManager",
    "close_redis",
    "customers_cache",
    "get_redis",
    "init_redis",
    "invalidate_order_views",
    "products_cache",
    "reports_cache",
]
