"""
API Routes Module
"""
from .health import router as health_router
from .orders import router as orders_router
from .products import router as products_router
from .customers import router as customers_router
from .reports import router as reports_router
from .insights import financial_metrics_router, market_research_router

__all__ = [
    "health_router",
    "orders_router",
    "products_router",
    "customers_router",
    "reports_router",
    "financial_metrics_router",
    "market_research_router",
]
