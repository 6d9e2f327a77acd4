"""
Prometheus Metrics

Process-wide collectors, scraped from ``GET /api/metrics``. Under gunicorn
each worker exposes its own registry.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

ORDERS_CREATED = Counter(
    "coffee_orders_created_total",
    "Orders created",
    ["source", "payment_method"],
)

ORDER_REVENUE = Counter(
    "coffee_order_revenue_total",
    "Revenue of created orders",
    ["source"],
)

IMPORT_ROWS = Counter(
    "coffee_import_rows_total",
    "Bulk import rows processed",
    ["status"],
)

BACKORDERS = Counter(
    "coffee_backorders_total",
    "Order lines accepted beyond available stock",
)

REQUEST_DURATION = Histogram(
    "coffee_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route", "status_code"],
)


def render_latest() -> tuple:
    """Exposition body and content type for the default registry."""
    return generate_latest(), CONTENT_TYPE_LATEST
