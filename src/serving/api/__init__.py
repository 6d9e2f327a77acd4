"""
HTTP API

``create_api_app`` builds the FastAPI application; ``src.main`` exposes the
module-level instance served by uvicorn and gunicorn.
"""
from .errors import register_exception_handlers
from .main import API_PREFIX, create_api_app

__all__ = [
    "API_PREFIX",
    "create_api_app",
    "register_exception_handlers",
]
