"""
Application Exceptions

Domain errors raised by services and translated to JSON ``{"error": ...}``
responses by the API exception handlers.
"""


class AppError(Exception):
    """Base class for errors with an HTTP status"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Missing or invalid input"""
    status_code = 400


class NotFoundError(AppError):
    """Unknown id, email or product name"""
    status_code = 404

    def __init__(self, entity: str, identifier: object):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.identifier = identifier


class ConflictError(AppError):
    """Request conflicts with stored state"""
    status_code = 409


class InsufficientStockError(ConflictError):
    """Order quantity exceeds stock while negative stock is disallowed"""

    def __init__(self, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}"
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available
