"""
Shared API Models

Response and request bodies use camelCase keys on the wire and snake_case
attributes in Python. Every model can be built straight from ORM objects or
result dataclasses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.database.models import OrderStatus, PaymentMethod


class CamelModel(BaseModel):
    """Base model with camelCase aliases"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(CamelModel):
    error: str


class SuccessResponse(CamelModel):
    success: bool = True


class ProductResponse(CamelModel):
    """Catalog entry"""
    id: UUID
    name: str
    description: Optional[str] = None
    category: str
    price: float
    cost: float
    stock: int
    image_url: Optional[str] = None
    is_active: bool
    created_at: datetime


class CustomerResponse(CamelModel):
    """Customer with read-only loyalty counters"""
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    total_spent: float
    visit_count: int
    loyalty_points: int
    last_visit: Optional[datetime] = None
    created_at: datetime


class OrderItemResponse(CamelModel):
    id: UUID
    product_id: UUID
    quantity: int
    price: float
    cost: Optional[float] = None


class OrderResponse(CamelModel):
    """Order with its line items"""
    id: UUID
    customer_id: UUID
    order_date: datetime
    total: float
    status: OrderStatus
    payment_method: PaymentMethod
    items: List[OrderItemResponse]
