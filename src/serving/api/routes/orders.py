"""
Orders API Endpoints

Order history plus the write paths that keep customer counters and product
stock consistent: single order creation, bulk import and bulk clear.
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.database.connection import get_db_dependency
from src.database.models import Order, OrderStatus, PaymentMethod
from src.exceptions import ValidationError
from src.ingestion.orders import ImportRecord, OrderIngestionService, OrderLine
from src.serving.api.dependencies import get_ingestion_service
from src.serving.api.schemas import CamelModel, OrderResponse
from src.serving.cache import invalidate_order_views

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class OrderLineRequest(CamelModel):
    product_id: UUID
    quantity: int = Field(gt=0)


class CreateOrderRequest(CamelModel):
    customer_id: UUID
    items: List[OrderLineRequest] = Field(min_length=1)
    payment_method: Optional[PaymentMethod] = None
    status: Optional[OrderStatus] = None
    order_date: Optional[datetime] = None


class ImportOrderRow(CamelModel):
    """One imported order; values are checked per row by the ingestion service"""
    customer_email: Any = None
    product_name: Any = None
    quantity: Any = None
    order_date: Any = None
    status: Any = None
    payment_method: Any = None

    @classmethod
    def from_raw(cls, row: Any) -> "ImportOrderRow":
        """Rows that are not JSON objects become empty rows and fail on their own."""
        return cls.model_validate(row) if isinstance(row, dict) else cls()


class ImportRequest(CamelModel):
    orders: Optional[List[Any]] = None


class ImportResponse(CamelModel):
    message: str
    success: int
    failed: int
    errors: List[str]


class ClearResponse(CamelModel):
    success: bool
    message: str
    count: int


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=List[OrderResponse])
async def list_orders(
    limit: int = Query(50, ge=1, le=500),
    status: Optional[OrderStatus] = None,
    customer_id: Optional[UUID] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db_dependency),
) -> List[OrderResponse]:
    """Most recent orders with their items."""
    query = select(Order).options(selectinload(Order.items))
    if status:
        query = query.where(Order.status == status)
    if customer_id:
        query = query.where(Order.customer_id == customer_id)

    result = await db.execute(query.order_by(Order.order_date.desc()).limit(limit))
    return [OrderResponse.model_validate(order) for order in result.scalars().all()]


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: CreateOrderRequest,
    service: OrderIngestionService = Depends(get_ingestion_service),
) -> OrderResponse:
    """Create one order; stock and customer counters move with it."""
    order = await service.create_order(
        payload.customer_id,
        [OrderLine(product_id=line.product_id, quantity=line.quantity) for line in payload.items],
        payment_method=payload.payment_method,
        status=payload.status,
        order_date=payload.order_date,
    )
    await invalidate_order_views()
    return OrderResponse.model_validate(order)


@router.post("/import", response_model=ImportResponse)
async def import_orders(
    payload: Optional[ImportRequest] = None,
    service: OrderIngestionService = Depends(get_ingestion_service),
) -> ImportResponse:
    """
    Bulk import one-line orders keyed by customer email and product name.

    Failing rows are reported in ``errors`` and do not abort the batch.
    """
    if payload is None or not payload.orders:
        raise ValidationError("No order data provided")

    result = await service.import_orders([
        ImportRecord(
            customer_email=row.customer_email,
            product_name=row.product_name,
            quantity=row.quantity,
            order_date=row.order_date,
            status=row.status,
            payment_method=row.payment_method,
        )
        for row in map(ImportOrderRow.from_raw, payload.orders)
    ])
    if result.success:
        await invalidate_order_views()

    return ImportResponse(
        message=result.message,
        success=result.success,
        failed=result.failed,
        errors=result.errors,
    )


@router.delete("/clear", response_model=ClearResponse)
async def clear_orders(
    service: OrderIngestionService = Depends(get_ingestion_service),
) -> ClearResponse:
    """Delete every order, restoring stock and resetting customer counters."""
    count = await service.clear_orders()
    await invalidate_order_views()
    return ClearResponse(
        success=True,
        message=f"Deleted {count} orders and reset all stats",
        count=count,
    )
