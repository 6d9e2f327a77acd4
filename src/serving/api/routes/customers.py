"""
Customers API Endpoints

Customer CRUD. Spend, visits and loyalty points are maintained by order
writes and are read-only here.
"""

from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.connection import get_db_dependency
from src.database.models import Customer, Order
from src.exceptions import ConflictError, NotFoundError, ValidationError
from src.serving.api.schemas import CamelModel, CustomerResponse, SuccessResponse
from src.serving.cache import customers_cache, reports_cache

logger = structlog.get_logger(__name__)
router = APIRouter()


class CustomerCreate(CamelModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: Optional[str] = None


class CustomerUpdate(CamelModel):
    id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    phone: Optional[str] = None


async def _ensure_email_free(db: AsyncSession, email: str, customer_id: Optional[UUID] = None) -> None:
    query = select(Customer.id).where(Customer.email == email)
    if customer_id is not None:
        query = query.where(Customer.id != customer_id)
    if (await db.execute(query)).first() is not None:
        raise ConflictError("Customer with this email already exists")


async def _invalidate() -> None:
    await customers_cache.invalidate_all()
    await reports_cache.invalidate_all()


@router.get("", response_model=List[CustomerResponse])
async def list_customers(db: AsyncSession = Depends(get_db_dependency)):
    """All customers, biggest spenders first."""
    async def load():
        result = await db.execute(
            select(Customer).order_by(Customer.total_spent.desc(), Customer.name)
        )
        return [
            CustomerResponse.model_validate(customer).model_dump(mode="json", by_alias=True)
            for customer in result.scalars().all()
        ]

    return await customers_cache.get_or_set("all", load)


@router.post("", response_model=CustomerResponse, status_code=201)
async def create_customer(
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_db_dependency),
) -> CustomerResponse:
    await _ensure_email_free(db, payload.email)

    customer = Customer(**payload.model_dump())
    db.add(customer)
    await db.flush()

    logger.info("Customer created", customer_id=str(customer.id))
    await _invalidate()
    return CustomerResponse.model_validate(customer)


@router.put("", response_model=CustomerResponse)
async def update_customer(
    payload: CustomerUpdate,
    db: AsyncSession = Depends(get_db_dependency),
) -> CustomerResponse:
    if payload.id is None:
        raise ValidationError("Customer ID is required")

    customer = await db.get(Customer, payload.id)
    if customer is None:
        raise NotFoundError("Customer", payload.id)

    changes = payload.model_dump(exclude_unset=True, exclude={"id"})
    if changes.get("email"):
        await _ensure_email_free(db, changes["email"], customer.id)

    for key, value in changes.items():
        if value is None and key in ("name", "email"):
            continue
        setattr(customer, key, value)
    await db.flush()

    logger.info("Customer updated", customer_id=str(customer.id), fields=sorted(changes))
    await _invalidate()
    return CustomerResponse.model_validate(customer)


@router.delete("", response_model=SuccessResponse)
async def delete_customer(
    id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db_dependency),
) -> SuccessResponse:
    if id is None:
        raise ValidationError("Customer ID is required")

    if await db.get(Customer, id) is None:
        raise NotFoundError("Customer", id)

    orders = (await db.execute(
        select(func.count(Order.id)).where(Order.customer_id == id)
    )).scalar() or 0
    if orders:
        raise ConflictError("Customer has existing orders")

    await db.execute(delete(Customer).where(Customer.id == id))

    logger.info("Customer deleted", customer_id=str(id))
    await _invalidate()
    return SuccessResponse()
