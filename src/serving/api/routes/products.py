"""
Products API Endpoints

Catalog CRUD. Stock is adjusted by order writes; it can also be set here
directly when restocking.
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.connection import get_db_dependency
from src.database.models import OrderItem, Product
from src.exceptions import ConflictError, NotFoundError, ValidationError
from src.serving.api.schemas import CamelModel, ProductResponse, SuccessResponse
from src.serving.cache import products_cache, reports_cache

logger = structlog.get_logger(__name__)
router = APIRouter()

# Columns that may not be cleared with an explicit null
REQUIRED_FIELDS = {"name", "category", "price", "cost", "stock", "is_active"}


class ProductCreate(CamelModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    price: Decimal = Field(gt=0)
    cost: Decimal = Field(ge=0)
    description: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    image_url: Optional[str] = None
    is_active: bool = True


class ProductUpdate(CamelModel):
    id: Optional[UUID] = None
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    price: Optional[Decimal] = Field(default=None, gt=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


async def _invalidate() -> None:
    await products_cache.invalidate_all()
    await reports_cache.invalidate_all()


@router.get("", response_model=List[ProductResponse])
async def list_products(db: AsyncSession = Depends(get_db_dependency)):
    """All products ordered by name."""
    async def load():
        result = await db.execute(select(Product).order_by(Product.name))
        return [
            ProductResponse.model_validate(product).model_dump(mode="json", by_alias=True)
            for product in result.scalars().all()
        ]

    return await products_cache.get_or_set("all", load)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductResponse:
    product = Product(**payload.model_dump())
    db.add(product)
    await db.flush()

    logger.info("Product created", product_id=str(product.id), name=product.name)
    await _invalidate()
    return ProductResponse.model_validate(product)


@router.put("", response_model=ProductResponse)
async def update_product(
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_db_dependency),
) -> ProductResponse:
    if payload.id is None:
        raise ValidationError("Product ID is required")

    product = await db.get(Product, payload.id)
    if product is None:
        raise NotFoundError("Product", payload.id)

    changes = payload.model_dump(exclude_unset=True, exclude={"id"})
    for key, value in changes.items():
        if value is None and key in REQUIRED_FIELDS:
            continue
        setattr(product, key, value)
    await db.flush()

    logger.info("Product updated", product_id=str(product.id), fields=sorted(changes))
    await _invalidate()
    return ProductResponse.model_validate(product)


@router.delete("", response_model=SuccessResponse)
async def delete_product(
    id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db_dependency),
) -> SuccessResponse:
    if id is None:
        raise ValidationError("Product ID is required")

    if await db.get(Product, id) is None:
        raise NotFoundError("Product", id)

    referenced = (await db.execute(
        select(func.count(OrderItem.id)).where(OrderItem.product_id == id)
    )).scalar() or 0
    if referenced:
        raise ConflictError("Product is referenced by existing orders")

    await db.execute(delete(Product).where(Product.id == id))

    logger.info("Product deleted", product_id=str(id))
    await _invalidate()
    return SuccessResponse()
