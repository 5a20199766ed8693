from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from eshop.api.deps import DB, ProductRateLimit
from eshop.models.product import ProductStatus, ProductLanguage
from eshop.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
    CheckDateUpdate,
)
from eshop.services.product_service import ProductService

router = APIRouter(tags=["Products"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    category_id: Optional[uuid.UUID] = Query(None),
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
    is_exclusive: Optional[bool] = Query(None),
    language: Optional[ProductLanguage] = Query(None),
    search: Optional[str] = Query(None),
):
    """Get paginated list of products with warehouse stock."""
    service = ProductService(db)
    skip = (page - 1) * size

    products, total = await service.get_products(
        category_id=category_id,
        status=status_filter,
        is_exclusive=is_exclusive,
        language=language,
        search=search,
        skip=skip,
        limit=size,
    )

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: DB):
    product = await ProductService(db).get_product_by_id(product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    return ProductResponse.model_validate(product)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[ProductRateLimit],
)
async def create_product(data: ProductCreate, db: DB):
    product = await ProductService(db).create_product(data.model_dump())
    return ProductResponse.model_validate(product)


@router.put("/{product_id}", response_model=ProductResponse, dependencies=[ProductRateLimit])
async def update_product(product_id: uuid.UUID, data: ProductUpdate, db: DB):
    product = await ProductService(db).update_product(product_id, data.model_dump(exclude_unset=True))
    return ProductResponse.model_validate(product)


@router.patch("/{product_id}/check-date", response_model=ProductResponse, dependencies=[ProductRateLimit])
async def update_check_date(product_id: uuid.UUID, data: CheckDateUpdate, db: DB):
    """Record a physical stock check; defaults to today."""
    product = await ProductService(db).update_check_date(product_id, data.last_check_date)
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[ProductRateLimit])
async def delete_product(product_id: uuid.UUID, db: DB):
    """Delete a product. Products referenced by orders cannot be deleted."""
    await ProductService(db).delete_product(product_id)
