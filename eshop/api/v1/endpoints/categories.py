import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from eshop.api.deps import DB, AdminRateLimit
from eshop.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryListResponse,
)
from eshop.services.product_service import ProductService

router = APIRouter(tags=["Categories"], dependencies=[AdminRateLimit])


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    """Get paginated list of categories, built-in first."""
    service = ProductService(db)
    skip = (page - 1) * size

    categories, total = await service.get_categories(skip=skip, limit=size)

    return CategoryListResponse(
        items=[CategoryResponse.model_validate(c) for c in categories],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: uuid.UUID, db: DB):
    category = await ProductService(db).get_category_by_id(category_id)
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )
    return CategoryResponse.model_validate(category)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(data: CategoryCreate, db: DB):
    """Create a custom category."""
    category = await ProductService(db).create_category(data.model_dump())
    return CategoryResponse.model_validate(category)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: uuid.UUID, data: CategoryUpdate, db: DB):
    category = await ProductService(db).update_category(category_id, data.model_dump(exclude_unset=True))
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: uuid.UUID, db: DB):
    """Delete a custom category. Built-in categories are rejected with 409."""
    await ProductService(db).delete_category(category_id)
