import uuid

from fastapi import APIRouter, Query

from eshop.api.deps import DB, AdminRateLimit
from eshop.schemas.inventory import (
    ReservedOverviewResponse,
    ReservedProductResponse,
    StockAvailabilityResponse,
    StockRestoreRequest,
    StockReduceRequest,
)
from eshop.schemas.product import ProductResponse
from eshop.services.inventory_service import InventoryService
from eshop.services.product_service import ProductService

router = APIRouter(tags=["Inventory"], dependencies=[AdminRateLimit])


@router.get("/reserved", response_model=ReservedOverviewResponse)
async def reserved_overview(db: DB):
    """Products held by orders that have not shipped yet."""
    items = await InventoryService(db).get_reserved_overview()
    return ReservedOverviewResponse(
        items=[ReservedProductResponse(**item) for item in items],
        total_reserved=sum(item["reserved_quantity"] for item in items),
    )


@router.get("/products/{product_id}/availability", response_model=StockAvailabilityResponse)
async def product_availability(
    product_id: uuid.UUID,
    db: DB,
    quantity: int = Query(1, ge=1),
):
    result = await InventoryService(db).check_stock_availability(product_id, quantity)
    return StockAvailabilityResponse(**result)


@router.post("/products/{product_id}/restore", response_model=ProductResponse)
async def restore_stock(product_id: uuid.UUID, data: StockRestoreRequest, db: DB):
    """
    Return stock to a product.

    Without a warehouse the quantity fills bratislava, ruzomberok, then bezo.
    """
    await InventoryService(db).restore_product_stock(product_id, data.quantity, data.warehouse)
    await db.commit()
    product = await ProductService(db).get_product_by_id(product_id)
    return ProductResponse.model_validate(product)


@router.post("/products/{product_id}/reduce", response_model=ProductResponse)
async def reduce_stock(product_id: uuid.UUID, data: StockReduceRequest, db: DB):
    """Take stock from bratislava, then ruzomberok, then bezo (floored at zero)."""
    await InventoryService(db).reduce_product_stock(product_id, data.quantity)
    await db.commit()
    product = await ProductService(db).get_product_by_id(product_id)
    return ProductResponse.model_validate(product)
