from typing import Optional
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from eshop.api.deps import DB, AdminRateLimit
from eshop.models.order import OrderStatus
from eshop.models.order_sequence import OrderSequence
from eshop.schemas.order import (
    OrderUpdate,
    OrderStatusUpdate,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderSequenceResponse,
)
from eshop.services.order_number_service import OrderNumberService
from eshop.services.order_service import OrderService

router = APIRouter(tags=["Orders"], dependencies=[AdminRateLimit])


@router.get("", response_model=OrderListResponse)
async def list_orders(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    customer_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, description="Order number or address"),
):
    """Get paginated list of orders, newest first."""
    service = OrderService(db)
    skip = (page - 1) * size

    orders, total = await service.get_orders(
        status=status_filter,
        customer_id=customer_id,
        search=search,
        skip=skip,
        limit=size,
    )

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/sequence", response_model=OrderSequenceResponse)
async def get_order_sequence(
    db: DB,
    year: Optional[int] = Query(None, ge=2000, le=9999),
):
    """Last issued and next order number of a year (current year by default)."""
    numbers = OrderNumberService(db)
    year = year or OrderSequence.get_current_year()
    return OrderSequenceResponse(
        year=year,
        current_number=await numbers.get_current_number(year),
        next_number=await numbers.preview_next_number(year),
    )


@router.post("/sequence/sync", response_model=OrderSequenceResponse)
async def sync_order_sequence(
    db: DB,
    year: Optional[int] = Query(None, ge=2000, le=9999),
):
    """Raise the counter to the highest stored order number, e.g. after an import."""
    numbers = OrderNumberService(db)
    sequence = await numbers.sync_sequence_from_orders(year)
    await db.commit()
    return OrderSequenceResponse(
        year=sequence.year,
        current_number=sequence.current_number,
        next_number=sequence.preview_next_number(),
    )


@router.get("/number/{order_number}", response_model=OrderDetailResponse)
async def get_order_by_number(order_number: str, db: DB):
    order = await OrderService(db).get_order_by_number(order_number)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return OrderDetailResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: uuid.UUID, db: DB):
    """Get order with items, their products and the customer."""
    order = await OrderService(db).get_order_by_id(order_id)
    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )
    return OrderDetailResponse.model_validate(order)


@router.put("/{order_id}", response_model=OrderDetailResponse)
async def update_order(order_id: uuid.UUID, data: OrderUpdate, db: DB):
    """Update delivery details, notes or total. Stock is not affected."""
    order = await OrderService(db).update_order(order_id, data.model_dump(exclude_unset=True))
    return OrderDetailResponse.model_validate(order)


@router.put("/{order_id}/status", response_model=OrderDetailResponse)
async def update_order_status(order_id: uuid.UUID, data: OrderStatusUpdate, db: DB):
    """
    Change order status.

    Moving into shipped or delivered needs a warehouse for every item not
    yet shipped; that warehouse's stock is reduced by the item quantity.
    """
    order = await OrderService(db).update_order_status(
        order_id,
        data.status,
        warehouse_selections=data.warehouse_selections,
    )
    return OrderDetailResponse.model_validate(order)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(order_id: uuid.UUID, db: DB):
    """Delete an order, returning shipped quantities to their warehouses."""
    await OrderService(db).delete_order(order_id)
