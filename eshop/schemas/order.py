from pydantic import BaseModel, Field

from eshop.schemas.base import BaseResponseSchema, BaseUpdateSchema, PaginatedResponse
from eshop.schemas.customer import CustomerResponse
from eshop.models.order import OrderStatus, DeliveryMethod
from eshop.models.product import Warehouse
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
import uuid


class OrderItemProduct(BaseResponseSchema):
    """Product summary embedded in an order item."""
    id: uuid.UUID
    name: str
    price: Decimal
    stock_bratislava: int
    stock_ruzomberok: int
    stock_bezo: int


class OrderItemResponse(BaseResponseSchema):
    """Order item response schema."""
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    price: Decimal
    line_total: Decimal
    reserved_from: Optional[str] = None
    created_at: datetime
    product: Optional[OrderItemProduct] = None


class OrderUpdate(BaseUpdateSchema):
    """Editable order fields. Status changes go through OrderStatusUpdate."""
    delivery_method: Optional[DeliveryMethod] = None
    delivery_address: Optional[str] = None
    delivery_price: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    total_amount: Optional[Decimal] = Field(None, ge=0)


class OrderStatusUpdate(BaseModel):
    """
    Order status update.

    warehouse_selections maps product id to the warehouse that ships it and
    is required for every unfulfilled item when moving into shipped or
    delivered.
    """
    status: OrderStatus
    warehouse_selections: Dict[uuid.UUID, Warehouse] = Field(default_factory=dict)


class OrderResponse(BaseResponseSchema):
    """Order response schema."""
    id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    status: str
    delivery_method: str
    delivery_address: Optional[str] = None
    delivery_price: Optional[Decimal] = None
    total_amount: Decimal
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderDetailResponse(OrderResponse):
    """Order with items and customer."""
    is_fulfilled: bool = False
    items: List[OrderItemResponse] = []
    customer: Optional[CustomerResponse] = None


class OrderListResponse(PaginatedResponse[OrderResponse]):
    """Paginated order list."""
    pass


class OrderSequenceResponse(BaseModel):
    """Order number counter of one year."""
    year: int
    current_number: int
    next_number: str
