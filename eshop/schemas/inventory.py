from pydantic import BaseModel, Field

from eshop.models.product import Warehouse
from typing import Optional, List
import uuid


class ReservedProductResponse(BaseModel):
    """A product with quantity held by unfulfilled orders."""
    product_id: uuid.UUID
    name: str
    reserved_quantity: int
    stock_bratislava: int
    stock_ruzomberok: int
    stock_bezo: int
    total_stock: int
    available: int


class ReservedOverviewResponse(BaseModel):
    items: List[ReservedProductResponse]
    total_reserved: int


class StockAvailabilityResponse(BaseModel):
    product_id: uuid.UUID
    available: bool
    requested: int
    available_quantity: int
    total_stock: int
    reserved_quantity: int


class StockRestoreRequest(BaseModel):
    """Return stock to a product; without a warehouse it is spread across warehouses."""
    quantity: int = Field(..., ge=1, le=1000)
    warehouse: Optional[Warehouse] = None


class StockReduceRequest(BaseModel):
    """Take stock from bratislava first, then ruzomberok, then bezo."""
    quantity: int = Field(..., ge=1, le=1000)
