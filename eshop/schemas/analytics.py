from pydantic import BaseModel

from typing import List, Dict
from decimal import Decimal
import uuid


class MonthlyRevenue(BaseModel):
    month: str  # YYYY-MM
    revenue: Decimal
    orders: int


class TopProduct(BaseModel):
    product_id: uuid.UUID
    name: str
    quantity: int
    revenue: Decimal


class DashboardResponse(BaseModel):
    """Sales dashboard figures for a time range."""
    time_range: str
    total_orders: int
    total_revenue: Decimal
    total_customers: int
    average_order_value: Decimal
    orders_by_status: Dict[str, int]
    revenue_by_month: List[MonthlyRevenue]
    top_products: List[TopProduct]
    customer_types: Dict[str, int]
