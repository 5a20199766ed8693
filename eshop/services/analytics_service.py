"""
Sales dashboard figures.

Revenue is product revenue only: SUM(order_items.price * quantity), never
delivery. Time ranges filter orders by created_at in SQL; customer figures
always cover all customers.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.core.exceptions import InputValidationError, StoreOperationError
from eshop.models.customer import Customer
from eshop.models.order import Order, OrderItem
from eshop.models.product import Product

logger = logging.getLogger(__name__)

TIME_RANGES: Dict[str, Optional[int]] = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
    "all": None,
}

TOP_PRODUCTS_LIMIT = 5
MONTHS_SHOWN = 12


def last_months(now: datetime, count: int = MONTHS_SHOWN) -> List[str]:
    """``count`` month keys (YYYY-MM) ending with the month of ``now``, oldest first."""
    keys = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


class AnalyticsService:
    """Service computing the admin dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_dashboard(self, time_range: str = "30d") -> dict:
        if time_range not in TIME_RANGES:
            raise InputValidationError(
                f"Invalid time range '{time_range}'. Valid ranges: {', '.join(TIME_RANGES)}",
                field="time_range",
            )

        now = datetime.now(timezone.utc)
        days = TIME_RANGES[time_range]
        order_filters = []
        if days is not None:
            order_filters.append(Order.created_at >= now - timedelta(days=days))

        try:
            return await self._build_dashboard(time_range, now, order_filters)
        except SQLAlchemyError as e:
            logger.error(f"Error computing dashboard: {e}")
            raise StoreOperationError(f"Error loading analytics: {e}") from e

    async def _build_dashboard(self, time_range: str, now: datetime, order_filters: list) -> dict:
        line_total = OrderItem.price * OrderItem.quantity

        # Orders by status
        status_rows = await self.db.execute(
            select(Order.status, func.count(Order.id))
            .where(*order_filters)
            .group_by(Order.status)
        )
        orders_by_status = {status: count for status, count in status_rows}
        total_orders = sum(orders_by_status.values())

        total_revenue = (await self.db.execute(
            select(func.coalesce(func.sum(line_total), 0))
            .select_from(OrderItem)
            .join(Order, Order.id == OrderItem.order_id)
            .where(*order_filters)
        )).scalar()
        total_revenue = Decimal(str(total_revenue))

        # Revenue by month
        months = {key: {"revenue": Decimal("0"), "orders": set()} for key in last_months(now)}
        month_rows = await self.db.execute(
            select(Order.id, Order.created_at, line_total)
            .select_from(Order)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .where(*order_filters)
        )
        for order_id, created_at, amount in month_rows:
            key = created_at.strftime("%Y-%m")
            if key in months:
                months[key]["revenue"] += Decimal(str(amount))
                months[key]["orders"].add(order_id)

        # Top products by quantity
        top_rows = await self.db.execute(
            select(
                Product.id,
                Product.name,
                func.sum(OrderItem.quantity).label("quantity"),
                func.sum(line_total).label("revenue"),
            )
            .select_from(Product)
            .join(OrderItem, OrderItem.product_id == Product.id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(*order_filters)
            .group_by(Product.id, Product.name)
            .order_by(func.sum(OrderItem.quantity).desc(), Product.name)
            .limit(TOP_PRODUCTS_LIMIT)
        )

        # Customers (not limited by the time range)
        type_rows = await self.db.execute(
            select(Customer.customer_type, func.count(Customer.id))
            .group_by(Customer.customer_type)
        )
        customer_types = {customer_type: count for customer_type, count in type_rows}

        average = (total_revenue / total_orders).quantize(Decimal("0.01")) if total_orders else Decimal("0")

        return {
            "time_range": time_range,
            "total_orders": total_orders,
            "total_revenue": total_revenue,
            "total_customers": sum(customer_types.values()),
            "average_order_value": average,
            "orders_by_status": orders_by_status,
            "revenue_by_month": [
                {"month": key, "revenue": data["revenue"], "orders": len(data["orders"])}
                for key, data in months.items()
            ],
            "top_products": [
                {
                    "product_id": row.id,
                    "name": row.name,
                    "quantity": int(row.quantity),
                    "revenue": Decimal(str(row.revenue)),
                }
                for row in top_rows
            ],
            "customer_types": customer_types,
        }
