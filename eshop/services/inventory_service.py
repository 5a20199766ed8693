"""
Inventory Service for multi-warehouse stock.

Every product keeps a physical stock counter per warehouse (bratislava,
ruzomberok, bezo). Stock is not touched when an order is placed; the
ordered quantity stays *reserved* while its order item has no
``reserved_from`` warehouse and the order is not cancelled:

    total     = stock_bratislava + stock_ruzomberok + stock_bezo
    reserved  = SUM(order_items.quantity) WHERE reserved_from IS NULL
                AND orders.status != 'cancelled'
    available = max(0, total - reserved)

When an order ships, OrderService picks a warehouse per item and calls
``decrement_warehouse_stock``; deleting a shipped order calls
``increment_warehouse_stock``. Both are single conditional UPDATE
statements, so concurrent fulfillments cannot lose an update.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.core.exceptions import NotFoundError, StoreOperationError
from eshop.models.order import Order, OrderItem, OrderStatus
from eshop.models.product import Product, Warehouse

logger = logging.getLogger(__name__)

# Assumed capacity of one warehouse when returned stock has no known origin
WAREHOUSE_CAPACITY = 1000

# Order in which warehouses are filled or drained without an explicit choice
WAREHOUSE_PRIORITY = (Warehouse.BRATISLAVA, Warehouse.RUZOMBEROK, Warehouse.BEZO)


class InventoryService:
    """Service for stock availability and warehouse counter updates."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== AVAILABILITY ====================

    def _reserved_query(self):
        return (
            select(
                OrderItem.product_id,
                func.coalesce(func.sum(OrderItem.quantity), 0).label("reserved_quantity"),
            )
            .select_from(OrderItem)
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                OrderItem.reserved_from.is_(None),
                Order.status != OrderStatus.CANCELLED.value,
            )
            .group_by(OrderItem.product_id)
        )

    async def get_total_stock(self, product_id: uuid.UUID) -> int:
        """Physical stock of a product across all warehouses."""
        try:
            result = await self.db.execute(
                select(
                    Product.stock_bratislava + Product.stock_ruzomberok + Product.stock_bezo
                ).where(Product.id == product_id)
            )
            total = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading stock: {e}") from e

        if total is None:
            raise NotFoundError(f"Product {product_id} not found")
        return int(total)

    async def get_reserved_quantity(self, product_id: uuid.UUID) -> int:
        """Quantity held by unfulfilled, non-cancelled orders."""
        reserved = await self.get_reserved_quantities([product_id])
        return reserved.get(product_id, 0)

    async def get_reserved_quantities(
        self,
        product_ids: Optional[Iterable[uuid.UUID]] = None
    ) -> Dict[uuid.UUID, int]:
        """
        Reserved quantity per product in one query.

        Products without reservations are absent from the result. With no
        ``product_ids`` every reserved product is returned.
        """
        stmt = self._reserved_query()
        if product_ids is not None:
            ids = list(product_ids)
            if not ids:
                return {}
            stmt = stmt.where(OrderItem.product_id.in_(ids))

        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading reserved quantities: {e}") from e

        return {row.product_id: int(row.reserved_quantity) for row in result}

    async def get_available_quantity(self, product_id: uuid.UUID) -> int:
        """Total stock minus reserved quantity, never negative."""
        total = await self.get_total_stock(product_id)
        reserved = await self.get_reserved_quantity(product_id)
        return max(0, total - reserved)

    async def get_available_quantities(self, products: Iterable[Product]) -> Dict[uuid.UUID, int]:
        """Available quantity for already loaded products (storefront listings)."""
        products = list(products)
        reserved = await self.get_reserved_quantities([p.id for p in products])
        return {
            p.id: max(0, p.total_stock - reserved.get(p.id, 0))
            for p in products
        }

    async def check_stock_availability(self, product_id: uuid.UUID, quantity: int) -> dict:
        """Check whether ``quantity`` pieces of a product can be ordered."""
        total = await self.get_total_stock(product_id)
        reserved = await self.get_reserved_quantity(product_id)
        available = max(0, total - reserved)

        return {
            "product_id": product_id,
            "available": available >= quantity,
            "requested": quantity,
            "available_quantity": available,
            "total_stock": total,
            "reserved_quantity": reserved,
        }

    async def get_reserved_overview(self) -> List[dict]:
        """Every product with a reservation, highest reservation first."""
        reserved = self._reserved_query().subquery()
        try:
            result = await self.db.execute(
                select(Product, reserved.c.reserved_quantity)
                .select_from(Product)
                .join(reserved, reserved.c.product_id == Product.id)
                .order_by(reserved.c.reserved_quantity.desc(), Product.name)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading reserved products: {e}") from e

        overview = []
        for product, reserved_quantity in rows:
            reserved_quantity = int(reserved_quantity)
            overview.append({
                "product_id": product.id,
                "name": product.name,
                "reserved_quantity": reserved_quantity,
                "stock_bratislava": product.stock_bratislava,
                "stock_ruzomberok": product.stock_ruzomberok,
                "stock_bezo": product.stock_bezo,
                "total_stock": product.total_stock,
                "available": max(0, product.total_stock - reserved_quantity),
            })
        return overview

    # ==================== WAREHOUSE COUNTERS ====================

    async def decrement_warehouse_stock(
        self,
        product_id: uuid.UUID,
        warehouse: Warehouse,
        quantity: int
    ) -> None:
        """Take ``quantity`` out of one warehouse, floored at zero."""
        column = Product.stock_column(warehouse)
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values({
                column: case((column >= quantity, column - quantity), else_=0),
                Product.updated_at: datetime.now(timezone.utc),
            })
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error reducing warehouse stock: {e}") from e

        if result.rowcount == 0:
            raise NotFoundError(f"Product with ID {product_id} not found")

    async def increment_warehouse_stock(
        self,
        product_id: uuid.UUID,
        warehouse: Warehouse,
        quantity: int
    ) -> None:
        """Return ``quantity`` to one warehouse."""
        column = Product.stock_column(warehouse)
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values({
                column: column + quantity,
                Product.updated_at: datetime.now(timezone.utc),
            })
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error restoring warehouse stock: {e}") from e

        if result.rowcount == 0:
            raise NotFoundError(f"Product with ID {product_id} not found")

    # ==================== LEGACY DISTRIBUTION ====================

    async def _lock_product(self, product_id: uuid.UUID) -> Product:
        try:
            result = await self.db.execute(
                select(Product)
                .where(Product.id == product_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            product = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading stock: {e}") from e

        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    async def restore_product_stock(
        self,
        product_id: uuid.UUID,
        quantity: int,
        warehouse: Optional[Warehouse] = None
    ) -> None:
        """
        Return stock to a product.

        With a known warehouse the quantity goes back there. Without one
        (items shipped before warehouses were recorded) it fills
        bratislava, then ruzomberok, then bezo, none above
        WAREHOUSE_CAPACITY.
        """
        if warehouse:
            await self.increment_warehouse_stock(product_id, warehouse, quantity)
            return

        product = await self._lock_product(product_id)
        remaining = quantity
        for wh in WAREHOUSE_PRIORITY:
            space = WAREHOUSE_CAPACITY - product.get_stock(wh)
            if space > 0 and remaining > 0:
                added = min(space, remaining)
                setattr(product, f"stock_{wh.value}", product.get_stock(wh) + added)
                remaining -= added

        if remaining > 0:
            logger.warning(
                f"Could not place {remaining} pcs of product {product_id}: all warehouses at capacity"
            )

        product.updated_at = datetime.now(timezone.utc)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error restoring stock: {e}") from e

    async def reduce_product_stock(self, product_id: uuid.UUID, quantity: int) -> None:
        """Take stock from bratislava, then ruzomberok, then bezo."""
        product = await self._lock_product(product_id)
        remaining = quantity
        for wh in WAREHOUSE_PRIORITY:
            current = product.get_stock(wh)
            if current > 0 and remaining > 0:
                taken = min(current, remaining)
                setattr(product, f"stock_{wh.value}", current - taken)
                remaining -= taken

        product.updated_at = datetime.now(timezone.utc)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error updating stock: {e}") from e
