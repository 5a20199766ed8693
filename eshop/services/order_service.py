"""
Order Service: order creation, fulfillment and deletion.

Each workflow runs in one transaction on the request session: every
write is flushed, and the whole sequence is committed at the end or
rolled back on the first error. A failing order creation therefore never
leaves an order without items, and a failing fulfillment never leaves
half of the items decremented.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.core.enum_utils import get_enum_value, to_enum
from eshop.core.exceptions import (
    ShopError, InputValidationError, InsufficientStockError, NotFoundError, StoreOperationError,
)
from eshop.core.validation import sanitize_string, validate_order_notes, validate_quantity, MAX_NOTES_LENGTH
from eshop.models.customer import Customer
from eshop.models.order import Order, OrderItem, OrderStatus, DeliveryMethod, FULFILLMENT_STATUSES
from eshop.models.product import Product, Warehouse
from eshop.services.inventory_service import InventoryService
from eshop.services.order_number_service import OrderNumberService

logger = logging.getLogger(__name__)


@dataclass
class OrderLine:
    """One requested product and quantity. Unit price is taken from the product row."""
    product_id: uuid.UUID
    quantity: int


class OrderService:
    """Service for managing orders and their stock side effects."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)
        self.numbers = OrderNumberService(db)

    # ==================== QUERIES ====================

    async def get_orders(
        self,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Order], int]:
        """Get paginated orders, newest first."""
        stmt = select(Order).order_by(Order.created_at.desc())
        count_stmt = select(func.count(Order.id))

        filters = []
        if status:
            filters.append(Order.status == get_enum_value(status))
        if customer_id:
            filters.append(Order.customer_id == customer_id)
        if search:
            filters.append(or_(
                Order.order_number.ilike(f"%{search}%"),
                Order.delivery_address.ilike(f"%{search}%"),
            ))
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)

        try:
            total = (await self.db.execute(count_stmt)).scalar() or 0
            result = await self.db.execute(stmt.offset(skip).limit(limit))
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading orders: {e}") from e

        return list(result.scalars().all()), total

    async def get_order_by_id(self, order_id: uuid.UUID, include_items: bool = True) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        if include_items:
            stmt = stmt.options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.customer),
            )
        # Stock counters may have changed through bulk UPDATEs
        stmt = stmt.execution_options(populate_existing=True)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading order: {e}") from e
        return result.scalar_one_or_none()

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        try:
            result = await self.db.execute(
                select(Order)
                .options(
                    selectinload(Order.items).selectinload(OrderItem.product),
                    selectinload(Order.customer),
                )
                .where(Order.order_number == order_number)
            )
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading order: {e}") from e
        return result.scalar_one_or_none()

    async def _require_order(self, order_id: uuid.UUID) -> Order:
        order = await self.get_order_by_id(order_id, include_items=False)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def _get_items(self, order_id: uuid.UUID) -> List[OrderItem]:
        try:
            result = await self.db.execute(
                select(OrderItem).where(OrderItem.order_id == order_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading order items: {e}") from e
        return list(result.scalars().all())

    # ==================== CREATION ====================

    async def create_order(
        self,
        customer_id: uuid.UUID,
        lines: Sequence[OrderLine],
        delivery_method: DeliveryMethod,
        delivery_address: Optional[str],
        delivery_price: Optional[Decimal] = None,
        notes: Optional[str] = None
    ) -> Order:
        """
        Create an order in status ``new``.

        Steps: check notes, issue the order number, total the lines at
        current product prices, check availability line by line (first
        short line aborts), insert the order, insert items with no
        warehouse. Stock counters are not touched.

        Raises:
            InputValidationError: Notes or a quantity are invalid
            NotFoundError: Customer or a product does not exist
            InsufficientStockError: A line asks for more than is available
            StoreOperationError: A database call failed
        """
        if notes and not validate_order_notes(notes):
            raise InputValidationError("Invalid order notes", field="notes")
        sanitized_notes = sanitize_string(notes, MAX_NOTES_LENGTH) if notes else None

        if not lines:
            raise InputValidationError("Order has no items", field="items")
        for line in lines:
            if not validate_quantity(line.quantity):
                raise InputValidationError("Invalid item quantity", field="quantity")

        try:
            customer = await self.db.get(Customer, customer_id)
            if not customer:
                raise NotFoundError(f"Customer {customer_id} not found")

            order_number = await self.numbers.get_next_number()

            products = await self._load_products([line.product_id for line in lines])
            total_amount = sum(
                (products[line.product_id].price * line.quantity for line in lines),
                Decimal("0"),
            )

            # All availability checks happen before the first insert
            for line in lines:
                product = products[line.product_id]
                available = await self.inventory.get_available_quantity(product.id)
                if available < line.quantity:
                    raise InsufficientStockError(product.name, available, line.quantity)

            order = Order(
                order_number=order_number,
                customer_id=customer.id,
                status=OrderStatus.NEW.value,
                delivery_method=get_enum_value(delivery_method),
                delivery_address=delivery_address,
                delivery_price=delivery_price,
                total_amount=total_amount,
                notes=sanitized_notes,
            )
            self.db.add(order)
            await self.db.flush()

            for line in lines:
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=products[line.product_id].price,
                    reserved_from=None,
                ))
            await self.db.flush()

            await self.db.commit()
        except ShopError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating order: {e}")
            raise StoreOperationError(f"Error creating order: {e}") from e

        logger.info(f"Order {order_number} created for customer {customer_id}, total {total_amount}")
        return await self.get_order_by_id(order.id)

    async def _load_products(self, product_ids: List[uuid.UUID]) -> Dict[uuid.UUID, Product]:
        result = await self.db.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {p.id: p for p in result.scalars().all()}
        for product_id in product_ids:
            if product_id not in products:
                raise NotFoundError(f"Product {product_id} not found")
        return products

    # ==================== UPDATES ====================

    async def update_order(self, order_id: uuid.UUID, data: dict) -> Order:
        """Update editable order fields (delivery, notes, total)."""
        for field in ("delivery_method", "total_amount"):
            if field in data and data[field] is None:
                raise InputValidationError(f"{field} cannot be empty", field=field)

        notes = data.get("notes")
        if notes and not validate_order_notes(notes):
            raise InputValidationError("Invalid order notes", field="notes")

        order = await self._require_order(order_id)
        for field, value in data.items():
            if field == "notes" and value:
                value = sanitize_string(value, MAX_NOTES_LENGTH)
            setattr(order, field, get_enum_value(value) if field == "delivery_method" else value)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error updating order: {e}") from e

        return await self.get_order_by_id(order_id)

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        warehouse_selections: Optional[Mapping] = None
    ) -> Order:
        """
        Change the order status.

        Moving into shipped or delivered fulfills every item that has no
        warehouse yet: the selected warehouse is written to
        ``reserved_from`` and that warehouse's stock is decremented by the
        item quantity (floored at zero). Items that already have a
        warehouse are skipped, so repeating the call changes no stock.

        Raises:
            InputValidationError: An unfulfilled item has no warehouse selection
            NotFoundError: Order or product does not exist
            StoreOperationError: A database call failed
        """
        status = to_enum(new_status, OrderStatus)
        if status is None:
            raise InputValidationError(f"Invalid order status: {new_status}", field="status")

        order = await self._require_order(order_id)
        order_number = order.order_number

        try:
            if status in FULFILLMENT_STATUSES:
                await self._fulfill_items(order, warehouse_selections or {})

            order.status = status.value
            await self.db.flush()
            await self.db.commit()
        except ShopError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating order {order_number}: {e}")
            raise StoreOperationError(f"Error updating order status: {e}") from e

        logger.info(f"Order {order_number} moved to {status.value}")
        return await self.get_order_by_id(order_id)

    async def _fulfill_items(self, order: Order, warehouse_selections: Mapping) -> None:
        items = await self._get_items(order.id)
        pending = [item for item in items if item.reserved_from is None]

        if not pending:
            logger.info(f"All items of order {order.order_number} already shipped, stock unchanged")
            return

        selections = self._parse_selections(warehouse_selections)
        missing = [item for item in pending if item.product_id not in selections]
        if missing:
            raise InputValidationError(
                f"Warehouse selection missing for product {missing[0].product_id}",
                field="warehouse_selections",
            )

        for item in pending:
            warehouse = selections[item.product_id]
            # Claim the item; a concurrent fulfillment may have taken it first
            result = await self.db.execute(
                update(OrderItem)
                .where(OrderItem.id == item.id, OrderItem.reserved_from.is_(None))
                .values(reserved_from=warehouse.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.info(f"Order {order.order_number}: item {item.id} already fulfilled, skipped")
                continue
            set_committed_value(item, "reserved_from", warehouse.value)

            await self.inventory.decrement_warehouse_stock(item.product_id, warehouse, item.quantity)
            logger.info(
                f"Order {order.order_number}: {item.quantity} pcs of {item.product_id} "
                f"taken from {warehouse.value}"
            )

    @staticmethod
    def _parse_selections(warehouse_selections: Mapping) -> Dict[uuid.UUID, Warehouse]:
        selections = {}
        for product_id, warehouse in warehouse_selections.items():
            wh = to_enum(warehouse, Warehouse)
            if wh is None:
                raise InputValidationError(f"Unknown warehouse: {warehouse}", field="warehouse_selections")
            try:
                key = product_id if isinstance(product_id, uuid.UUID) else uuid.UUID(str(product_id))
            except ValueError:
                raise InputValidationError(f"Invalid product id: {product_id}", field="warehouse_selections")
            selections[key] = wh
        return selections

    # ==================== DELETION ====================

    async def delete_order(self, order_id: uuid.UUID) -> None:
        """
        Delete an order and return shipped stock.

        Items with a ``reserved_from`` warehouse get their quantity added
        back to that warehouse; unshipped items never left stock and
        restore nothing. Then the items and the order are deleted.
        """
        order = await self._require_order(order_id)
        order_number = order.order_number

        try:
            items = await self._get_items(order_id)
            for item in items:
                if item.reserved_from:
                    await self.inventory.restore_product_stock(
                        item.product_id, item.quantity, to_enum(item.reserved_from, Warehouse)
                    )

            await self.db.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
            await self.db.execute(delete(Order).where(Order.id == order_id))
            await self.db.commit()
        except ShopError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error deleting order {order_number}: {e}")
            raise StoreOperationError(f"Error deleting order: {e}") from e

        logger.info(f"Order {order_number} deleted")
