import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select, func, update
from sqlalchemy.exc import OperationalError

from eshop.core.exceptions import (
    InputValidationError, InsufficientStockError, NotFoundError, StoreOperationError,
)
from eshop.models.order import DeliveryMethod, Order, OrderItem, OrderStatus
from eshop.models.product import Warehouse
from eshop.services.order_service import OrderLine, OrderService


async def count_rows(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


class TestCreateOrder:
    async def test_creates_order_with_items(self, db, make_product, make_customer):
        first = await make_product(price=Decimal("10.00"))
        second = await make_product(price=Decimal("5.00"))
        customer = await make_customer()

        order = await OrderService(db).create_order(
            customer_id=customer.id,
            lines=[OrderLine(first.id, 2), OrderLine(second.id, 1)],
            delivery_method=DeliveryMethod.POST,
            delivery_address="Hlavná 1, Bratislava",
            delivery_price=Decimal("3.50"),
            notes="Please ring twice",
        )

        assert order.status == OrderStatus.NEW.value
        assert order.total_amount == Decimal("25.00")
        assert order.delivery_price == Decimal("3.50")
        assert order.order_number.endswith("001")
        assert len(order.items) == 2
        assert all(item.reserved_from is None for item in order.items)
        assert order.customer.id == customer.id

    async def test_unit_price_comes_from_product(self, db, make_product, make_customer, place_order):
        product = await make_product(price=Decimal("7.90"))
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])

        assert order.items[0].price == Decimal("7.90")
        assert order.total_amount == Decimal("23.70")

    async def test_short_line_creates_nothing(self, db, make_product, make_customer, place_order):
        plenty = await make_product(stock_bratislava=10)
        scarce = await make_product(name="Scarce", stock_bratislava=1)
        customer = await make_customer()

        with pytest.raises(InsufficientStockError) as exc_info:
            await place_order(customer, [(plenty, 2), (scarce, 2)])

        assert exc_info.value.available == 1
        assert "Scarce" in exc_info.value.message
        assert await count_rows(db, Order) == 0
        assert await count_rows(db, OrderItem) == 0

    async def test_reservations_limit_later_orders(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=5)
        customer = await make_customer()
        await place_order(customer, [(product, 4)])

        with pytest.raises(InsufficientStockError):
            await place_order(customer, [(product, 2)])

    async def test_rejects_invalid_input_before_store_calls(self, db, make_product):
        product = await make_product()
        service = OrderService(db)

        with pytest.raises(InputValidationError):
            await service.create_order(uuid.uuid4(), [], DeliveryMethod.PERSONAL, None)
        with pytest.raises(InputValidationError):
            await service.create_order(uuid.uuid4(), [OrderLine(product.id, 0)], DeliveryMethod.PERSONAL, None)
        with pytest.raises(InputValidationError):
            await service.create_order(
                uuid.uuid4(), [OrderLine(product.id, 1)], DeliveryMethod.PERSONAL, None, notes="x" * 1001
            )

    async def test_unknown_customer_or_product(self, db, make_product, make_customer):
        product = await make_product()
        customer = await make_customer()
        product_id, customer_id = product.id, customer.id
        service = OrderService(db)

        with pytest.raises(NotFoundError):
            await service.create_order(uuid.uuid4(), [OrderLine(product_id, 1)], DeliveryMethod.PERSONAL, None)
        with pytest.raises(NotFoundError):
            await service.create_order(customer_id, [OrderLine(uuid.uuid4(), 1)], DeliveryMethod.PERSONAL, None)
        assert await count_rows(db, Order) == 0

    async def test_notes_are_sanitized(self, db, make_product, make_customer, place_order):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)], notes="<script>hi</script>")
        assert order.notes == "scripthi/script"


class TestQueries:
    async def test_list_filters_and_search(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=100)
        alice = await make_customer(name="Alice Doe")
        bob = await make_customer(name="Bob Doe")
        first = await place_order(alice, [(product, 1)])
        await place_order(bob, [(product, 1)], delivery_address="Košická 5, Košice")
        await OrderService(db).update_order_status(first.id, OrderStatus.WAITING_PAYMENT)

        service = OrderService(db)
        orders, total = await service.get_orders()
        assert total == 2

        orders, total = await service.get_orders(status=OrderStatus.WAITING_PAYMENT)
        assert [o.id for o in orders] == [first.id]

        orders, total = await service.get_orders(customer_id=bob.id)
        assert total == 1

        orders, total = await service.get_orders(search="Košice")
        assert total == 1

    async def test_get_by_number(self, db, make_product, make_customer, place_order):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)])

        found = await OrderService(db).get_order_by_number(order.order_number)
        assert found.id == order.id
        assert await OrderService(db).get_order_by_number("1999001") is None


class TestStatusAndFulfillment:
    async def test_shipping_decrements_selected_warehouse(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=10, stock_ruzomberok=5)
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])

        updated = await OrderService(db).update_order_status(
            order.id, OrderStatus.SHIPPED, {str(product.id): "ruzomberok"}
        )

        assert updated.status == OrderStatus.SHIPPED.value
        assert updated.items[0].reserved_from == Warehouse.RUZOMBEROK.value
        await db.refresh(product)
        assert product.stock_ruzomberok == 2
        assert product.stock_bratislava == 10

    async def test_fulfillment_floors_at_zero(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=1, stock_bezo=5)
        customer = await make_customer()
        order = await place_order(customer, [(product, 4)])

        await OrderService(db).update_order_status(order.id, OrderStatus.SHIPPED, {product.id: Warehouse.BRATISLAVA})

        await db.refresh(product)
        assert product.stock_bratislava == 0
        assert product.stock_bezo == 5

    async def test_fulfillment_is_idempotent(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=10)
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])
        service = OrderService(db)

        await service.update_order_status(order.id, OrderStatus.SHIPPED, {product.id: Warehouse.BRATISLAVA})
        delivered = await service.update_order_status(order.id, OrderStatus.DELIVERED)

        assert delivered.status == OrderStatus.DELIVERED.value
        await db.refresh(product)
        assert product.stock_bratislava == 7

    async def test_missing_selection_changes_nothing(self, db, make_product, make_customer, place_order):
        first = await make_product(stock_bratislava=10)
        second = await make_product(stock_bratislava=10)
        customer = await make_customer()
        order = await place_order(customer, [(first, 1), (second, 1)])
        order_id, first_id = order.id, first.id

        with pytest.raises(InputValidationError):
            await OrderService(db).update_order_status(
                order_id, OrderStatus.SHIPPED, {first_id: Warehouse.BRATISLAVA}
            )

        reloaded = await OrderService(db).get_order_by_id(order_id)
        assert reloaded.status == OrderStatus.NEW.value
        assert all(item.reserved_from is None for item in reloaded.items)
        await db.refresh(first)
        assert first.stock_bratislava == 10

    async def test_unknown_warehouse_rejected(self, db, make_product, make_customer, place_order):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)])

        with pytest.raises(InputValidationError):
            await OrderService(db).update_order_status(order.id, OrderStatus.SHIPPED, {product.id: "vienna"})

    async def test_invalid_status(self, db, make_product, make_customer, place_order):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)])

        with pytest.raises(InputValidationError):
            await OrderService(db).update_order_status(order.id, "lost")

    async def test_non_fulfillment_status_keeps_stock(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=10)
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])

        await OrderService(db).update_order_status(order.id, OrderStatus.PAID_WAITING_SHIPMENT)

        await db.refresh(product)
        assert product.stock_bratislava == 10

    async def test_update_order_fields(self, db, make_product, make_customer, place_order):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)])

        updated = await OrderService(db).update_order(
            order.id, {"delivery_method": DeliveryMethod.PACKETA, "delivery_price": Decimal("4.50")}
        )
        assert updated.delivery_method == "packeta"
        assert updated.delivery_price == Decimal("4.50")

    async def test_update_order_rejects_empty_required_fields(self, db, make_product, make_customer, place_order):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)])
        order_id = order.id
        service = OrderService(db)

        with pytest.raises(InputValidationError):
            await service.update_order(order_id, {"delivery_method": None})
        with pytest.raises(InputValidationError):
            await service.update_order(order_id, {"total_amount": None})

        reloaded = await service.get_order_by_id(order_id)
        assert reloaded.delivery_method == DeliveryMethod.PERSONAL.value

    async def test_database_failure_raises_store_error(self, db, make_product, make_customer, place_order, monkeypatch):
        product = await make_product()
        customer = await make_customer()
        order = await place_order(customer, [(product, 1)])
        order_id = order.id

        async def failing_flush(*args, **kwargs):
            raise OperationalError("UPDATE orders", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "flush", failing_flush)
        with pytest.raises(StoreOperationError):
            await OrderService(db).update_order_status(order_id, OrderStatus.PAID_WAITING_SHIPMENT)
        monkeypatch.undo()

        reloaded = await OrderService(db).get_order_by_id(order_id)
        assert reloaded.status == OrderStatus.NEW.value

    async def test_item_shipped_concurrently_is_not_decremented_twice(
        self, db, make_product, make_customer, place_order, monkeypatch
    ):
        product = await make_product(stock_bratislava=10, stock_bezo=10)
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])
        order_id, product_id = order.id, product.id
        service = OrderService(db)
        load_items = service._get_items

        async def items_then_shipped_elsewhere(oid):
            items = await load_items(oid)
            # another request fulfills the same items after this one read them
            await db.execute(
                update(OrderItem)
                .where(OrderItem.order_id == oid)
                .values(reserved_from=Warehouse.BEZO.value)
                .execution_options(synchronize_session=False)
            )
            return items

        monkeypatch.setattr(service, "_get_items", items_then_shipped_elsewhere)
        await service.update_order_status(order_id, OrderStatus.SHIPPED, {product_id: Warehouse.BRATISLAVA})

        await db.refresh(product)
        assert product.stock_bratislava == 10
        reloaded = await OrderService(db).get_order_by_id(order_id, include_items=False)
        assert reloaded.status == OrderStatus.SHIPPED.value
        reserved = await db.execute(select(OrderItem.reserved_from).where(OrderItem.order_id == order_id))
        assert reserved.scalar_one() == Warehouse.BEZO.value


class TestDeleteOrder:
    async def test_delete_restores_shipped_stock(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=10, stock_bezo=5)
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])
        service = OrderService(db)
        await service.update_order_status(order.id, OrderStatus.SHIPPED, {product.id: Warehouse.BEZO})

        await service.delete_order(order.id)

        await db.refresh(product)
        assert product.stock_bezo == 5
        assert product.stock_bratislava == 10
        assert await count_rows(db, Order) == 0
        assert await count_rows(db, OrderItem) == 0

    async def test_delete_unshipped_leaves_stock(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=10)
        customer = await make_customer()
        order = await place_order(customer, [(product, 3)])

        await OrderService(db).delete_order(order.id)

        await db.refresh(product)
        assert product.stock_bratislava == 10
        assert await count_rows(db, Order) == 0

    async def test_delete_missing_order(self, db):
        with pytest.raises(NotFoundError):
            await OrderService(db).delete_order(uuid.uuid4())
