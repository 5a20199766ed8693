from decimal import Decimal

import pytest

from eshop.models.order import Order
from eshop.models.order_sequence import OrderSequence
from eshop.services.order_number_service import OrderNumberService


@pytest.fixture
def add_order(db, make_customer):
    async def _add(order_number: str) -> Order:
        customer = await make_customer()
        order = Order(
            order_number=order_number,
            customer_id=customer.id,
            delivery_method="personal",
            total_amount=Decimal("1.00"),
        )
        db.add(order)
        await db.commit()
        return order
    return _add


class TestOrderSequenceModel:
    def test_format_and_increment(self):
        sequence = OrderSequence(year=2025, current_number=7, padding_length=3)
        assert sequence.preview_next_number() == "2025008"
        assert sequence.get_next_number() == "2025008"
        assert sequence.current_number == 8

    def test_grows_past_padding(self):
        sequence = OrderSequence(year=2025, current_number=999, padding_length=3)
        assert sequence.get_next_number() == "20251000"


class TestOrderNumberService:
    async def test_first_number_of_empty_year(self, db):
        service = OrderNumberService(db)
        assert await service.get_next_number(2025) == "2025001"
        assert await service.get_next_number(2025) == "2025002"

    async def test_continues_from_existing_orders(self, db, add_order):
        await add_order("2025005")
        await add_order("2025007")
        await add_order("2024999")

        service = OrderNumberService(db)
        assert await service.preview_next_number(2025) == "2025008"
        assert await service.get_next_number(2025) == "2025008"
        assert await service.get_current_number(2025) == 8

    async def test_longer_numbers_sort_first(self, db, add_order):
        await add_order("2025999")
        await add_order("20251000")

        assert await OrderNumberService(db).get_next_number(2025) == "20251001"

    async def test_non_numeric_suffix_ignored(self, db, add_order):
        await add_order("2025ABC")
        await add_order("2025003")

        assert await OrderNumberService(db).get_next_number(2025) == "2025004"

    async def test_sync_never_moves_backwards(self, db, add_order):
        service = OrderNumberService(db)
        for _ in range(5):
            await service.get_next_number(2025)
        await db.commit()

        await add_order("2025002")
        sequence = await service.sync_sequence_from_orders(2025)
        assert sequence.current_number == 5

        await add_order("2025009")
        sequence = await service.sync_sequence_from_orders(2025)
        assert sequence.current_number == 9
