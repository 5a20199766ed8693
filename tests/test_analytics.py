from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from eshop.core.exceptions import InputValidationError
from eshop.models.order import OrderStatus
from eshop.services.analytics_service import AnalyticsService, last_months
from eshop.services.order_service import OrderService


class TestLastMonths:
    def test_spans_year_boundary(self):
        months = last_months(datetime(2025, 2, 15), count=4)
        assert months == ["2024-11", "2024-12", "2025-01", "2025-02"]

    def test_default_is_twelve_months(self):
        assert len(last_months(datetime(2025, 6, 1))) == 12


class TestDashboard:
    async def test_invalid_range(self, db):
        with pytest.raises(InputValidationError):
            await AnalyticsService(db).get_dashboard("2w")

    async def test_empty_shop(self, db):
        dashboard = await AnalyticsService(db).get_dashboard("all")
        assert dashboard["total_orders"] == 0
        assert dashboard["total_revenue"] == Decimal("0")
        assert dashboard["average_order_value"] == Decimal("0")
        assert dashboard["top_products"] == []

    async def test_revenue_excludes_delivery(self, db, make_product, make_customer, place_order):
        deck = await make_product(name="Deck", price=Decimal("10.00"), stock_bratislava=50)
        pin = await make_product(name="Pin", price=Decimal("2.00"), stock_bratislava=50)
        customer = await make_customer()
        first = await place_order(customer, [(deck, 2), (pin, 5)], delivery_price=Decimal("3.50"))
        await place_order(customer, [(deck, 1)])
        await OrderService(db).update_order_status(first.id, OrderStatus.WAITING_PAYMENT)

        dashboard = await AnalyticsService(db).get_dashboard("30d")

        assert dashboard["total_orders"] == 2
        assert dashboard["total_revenue"] == Decimal("40.00")
        assert dashboard["average_order_value"] == Decimal("20.00")
        assert dashboard["orders_by_status"] == {"waiting_payment": 1, "new": 1}
        assert dashboard["total_customers"] == 1
        assert dashboard["customer_types"] == {"regular": 1}
        assert [p["name"] for p in dashboard["top_products"]] == ["Pin", "Deck"]
        assert dashboard["top_products"][1]["quantity"] == 3

        this_month = datetime.now(timezone.utc).strftime("%Y-%m")
        assert dashboard["revenue_by_month"][-1] == {
            "month": this_month, "revenue": Decimal("40.00"), "orders": 2,
        }

    async def test_time_range_filters_orders(self, db, make_product, make_customer, place_order):
        product = await make_product(stock_bratislava=10)
        customer = await make_customer()
        old = await place_order(customer, [(product, 1)])
        await place_order(customer, [(product, 1)])

        old.created_at = datetime.now(timezone.utc) - timedelta(days=45)
        await db.commit()

        service = AnalyticsService(db)
        assert (await service.get_dashboard("30d"))["total_orders"] == 1
        assert (await service.get_dashboard("90d"))["total_orders"] == 2
        assert (await service.get_dashboard("30d"))["total_customers"] == 1
