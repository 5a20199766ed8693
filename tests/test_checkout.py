import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from eshop.config import settings
from eshop.core.exceptions import (
    BusinessRuleError, InputValidationError, InsufficientStockError, RateLimitExceededError,
)
from eshop.models.customer import Customer
from eshop.models.order import DeliveryMethod, Order
from eshop.services.checkout_service import (
    CartItem, CheckoutService, OrderSecurity, SUBMISSION_ERROR_PREFIX,
)
from eshop.services.order_service import OrderLine
from eshop.services.rate_limiter import RateLimiter, InMemoryCounterStore


def customer_form(**overrides) -> dict:
    data = {
        "name": "Jana Horváthová",
        "email": "jana@example.sk",
        "phone": "+421 905 111 222",
        "address": "Hlavná 12",
        "city": "Žilina",
        "zip_code": "010 01",
        "country": "Slovensko",
    }
    data.update(overrides)
    return data


@pytest.fixture
def order_limiter():
    return RateLimiter("order", 100, 60_000, InMemoryCounterStore())


@pytest.fixture
def checkout(db, order_limiter):
    return CheckoutService(db, order_limiter=order_limiter)


class TestSubmitOrder:
    async def test_places_order_at_product_prices(self, db, checkout, make_product):
        first = await make_product(price=Decimal("10.00"), stock_bratislava=5)
        second = await make_product(price=Decimal("5.00"), stock_bratislava=5)

        order = await checkout.submit_order(
            customer_form(),
            [CartItem(first.id, 2, Decimal("10.00")), CartItem(second.id, 1, Decimal("5.00"))],
            DeliveryMethod.PERSONAL,
        )

        assert order.total_amount == Decimal("25.00")
        assert order.delivery_price == Decimal("0")
        assert order.delivery_address == settings.PICKUP_ADDRESS
        assert order.customer.email == "jana@example.sk"
        assert order.customer.customer_type == "regular"

    async def test_shipping_address_and_price(self, db, checkout, make_product):
        product = await make_product(weight_grams=500, stock_bratislava=10)

        order = await checkout.submit_order(
            customer_form(country=None),
            [CartItem(product.id, 3, Decimal("10.00"))],
            DeliveryMethod.POST,
        )

        assert order.delivery_address == "Hlavná 12, Žilina, 010 01, Slovensko"
        # 1.5 kg by Slovenská pošta
        assert order.delivery_price == Decimal("3.50")

    async def test_returning_customer_is_updated(self, db, checkout, make_product, make_customer):
        existing = await make_customer(email="Jana@Example.sk", phone="0900 000 000")
        product = await make_product()

        order = await checkout.submit_order(
            customer_form(phone="+421 905 999 999"),
            [CartItem(product.id, 1, Decimal("10.00"))],
            DeliveryMethod.PERSONAL,
        )

        assert order.customer_id == existing.id
        assert (await db.execute(select(func.count(Customer.id)))).scalar() == 1
        await db.refresh(existing)
        assert existing.phone == "+421 905 999 999"

    async def test_errors_keep_type_and_get_prefix(self, db, checkout, make_product):
        product = await make_product(stock_bratislava=1)

        with pytest.raises(InsufficientStockError) as exc_info:
            await checkout.submit_order(
                customer_form(), [CartItem(product.id, 2, Decimal("10.00"))], DeliveryMethod.PERSONAL
            )

        assert exc_info.value.message.startswith(SUBMISSION_ERROR_PREFIX)
        assert (await db.execute(select(func.count(Order.id)))).scalar() == 0
        assert (await db.execute(select(func.count(Customer.id)))).scalar() == 0

    async def test_rate_limited(self, db, make_product):
        product = await make_product(stock_bratislava=100)
        limiter = RateLimiter("order", 1, 60_000, InMemoryCounterStore())
        service = CheckoutService(db, order_limiter=limiter)
        cart = [CartItem(product.id, 1, Decimal("10.00"))]

        await service.submit_order(customer_form(), cart, DeliveryMethod.PERSONAL, client_key="1.1.1.1")
        with pytest.raises(RateLimitExceededError) as exc_info:
            await service.submit_order(customer_form(), cart, DeliveryMethod.PERSONAL, client_key="1.1.1.1")

        assert exc_info.value.retry_after > 0
        assert "Too many orders" in exc_info.value.message


class TestOrderSecurity:
    @pytest.fixture
    def security(self, db, order_limiter):
        return OrderSecurity(db, order_limiter)

    @pytest.fixture
    def cart(self):
        return [CartItem(uuid.uuid4(), 1, Decimal("10.00"))]

    @pytest.mark.parametrize("field, value, message", [
        ("name", "X", "Invalid customer name"),
        ("email", "not-an-email", "Invalid email"),
        ("phone", "call me", "Invalid phone"),
        ("address", "#", "Invalid address"),
        ("zip_code", "ABC", "Invalid postal code"),
    ])
    async def test_customer_fields(self, security, cart, field, value, message):
        with pytest.raises(InputValidationError, match=message):
            await security.validate_order_request(customer_form(**{field: value}), cart)

    async def test_optional_address_may_be_missing(self, security, cart):
        await security.validate_order_request(customer_form(address=None, city=None, zip_code=None), cart)

    async def test_cart_shape(self, security):
        product_id = uuid.uuid4()

        with pytest.raises(InputValidationError, match="Cart is empty"):
            await security.validate_order_request(customer_form(), [])
        with pytest.raises(InputValidationError, match="Duplicate product"):
            await security.validate_order_request(
                customer_form(),
                [CartItem(product_id, 1, Decimal("1")), CartItem(product_id, 2, Decimal("1"))],
            )
        with pytest.raises(InputValidationError, match="Too many items"):
            await security.validate_order_request(
                customer_form(), [CartItem(uuid.uuid4(), 1, Decimal("1")) for _ in range(51)]
            )

    async def test_line_values(self, security):
        with pytest.raises(InputValidationError, match="Invalid item quantity"):
            await security.validate_order_request(customer_form(), [CartItem(uuid.uuid4(), 0, Decimal("1"))])
        with pytest.raises(InputValidationError, match="Invalid product price"):
            await security.validate_order_request(customer_form(), [CartItem(uuid.uuid4(), 1, Decimal("-1"))])

    async def test_order_totals(self, security):
        with pytest.raises(BusinessRuleError, match="Too many pieces"):
            await security.validate_order_request(
                customer_form(), [CartItem(uuid.uuid4(), 600, Decimal("1")) for _ in range(2)]
            )
        with pytest.raises(BusinessRuleError, match="Order value too high"):
            await security.validate_order_request(
                customer_form(), [CartItem(uuid.uuid4(), 2, Decimal("6000"))]
            )

    async def test_recent_orders_from_same_email(self, db, security, cart, make_customer, make_product, place_order):
        customer = await make_customer(email="jana@example.sk")
        product = await make_product(stock_bratislava=100)
        for _ in range(settings.RECENT_ORDER_LIMIT - 1):
            await place_order(customer, [(product, 1)])

        await security.validate_order_request(customer_form(), cart)

        await place_order(customer, [(product, 1)])
        with pytest.raises(BusinessRuleError, match="Too many orders in a short time"):
            await security.validate_order_request(customer_form(email="JANA@example.sk"), cart)


class TestQuoteCart:
    async def test_empty_cart(self, db):
        quote = await CheckoutService(db).quote_cart([])
        assert quote.lines == []
        assert quote.total == Decimal("0")

    async def test_totals_weight_and_availability(self, db, make_product, make_customer, place_order):
        first = await make_product(price=Decimal("10.00"), weight_grams=400, stock_bratislava=5)
        second = await make_product(price=Decimal("5.00"), weight_grams=1000, stock_bratislava=1)
        customer = await make_customer()
        await place_order(customer, [(second, 1)])

        quote = await CheckoutService(db).quote_cart(
            [OrderLine(first.id, 2), OrderLine(second.id, 1)],
            delivery_method=DeliveryMethod.PACKETA,
            country="SK",
        )

        assert quote.subtotal == Decimal("25.00")
        assert quote.weight_grams == 1800
        assert quote.delivery_price == Decimal("4.50")
        assert quote.total == Decimal("29.50")
        assert quote.lines[0]["in_stock"] is True
        assert quote.lines[1]["available"] == 0
        assert quote.lines[1]["in_stock"] is False

    async def test_no_matching_tier(self, db, make_product):
        product = await make_product(weight_grams=20_000)

        quote = await CheckoutService(db).quote_cart([OrderLine(product.id, 1)], DeliveryMethod.POST)

        assert quote.delivery_price is None
        assert quote.total == product.price
