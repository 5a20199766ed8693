"""
Checkout: storefront order submission and cart quotes.

Submission flow:
    1. OrderSecurity.validate_order_request  (rate limit, form, cart, duplicates)
    2. find customer by email, update details or create as regular
    3. resolve delivery address (pickup point for personal collection)
    4. price delivery by cart weight
    5. OrderService.create_order, then log a security event

Any failure is re-raised with the "Order submission failed: " prefix and
keeps its error type, so the API still maps it to the right status.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
import math
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.config import settings
from eshop.core.exceptions import (
    ShopError, BusinessRuleError, InputValidationError, NotFoundError, RateLimitExceededError,
)
from eshop.core.validation import (
    sanitize_object, validate_address, validate_email, validate_name, validate_phone,
    validate_price, validate_quantity, validate_zip_code, MAX_PRICE, MAX_QUANTITY,
)
from eshop.models.customer import Customer, CustomerType
from eshop.models.order import Order, DeliveryMethod
from eshop.models.product import Product
from eshop.services.customer_service import CustomerService
from eshop.services.delivery_pricing import price_for_method
from eshop.services.inventory_service import InventoryService
from eshop.services.order_service import OrderLine, OrderService
from eshop.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

MAX_CART_LINES = 50
DEFAULT_WEIGHT_GRAMS = 100
SUBMISSION_ERROR_PREFIX = "Order submission failed: "

_CUSTOMER_FIELDS = ("name", "email", "phone", "address", "city", "zip_code", "country")


@dataclass
class CartItem:
    """A cart line as submitted by the storefront."""
    product_id: uuid.UUID
    quantity: int
    price: Decimal


@dataclass
class CartQuote:
    lines: List[dict] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    weight_grams: int = 0
    delivery_price: Optional[Decimal] = None
    total: Decimal = Decimal("0")


def log_security_event(event: str, **details) -> None:
    logger.warning(f"[SECURITY] {event}: {details}")


class OrderSecurity:
    """Guards applied to every storefront order before anything is written."""

    def __init__(self, db: AsyncSession, order_limiter: RateLimiter):
        self.db = db
        self.order_limiter = order_limiter

    async def validate_order_request(
        self,
        customer_data: dict,
        cart_items: Sequence[CartItem],
        client_key: Optional[str] = None
    ) -> None:
        """
        Raise on the first failed check, in this order: rate limit,
        customer fields, cart shape, line values, order totals, recent
        orders from the same email.
        """
        # 1. Rate limiting
        key = client_key or "unknown"
        if not await self.order_limiter.is_allowed(key):
            remaining_ms = await self.order_limiter.get_remaining_time(key)
            retry_after = math.ceil(remaining_ms / 1000)
            raise RateLimitExceededError(
                f"Too many orders. Try again in {retry_after} seconds.",
                retry_after=retry_after,
            )

        # 2. Customer details
        if not validate_name(customer_data.get("name")):
            raise InputValidationError("Invalid customer name", field="name")
        if not validate_email(customer_data.get("email")):
            raise InputValidationError("Invalid email", field="email")
        if not validate_phone(customer_data.get("phone")):
            raise InputValidationError("Invalid phone", field="phone")
        if customer_data.get("address") and not validate_address(customer_data["address"]):
            raise InputValidationError("Invalid address", field="address")
        if customer_data.get("city") and not validate_name(customer_data["city"]):
            raise InputValidationError("Invalid city", field="city")
        if customer_data.get("zip_code") and not validate_zip_code(customer_data["zip_code"]):
            raise InputValidationError("Invalid postal code", field="zip_code")

        # 3. Cart
        if not cart_items:
            raise InputValidationError("Cart is empty", field="items")
        if len(cart_items) > MAX_CART_LINES:
            raise InputValidationError(f"Too many items in cart (max {MAX_CART_LINES})", field="items")

        seen = set()
        total_quantity = 0
        total_amount = Decimal("0")
        for item in cart_items:
            if not item.product_id:
                raise InputValidationError("Invalid cart item", field="items")
            if item.product_id in seen:
                raise InputValidationError("Duplicate product in cart", field="items")
            seen.add(item.product_id)

            if not validate_quantity(item.quantity):
                raise InputValidationError("Invalid item quantity", field="quantity")
            if not validate_price(item.price):
                raise InputValidationError("Invalid product price", field="price")

            total_quantity += item.quantity
            total_amount += Decimal(str(item.price)) * item.quantity

        # 4. Order limits
        if total_quantity > MAX_QUANTITY:
            raise BusinessRuleError(f"Too many pieces in order (max {MAX_QUANTITY})")
        if total_amount > MAX_PRICE:
            raise BusinessRuleError(f"Order value too high (max {MAX_PRICE} €)")

        # 5. Duplicate order protection
        recent = await self.count_recent_orders(customer_data["email"])
        if recent >= settings.RECENT_ORDER_LIMIT:
            raise BusinessRuleError("Too many orders in a short time")

    async def count_recent_orders(self, email: str) -> int:
        """
        Orders placed with this email in the trailing window.

        Best effort: a database error is logged and counts as no orders.
        """
        since = datetime.now(timezone.utc) - timedelta(minutes=settings.RECENT_ORDER_WINDOW_MINUTES)
        try:
            result = await self.db.execute(
                select(func.count(Order.id))
                .join(Customer, Customer.id == Order.customer_id)
                .where(
                    func.lower(Customer.email) == email.strip().lower(),
                    Order.created_at >= since,
                )
            )
            return result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Error checking recent orders: {e}")
            return 0


class CheckoutService:
    """Service turning a storefront cart into an order."""

    def __init__(self, db: AsyncSession, order_limiter: Optional[RateLimiter] = None):
        self.db = db
        self.security = OrderSecurity(db, order_limiter) if order_limiter else None
        self.customers = CustomerService(db)
        self.orders = OrderService(db)
        self.inventory = InventoryService(db)

    async def _load_products(self, product_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, Product]:
        result = await self.db.execute(select(Product).where(Product.id.in_(list(product_ids))))
        products = {p.id: p for p in result.scalars().all()}
        for product_id in product_ids:
            if product_id not in products:
                raise NotFoundError(f"Product {product_id} not found")
        return products

    @staticmethod
    def cart_weight_grams(products: Dict[uuid.UUID, Product], lines: Sequence) -> int:
        return sum(
            (products[line.product_id].weight_grams or DEFAULT_WEIGHT_GRAMS) * line.quantity
            for line in lines
        )

    @staticmethod
    def delivery_address_for(delivery_method: DeliveryMethod, customer_data: dict) -> str:
        if DeliveryMethod(delivery_method) == DeliveryMethod.PERSONAL:
            return settings.PICKUP_ADDRESS
        parts = [
            customer_data.get("address"),
            customer_data.get("city"),
            customer_data.get("zip_code"),
            customer_data.get("country") or settings.DEFAULT_COUNTRY,
        ]
        return ", ".join(part or "" for part in parts)

    async def _upsert_customer(self, customer_data: dict) -> Customer:
        """Find the customer by email and refresh their details, or create them."""
        customer = await self.customers.get_customer_by_email(customer_data["email"])
        if customer:
            for field_name in _CUSTOMER_FIELDS:
                value = customer_data.get(field_name)
                if value:
                    setattr(customer, field_name, value)
            await self.db.flush()
            logger.info(f"Returning customer {customer.email}")
            return customer

        customer = Customer(
            **{f: customer_data.get(f) for f in _CUSTOMER_FIELDS},
            customer_type=CustomerType.REGULAR.value,
        )
        self.db.add(customer)
        await self.db.flush()
        logger.info(f"New customer {customer.email}")
        return customer

    async def submit_order(
        self,
        customer_data: dict,
        cart_items: Sequence[CartItem],
        delivery_method: DeliveryMethod,
        notes: Optional[str] = None,
        client_key: Optional[str] = None
    ) -> Order:
        """
        Place a storefront order.

        Raises:
            ShopError subclasses, message prefixed with "Order submission failed: "
        """
        try:
            customer_data = sanitize_object(
                {f: customer_data.get(f) for f in _CUSTOMER_FIELDS}
            )
            if self.security:
                await self.security.validate_order_request(customer_data, cart_items, client_key)

            customer = await self._upsert_customer(customer_data)

            delivery_address = self.delivery_address_for(delivery_method, customer_data)

            products = await self._load_products([item.product_id for item in cart_items])
            weight_kg = self.cart_weight_grams(products, cart_items) / 1000
            delivery_price = price_for_method(
                delivery_method,
                customer_data.get("country") or settings.DEFAULT_COUNTRY,
                weight_kg,
            )

            order = await self.orders.create_order(
                customer_id=customer.id,
                lines=[OrderLine(item.product_id, item.quantity) for item in cart_items],
                delivery_method=delivery_method,
                delivery_address=delivery_address,
                delivery_price=delivery_price,
                notes=notes,
            )
        except ShopError as e:
            await self.db.rollback()
            e.add_context(SUBMISSION_ERROR_PREFIX)
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error during checkout: {e}")
            raise BusinessRuleError(f"{SUBMISSION_ERROR_PREFIX}{e}") from e

        log_security_event(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_email=customer_data["email"],
            total_amount=str(order.total_amount),
            item_count=len(cart_items),
        )
        return order

    async def quote_cart(
        self,
        lines: Sequence,
        delivery_method: DeliveryMethod = DeliveryMethod.PERSONAL,
        country: Optional[str] = None
    ) -> CartQuote:
        """Totals and advisory availability for a cart; nothing is reserved."""
        quote = CartQuote()
        if not lines:
            return quote

        products = await self._load_products([line.product_id for line in lines])
        available = await self.inventory.get_available_quantities(products.values())

        for line in lines:
            product = products[line.product_id]
            line_total = product.price * line.quantity
            quote.lines.append({
                "product_id": product.id,
                "name": product.name,
                "quantity": line.quantity,
                "unit_price": product.price,
                "line_total": line_total,
                "available": available[product.id],
                "in_stock": available[product.id] >= line.quantity,
            })
            quote.subtotal += line_total

        quote.weight_grams = self.cart_weight_grams(products, lines)
        quote.delivery_price = price_for_method(
            delivery_method, country or settings.DEFAULT_COUNTRY, quote.weight_grams / 1000
        )
        quote.total = quote.subtotal + (quote.delivery_price or Decimal("0"))
        return quote
