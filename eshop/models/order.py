import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eshop.database import Base
from eshop.db_types import UUIDType
from eshop.core.enum_utils import enum_comment
from eshop.models.product import Warehouse

if TYPE_CHECKING:
    from eshop.models.customer import Customer
    from eshop.models.product import Product


class OrderStatus(str, Enum):
    """Order status enumeration. Any status may follow any other."""
    NEW = "new"
    WAITING_PAYMENT = "waiting_payment"
    PAID_WAITING_SHIPMENT = "paid_waiting_shipment"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Transitions into these statuses take stock out of a warehouse
FULFILLMENT_STATUSES = (OrderStatus.SHIPPED, OrderStatus.DELIVERED)


class DeliveryMethod(str, Enum):
    """Delivery method enumeration."""
    PERSONAL = "personal"
    POST = "post"
    PACKETA = "packeta"


class Order(Base):
    """
    Customer order.

    total_amount is the sum of item price * quantity and never includes
    delivery. delivery_price is NULL when the price is quoted individually.
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="YYYYNNN"
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    status: Mapped[str] = mapped_column(
        String(30),
        default=OrderStatus.NEW.value,
        nullable=False,
        index=True,
        comment=enum_comment(OrderStatus)
    )

    # Delivery
    delivery_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment=enum_comment(DeliveryMethod)
    )
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivery_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="NULL = quoted individually"
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="orders"
    )
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    @property
    def is_fulfilled(self) -> bool:
        return all(item.reserved_from is not None for item in self.items)

    def __repr__(self) -> str:
        return f"<Order(number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    """
    Order line.

    reserved_from is NULL until the line is fulfilled; once set the stock of
    that warehouse has already been decremented for this line.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Unit price at order time"
    )
    reserved_from: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment=enum_comment(Warehouse)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product", back_populates="order_items")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def __repr__(self) -> str:
        return f"<OrderItem(product_id='{self.product_id}', qty={self.quantity})>"
