import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, Date, ForeignKey, Integer, Text, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, InstrumentedAttribute

from eshop.database import Base
from eshop.db_types import UUIDType
from eshop.core.enum_utils import enum_comment

if TYPE_CHECKING:
    from eshop.models.category import Category
    from eshop.models.order import OrderItem


class Warehouse(str, Enum):
    """Physical stock locations. Order matters for legacy distribution."""
    BRATISLAVA = "bratislava"
    RUZOMBEROK = "ruzomberok"
    BEZO = "bezo"


class ProductStatus(str, Enum):
    """Product status enumeration."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    UNAVAILABLE = "unavailable"


class ProductLanguage(str, Enum):
    """Language of the product (books, cards, printed material)."""
    SK = "SK"
    CZ = "CZ"
    EN = "EN"


class Product(Base):
    """
    Product model with per-warehouse stock counters.

    Physical stock is tracked per warehouse (bratislava, ruzomberok, bezo);
    the storefront shows total stock minus what is reserved by unfulfilled
    orders (see InventoryService).
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_bratislava >= 0", name="ck_products_stock_bratislava"),
        CheckConstraint("stock_ruzomberok >= 0", name="ck_products_stock_ruzomberok"),
        CheckConstraint("stock_bezo >= 0", name="ck_products_stock_bezo"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Stock per warehouse
    stock_bratislava: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stock_ruzomberok: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stock_bezo: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductStatus.ACTIVE.value,
        nullable=False,
        index=True,
        comment=enum_comment(ProductStatus)
    )
    is_exclusive: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="Visible to members only"
    )
    language: Mapped[str] = mapped_column(
        String(5),
        default=ProductLanguage.SK.value,
        nullable=False,
        comment=enum_comment(ProductLanguage)
    )
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    weight_grams: Mapped[int] = mapped_column(
        Integer,
        default=100,
        nullable=False,
        comment="Shipping weight per piece"
    )
    last_check_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Last physical stock check"
    )

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    category: Mapped[Optional["Category"]] = relationship(
        "Category",
        back_populates="products"
    )
    order_items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="product"
    )

    @staticmethod
    def stock_column(warehouse: Warehouse) -> InstrumentedAttribute:
        """Column holding the stock counter of ``warehouse``."""
        return getattr(Product, f"stock_{Warehouse(warehouse).value}")

    def get_stock(self, warehouse: Warehouse) -> int:
        return getattr(self, f"stock_{Warehouse(warehouse).value}")

    @property
    def total_stock(self) -> int:
        """Physical stock across all warehouses."""
        return self.stock_bratislava + self.stock_ruzomberok + self.stock_bezo

    def __repr__(self) -> str:
        return f"<Product(name='{self.name}', total_stock={self.total_stock})>"
