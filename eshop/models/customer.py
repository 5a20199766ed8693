import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eshop.database import Base
from eshop.db_types import UUIDType
from eshop.core.enum_utils import enum_comment

if TYPE_CHECKING:
    from eshop.models.order import Order


class CustomerType(str, Enum):
    """Customer type enumeration."""
    REGULAR = "regular"
    MEMBER = "member"


class Customer(Base):
    """
    Customer model.

    Email is the natural key used to recognise returning customers at
    checkout. Uniqueness is checked by the services, not enforced here.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Address
    address: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    customer_type: Mapped[str] = mapped_column(
        String(20),
        default=CustomerType.REGULAR.value,
        nullable=False,
        comment=enum_comment(CustomerType)
    )
    discord_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

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
    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="customer"
    )

    def __repr__(self) -> str:
        return f"<Customer(name='{self.name}', email='{self.email}')>"
