"""
Order Sequence Model for Atomic Order Number Generation

FORMAT:
    {YEAR}{SEQUENCE}  e.g. 2025001, 2025002 ... 2025999, 20251000

One counter row per calendar year, incremented under SELECT FOR UPDATE.
The first row of a year is seeded from the highest order number already
stored with that year's prefix.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from eshop.database import Base
from eshop.db_types import UUIDType


class OrderSequence(Base):
    """
    Per-year order number counter.

    Example:
        year = 2025
        current_number = 7
        → Next order number: 2025008
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        UniqueConstraint("year", name="uq_order_sequences_year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Sequence Counter
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used sequence number"
    )

    # Formatting
    padding_length: Mapped[int] = mapped_column(
        Integer,
        default=3,
        nullable=False,
        comment="Zero padding for sequence (3 = 001)"
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

    def format_number(self, number: int) -> str:
        return f"{self.year}{str(number).zfill(self.padding_length)}"

    def get_next_number(self) -> str:
        """
        Generate next order number.

        NOTE: This method increments current_number but does NOT
        commit to database. The caller must handle the transaction.
        """
        self.current_number += 1
        return self.format_number(self.current_number)

    def preview_next_number(self) -> str:
        """Preview next number without incrementing."""
        return self.format_number(self.current_number + 1)

    @staticmethod
    def get_current_year() -> int:
        return datetime.now(timezone.utc).year

    def __repr__(self) -> str:
        return f"<OrderSequence({self.year}: {self.current_number})>"
