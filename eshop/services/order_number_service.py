"""
Order Number Service for Atomic Number Generation

FORMAT:
    {YEAR}{SEQUENCE}, sequence zero-padded to 3 digits
    First order of 2025 → 2025001, after 2025007 comes 2025008.
    Past 999 the sequence keeps growing: 2025999 → 20251000.

USAGE:
    from eshop.services.order_number_service import OrderNumberService

    async def create_order(db: AsyncSession):
        service = OrderNumberService(db)
        order_number = await service.get_next_number()
        # Returns: 2025001

The counter row is locked with SELECT FOR UPDATE and only flushed; the
caller's transaction commits it together with the order.
"""

import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.core.exceptions import StoreOperationError
from eshop.models.order import Order
from eshop.models.order_sequence import OrderSequence

logger = logging.getLogger(__name__)

DEFAULT_PADDING = 3


class OrderNumberService:
    """
    Service for generating sequential order numbers.

    Uses database-level locking (SELECT FOR UPDATE) so that concurrent
    checkouts never receive the same number.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_next_number(self, year: Optional[int] = None) -> str:
        """
        Get next order number with atomic increment.

        Creates the year's sequence on first use, seeded from the highest
        order number already stored for that year.

        Raises:
            StoreOperationError: If the sequence cannot be read or written
        """
        if not year:
            year = OrderSequence.get_current_year()

        try:
            sequence = await self._get_or_create_sequence(year)
            order_number = sequence.get_next_number()
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to generate order number for {year}: {e}")
            raise StoreOperationError(f"Error generating order number: {e}") from e

        logger.debug(f"Issued order number {order_number}")
        return order_number

    async def preview_next_number(self, year: Optional[int] = None) -> str:
        """Preview what the next number would be without incrementing."""
        if not year:
            year = OrderSequence.get_current_year()

        sequence = await self._get_sequence(year)
        if sequence:
            return sequence.preview_next_number()

        # No sequence yet - continue from existing orders, or start at 001
        last = await self._max_existing_sequence(year)
        return f"{year}{str(last + 1).zfill(DEFAULT_PADDING)}"

    async def get_current_number(self, year: Optional[int] = None) -> int:
        """Current (last used) sequence number, 0 if none was issued."""
        if not year:
            year = OrderSequence.get_current_year()

        result = await self.db.execute(
            select(OrderSequence.current_number)
            .where(OrderSequence.year == year)
        )
        current = result.scalar_one_or_none()
        return current or 0

    async def sync_sequence_from_orders(self, year: Optional[int] = None) -> OrderSequence:
        """
        Raise the counter to the highest order number stored for ``year``.

        Use this to repair a sequence after orders were imported directly.
        The counter never moves backwards.
        """
        if not year:
            year = OrderSequence.get_current_year()

        try:
            max_existing = await self._max_existing_sequence(year)
            sequence = await self._get_sequence(year, lock=True)

            if sequence:
                if max_existing > sequence.current_number:
                    logger.info(
                        f"Order sequence {year} synced from {sequence.current_number} to {max_existing}"
                    )
                    sequence.current_number = max_existing
            else:
                sequence = OrderSequence(
                    year=year,
                    current_number=max_existing,
                    padding_length=DEFAULT_PADDING,
                )
                self.db.add(sequence)

            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to sync order sequence for {year}: {e}")
            raise StoreOperationError(f"Error syncing order sequence: {e}") from e
        return sequence

    # ==================== INTERNALS ====================

    async def _get_sequence(self, year: int, lock: bool = False) -> Optional[OrderSequence]:
        stmt = select(OrderSequence).where(OrderSequence.year == year)
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create_sequence(self, year: int) -> OrderSequence:
        """Get the year's sequence with row lock, or create it."""
        sequence = await self._get_sequence(year, lock=True)
        if sequence:
            return sequence

        # Continue numbering from orders created before the counter existed
        sequence = OrderSequence(
            year=year,
            current_number=await self._max_existing_sequence(year),
            padding_length=DEFAULT_PADDING,
        )
        self.db.add(sequence)
        await self.db.flush()

        # Re-fetch with lock to ensure atomicity
        result = await self.db.execute(
            select(OrderSequence)
            .where(OrderSequence.id == sequence.id)
            .with_for_update()
        )
        return result.scalar_one()

    async def _max_existing_sequence(self, year: int) -> int:
        """
        Highest sequence among stored order numbers with the year prefix.

        Longer numbers sort first so that 20251000 beats 2025999; numbers
        with a non-numeric suffix are ignored.
        """
        prefix = str(year)
        result = await self.db.execute(
            select(Order.order_number)
            .where(Order.order_number.like(f"{prefix}%"))
            .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
        )
        for order_number in result.scalars():
            suffix = order_number[len(prefix):]
            if suffix.isdigit():
                return int(suffix)
        return 0
