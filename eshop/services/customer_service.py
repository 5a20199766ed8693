from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.core.enum_utils import get_enum_value
from eshop.core.exceptions import BusinessRuleError, InputValidationError, NotFoundError, StoreOperationError
from eshop.core.validation import sanitize_object, validate_email, validate_name, validate_phone
from eshop.models.customer import Customer, CustomerType
from eshop.models.order import Order

logger = logging.getLogger(__name__)


def validate_customer_data(data: dict, partial: bool = False) -> None:
    """
    Check customer form fields.

    Name and email are required unless ``partial``; phone is optional.
    """
    if not partial or "name" in data:
        if not validate_name(data.get("name")):
            raise InputValidationError("Invalid customer name", field="name")
    if not partial or "email" in data:
        if not validate_email(data.get("email")):
            raise InputValidationError("Invalid customer email", field="email")
    if data.get("phone") and not validate_phone(data["phone"]):
        raise InputValidationError("Invalid customer phone", field="phone")


class CustomerService:
    """Service for customer records. Email identifies a returning customer."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_customers(
        self,
        search: Optional[str] = None,
        customer_type: Optional[CustomerType] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Customer], int]:
        """Get paginated customers."""
        stmt = select(Customer).order_by(Customer.created_at.desc())
        count_stmt = select(func.count(Customer.id))

        filters = []
        if customer_type:
            filters.append(Customer.customer_type == get_enum_value(customer_type))
        if search:
            filters.append(or_(
                Customer.name.ilike(f"%{search}%"),
                Customer.email.ilike(f"%{search}%"),
                Customer.phone.ilike(f"%{search}%"),
            ))
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)

        try:
            total = (await self.db.execute(count_stmt)).scalar() or 0
            result = await self.db.execute(stmt.offset(skip).limit(limit))
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading customers: {e}") from e

        return list(result.scalars().all()), total

    async def get_customer_by_id(self, customer_id: uuid.UUID) -> Optional[Customer]:
        return await self.db.get(Customer, customer_id)

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        """First customer with this email (emails are unique by convention only)."""
        try:
            result = await self.db.execute(
                select(Customer)
                .where(func.lower(Customer.email) == email.strip().lower())
                .order_by(Customer.created_at)
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading customer: {e}") from e
        return result.scalar_one_or_none()

    async def create_customer(self, data: dict) -> Customer:
        """Create a customer after sanitizing and validating the fields."""
        data = sanitize_object(data)
        validate_customer_data(data)

        if await self.get_customer_by_email(data["email"]):
            raise BusinessRuleError(f"Customer with email {data['email']} already exists")

        data["customer_type"] = get_enum_value(data.get("customer_type")) or CustomerType.REGULAR.value
        customer = Customer(**data)
        self.db.add(customer)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error creating customer: {e}") from e

        await self.db.refresh(customer)
        logger.info(f"Customer {customer.email} created")
        return customer

    async def update_customer(self, customer_id: uuid.UUID, data: dict) -> Customer:
        data = sanitize_object(data)
        validate_customer_data(data, partial=True)

        customer = await self.get_customer_by_id(customer_id)
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")

        for field, value in data.items():
            setattr(customer, field, get_enum_value(value) if field == "customer_type" else value)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error updating customer: {e}") from e

        await self.db.refresh(customer)
        return customer

    async def delete_customer(self, customer_id: uuid.UUID) -> None:
        """Delete a customer without orders."""
        customer = await self.get_customer_by_id(customer_id)
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found")

        order_count = (await self.db.execute(
            select(func.count(Order.id)).where(Order.customer_id == customer_id)
        )).scalar() or 0
        if order_count:
            raise BusinessRuleError(
                f"Customer has {order_count} order(s) and cannot be deleted"
            )

        await self.db.delete(customer)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error deleting customer: {e}") from e

        logger.info(f"Customer {customer.email} deleted")

    async def get_customer_orders(self, customer_id: uuid.UUID) -> List[Order]:
        """Orders of a customer, newest first."""
        if not await self.get_customer_by_id(customer_id):
            raise NotFoundError(f"Customer {customer_id} not found")

        result = await self.db.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())
