from typing import List, Optional, Tuple
from datetime import date
from decimal import Decimal, InvalidOperation
import uuid
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from eshop.core.enum_utils import get_enum_value
from eshop.core.exceptions import BusinessRuleError, InputValidationError, NotFoundError, StoreOperationError
from eshop.core.validation import sanitize_string, validate_price
from eshop.models.category import Category
from eshop.models.order import OrderItem
from eshop.models.product import Product, ProductStatus, ProductLanguage, Warehouse

logger = logging.getLogger(__name__)

# Product columns holding enum values
_ENUM_FIELDS = {"status", "language"}


def validate_product_data(data: dict, partial: bool = False) -> None:
    """
    Check product form fields: a non-empty name, a price within range and
    integer, non-negative warehouse stocks.
    """
    if not partial or "name" in data:
        if not data.get("name") or not sanitize_string(data["name"], 200):
            raise InputValidationError("Invalid product name", field="name")

    if not partial or "price" in data:
        price = data.get("price")
        try:
            price = Decimal(str(price)) if price is not None else None
        except InvalidOperation:
            price = None
        if price is None or not validate_price(price):
            raise InputValidationError("Invalid product price", field="price")

    for warehouse in Warehouse:
        field = f"stock_{warehouse.value}"
        if field in data:
            stock = data[field]
            if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
                raise InputValidationError(f"Invalid stock for warehouse {warehouse.value}", field=field)


class ProductService:
    """Service for the product catalog and its categories."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== PRODUCTS ====================

    async def get_products(
        self,
        category_id: Optional[uuid.UUID] = None,
        status: Optional[ProductStatus] = None,
        is_exclusive: Optional[bool] = None,
        language: Optional[ProductLanguage] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Product], int]:
        """Get paginated products."""
        stmt = select(Product).order_by(Product.name)
        count_stmt = select(func.count(Product.id))

        filters = []
        if category_id:
            filters.append(Product.category_id == category_id)
        if status:
            filters.append(Product.status == get_enum_value(status))
        if is_exclusive is not None:
            filters.append(Product.is_exclusive == is_exclusive)
        if language:
            filters.append(Product.language == get_enum_value(language))
        if search:
            filters.append(or_(
                Product.name.ilike(f"%{search}%"),
                Product.description.ilike(f"%{search}%"),
            ))
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)

        try:
            total = (await self.db.execute(count_stmt)).scalar() or 0
            result = await self.db.execute(stmt.offset(skip).limit(limit))
        except SQLAlchemyError as e:
            raise StoreOperationError(f"Error loading products: {e}") from e

        return list(result.scalars().all()), total

    async def get_product_by_id(self, product_id: uuid.UUID) -> Optional[Product]:
        return await self.db.get(Product, product_id, populate_existing=True)

    async def _require_product(self, product_id: uuid.UUID) -> Product:
        product = await self.get_product_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def _check_category(self, category_id: Optional[uuid.UUID]) -> None:
        if category_id and not await self.db.get(Category, category_id):
            raise NotFoundError(f"Category {category_id} not found")

    async def create_product(self, data: dict) -> Product:
        validate_product_data(data)
        await self._check_category(data.get("category_id"))

        data["name"] = sanitize_string(data["name"], 200)
        if data.get("description"):
            data["description"] = sanitize_string(data["description"], 2000)
        for field in _ENUM_FIELDS & data.keys():
            data[field] = get_enum_value(data[field])

        product = Product(**data)
        self.db.add(product)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error creating product: {e}") from e

        await self.db.refresh(product)
        logger.info(f"Product '{product.name}' created with stock {product.total_stock}")
        return product

    async def update_product(self, product_id: uuid.UUID, data: dict) -> Product:
        validate_product_data(data, partial=True)
        product = await self._require_product(product_id)
        if "category_id" in data:
            await self._check_category(data["category_id"])

        for field, value in data.items():
            if field == "name":
                value = sanitize_string(value, 200)
            elif field == "description" and value:
                value = sanitize_string(value, 2000)
            elif field in _ENUM_FIELDS:
                value = get_enum_value(value)
            setattr(product, field, value)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error updating product: {e}") from e

        await self.db.refresh(product)
        return product

    async def update_check_date(self, product_id: uuid.UUID, check_date: Optional[date] = None) -> Product:
        """Record a physical stock check (today when no date is given)."""
        product = await self._require_product(product_id)
        product.last_check_date = check_date or date.today()
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error updating check date: {e}") from e

        await self.db.refresh(product)
        return product

    async def delete_product(self, product_id: uuid.UUID) -> None:
        """Delete a product that no order references."""
        product = await self._require_product(product_id)

        used = (await self.db.execute(
            select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id)
        )).scalar() or 0
        if used:
            raise BusinessRuleError(
                f"Product '{product.name}' is used in {used} order item(s) and cannot be deleted"
            )

        await self.db.delete(product)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error deleting product: {e}") from e

        logger.info(f"Product '{product.name}' deleted")

    # ==================== CATEGORIES ====================

    async def get_categories(
        self,
        include_exclusive: bool = True,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[Category], int]:
        """Get categories, built-in first then custom, by name."""
        stmt = select(Category).order_by(Category.is_custom, Category.name)
        count_stmt = select(func.count(Category.id))
        if not include_exclusive:
            stmt = stmt.where(Category.is_exclusive == False)  # noqa: E712
            count_stmt = count_stmt.where(Category.is_exclusive == False)  # noqa: E712

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_category_by_id(self, category_id: uuid.UUID) -> Optional[Category]:
        return await self.db.get(Category, category_id)

    async def create_category(self, data: dict) -> Category:
        """Create a category. Categories created here are always custom."""
        name = sanitize_string(data.get("name"), 100)
        if not name:
            raise InputValidationError("Invalid category name", field="name")

        category = Category(
            name=name,
            description=sanitize_string(data["description"], 2000) if data.get("description") else None,
            is_exclusive=bool(data.get("is_exclusive", False)),
            is_custom=True,
        )
        self.db.add(category)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error creating category: {e}") from e

        await self.db.refresh(category)
        return category

    async def update_category(self, category_id: uuid.UUID, data: dict) -> Category:
        category = await self.get_category_by_id(category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")

        if "name" in data:
            name = sanitize_string(data["name"], 100)
            if not name:
                raise InputValidationError("Invalid category name", field="name")
            category.name = name
        if "description" in data:
            category.description = sanitize_string(data["description"], 2000) if data["description"] else None
        if data.get("is_exclusive") is not None:
            category.is_exclusive = data["is_exclusive"]

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error updating category: {e}") from e

        await self.db.refresh(category)
        return category

    async def delete_category(self, category_id: uuid.UUID) -> None:
        """Delete a custom category; its products keep existing without one."""
        category = await self.get_category_by_id(category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")
        if not category.is_custom:
            raise BusinessRuleError(f"Built-in category '{category.name}' cannot be deleted")

        await self.db.delete(category)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreOperationError(f"Error deleting category: {e}") from e

        logger.info(f"Category '{category.name}' deleted")
