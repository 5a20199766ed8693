from pydantic import BaseModel, Field

from eshop.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, PaginatedResponse
from eshop.models.product import ProductStatus, ProductLanguage
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
import uuid


class ProductCreate(BaseCreateSchema):
    """
    Product creation schema.

    Format rules (name, price range, integer stocks) are checked by
    ProductService so that admin forms get the same messages as the
    storefront validators.
    """
    name: str
    description: Optional[str] = None
    price: Decimal
    stock_bratislava: int = 0
    stock_ruzomberok: int = 0
    stock_bezo: int = 0
    status: ProductStatus = ProductStatus.ACTIVE
    is_exclusive: bool = False
    category_id: Optional[uuid.UUID] = None
    language: ProductLanguage = ProductLanguage.SK
    image_url: Optional[str] = Field(None, max_length=500)
    weight_grams: int = Field(100, ge=0)
    last_check_date: Optional[date] = None


class ProductUpdate(BaseUpdateSchema):
    """Product update schema."""
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    stock_bratislava: Optional[int] = None
    stock_ruzomberok: Optional[int] = None
    stock_bezo: Optional[int] = None
    status: Optional[ProductStatus] = None
    is_exclusive: Optional[bool] = None
    category_id: Optional[uuid.UUID] = None
    language: Optional[ProductLanguage] = None
    image_url: Optional[str] = Field(None, max_length=500)
    weight_grams: Optional[int] = Field(None, ge=0)
    last_check_date: Optional[date] = None


class CheckDateUpdate(BaseModel):
    """Stock check date update. Defaults to today."""
    last_check_date: Optional[date] = None


class ProductResponse(BaseResponseSchema):
    """Product response schema (admin view with warehouse detail)."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    stock_bratislava: int
    stock_ruzomberok: int
    stock_bezo: int
    total_stock: int
    status: str
    is_exclusive: bool
    category_id: Optional[uuid.UUID] = None
    language: str
    image_url: Optional[str] = None
    weight_grams: int
    last_check_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class ProductListResponse(PaginatedResponse[ProductResponse]):
    """Paginated product list."""
    pass
