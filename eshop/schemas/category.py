from pydantic import Field

from eshop.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, PaginatedResponse
from typing import Optional
from datetime import datetime
import uuid


class CategoryCreate(BaseCreateSchema):
    """Category creation schema. Created categories are always custom."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_exclusive: bool = False


class CategoryUpdate(BaseUpdateSchema):
    """Category update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_exclusive: Optional[bool] = None


class CategoryResponse(BaseResponseSchema):
    """Category response schema."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    is_exclusive: bool
    is_custom: bool
    created_at: datetime


class CategoryListResponse(PaginatedResponse[CategoryResponse]):
    """Paginated category list."""
    pass
