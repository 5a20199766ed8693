from pydantic import EmailStr

from eshop.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, PaginatedResponse
from eshop.models.customer import CustomerType
from typing import Optional
from datetime import datetime
import uuid


class CustomerCreate(BaseCreateSchema):
    """Customer creation schema. Name and phone formats are checked by CustomerService."""
    name: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    customer_type: CustomerType = CustomerType.REGULAR
    discord_id: Optional[str] = None


class CustomerUpdate(BaseUpdateSchema):
    """Customer update schema."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    customer_type: Optional[CustomerType] = None
    discord_id: Optional[str] = None


class CustomerResponse(BaseResponseSchema):
    """Customer response schema."""
    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    customer_type: str
    discord_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CustomerListResponse(PaginatedResponse[CustomerResponse]):
    """Paginated customer list."""
    pass
