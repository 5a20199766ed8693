from pydantic import BaseModel, Field

from eshop.schemas.base import BaseResponseSchema, BaseCreateSchema
from eshop.models.order import DeliveryMethod
from typing import Optional, List
from decimal import Decimal
import uuid


# ==================== CATALOG ====================

class StorefrontProduct(BaseResponseSchema):
    """Product as shown to shoppers: no warehouse breakdown, only availability."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    available: int = 0
    status: str
    is_exclusive: bool
    category_id: Optional[uuid.UUID] = None
    language: str
    image_url: Optional[str] = None
    weight_grams: int


class StorefrontProductList(BaseModel):
    items: List[StorefrontProduct]
    total: int


# ==================== DELIVERY ====================

class DeliveryTierResponse(BaseModel):
    """One carrier price tier."""
    provider: str
    weight_range: str
    base_price: Decimal
    customer_price: Decimal
    max_dimensions: str
    description: str


class DeliveryOptionsResponse(BaseModel):
    country: str
    options: List[DeliveryTierResponse]
    notes: Optional[str] = None


class DeliveryPriceResponse(BaseModel):
    """Delivery price; price is None when it has to be quoted individually."""
    delivery_method: DeliveryMethod
    country: str
    weight_kg: float
    price: Optional[Decimal] = None


# ==================== CART ====================

class CartLine(BaseCreateSchema):
    """Cart line as held by the storefront cart."""
    product_id: uuid.UUID
    quantity: int
    price: Decimal = Field(..., description="Unit price shown in the cart")


class CartQuoteLine(BaseCreateSchema):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)


class CartQuoteRequest(BaseCreateSchema):
    items: List[CartQuoteLine]
    delivery_method: DeliveryMethod = DeliveryMethod.PERSONAL
    country: Optional[str] = None


class CartQuoteLineResponse(BaseModel):
    product_id: uuid.UUID
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    available: int
    in_stock: bool


class CartQuoteResponse(BaseModel):
    """Cart totals. Availability is advisory; checkout re-checks it."""
    lines: List[CartQuoteLineResponse]
    subtotal: Decimal
    weight_grams: int
    delivery_price: Optional[Decimal] = None
    total: Decimal


# ==================== CHECKOUT ====================

class CheckoutCustomer(BaseCreateSchema):
    """Customer details typed into the checkout form. Formats are checked by OrderSecurity."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class CheckoutRequest(BaseCreateSchema):
    customer: CheckoutCustomer
    items: List[CartLine]
    delivery_method: DeliveryMethod
    notes: Optional[str] = None


class CheckoutResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    status: str
    total_amount: Decimal
    delivery_price: Optional[Decimal] = None
    delivery_address: Optional[str] = None
