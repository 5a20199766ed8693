"""Public storefront endpoints: catalog, delivery prices, cart quote and checkout."""
from dataclasses import asdict
from typing import Optional
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from eshop.api.deps import DB, Limiters, ClientKey
from eshop.config import settings
from eshop.models.order import DeliveryMethod
from eshop.models.product import ProductStatus
from eshop.schemas.category import CategoryResponse
from eshop.schemas.storefront import (
    StorefrontProduct,
    StorefrontProductList,
    DeliveryOptionsResponse,
    DeliveryTierResponse,
    DeliveryPriceResponse,
    CartQuoteRequest,
    CartQuoteResponse,
    CheckoutRequest,
    CheckoutResponse,
)
from eshop.services.checkout_service import CartItem, CheckoutService
from eshop.services.delivery_pricing import (
    get_country_options, get_delivery_options, normalize_country, price_for_method,
)
from eshop.services.inventory_service import InventoryService
from eshop.services.product_service import ProductService

router = APIRouter(tags=["Storefront"])


# ==================== CATALOG ====================

@router.get("/products", response_model=StorefrontProductList)
async def list_products(
    db: DB,
    category_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    include_exclusive: bool = Query(False, description="Include member-only products"),
    limit: int = Query(100, ge=1, le=500),
):
    """Active products with the stock a shopper can still order."""
    service = ProductService(db)
    products, total = await service.get_products(
        category_id=category_id,
        status=ProductStatus.ACTIVE,
        is_exclusive=None if include_exclusive else False,
        search=search,
        skip=0,
        limit=limit,
    )
    available = await InventoryService(db).get_available_quantities(products)

    items = []
    for product in products:
        item = StorefrontProduct.model_validate(product)
        item.available = available[product.id]
        items.append(item)

    return StorefrontProductList(items=items, total=total)


@router.get("/products/{product_id}", response_model=StorefrontProduct)
async def get_product(product_id: uuid.UUID, db: DB):
    product = await ProductService(db).get_product_by_id(product_id)
    if not product or product.status != ProductStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )

    item = StorefrontProduct.model_validate(product)
    item.available = (await InventoryService(db).get_available_quantities([product]))[product.id]
    return item


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: DB, include_exclusive: bool = Query(False)):
    categories, _ = await ProductService(db).get_categories(include_exclusive=include_exclusive)
    return [CategoryResponse.model_validate(c) for c in categories]


# ==================== DELIVERY ====================

@router.get("/delivery/options", response_model=DeliveryOptionsResponse)
async def delivery_options(country: str = Query(settings.DEFAULT_COUNTRY, min_length=1)):
    """Carrier tiers for a country; empty for countries we do not ship to."""
    options = get_country_options(country)
    return DeliveryOptionsResponse(
        country=normalize_country(country),
        options=[DeliveryTierResponse(**asdict(tier)) for tier in get_delivery_options(country)],
        notes=options.notes if options else None,
    )


@router.get("/delivery/price", response_model=DeliveryPriceResponse)
async def delivery_price(
    delivery_method: DeliveryMethod = Query(...),
    weight_kg: float = Query(..., ge=0),
    country: str = Query(settings.DEFAULT_COUNTRY, min_length=1),
):
    """Delivery price; null means the parcel is quoted individually."""
    return DeliveryPriceResponse(
        delivery_method=delivery_method,
        country=normalize_country(country),
        weight_kg=weight_kg,
        price=price_for_method(delivery_method, country, weight_kg),
    )


# ==================== CART & CHECKOUT ====================

@router.post("/cart/quote", response_model=CartQuoteResponse)
async def quote_cart(data: CartQuoteRequest, db: DB):
    """Cart totals with advisory availability. Nothing is reserved."""
    quote = await CheckoutService(db).quote_cart(
        data.items,
        delivery_method=data.delivery_method,
        country=data.country,
    )
    return CartQuoteResponse(**asdict(quote))


@router.post("/orders", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def submit_order(
    data: CheckoutRequest,
    db: DB,
    limiters: Limiters,
    client_key: ClientKey,
):
    """
    Place an order from the storefront cart.

    Rate limited per client; errors carry the "Order submission failed: " prefix.
    """
    service = CheckoutService(db, order_limiter=limiters.order)
    order = await service.submit_order(
        customer_data=data.customer.model_dump(),
        cart_items=[CartItem(item.product_id, item.quantity, item.price) for item in data.items],
        delivery_method=data.delivery_method,
        notes=data.notes,
        client_key=client_key,
    )
    return CheckoutResponse.model_validate(order, from_attributes=True)
