from fastapi import APIRouter

from eshop.api.v1.endpoints import (
    # Storefront (public)
    storefront,
    # Back office
    orders,
    products,
    categories,
    customers,
    inventory,
    analytics,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    storefront.router,
    prefix="/storefront",
)
api_router.include_router(
    orders.router,
    prefix="/orders",
)
api_router.include_router(
    products.router,
    prefix="/products",
)
api_router.include_router(
    categories.router,
    prefix="/categories",
)
api_router.include_router(
    customers.router,
    prefix="/customers",
)
api_router.include_router(
    inventory.router,
    prefix="/inventory",
)
api_router.include_router(
    analytics.router,
    prefix="/analytics",
)
