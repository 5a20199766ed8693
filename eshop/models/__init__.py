from eshop.models.category import Category
from eshop.models.product import Product, ProductStatus, ProductLanguage, Warehouse
from eshop.models.customer import Customer, CustomerType
from eshop.models.order import Order, OrderItem, OrderStatus, DeliveryMethod, FULFILLMENT_STATUSES
from eshop.models.order_sequence import OrderSequence

__all__ = [
    # Catalog
    "Category",
    "Product",
    "ProductStatus",
    "ProductLanguage",
    "Warehouse",
    # CRM
    "Customer",
    "CustomerType",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",
    "DeliveryMethod",
    "FULFILLMENT_STATUSES",
    "OrderSequence",
]
