"""Database model type definitions."""

from storefront.models.code import Code, CodeCreate
from storefront.models.order import (
    ALLOWED_TRANSITIONS,
    SETTLEMENT_CURRENCY,
    Currency,
    DeliveryStatus,
    FulfillmentType,
    Order,
    OrderItem,
    OrderStatus,
    OrderWithItems,
    PaymentMethod,
)
from storefront.models.product import CartLine, Product, ProductVariant

__all__ = [
    "ALLOWED_TRANSITIONS",
    "SETTLEMENT_CURRENCY",
    "CartLine",
    "Code",
    "CodeCreate",
    "Currency",
    "DeliveryStatus",
    "FulfillmentType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderWithItems",
    "PaymentMethod",
    "Product",
    "ProductVariant",
]
