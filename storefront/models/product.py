"""Catalog model type definitions (read-only from the checkout side)."""

from decimal import Decimal
from typing import Any, TypedDict

from storefront.models.order import FulfillmentType


class ProductTranslation(TypedDict):
    """product_translations table row."""

    product_id: str
    language: str
    name: str
    description: str
    activation_instructions: str


class ProductVariant(TypedDict):
    """product_variants table row.

    A variant's prices and fulfillment type override the parent product's.
    """

    id: str
    product_id: str
    name: dict[str, str]
    price_usd: Decimal
    price_dzd: Decimal | None
    fulfillment_type: FulfillmentType
    is_out_of_stock: bool


class Product(TypedDict):
    """products table row with its translations."""

    id: str
    sku: str
    price_usd: Decimal
    price_dzd: Decimal | None
    fulfillment_type: FulfillmentType
    is_active: bool
    translations: list[ProductTranslation]
    metadata: dict[str, Any]


class CartLine(TypedDict):
    """carts table row, reduced to what checkout reads."""

    id: str
    product_id: str
    variant_id: str | None
    quantity: int
