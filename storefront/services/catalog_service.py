"""Catalog read model used to price a cart snapshot."""

import logging
from typing import Any

from supabase import Client

from storefront.api.middleware.error_handler import ValidationError
from storefront.schemas.checkout import CartLineInput, PricedLine
from storefront.services.pricing import to_decimal

logger = logging.getLogger(__name__)


class CatalogService:
    """Resolves cart lines against products and variants."""

    def __init__(self, client: Client) -> None:
        self.client = client

    async def get_products(self, product_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Get products by ID with their translations attached.

        Args:
            product_ids: Product IDs to load.

        Returns:
            dict: Product rows keyed by ID.
        """
        if not product_ids:
            return {}
        response = self.client.table("products").select("*").in_("id", product_ids).execute()
        products = {str(row["id"]): {**row, "translations": []} for row in (response.data or [])}
        if not products:
            return {}

        translations = (
            self.client.table("product_translations")
            .select("product_id, language, name")
            .in_("product_id", list(products))
            .execute()
        )
        for row in translations.data or []:
            product = products.get(str(row["product_id"]))
            if product is not None:
                product["translations"].append(row)
        return products

    async def get_variants(self, variant_ids: list[str]) -> dict[str, dict[str, Any]]:
        if not variant_ids:
            return {}
        response = self.client.table("product_variants").select("*").in_("id", variant_ids).execute()
        return {str(row["id"]): row for row in (response.data or [])}

    @staticmethod
    def product_name(product: dict[str, Any], variant: dict[str, Any] | None = None, language: str = "en") -> str:
        """English display name, with the variant name appended when present."""
        name = next(
            (t["name"] for t in product.get("translations", []) if t.get("language") == language and t.get("name")),
            product.get("sku") or "Unknown Product",
        )
        if variant:
            variant_name = (variant.get("name") or {}).get(language)
            if variant_name:
                name = f"{name} - {variant_name}"
        return name

    async def price_lines(self, lines: list[CartLineInput]) -> list[PricedLine]:
        """Snapshot prices and fulfillment types for the given cart lines.

        Args:
            lines: Cart lines with product, optional variant and quantity.

        Returns:
            list[PricedLine]: Lines priced from the current catalog.

        Raises:
            ValidationError: If the cart is empty or references a product or
                variant that is missing, inactive or out of stock.
        """
        if not lines:
            raise ValidationError("Cart is empty")

        products = await self.get_products(sorted({line.product_id for line in lines}))
        variants = await self.get_variants(sorted({line.variant_id for line in lines if line.variant_id}))

        priced: list[PricedLine] = []
        for line in lines:
            product = products.get(line.product_id)
            if not product or not product.get("is_active", True):
                raise ValidationError(
                    f"Product {line.product_id} is no longer available",
                    details=[{"loc": ["items", line.product_id], "msg": "product unavailable", "type": "not_found"}],
                )
            if product.get("is_out_of_stock"):
                raise ValidationError(f"{self.product_name(product)} is out of stock")

            variant = None
            if line.variant_id:
                variant = variants.get(line.variant_id)
                if not variant or str(variant.get("product_id")) != line.product_id:
                    raise ValidationError(f"Variant {line.variant_id} not found for product {line.product_id}")
                if variant.get("is_out_of_stock"):
                    raise ValidationError(f"{self.product_name(product, variant)} is out of stock")

            source = variant or product
            price_dzd = source.get("price_dzd")
            priced.append(
                PricedLine(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=self.product_name(product, variant),
                    fulfillment_type=source.get("fulfillment_type") or product.get("fulfillment_type") or "manual",
                    quantity=line.quantity,
                    price_usd=to_decimal(source.get("price_usd")),
                    price_dzd=to_decimal(price_dzd) if price_dzd else None,
                )
            )
        return priced
