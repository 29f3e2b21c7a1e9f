"""Delivery code inventory management."""

import logging
from typing import Any

from supabase import Client

from storefront.api.middleware.error_handler import NotFoundError, ValidationError
from storefront.core.change_feed import ChangeFeed

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 500


def normalize_codes(raw_codes: list[str]) -> list[str]:
    """Trim codes, drop blanks and repeated values, keeping the input order."""
    seen: set[str] = set()
    codes = []
    for raw in raw_codes:
        code = raw.strip()
        if code and code not in seen:
            seen.add(code)
            codes.append(code)
    return codes


class CodeService:
    """Service for listing, importing and removing single-use codes."""

    def __init__(self, client: Client, change_feed: ChangeFeed | None = None) -> None:
        self.client = client
        self.change_feed = change_feed

    async def list_codes(self, product_id: str | None = None, limit: int = 500) -> list[dict[str, Any]]:
        """List codes, newest first, optionally for one product."""
        query = self.client.table("codes").select("*")
        if product_id:
            query = query.eq("product_id", product_id)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return response.data or []

    async def add_codes(self, product_id: str, raw_codes: list[str]) -> dict[str, int]:
        """Import codes for a product.

        Codes are trimmed; blanks and codes the product already has are
        skipped.

        Returns:
            dict: {"added": int, "skipped": int}

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If no non-blank code was given.
        """
        product = (
            self.client.table("products")
            .select("id")
            .eq("id", product_id)
            .maybe_single()
            .execute()
        )
        if not product or not product.data:
            raise NotFoundError("Product not found")

        codes = normalize_codes(raw_codes)
        if not codes:
            raise ValidationError("No codes to import")

        existing: set[str] = set()
        for start in range(0, len(codes), INSERT_BATCH_SIZE):
            batch = codes[start:start + INSERT_BATCH_SIZE]
            response = (
                self.client.table("codes")
                .select("code")
                .eq("product_id", product_id)
                .in_("code", batch)
                .execute()
            )
            existing.update(row["code"] for row in response.data or [])

        new_codes = [code for code in codes if code not in existing]
        for start in range(0, len(new_codes), INSERT_BATCH_SIZE):
            batch = new_codes[start:start + INSERT_BATCH_SIZE]
            self.client.table("codes").insert(
                [{"product_id": product_id, "code": code, "is_used": False} for code in batch]
            ).execute()

        skipped = len(raw_codes) - len(new_codes)
        logger.info("Imported %d codes for product %s (%d skipped)", len(new_codes), product_id, skipped)
        if new_codes and self.change_feed:
            self.change_feed.publish("codes", {"product_id": product_id, "added": len(new_codes)})
        return {"added": len(new_codes), "skipped": skipped}

    async def delete_code(self, code_id: str) -> None:
        """Delete an unused code. Used codes are part of an order's history.

        Raises:
            NotFoundError: If the code does not exist.
            ValidationError: If the code was already handed out.
        """
        response = (
            self.client.table("codes")
            .select("*")
            .eq("id", code_id)
            .maybe_single()
            .execute()
        )
        code = response.data if response and response.data else None
        if code is None:
            raise NotFoundError("Code not found")
        if code["is_used"]:
            raise ValidationError("Used codes cannot be deleted")

        deleted = (
            self.client.table("codes")
            .delete()
            .eq("id", code_id)
            .eq("is_used", False)
            .execute()
        )
        if not deleted.data:
            raise ValidationError("Used codes cannot be deleted")

        logger.info("Deleted code %s of product %s", code_id, code["product_id"])
        if self.change_feed:
            self.change_feed.publish("codes", {"product_id": code["product_id"], "deleted": code_id})

    async def availability(self, product_ids: list[str] | None = None) -> dict[str, int]:
        """Unused code count per product."""
        query = self.client.table("codes").select("product_id").eq("is_used", False)
        if product_ids:
            query = query.in_("product_id", product_ids)
        response = query.execute()
        counts: dict[str, int] = {product_id: 0 for product_id in product_ids or []}
        for row in response.data or []:
            counts[str(row["product_id"])] = counts.get(str(row["product_id"]), 0) + 1
        return counts
