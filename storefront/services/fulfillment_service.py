"""Fulfillment engine: hands out single-use codes for paid orders."""

import logging
from dataclasses import dataclass, field
from typing import Any

from supabase import Client

from storefront.api.middleware.error_handler import NotFoundError
from storefront.core.change_feed import ChangeFeed
from storefront.services.order_service import OrderService

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentResult:
    """What one fulfillment run did to an order."""

    order_id: str
    delivered: list[dict[str, Any]] = field(default_factory=list)
    already_delivered: list[dict[str, Any]] = field(default_factory=list)
    out_of_stock: list[dict[str, Any]] = field(default_factory=list)
    manual: list[dict[str, Any]] = field(default_factory=list)
    order_delivered: bool = False

    @property
    def needs_support(self) -> bool:
        return bool(self.out_of_stock or self.manual)


class FulfillmentService:
    """Claims one code per auto-fulfilled item of a paid order.

    The claim itself is the claim_delivery_code database function: a
    single UPDATE over a FOR UPDATE SKIP LOCKED subselect, so concurrent
    runs never hand out the same code. The function returns the item's
    existing code if it already holds one, which makes re-runs safe.
    """

    def __init__(
        self,
        client: Client,
        order_service: OrderService,
        change_feed: ChangeFeed | None = None,
    ) -> None:
        self.client = client
        self.order_service = order_service
        self.change_feed = change_feed

    def claim_code(self, product_id: str, order_item_id: str) -> str | None:
        """Atomically mark one unused code for the product as used by the item.

        Returns:
            str | None: The claimed code, or None when the product is out of codes.
        """
        response = self.client.rpc(
            "claim_delivery_code",
            {"p_product_id": str(product_id), "p_order_item_id": str(order_item_id)},
        ).execute()
        rows = response.data
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return None
        return rows[0].get("code")

    async def fulfill_order(self, order_id: str) -> FulfillmentResult:
        """Deliver every pending auto item of a paid order.

        Manual and assisted items are left pending for an operator. An
        item whose product has no codes left is a stockout: it stays
        pending and is reported, never raised. Items already delivered
        are skipped. When no pending item remains the order moves to
        delivered.

        Args:
            order_id: The order's ID.

        Returns:
            FulfillmentResult: Per-item outcome of this run.

        Raises:
            NotFoundError: If the order does not exist.
        """
        order = await self.order_service.require_order(order_id)
        result = FulfillmentResult(order_id=str(order_id))

        if order["status"] not in ("paid", "delivered"):
            logger.warning(
                "Skipping fulfillment of order %s in status %s", order["order_number"], order["status"]
            )
            return result

        for item in order["items"]:
            if item["delivery_status"] == "delivered":
                result.already_delivered.append(item)
                continue

            if item.get("fulfillment_type") != "auto":
                result.manual.append(item)
                continue

            code = self.claim_code(item["product_id"], item["id"])
            if code is None:
                logger.warning(
                    "No codes available for product %s (order %s, item %s)",
                    item["product_id"],
                    order["order_number"],
                    item["id"],
                )
                result.out_of_stock.append(item)
                continue

            if await self.order_service.mark_item_delivered(item["id"], code):
                result.delivered.append({**item, "delivery_code": code, "delivery_status": "delivered"})
            else:
                # Another run delivered this item between our read and write.
                result.already_delivered.append(item)

        if result.delivered and self.change_feed:
            self.change_feed.publish(
                "codes",
                {"order_id": str(order_id), "claimed": len(result.delivered)},
            )

        if order["status"] == "paid" and not result.out_of_stock and not result.manual:
            result.order_delivered = await self.order_service.update_order_status(order_id, "delivered")

        logger.info(
            "Fulfillment for order %s: %d delivered, %d already delivered, %d out of stock, %d manual",
            order["order_number"],
            len(result.delivered),
            len(result.already_delivered),
            len(result.out_of_stock),
            len(result.manual),
        )
        return result

    async def deliver_manually(self, order_id: str, item_id: str, delivery_code: str) -> bool:
        """Record an operator-delivered code on a pending item."""
        order = await self.order_service.require_order(order_id)
        if not any(str(item["id"]) == str(item_id) for item in order["items"]):
            raise NotFoundError("Order item not found")

        delivered = await self.order_service.mark_item_delivered(item_id, delivery_code)
        if delivered:
            logger.info("Item %s of order %s delivered manually", item_id, order["order_number"])
            refreshed = await self.order_service.require_order(order_id)
            if refreshed["status"] == "paid" and all(
                item["delivery_status"] == "delivered" for item in refreshed["items"]
            ):
                await self.order_service.update_order_status(order_id, "delivered")
        return delivered

    def available_code_count(self, product_id: str) -> int:
        """Number of unused codes left for a product."""
        response = (
            self.client.table("codes")
            .select("id", count="exact")
            .eq("product_id", str(product_id))
            .eq("is_used", False)
            .execute()
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])
