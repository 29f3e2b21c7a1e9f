"""Order ledger: creation and lifecycle of orders and their items."""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from storefront.api.middleware.error_handler import (
    InvalidStatusTransitionError,
    NotFoundError,
    OrderCreationError,
    ValidationError,
)
from storefront.core.change_feed import ChangeFeed
from storefront.models.order import ALLOWED_TRANSITIONS
from storefront.schemas.checkout import PaymentRequest
from storefront.schemas.settings import StoreSettings
from storefront.services.pricing import quantize, settlement_currency, tax_for, unit_price

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """Generate a human-facing order number, e.g. ORD-482913-X7K2Q."""
    timestamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(5))
    return f"ORD-{timestamp}-{suffix}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrderService:
    """Single source of truth for order state."""

    MAX_ORDER_NUMBER_ATTEMPTS = 3
    MAX_STATUS_CAS_ATTEMPTS = 3

    def __init__(self, client: Client, change_feed: ChangeFeed | None = None) -> None:
        self.client = client
        self.change_feed = change_feed

    async def create_order(self, request: PaymentRequest, store_settings: StoreSettings) -> dict[str, Any]:
        """Create a pending order and its items from a payment request.

        Amounts are computed once, here, in the method's settlement
        currency. If the items cannot be stored the order row is deleted
        before the error is raised, so a half-written order is never
        visible.

        Args:
            request: Normalized payment request with priced lines.
            store_settings: Current store settings (exchange and tax rate).

        Returns:
            dict: The created order with an "items" list.

        Raises:
            ValidationError: If the request has no items.
            OrderCreationError: If persistence fails.
        """
        if not request.items:
            raise ValidationError("Cannot create an order without items")

        currency = settlement_currency(request.method)
        rate = store_settings.exchange_rate_usd_to_dzd

        item_rows: list[dict[str, Any]] = []
        subtotal = Decimal("0")
        for line in request.items:
            price = unit_price(line, currency, rate)
            line_total = quantize(price * line.quantity)
            subtotal += line_total
            item_rows.append(
                {
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "product_name": line.product_name,
                    "fulfillment_type": line.fulfillment_type,
                    "quantity": line.quantity,
                    "unit_price": str(price),
                    "total_price": str(line_total),
                    "delivery_status": "pending",
                }
            )

        subtotal = quantize(subtotal)
        tax_amount = tax_for(subtotal, store_settings.tax_rate)
        total_amount = quantize(subtotal + tax_amount)

        order_data = {
            "user_id": request.user_id,
            "status": "pending",
            "payment_method": request.method,
            "currency": currency,
            "subtotal": str(subtotal),
            "tax_amount": str(tax_amount),
            "total_amount": str(total_amount),
            "customer_email": request.customer_email,
            "customer_phone": request.customer_phone,
            "payment_data": {
                "pricing": {
                    "exchange_rate_usd_to_dzd": str(rate),
                    "tax_rate": str(store_settings.tax_rate),
                    "display_currency": request.currency,
                    "display_amount": str(request.amount),
                },
            },
        }

        order = self._insert_order(order_data)
        order_id = str(order["id"])

        try:
            for row in item_rows:
                row["order_id"] = order_id
            items_response = self.client.table("order_items").insert(item_rows).execute()
            items = items_response.data or []
            if len(items) != len(item_rows):
                raise OrderCreationError(
                    f"Stored {len(items)} of {len(item_rows)} items for order {order['order_number']}"
                )
        except Exception as e:
            logger.error("Failed to create items for order %s, rolling back: %s", order["order_number"], str(e))
            try:
                self._delete_order_rows(order_id)
            except Exception as cleanup_error:
                logger.error(
                    "Failed to delete partially created order %s: %s", order["order_number"], str(cleanup_error)
                )
            if isinstance(e, OrderCreationError):
                raise
            raise OrderCreationError() from e

        logger.info(
            "Order %s created: %s %s via %s (%d items)",
            order["order_number"],
            total_amount,
            currency,
            request.method,
            len(items),
        )
        if self.change_feed:
            self.change_feed.publish("orders", {"order_id": order_id, "status": "pending"})
        return {**order, "items": items}

    def _insert_order(self, order_data: dict[str, Any]) -> dict[str, Any]:
        """Insert the order row, regenerating the order number on collision."""
        for attempt in range(1, self.MAX_ORDER_NUMBER_ATTEMPTS + 1):
            order_number = generate_order_number()
            try:
                response = (
                    self.client.table("orders")
                    .insert({**order_data, "order_number": order_number})
                    .execute()
                )
            except PostgrestAPIError as e:
                if e.code == UNIQUE_VIOLATION and attempt < self.MAX_ORDER_NUMBER_ATTEMPTS:
                    logger.warning("Order number %s already taken, retrying", order_number)
                    continue
                logger.error("Failed to insert order: %s", str(e))
                raise OrderCreationError() from e
            except Exception as e:
                logger.error("Failed to insert order: %s", str(e))
                raise OrderCreationError() from e

            if not response.data:
                raise OrderCreationError()
            return response.data[0]

        raise OrderCreationError()

    def _delete_order_rows(self, order_id: str) -> None:
        self.client.table("order_items").delete().eq("order_id", order_id).execute()
        self.client.table("orders").delete().eq("id", order_id).execute()

    async def get_order(self, order_id: str, with_items: bool = True) -> dict[str, Any] | None:
        """Get an order by ID.

        Args:
            order_id: The order's ID.
            with_items: Attach the order's items under "items".

        Returns:
            dict | None: The order data or None if not found.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )
        order = response.data if response and response.data else None
        if order is None:
            return None
        if with_items:
            order = {**order, "items": await self.get_items(order_id)}
        return order

    async def get_order_by_number(self, order_number: str) -> dict[str, Any] | None:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("order_number", order_number)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def require_order(self, order_id: str, with_items: bool = True) -> dict[str, Any]:
        order = await self.get_order(order_id, with_items=with_items)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def get_items(self, order_id: str) -> list[dict[str, Any]]:
        response = (
            self.client.table("order_items")
            .select("*")
            .eq("order_id", str(order_id))
            .order("created_at")
            .execute()
        )
        return response.data or []

    async def list_orders(
        self,
        customer_email: str | None = None,
        user_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """List orders, newest first, with their items."""
        query = self.client.table("orders").select("*")
        if customer_email:
            query = query.eq("customer_email", customer_email)
        if user_id:
            query = query.eq("user_id", user_id)
        if status:
            query = query.eq("status", status)
        response = query.order("created_at", desc=True).limit(limit).execute()
        orders = response.data or []
        return [{**order, "items": await self.get_items(order["id"])} for order in orders]

    async def update_order_status(self, order_id: str, status: str) -> bool:
        """Move an order to a new status.

        Re-applying the current status is a no-op. Transitions are checked
        against the forward-only lifecycle and written with a conditional
        update on the previous status, so two confirmations racing on the
        same order produce a single transition.

        Args:
            order_id: The order's ID.
            status: Target status.

        Returns:
            bool: True if this call changed the status, False if it was
                already at the target.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidStatusTransitionError: If the move is not allowed.
        """
        for _ in range(self.MAX_STATUS_CAS_ATTEMPTS):
            order = await self.get_order(order_id, with_items=False)
            if order is None:
                raise NotFoundError("Order not found")

            current = order["status"]
            if current == status:
                return False
            if status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
                raise InvalidStatusTransitionError(current, status)

            response = (
                self.client.table("orders")
                .update({"status": status, "updated_at": _now()})
                .eq("id", str(order_id))
                .eq("status", current)
                .execute()
            )
            if response.data:
                logger.info("Order %s status %s -> %s", order["order_number"], current, status)
                if self.change_feed:
                    self.change_feed.publish("orders", {"order_id": str(order_id), "status": status})
                return True

            logger.debug("Order %s status changed concurrently, re-reading", order_id)

        order = await self.require_order(order_id, with_items=False)
        if order["status"] == status:
            return False
        raise InvalidStatusTransitionError(order["status"], status)

    async def record_payment_initiation(
        self,
        order_id: str,
        payment_id: str,
        payment_data: dict[str, Any],
    ) -> dict[str, Any]:
        """Store the provider correlation ID together with its payment data.

        Both fields are written in one update so payment_id is never set
        without payment_data.
        """
        if not payment_data:
            raise ValueError("payment_data is required alongside payment_id")
        order = await self.require_order(order_id, with_items=False)
        merged = {**(order.get("payment_data") or {}), **payment_data}
        response = (
            self.client.table("orders")
            .update({"payment_id": payment_id, "payment_data": merged, "updated_at": _now()})
            .eq("id", str(order_id))
            .execute()
        )
        return response.data[0] if response.data else {**order, "payment_id": payment_id, "payment_data": merged}

    async def merge_payment_data(self, order_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Add keys to payment_data without removing existing ones."""
        order = await self.require_order(order_id, with_items=False)
        merged = {**(order.get("payment_data") or {}), **data}
        self.client.table("orders").update(
            {"payment_data": merged, "updated_at": _now()}
        ).eq("id", str(order_id)).execute()
        return merged

    async def mark_item_delivered(self, item_id: str, delivery_code: str) -> bool:
        """Set an item delivered with its code, only if it is still pending.

        Returns:
            bool: True if this call delivered the item.
        """
        response = (
            self.client.table("order_items")
            .update(
                {
                    "delivery_code": delivery_code,
                    "delivery_status": "delivered",
                    "delivered_at": _now(),
                }
            )
            .eq("id", str(item_id))
            .eq("delivery_status", "pending")
            .execute()
        )
        return bool(response.data)

    async def delete_order(self, order_id: str) -> None:
        """Delete an order and its items (explicit admin action)."""
        order = await self.require_order(order_id, with_items=False)
        self._delete_order_rows(str(order_id))
        logger.info("Order %s deleted", order["order_number"])
        if self.change_feed:
            self.change_feed.publish("orders", {"order_id": str(order_id), "deleted": True})
