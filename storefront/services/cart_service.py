"""Cart snapshot access for checkout."""

from typing import Any

from supabase import Client

from storefront.api.middleware.error_handler import ValidationError
from storefront.schemas.checkout import CartLineInput


class CartService:
    """Reads and clears a user's or anonymous session's cart.

    Mutations return the fresh cart so callers never need a separate
    "cart updated" signal.
    """

    def __init__(self, client: Client) -> None:
        self.client = client

    def _owner_filter(self, user_id: str | None, session_id: str | None) -> tuple[str, str]:
        if user_id:
            return "user_id", user_id
        if session_id:
            return "session_id", session_id
        raise ValidationError("A user ID or cart session ID is required")

    async def get_cart(self, user_id: str | None = None, session_id: str | None = None) -> list[dict[str, Any]]:
        """Get the cart rows for a user or anonymous session."""
        column, value = self._owner_filter(user_id, session_id)
        response = (
            self.client.table("carts")
            .select("id, product_id, variant_id, quantity")
            .eq(column, value)
            .order("created_at")
            .execute()
        )
        return response.data or []

    async def get_snapshot(self, user_id: str | None = None, session_id: str | None = None) -> list[CartLineInput]:
        """Read the cart as checkout lines."""
        rows = await self.get_cart(user_id=user_id, session_id=session_id)
        return [
            CartLineInput(
                product_id=str(row["product_id"]),
                variant_id=str(row["variant_id"]) if row.get("variant_id") else None,
                quantity=row.get("quantity") or 1,
            )
            for row in rows
        ]

    async def clear_cart(self, user_id: str | None = None, session_id: str | None = None) -> list[dict[str, Any]]:
        """Empty the cart and return its fresh state."""
        column, value = self._owner_filter(user_id, session_id)
        self.client.table("carts").delete().eq(column, value).execute()
        return await self.get_cart(user_id=user_id, session_id=session_id)
