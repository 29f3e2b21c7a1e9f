"""Back-office queries for the admin dashboard."""

import logging
from decimal import Decimal
from typing import Any

from supabase import Client

from storefront.services.pricing import quantize, to_decimal

logger = logging.getLogger(__name__)

REVENUE_STATUSES = ("paid", "delivered")


class AdminService:
    """Aggregates store-wide figures for the dashboard."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def _count(self, table: str, **filters: Any) -> int:
        query = self.client.table(table).select("id", count="exact")
        for column, value in filters.items():
            query = query.eq(column, value)
        response = query.execute()
        if response.count is not None:
            return response.count
        return len(response.data or [])

    async def get_dashboard_stats(self) -> dict[str, Any]:
        """Product, order and code counts, revenue and the latest orders.

        Revenue counts paid and delivered orders and is reported per
        currency, since USD and DZD orders cannot be summed.
        """
        revenue_rows = (
            self.client.table("orders")
            .select("total_amount, currency")
            .in_("status", list(REVENUE_STATUSES))
            .execute()
        ).data or []
        revenue: dict[str, Decimal] = {"USD": Decimal("0"), "DZD": Decimal("0")}
        for row in revenue_rows:
            revenue[row["currency"]] = revenue.get(row["currency"], Decimal("0")) + to_decimal(row["total_amount"])

        recent_orders = (
            self.client.table("orders")
            .select("*")
            .order("created_at", desc=True)
            .limit(5)
            .execute()
        ).data or []

        total_codes = self._count("codes")
        used_codes = self._count("codes", is_used=True)

        return {
            "total_products": self._count("products"),
            "active_products": self._count("products", is_active=True),
            "total_orders": self._count("orders"),
            "pending_orders": self._count("orders", status="pending"),
            "revenue": {currency: quantize(amount) for currency, amount in revenue.items()},
            "total_codes": total_codes,
            "used_codes": used_codes,
            "available_codes": total_codes - used_codes,
            "recent_orders": recent_orders,
        }
