"""Operator notifications via the Telegram Bot API."""

import html
import logging
from typing import Any

import aiohttp

from storefront.core.config import Settings

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"USD": "$", "DZD": "دج"}


class NotificationService:
    """Posts an HTML summary of confirmed orders to an operator chat.

    Best-effort: a missing bot token or chat ID disables it, and send
    failures are logged, never raised, so they cannot affect an order.
    """

    def __init__(self, settings: Settings) -> None:
        self.bot_token = settings.telegram_bot_token
        self.chat_id = settings.telegram_chat_id
        self.timeout = settings.gateway_timeout_seconds
        self.api_url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @staticmethod
    def format_order_message(
        order: dict[str, Any],
        out_of_stock_item_ids: set[str] | None = None,
    ) -> str:
        """Render the operator message for an order with its items.

        The message is sent with parse_mode HTML, so customer and catalog
        text is escaped.
        """
        symbol = CURRENCY_SYMBOLS.get(order["currency"], "")
        out_of_stock_item_ids = out_of_stock_item_ids or set()
        esc = html.escape

        lines = [
            "🛒 <b>New Order Received!</b>",
            "",
            f"📋 <b>Order:</b> #{esc(order['order_number'])}",
            f"👤 <b>Customer:</b> {esc(order['customer_email'])}",
            f"📱 <b>Phone:</b> {esc(order.get('customer_phone') or 'N/A')}",
            f"💳 <b>Payment:</b> {esc(order['payment_method'])}",
            f"💰 <b>Total:</b> {symbol}{order['total_amount']}",
            f"🌍 <b>Currency:</b> {order['currency']}",
            "",
            "📦 <b>Items:</b>",
        ]
        for item in order.get("items", []):
            lines.append(f"• {esc(item.get('product_name') or 'Unknown Product')} (Qty: {item['quantity']})")
            lines.append(
                f"  {symbol}{item['unit_price']} × {item['quantity']} = {symbol}{item['total_price']}"
            )
            if str(item["id"]) in out_of_stock_item_ids:
                lines.append("  ❌ Out of codes, deliver manually")
            elif item.get("fulfillment_type") == "auto":
                lines.append("  ✅ Auto-delivered")
            else:
                lines.append("  ⚠️ Manual fulfillment required")

        lines.append("")
        lines.append(f"💡 <b>Payment Status:</b> {order['status']}")
        lines.append("")
        lines.append("🔗 Check admin dashboard for details.")
        return "\n".join(lines)

    async def notify_order(
        self,
        order: dict[str, Any],
        out_of_stock_item_ids: set[str] | None = None,
    ) -> bool:
        """Send the order summary. Returns True if Telegram accepted it."""
        if not self.enabled:
            logger.debug("Telegram not configured, skipping notification for order %s", order["order_number"])
            return False
        return await self._send_message(self.format_order_message(order, out_of_stock_item_ids))

    async def _send_message(self, text: str) -> bool:
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
        }
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(self.api_url, json=payload) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error("Telegram API error: %s - %s", response.status, error_text)
                        return False
                    logger.info("Telegram notification sent successfully")
                    return True
        except Exception as e:
            logger.error("Failed to send Telegram notification: %s", str(e), exc_info=True)
            return False
