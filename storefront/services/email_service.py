"""Email service using Resend for transactional emails."""

import html
import logging
from typing import Any

import resend

from storefront.core.config import Settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self, settings: Settings) -> None:
        """Initialize email service with Resend API key."""
        resend.api_key = settings.resend_api_key
        self.enabled = bool(settings.resend_api_key)
        self.from_email = settings.email_from_address
        self.frontend_url = settings.frontend_url.rstrip("/")
        self.brand_name = settings.store_brand_name

    def _order_url(self, order: dict[str, Any]) -> str:
        return f"{self.frontend_url}/order-success?order={order['id']}"

    def _render_delivery(self, order: dict[str, Any]) -> tuple[str, str]:
        """Build the HTML and plain-text bodies for a delivery email."""
        delivered = [item for item in order.get("items", []) if item.get("delivery_status") == "delivered"]
        pending = [item for item in order.get("items", []) if item.get("delivery_status") != "delivered"]

        code_rows = "".join(
            f"""
        <tr>
            <td style="padding: 8px; border-bottom: 1px solid #e5e7eb;">{html.escape(item.get("product_name") or "")}</td>
            <td style="padding: 8px; border-bottom: 1px solid #e5e7eb; font-family: monospace;">{html.escape(item.get("delivery_code") or "")}</td>
        </tr>"""
            for item in delivered
        )
        pending_block = ""
        if pending:
            pending_names = "".join(f"<li>{html.escape(item.get('product_name') or '')}</li>" for item in pending)
            pending_block = f"""
    <p style="margin-top: 20px;">These items will be delivered by our team shortly:</p>
    <ul>{pending_names}</ul>"""

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Your order {html.escape(order["order_number"])}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="font-size: 22px;">Thank you for your order!</h1>
    <p>Order <strong>{html.escape(order["order_number"])}</strong> has been paid.</p>
    <table style="width: 100%; border-collapse: collapse;">
        <tr>
            <th style="text-align: left; padding: 8px;">Product</th>
            <th style="text-align: left; padding: 8px;">Code</th>
        </tr>{code_rows}
    </table>{pending_block}
    <p style="margin-top: 30px;">
        <a href="{self._order_url(order)}" style="background: #667eea; color: white; padding: 12px 28px; text-decoration: none; border-radius: 6px; font-weight: 600;">
            View your order
        </a>
    </p>
</body>
</html>
"""

        text_lines = [f"Thank you for your order {order['order_number']}!", ""]
        for item in delivered:
            text_lines.append(f"{item.get('product_name')}: {item.get('delivery_code')}")
        if pending:
            text_lines.append("")
            text_lines.append("These items will be delivered by our team shortly:")
            text_lines.extend(f"- {item.get('product_name')}" for item in pending)
        text_lines.append("")
        text_lines.append(f"View your order: {self._order_url(order)}")
        return html_content, "\n".join(text_lines)

    async def send_delivery_email(self, order: dict[str, Any]) -> dict[str, Any]:
        """Send the customer their delivered codes.

        Args:
            order: Order row with its items.

        Returns:
            dict: {"success": bool, "email_id" | "error": ...}
        """
        if not self.enabled:
            logger.debug("Resend not configured, skipping delivery email for order %s", order["order_number"])
            return {"success": False, "error": "email not configured"}

        html_content, text_content = self._render_delivery(order)
        try:
            response = resend.Emails.send({
                "from": self.from_email,
                "to": [order["customer_email"]],
                "subject": f"Your order {order['order_number']} - {self.brand_name}",
                "html": html_content,
                "text": text_content,
            })

            logger.info("Delivery email sent for order %s, id: %s", order["order_number"], response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send delivery email for order %s: %s", order["order_number"], str(e))
            return {"success": False, "error": str(e)}
