"""PayPal redirect-and-capture gateway adapter."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import aiohttp

from storefront.api.middleware.error_handler import ProviderRejectedError, ValidationError
from storefront.core.http import request_json
from storefront.schemas.checkout import PaymentRequest
from storefront.services.payment_gateway import GatewayRedirect, PaymentConfirmation, PaymentGateway
from storefront.services.pricing import convert

logger = logging.getLogger(__name__)


class PayPalGateway(PaymentGateway):
    """Charges through the PayPal Orders v2 API.

    Always settles in USD. The customer approves on PayPal, which sends
    them back to the success URL with the PayPal order ID in a ``token``
    query parameter; confirming captures that order.
    """

    method = "paypal"
    provider_name = "PayPal"

    @property
    def configured(self) -> bool:
        return self.settings.paypal_configured

    @property
    def api_url(self) -> str:
        return self.settings.paypal_api_url.rstrip("/")

    async def _access_token(self) -> str:
        """Exchange client credentials for a bearer token."""
        response = await request_json(
            "POST",
            f"{self.api_url}/v1/oauth2/token",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers={"Accept": "application/json", "Accept-Language": "en_US"},
            data={"grant_type": "client_credentials"},
            auth=aiohttp.BasicAuth(self.settings.paypal_client_id, self.settings.paypal_client_secret),
        )
        if not response.ok or not isinstance(response.body, dict) or not response.body.get("access_token"):
            logger.error("PayPal token error (%s): %s", response.status, response.body)
            raise ProviderRejectedError(self.provider_name, "Failed to get PayPal access token", response.status)
        return response.body["access_token"]

    async def initiate(
        self,
        order: dict[str, Any],
        request: PaymentRequest,
        exchange_rate: Decimal,
    ) -> GatewayRedirect:
        self.require_credentials()

        amount = convert(request.amount, request.currency, "USD", exchange_rate)
        logger.info("Creating PayPal payment for order %s: %s USD", order["order_number"], amount)

        access_token = await self._access_token()
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": order["order_number"],
                    "amount": {"currency_code": "USD", "value": f"{amount:.2f}"},
                    "description": self.description(order),
                }
            ],
            "application_context": {
                "return_url": self.success_url(order),
                "cancel_url": self.cancel_url(),
                "brand_name": self.settings.store_brand_name,
                "user_action": "PAY_NOW",
                "shipping_preference": "NO_SHIPPING",
            },
        }
        response = await request_json(
            "POST",
            f"{self.api_url}/v2/checkout/orders",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers={
                "Authorization": f"Bearer {access_token}",
                "PayPal-Request-Id": order["order_number"],
            },
            json=payload,
        )
        if not response.ok or not isinstance(response.body, dict):
            logger.error("PayPal create order error (%s): %s", response.status, response.body)
            raise ProviderRejectedError(self.provider_name, "Failed to create PayPal order", response.status)

        paypal_order = response.body
        approval_url = next(
            (link.get("href") for link in paypal_order.get("links", []) if link.get("rel") == "approve"),
            None,
        )
        if not approval_url or not paypal_order.get("id"):
            raise ProviderRejectedError(self.provider_name, "PayPal approval URL not found", response.status)

        return GatewayRedirect(
            redirect_url=approval_url,
            provider_payment_id=paypal_order["id"],
            payment_data={
                "paypal_order_id": paypal_order["id"],
                "payment_method": self.method,
                "approval_url": approval_url,
                "charge_amount": f"{amount:.2f}",
                "charge_currency": "USD",
                "charge_exchange_rate": str(exchange_rate),
                "processed_at": datetime.now(timezone.utc).isoformat(),
            },
            charge_amount=amount,
            charge_currency="USD",
        )

    async def confirm(self, order: dict[str, Any], provider_token: str | None) -> PaymentConfirmation:
        """Capture the approved PayPal order.

        Args:
            order: The order row.
            provider_token: PayPal order ID from the return URL ``token``.

        Returns:
            PaymentConfirmation: paid on capture, failed when PayPal
                refuses the capture, pending when there is nothing to
                capture yet or PayPal is having trouble.
        """
        if not provider_token:
            return PaymentConfirmation(outcome="pending", reason="missing PayPal token")
        # Without a recorded PayPal order there is nothing this order may capture
        if not order.get("payment_id"):
            return PaymentConfirmation(outcome="pending", reason="no PayPal order recorded")
        if provider_token != order["payment_id"]:
            raise ValidationError("PayPal token does not match this order")

        self.require_credentials()
        access_token = await self._access_token()
        response = await request_json(
            "POST",
            f"{self.api_url}/v2/checkout/orders/{provider_token}/capture",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers={
                "Authorization": f"Bearer {access_token}",
                "PayPal-Request-Id": f"capture-{order['order_number']}",
            },
            json={},
        )
        body = response.body if isinstance(response.body, dict) else {}

        if response.ok:
            status = body.get("status")
            if status == "COMPLETED":
                return PaymentConfirmation(
                    outcome="paid",
                    provider_status=status,
                    payment_data={
                        "capture_id": self._capture_id(body),
                        "captured_at": datetime.now(timezone.utc).isoformat(),
                        "payer_email": (body.get("payer") or {}).get("email_address"),
                    },
                )
            logger.warning("PayPal capture for order %s returned status %s", order["order_number"], status)
            return PaymentConfirmation(outcome="pending", provider_status=status)

        issues = {detail.get("issue") for detail in body.get("details", []) if isinstance(detail, dict)}
        if "ORDER_ALREADY_CAPTURED" in issues:
            return PaymentConfirmation(outcome="paid", provider_status="ORDER_ALREADY_CAPTURED")

        if response.status >= 500:
            logger.error("PayPal capture unavailable for order %s (%s): %s", order["order_number"], response.status, body)
            return PaymentConfirmation(outcome="pending", provider_status=str(response.status), reason="provider error")

        logger.error("PayPal capture rejected for order %s (%s): %s", order["order_number"], response.status, body)
        return PaymentConfirmation(
            outcome="failed",
            provider_status=body.get("name") or str(response.status),
            payment_data={"capture_error": response.error_message("Capture rejected")},
            reason=response.error_message("Capture rejected"),
        )

    @staticmethod
    def _capture_id(body: dict[str, Any]) -> str | None:
        for unit in body.get("purchase_units", []):
            captures = (unit.get("payments") or {}).get("captures") or []
            if captures:
                return captures[0].get("id")
        return None
