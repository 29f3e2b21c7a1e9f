"""Chargily Pay (Edahabia / CIB) gateway adapter."""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from storefront.api.middleware.error_handler import AuthenticationError, ProviderRejectedError, ValidationError
from storefront.core.http import request_json
from storefront.schemas.checkout import PaymentRequest
from storefront.services.payment_gateway import GatewayRedirect, PaymentConfirmation, PaymentGateway
from storefront.services.pricing import convert, whole_units

logger = logging.getLogger(__name__)

FAILED_STATUSES = frozenset({"failed", "canceled", "expired"})


class ChargilyGateway(PaymentGateway):
    """Charges Algerian bank cards through a Chargily hosted checkout.

    Always settles in DZD. Chargily takes the amount in whole dinars,
    not centimes.
    """

    method = "edahabia"
    provider_name = "Edahabia/CIB"

    @property
    def configured(self) -> bool:
        return self.settings.chargily_configured

    @property
    def api_url(self) -> str:
        return self.settings.chargily_api_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.chargily_api_key}"}

    async def initiate(
        self,
        order: dict[str, Any],
        request: PaymentRequest,
        exchange_rate: Decimal,
    ) -> GatewayRedirect:
        self.require_credentials()

        amount_dzd = convert(request.amount, request.currency, "DZD", exchange_rate)
        provider_amount = whole_units(amount_dzd)

        payload = {
            "amount": provider_amount,
            "currency": "dzd",
            "description": self.description(order),
            "success_url": self.success_url(order),
            "failure_url": self.cancel_url(),
            "webhook_endpoint": self.webhook_url("chargily"),
            "metadata": {
                "order_id": str(order["id"]),
                "order_number": order["order_number"],
                "customer_email": request.customer_email,
            },
        }
        logger.info("Creating Edahabia checkout for order %s: %d DZD", order["order_number"], provider_amount)
        response = await request_json(
            "POST",
            f"{self.api_url}/checkouts",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers=self._headers(),
            json=payload,
        )
        if not response.ok or not isinstance(response.body, dict):
            logger.error("Chargily checkout error (%s): %s", response.status, response.body)
            raise ProviderRejectedError(
                self.provider_name,
                f"Chargily API error: {response.error_message()}",
                response.status,
            )

        checkout = response.body
        checkout_url = checkout.get("checkout_url")
        checkout_id = checkout.get("id")
        if not checkout_url or not checkout_id:
            raise ProviderRejectedError(self.provider_name, "Chargily checkout URL not found", response.status)

        return GatewayRedirect(
            redirect_url=checkout_url,
            provider_payment_id=str(checkout_id),
            payment_data={
                "checkout_id": str(checkout_id),
                "checkout_url": checkout_url,
                "payment_method": self.method,
                "amount_dzd": provider_amount,
                "charge_amount": str(provider_amount),
                "charge_currency": "DZD",
                "charge_exchange_rate": str(exchange_rate),
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            charge_amount=Decimal(provider_amount),
            charge_currency="DZD",
        )

    async def confirm(self, order: dict[str, Any], provider_token: str | None) -> PaymentConfirmation:
        """Read the checkout's status from the Chargily API.

        Args:
            order: The order row.
            provider_token: Chargily checkout ID; defaults to the order's
                stored payment_id.
        """
        checkout_id = provider_token or order.get("payment_id")
        if not checkout_id:
            return PaymentConfirmation(outcome="pending", reason="no checkout yet")
        if order.get("payment_id") and checkout_id != order["payment_id"]:
            raise ValidationError("Checkout does not belong to this order")

        self.require_credentials()
        response = await request_json(
            "GET",
            f"{self.api_url}/checkouts/{checkout_id}",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers=self._headers(),
        )
        if not response.ok or not isinstance(response.body, dict):
            logger.error("Chargily status error for order %s (%s): %s", order["order_number"], response.status, response.body)
            return PaymentConfirmation(outcome="pending", provider_status=str(response.status), reason="status check failed")

        checkout = response.body
        metadata_order_id = (checkout.get("metadata") or {}).get("order_id")
        if metadata_order_id and str(metadata_order_id) != str(order["id"]):
            raise ValidationError("Checkout does not belong to this order")

        status = checkout.get("status")
        payment_data = {
            "checkout_status": status,
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }
        if status == "paid":
            return PaymentConfirmation(outcome="paid", provider_status=status, payment_data=payment_data)
        if status in FAILED_STATUSES:
            return PaymentConfirmation(outcome="failed", provider_status=status, payment_data=payment_data, reason=status)
        return PaymentConfirmation(outcome="pending", provider_status=status, payment_data=payment_data)

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify a webhook body signed with HMAC-SHA256 using the API key.

        Returns:
            dict: The decoded webhook event.

        Raises:
            CredentialsMissingError: If Chargily is not configured.
            AuthenticationError: If the signature is missing or wrong.
        """
        self.require_credentials()
        if not signature:
            raise AuthenticationError("Missing signature header")
        expected = hmac.new(
            self.settings.chargily_api_key.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()
        if not hmac.compare_digest(expected, signature):
            raise AuthenticationError("Invalid webhook signature")
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e
        if not isinstance(event, dict):
            raise ValidationError("Invalid webhook payload")
        return event
