"""NOWPayments crypto invoice gateway adapter."""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from storefront.api.middleware.error_handler import (
    AuthenticationError,
    CredentialsMissingError,
    ProviderRejectedError,
    ValidationError,
)
from storefront.core.http import request_json
from storefront.schemas.checkout import PaymentRequest
from storefront.services.payment_gateway import GatewayRedirect, PaymentConfirmation, PaymentGateway
from storefront.services.pricing import convert, quantize

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"finished"})
FAILED_STATUSES = frozenset({"failed", "expired"})


class CryptoGateway(PaymentGateway):
    """Charges through a NOWPayments hosted invoice.

    Always settles in USD and never asks for less than the provider
    minimum. The customer pays in a network-qualified ticker such as
    ``usdttrc20``.
    """

    method = "crypto"
    provider_name = "Crypto"

    @property
    def configured(self) -> bool:
        return self.settings.nowpayments_configured

    @property
    def api_url(self) -> str:
        return self.settings.nowpayments_api_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.settings.nowpayments_api_key}

    def invoice_amount(self, amount_usd: Decimal) -> Decimal:
        """Raise sub-minimum amounts to the provider minimum instead of rejecting them."""
        return quantize(max(amount_usd, self.settings.nowpayments_min_amount_usd))

    async def initiate(
        self,
        order: dict[str, Any],
        request: PaymentRequest,
        exchange_rate: Decimal,
    ) -> GatewayRedirect:
        self.require_credentials()

        requested = convert(request.amount, request.currency, "USD", exchange_rate)
        amount = self.invoice_amount(requested)
        if amount != requested:
            logger.info(
                "Raising crypto invoice for order %s from %s to provider minimum %s USD",
                order["order_number"],
                requested,
                amount,
            )

        payload = {
            "price_amount": float(amount),
            "price_currency": "usd",
            "pay_currency": self.settings.nowpayments_pay_currency,
            "order_id": order["order_number"],
            "order_description": self.description(order),
            "ipn_callback_url": self.webhook_url("nowpayments"),
            "success_url": self.success_url(order),
            "cancel_url": self.cancel_url(),
        }
        logger.info("Creating crypto invoice for order %s", order["order_number"])
        response = await request_json(
            "POST",
            f"{self.api_url}/invoice",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers=self._headers(),
            json=payload,
        )
        if not response.ok or not isinstance(response.body, dict):
            logger.error("NOWPayments invoice error (%s): %s", response.status, response.body)
            raise ProviderRejectedError(
                self.provider_name,
                f"NOWPayments API error: {response.error_message()}",
                response.status,
            )

        invoice = response.body
        invoice_url = invoice.get("invoice_url")
        invoice_id = invoice.get("id")
        if not invoice_url or not invoice_id:
            raise ProviderRejectedError(self.provider_name, "NOWPayments invoice URL not found", response.status)

        return GatewayRedirect(
            redirect_url=invoice_url,
            provider_payment_id=str(invoice_id),
            payment_data={
                "invoice_id": str(invoice_id),
                "payment_url": invoice_url,
                "pay_currency": self.settings.nowpayments_pay_currency,
                "payment_method": self.method,
                "charge_amount": f"{amount:.2f}",
                "charge_currency": "USD",
                "charge_exchange_rate": str(exchange_rate),
                "requested_amount": f"{requested:.2f}",
                "minimum_applied": amount != requested,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            charge_amount=amount,
            charge_currency="USD",
        )

    async def confirm(self, order: dict[str, Any], provider_token: str | None) -> PaymentConfirmation:
        """Read the payment's status from the NOWPayments payment API.

        Args:
            order: The order row.
            provider_token: NOWPayments payment ID (from the IPN or the
                return URL). Falls back to the one recorded by an earlier IPN.
        """
        payment_id = provider_token or (order.get("payment_data") or {}).get("crypto_payment_id")
        if not payment_id:
            return PaymentConfirmation(outcome="pending", reason="no crypto payment yet")

        self.require_credentials()
        response = await request_json(
            "GET",
            f"{self.api_url}/payment/{payment_id}",
            provider=self.provider_name,
            timeout=self.settings.gateway_timeout_seconds,
            headers=self._headers(),
        )
        if not response.ok or not isinstance(response.body, dict):
            logger.error("NOWPayments status error for order %s (%s): %s", order["order_number"], response.status, response.body)
            return PaymentConfirmation(outcome="pending", provider_status=str(response.status), reason="status check failed")

        payment = response.body
        belongs = str(payment.get("order_id")) == order["order_number"] or (
            payment.get("invoice_id") is not None and str(payment.get("invoice_id")) == str(order.get("payment_id"))
        )
        if not belongs:
            logger.warning("Crypto payment %s does not belong to order %s", payment_id, order["order_number"])
            raise ValidationError("Crypto payment does not belong to this order")

        status = payment.get("payment_status")
        payment_data = {
            "crypto_payment_id": str(payment_id),
            "payment_status": status,
            "pay_address": payment.get("pay_address"),
            "pay_amount": payment.get("pay_amount"),
            "actually_paid": payment.get("actually_paid"),
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }
        if status in PAID_STATUSES:
            return PaymentConfirmation(outcome="paid", provider_status=status, payment_data=payment_data)
        if status in FAILED_STATUSES:
            return PaymentConfirmation(outcome="failed", provider_status=status, payment_data=payment_data, reason=status)
        return PaymentConfirmation(outcome="pending", provider_status=status, payment_data=payment_data)

    def verify_ipn_signature(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify an IPN body signed with HMAC-SHA512 over its key-sorted JSON.

        Returns:
            dict: The decoded IPN body.

        Raises:
            CredentialsMissingError: If no IPN secret is configured.
            AuthenticationError: If the signature is missing or wrong.
        """
        if not self.settings.nowpayments_ipn_secret:
            raise CredentialsMissingError(self.provider_name)
        if not signature:
            raise AuthenticationError("Missing x-nowpayments-sig header")
        try:
            body = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Invalid IPN payload") from e
        if not isinstance(body, dict):
            raise ValidationError("Invalid IPN payload")

        canonical = json.dumps(body, sort_keys=True, separators=(",", ":"))
        expected = hmac.new(
            self.settings.nowpayments_ipn_secret.encode(),
            canonical.encode(),
            hashlib.sha512,
        ).hexdigest()
        if not hmac.compare_digest(expected, signature.lower()):
            raise AuthenticationError("Invalid IPN signature")
        return body
