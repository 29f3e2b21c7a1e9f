"""Checkout orchestration: cart to pending order to provider redirect, and back."""

import logging
from typing import Any
from uuid import UUID

from storefront.api.middleware.error_handler import (
    MaintenanceModeError,
    NotFoundError,
    PaymentError,
    PaymentMethodDisabledError,
    ValidationError,
)
from storefront.schemas.checkout import CheckoutRequest, CheckoutResponse, OrderResponse, PaymentRequest
from storefront.services.cart_service import CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.chargily_gateway import ChargilyGateway
from storefront.services.crypto_gateway import CryptoGateway
from storefront.services.email_service import EmailService
from storefront.services.fulfillment_service import FulfillmentResult, FulfillmentService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.pricing import cart_total, quantize, settlement_currency, tax_for, to_decimal
from storefront.services.store_settings_service import StoreSettingsService

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service for checkout, payment confirmation and provider webhooks.

    Payment state only moves on an explicit provider confirmation. Return
    URLs and webhooks are just triggers for a status check, and the
    ledger's compare-and-swap makes concurrent triggers settle on one
    transition; only the trigger that wins it notifies.
    """

    def __init__(
        self,
        orders: OrderService,
        gateways: dict[str, PaymentGateway],
        fulfillment: FulfillmentService,
        store_settings: StoreSettingsService,
        catalog: CatalogService,
        carts: CartService,
        notifications: NotificationService,
        emails: EmailService,
    ) -> None:
        self.orders = orders
        self.gateways = gateways
        self.fulfillment = fulfillment
        self.store_settings = store_settings
        self.catalog = catalog
        self.carts = carts
        self.notifications = notifications
        self.emails = emails

    def _gateway(self, method: str) -> PaymentGateway:
        try:
            return self.gateways[method]
        except KeyError:
            raise ValidationError(f"Unsupported payment method: {method}") from None

    async def start_checkout(self, request: CheckoutRequest) -> CheckoutResponse:
        """Create a pending order for the cart and start the provider payment.

        Args:
            request: Checkout request with either explicit lines or a cart owner.

        Returns:
            CheckoutResponse: Order identifiers and the provider redirect URL.

        Raises:
            MaintenanceModeError: Store is in maintenance.
            PaymentMethodDisabledError: Method switched off in settings.
            CredentialsMissingError: Provider not configured.
            ValidationError: Empty or invalid cart.
            OrderCreationError: Order could not be stored.
            ProviderRejectedError, GatewayUnavailableError: Provider step
                failed; the order stays pending.
        """
        store_settings = await self.store_settings.get_settings()
        if store_settings.maintenance_mode:
            raise MaintenanceModeError()
        if not store_settings.is_method_enabled(request.method):
            raise PaymentMethodDisabledError(request.method)

        gateway = self._gateway(request.method)
        gateway.require_credentials()

        from_cart = not request.items
        if from_cart:
            lines = await self.carts.get_snapshot(user_id=request.user_id, session_id=request.cart_session_id)
        else:
            lines = request.items
        priced = await self.catalog.price_lines(lines)

        rate = store_settings.exchange_rate_usd_to_dzd
        display_currency = request.currency or settlement_currency(request.method)
        display_subtotal = cart_total(priced, display_currency, rate)
        display_amount = quantize(display_subtotal + tax_for(display_subtotal, store_settings.tax_rate))

        payment_request = PaymentRequest(
            method=request.method,
            amount=display_amount,
            currency=display_currency,
            customer_email=request.customer_email.strip(),
            customer_phone=request.customer_phone,
            items=priced,
            user_id=request.user_id,
        )

        order = await self.orders.create_order(payment_request, store_settings)

        try:
            redirect = await gateway.initiate(order, payment_request, rate)
        except PaymentError as e:
            logger.error("Payment initiation failed for order %s: %s", order["order_number"], e.message)
            raise

        total = to_decimal(order["total_amount"])
        if (
            redirect.charge_currency == order["currency"]
            and redirect.charge_amount != total
            and not redirect.payment_data.get("minimum_applied")
        ):
            logger.warning(
                "Charge for order %s is %s %s but ledger total is %s",
                order["order_number"],
                redirect.charge_amount,
                redirect.charge_currency,
                total,
            )

        await self.orders.record_payment_initiation(order["id"], redirect.provider_payment_id, redirect.payment_data)

        cart: list[dict[str, Any]] = []
        if from_cart:
            cart = await self.carts.clear_cart(user_id=request.user_id, session_id=request.cart_session_id)

        logger.info(
            "Checkout started for order %s via %s, redirecting to provider",
            order["order_number"],
            request.method,
        )
        return CheckoutResponse(
            order_id=str(order["id"]),
            order_number=order["order_number"],
            redirect_url=redirect.redirect_url,
            payment_id=redirect.provider_payment_id,
            amount=total,
            currency=order["currency"],
            cart=cart,
        )

    async def confirm_payment(self, order_id: str, provider_token: str | None = None) -> dict[str, Any]:
        """Ask the provider about an order's payment and act on the answer.

        A paid confirmation moves the order to paid and runs fulfillment;
        the operator notification and customer email are sent only by the
        call that made the transition. A failed confirmation moves a
        pending order to failed. Pending leaves the order untouched.

        Returns:
            dict: The refreshed order with its items.
        """
        order = await self.orders.require_order(order_id)

        if order["status"] in ("delivered", "refunded"):
            return order
        if order["status"] == "paid":
            # Already confirmed; finish any fulfillment a previous call left undone.
            await self.fulfillment.fulfill_order(order_id)
            return await self.orders.require_order(order_id)

        gateway = self._gateway(order["payment_method"])
        confirmation = await gateway.confirm(order, provider_token)
        logger.info(
            "Payment check for order %s: %s (%s)",
            order["order_number"],
            confirmation.outcome,
            confirmation.provider_status,
        )

        if confirmation.payment_data:
            await self.orders.merge_payment_data(order_id, confirmation.payment_data)

        if confirmation.outcome == "paid":
            transitioned = await self.orders.update_order_status(order_id, "paid")
            result = await self.fulfillment.fulfill_order(order_id)
            order = await self.orders.require_order(order_id)
            if transitioned:
                await self._announce(order, result)
            return order

        if confirmation.outcome == "failed" and order["status"] == "pending":
            await self.orders.update_order_status(order_id, "failed")
            logger.warning("Payment failed for order %s: %s", order["order_number"], confirmation.reason)
            return await self.orders.require_order(order_id)

        return order

    async def _announce(self, order: dict[str, Any], result: FulfillmentResult) -> None:
        """Notify the operator and the customer; both are best-effort."""
        out_of_stock = {str(item["id"]) for item in result.out_of_stock}
        await self.notifications.notify_order(order, out_of_stock)
        await self.emails.send_delivery_email(order)

    async def refulfill(self, order_id: str) -> FulfillmentResult:
        """Re-run fulfillment for a paid order (e.g. after codes were restocked)."""
        return await self.fulfillment.fulfill_order(order_id)

    async def order_view(self, order: dict[str, Any]) -> OrderResponse:
        """Order response with support contact info when items are still undelivered."""
        store_settings = await self.store_settings.get_settings()
        return OrderResponse.from_order(order, support_contact=store_settings.contact_info.model_dump())

    async def handle_nowpayments_ipn(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Handle a NOWPayments IPN callback.

        The IPN only identifies the payment; its status is re-read from
        the payment API before anything changes.
        """
        gateway = self._gateway("crypto")
        if not isinstance(gateway, CryptoGateway):
            raise ValidationError("Crypto payments are not supported")
        body = gateway.verify_ipn_signature(payload, signature)

        order_number = body.get("order_id")
        payment_id = body.get("payment_id")
        if not order_number or not payment_id:
            raise ValidationError("IPN is missing order_id or payment_id")

        order = await self.orders.get_order_by_number(str(order_number))
        if order is None:
            logger.warning("IPN for unknown order %s", order_number)
            return {"received": True, "order_status": None}

        await self.orders.merge_payment_data(order["id"], {"crypto_payment_id": str(payment_id)})
        refreshed = await self.confirm_payment(order["id"], str(payment_id))
        return {"received": True, "order_status": refreshed["status"]}

    async def handle_chargily_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Handle a Chargily checkout webhook.

        Only the checkout ID and order reference are taken from the
        event; the status is re-read from the checkout API.
        """
        gateway = self._gateway("edahabia")
        if not isinstance(gateway, ChargilyGateway):
            raise ValidationError("Edahabia payments are not supported")
        event = gateway.verify_webhook_signature(payload, signature)

        checkout = event.get("data") or {}
        checkout_id = checkout.get("id")
        order_id = (checkout.get("metadata") or {}).get("order_id")
        if not checkout_id or not order_id:
            raise ValidationError("Webhook is missing checkout id or order reference")
        try:
            order_id = str(UUID(str(order_id)))
        except ValueError:
            logger.warning("Chargily webhook %s with malformed order reference %r", event.get("type"), order_id)
            return {"received": True, "order_status": None}

        try:
            refreshed = await self.confirm_payment(str(order_id), str(checkout_id))
        except NotFoundError:
            logger.warning("Chargily webhook %s for unknown order %s", event.get("type"), order_id)
            return {"received": True, "order_status": None}
        return {"received": True, "order_status": refreshed["status"]}
