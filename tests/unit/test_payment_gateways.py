"""Unit tests for the PayPal, crypto and Edahabia gateway adapters."""

import hashlib
import hmac
import json
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from storefront.api.middleware.error_handler import (
    AuthenticationError,
    CredentialsMissingError,
    GatewayUnavailableError,
    ProviderRejectedError,
    ValidationError,
)
from storefront.core.config import Settings
from storefront.core.http import ProviderResponse
from storefront.schemas.checkout import PaymentRequest, PricedLine
from storefront.services.chargily_gateway import ChargilyGateway
from storefront.services.crypto_gateway import CryptoGateway
from storefront.services.paypal_gateway import PayPalGateway

RATE = Decimal("250")


@pytest.fixture
def order() -> dict[str, Any]:
    return {
        "id": "0b7c6f3e-order",
        "order_number": "ORD-123456-ABCDE",
        "status": "pending",
        "payment_id": None,
        "payment_data": {},
    }


def make_request(amount: str, currency: str = "USD", method: str = "paypal") -> PaymentRequest:
    return PaymentRequest(
        method=method,
        amount=Decimal(amount),
        currency=currency,
        customer_email="buyer@example.com",
        items=[
            PricedLine(
                product_id="prod-1",
                product_name="Netflix Premium",
                fulfillment_type="auto",
                quantity=1,
                price_usd=Decimal(amount),
            )
        ],
    )


def unconfigured_settings(test_settings: Settings) -> Settings:
    return test_settings.model_copy(
        update={
            "paypal_client_id": "",
            "paypal_client_secret": "",
            "nowpayments_api_key": "",
            "nowpayments_ipn_secret": "",
            "chargily_api_key": "",
        }
    )


class TestPayPalGateway:
    @pytest.mark.asyncio
    async def test_initiate_returns_approval_url(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(
                    201,
                    {
                        "id": "5O190127TN364715T",
                        "status": "CREATED",
                        "links": [
                            {"rel": "self", "href": "https://api.paypal.com/v2/checkout/orders/5O19"},
                            {"rel": "approve", "href": "https://www.paypal.com/checkoutnow?token=5O19"},
                        ],
                    },
                ),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            redirect = await gateway.initiate(order, make_request("25.00"), RATE)

        assert redirect.redirect_url == "https://www.paypal.com/checkoutnow?token=5O19"
        assert redirect.provider_payment_id == "5O190127TN364715T"
        assert redirect.charge_amount == Decimal("25.00")
        assert redirect.charge_currency == "USD"
        assert redirect.payment_data["paypal_order_id"] == "5O190127TN364715T"

        create_call = mock_request.call_args_list[1]
        unit = create_call.kwargs["json"]["purchase_units"][0]
        assert unit["amount"] == {"currency_code": "USD", "value": "25.00"}
        assert unit["reference_id"] == "ORD-123456-ABCDE"
        assert create_call.kwargs["json"]["application_context"]["return_url"].startswith(
            "https://shop.example.com/order-success?order="
        )

    @pytest.mark.asyncio
    async def test_initiate_converts_dzd_display_amount(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(201, {"id": "PP-1", "links": [{"rel": "approve", "href": "https://paypal/approve"}]}),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            redirect = await gateway.initiate(order, make_request("2500", currency="DZD"), RATE)

        assert redirect.charge_amount == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_missing_approval_link_is_rejected(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(201, {"id": "PP-1", "links": []}),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            with pytest.raises(ProviderRejectedError):
                await gateway.initiate(order, make_request("25.00"), RATE)

    @pytest.mark.asyncio
    async def test_token_failure_is_rejected(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        mock_request = AsyncMock(return_value=ProviderResponse(401, {"error": "invalid_client"}))

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            with pytest.raises(ProviderRejectedError):
                await gateway.initiate(order, make_request("25.00"), RATE)

    @pytest.mark.asyncio
    async def test_unconfigured_raises_before_any_call(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(unconfigured_settings(test_settings))
        mock_request = AsyncMock()

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            with pytest.raises(CredentialsMissingError) as exc_info:
                await gateway.initiate(order, make_request("25.00"), RATE)

        assert "PayPal" in exc_info.value.message
        mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_capture_completed_is_paid(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        order["payment_id"] = "PP-1"
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(
                    201,
                    {
                        "status": "COMPLETED",
                        "payer": {"email_address": "payer@example.com"},
                        "purchase_units": [{"payments": {"captures": [{"id": "CAP-1"}]}}],
                    },
                ),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            confirmation = await gateway.confirm(order, "PP-1")

        assert confirmation.confirmed is True
        assert confirmation.payment_data["capture_id"] == "CAP-1"
        assert confirmation.payment_data["payer_email"] == "payer@example.com"

    @pytest.mark.asyncio
    async def test_already_captured_counts_as_paid(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        order["payment_id"] = "PP-1"
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(
                    422,
                    {"name": "UNPROCESSABLE_ENTITY", "details": [{"issue": "ORDER_ALREADY_CAPTURED"}]},
                ),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            confirmation = await gateway.confirm(order, "PP-1")

        assert confirmation.outcome == "paid"

    @pytest.mark.asyncio
    async def test_declined_capture_is_failed(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        order["payment_id"] = "PP-1"
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(
                    422,
                    {"name": "UNPROCESSABLE_ENTITY", "details": [{"issue": "INSTRUMENT_DECLINED"}]},
                ),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            confirmation = await gateway.confirm(order, "PP-1")

        assert confirmation.outcome == "failed"

    @pytest.mark.asyncio
    async def test_provider_outage_stays_pending(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        order["payment_id"] = "PP-1"
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(503, "Service Unavailable"),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            confirmation = await gateway.confirm(order, "PP-1")

        assert confirmation.outcome == "pending"

    @pytest.mark.asyncio
    async def test_foreign_token_is_refused(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = PayPalGateway(test_settings)
        order["payment_id"] = "PP-1"

        with pytest.raises(ValidationError):
            await gateway.confirm(order, "PP-OTHER")

    @pytest.mark.asyncio
    async def test_missing_token_is_pending(self, test_settings: Settings, order: dict[str, Any]) -> None:
        confirmation = await PayPalGateway(test_settings).confirm(order, None)

        assert confirmation.outcome == "pending"

    @pytest.mark.asyncio
    async def test_order_without_paypal_order_captures_nothing(
        self, test_settings: Settings, order: dict[str, Any]
    ) -> None:
        """An order whose initiation never recorded a PayPal order cannot be paid by any token."""
        mock_request = AsyncMock(
            side_effect=[
                ProviderResponse(200, {"access_token": "A21AA"}),
                ProviderResponse(422, {"details": [{"issue": "ORDER_ALREADY_CAPTURED"}]}),
            ]
        )

        with patch("storefront.services.paypal_gateway.request_json", mock_request):
            confirmation = await PayPalGateway(test_settings).confirm(order, "SOMEONE-ELSES-PAYPAL-ORDER")

        assert confirmation.outcome == "pending"
        mock_request.assert_not_called()


class TestCryptoGateway:
    @pytest.mark.asyncio
    async def test_amount_below_minimum_is_raised(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = CryptoGateway(test_settings)
        mock_request = AsyncMock(
            return_value=ProviderResponse(200, {"id": 4522625843, "invoice_url": "https://nowpayments.io/payment/?iid=4522625843"})
        )

        with patch("storefront.services.crypto_gateway.request_json", mock_request):
            redirect = await gateway.initiate(order, make_request("1.20", method="crypto"), RATE)

        payload = mock_request.call_args.kwargs["json"]
        assert payload["price_amount"] == 3.0
        assert payload["price_currency"] == "usd"
        assert payload["pay_currency"] == "usdttrc20"
        assert payload["order_id"] == "ORD-123456-ABCDE"
        assert payload["ipn_callback_url"] == "https://api.example.com/api/v1/webhooks/nowpayments"
        assert redirect.charge_amount == Decimal("3.00")
        assert redirect.provider_payment_id == "4522625843"
        assert redirect.payment_data["minimum_applied"] is True
        assert redirect.payment_data["requested_amount"] == "1.20"

    @pytest.mark.asyncio
    async def test_amount_above_minimum_is_kept(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = CryptoGateway(test_settings)
        mock_request = AsyncMock(return_value=ProviderResponse(200, {"id": 1, "invoice_url": "https://np/1"}))

        with patch("storefront.services.crypto_gateway.request_json", mock_request):
            redirect = await gateway.initiate(order, make_request("12.50", method="crypto"), RATE)

        assert redirect.charge_amount == Decimal("12.50")
        assert redirect.payment_data["minimum_applied"] is False

    @pytest.mark.asyncio
    async def test_provider_error_surfaces_message(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = CryptoGateway(test_settings)
        mock_request = AsyncMock(
            return_value=ProviderResponse(400, {"message": "Currency usdt was not found"})
        )

        with patch("storefront.services.crypto_gateway.request_json", mock_request):
            with pytest.raises(ProviderRejectedError) as exc_info:
                await gateway.initiate(order, make_request("10.00", method="crypto"), RATE)

        assert "Currency usdt was not found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = CryptoGateway(test_settings)
        mock_request = AsyncMock(side_effect=GatewayUnavailableError("Crypto", "request timed out"))

        with patch("storefront.services.crypto_gateway.request_json", mock_request):
            with pytest.raises(GatewayUnavailableError):
                await gateway.initiate(order, make_request("10.00", method="crypto"), RATE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "outcome"),
        [("finished", "paid"), ("expired", "failed"), ("failed", "failed"), ("confirming", "pending")],
    )
    async def test_confirm_maps_payment_status(
        self, test_settings: Settings, order: dict[str, Any], status: str, outcome: str
    ) -> None:
        gateway = CryptoGateway(test_settings)
        mock_request = AsyncMock(
            return_value=ProviderResponse(
                200, {"payment_id": 5077125051, "payment_status": status, "order_id": "ORD-123456-ABCDE"}
            )
        )

        with patch("storefront.services.crypto_gateway.request_json", mock_request):
            confirmation = await gateway.confirm(order, "5077125051")

        assert confirmation.outcome == outcome
        assert confirmation.payment_data["crypto_payment_id"] == "5077125051"

    @pytest.mark.asyncio
    async def test_confirm_refuses_foreign_payment(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = CryptoGateway(test_settings)
        mock_request = AsyncMock(
            return_value=ProviderResponse(200, {"payment_status": "finished", "order_id": "ORD-999999-ZZZZZ"})
        )

        with patch("storefront.services.crypto_gateway.request_json", mock_request):
            with pytest.raises(ValidationError):
                await gateway.confirm(order, "5077125051")

    @pytest.mark.asyncio
    async def test_confirm_without_payment_is_pending(self, test_settings: Settings, order: dict[str, Any]) -> None:
        confirmation = await CryptoGateway(test_settings).confirm(order, None)

        assert confirmation.outcome == "pending"

    def test_ipn_signature_round_trip(self, test_settings: Settings) -> None:
        gateway = CryptoGateway(test_settings)
        body = {"payment_status": "finished", "order_id": "ORD-1", "payment_id": 42}
        canonical = json.dumps(body, sort_keys=True, separators=(",", ":"))
        signature = hmac.new(b"test-ipn-secret", canonical.encode(), hashlib.sha512).hexdigest()

        # Key order in the raw payload does not matter
        raw = json.dumps({"payment_id": 42, "order_id": "ORD-1", "payment_status": "finished"}).encode()
        assert gateway.verify_ipn_signature(raw, signature) == body

    def test_ipn_bad_signature(self, test_settings: Settings) -> None:
        gateway = CryptoGateway(test_settings)

        with pytest.raises(AuthenticationError):
            gateway.verify_ipn_signature(b'{"payment_status": "finished"}', "deadbeef")

    def test_ipn_missing_signature(self, test_settings: Settings) -> None:
        with pytest.raises(AuthenticationError):
            CryptoGateway(test_settings).verify_ipn_signature(b"{}", None)

    def test_ipn_without_secret(self, test_settings: Settings) -> None:
        gateway = CryptoGateway(unconfigured_settings(test_settings))

        with pytest.raises(CredentialsMissingError):
            gateway.verify_ipn_signature(b"{}", "sig")


class TestChargilyGateway:
    @pytest.mark.asyncio
    async def test_usd_display_amount_is_converted_to_whole_dinars(
        self, test_settings: Settings, order: dict[str, Any]
    ) -> None:
        gateway = ChargilyGateway(test_settings)
        mock_request = AsyncMock(
            return_value=ProviderResponse(
                200, {"id": "01hj5n7cqpaf0mt2d0xx85tgz8", "checkout_url": "https://pay.chargily.com/checkout/01hj"}
            )
        )

        with patch("storefront.services.chargily_gateway.request_json", mock_request):
            redirect = await gateway.initiate(order, make_request("10.00", method="edahabia"), RATE)

        payload = mock_request.call_args.kwargs["json"]
        assert payload["amount"] == 2500
        assert payload["currency"] == "dzd"
        assert payload["metadata"]["order_id"] == "0b7c6f3e-order"
        assert payload["webhook_endpoint"] == "https://api.example.com/api/v1/webhooks/chargily"
        assert mock_request.call_args.kwargs["headers"]["Authorization"] == "Bearer test-chargily-key"
        assert redirect.charge_amount == Decimal("2500")
        assert redirect.charge_currency == "DZD"
        assert redirect.redirect_url == "https://pay.chargily.com/checkout/01hj"

    @pytest.mark.asyncio
    async def test_unconfigured(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = ChargilyGateway(unconfigured_settings(test_settings))

        with pytest.raises(CredentialsMissingError) as exc_info:
            await gateway.initiate(order, make_request("10.00", method="edahabia"), RATE)

        assert exc_info.value.provider == "Edahabia/CIB"
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "outcome"),
        [("paid", "paid"), ("failed", "failed"), ("canceled", "failed"), ("pending", "pending")],
    )
    async def test_confirm_maps_checkout_status(
        self, test_settings: Settings, order: dict[str, Any], status: str, outcome: str
    ) -> None:
        gateway = ChargilyGateway(test_settings)
        order["payment_id"] = "chk-1"
        mock_request = AsyncMock(
            return_value=ProviderResponse(200, {"id": "chk-1", "status": status, "metadata": {"order_id": order["id"]}})
        )

        with patch("storefront.services.chargily_gateway.request_json", mock_request):
            confirmation = await gateway.confirm(order, None)

        assert confirmation.outcome == outcome

    @pytest.mark.asyncio
    async def test_confirm_refuses_other_orders_checkout(self, test_settings: Settings, order: dict[str, Any]) -> None:
        gateway = ChargilyGateway(test_settings)
        order["payment_id"] = "chk-1"
        mock_request = AsyncMock(
            return_value=ProviderResponse(200, {"id": "chk-1", "status": "paid", "metadata": {"order_id": "someone-else"}})
        )

        with patch("storefront.services.chargily_gateway.request_json", mock_request):
            with pytest.raises(ValidationError):
                await gateway.confirm(order, None)

    def test_webhook_signature(self, test_settings: Settings) -> None:
        gateway = ChargilyGateway(test_settings)
        payload = json.dumps({"type": "checkout.paid", "data": {"id": "chk-1"}}).encode()
        signature = hmac.new(b"test-chargily-key", payload, hashlib.sha256).hexdigest()

        event = gateway.verify_webhook_signature(payload, signature)

        assert event["type"] == "checkout.paid"

    def test_webhook_signature_covers_raw_bytes(self, test_settings: Settings) -> None:
        gateway = ChargilyGateway(test_settings)
        payload = json.dumps({"type": "checkout.paid"}).encode()
        signature = hmac.new(b"test-chargily-key", payload, hashlib.sha256).hexdigest()

        with pytest.raises(AuthenticationError):
            gateway.verify_webhook_signature(payload + b" ", signature)
