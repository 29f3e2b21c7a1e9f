"""Integration tests for payment provider webhook routes."""

import hashlib
import hmac
import json
import uuid
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from fakes import FakeSupabase
from storefront.core.http import ProviderResponse


def nowpayments_signature(body: dict[str, Any]) -> str:
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"))
    return hmac.new(b"test-ipn-secret", canonical.encode(), hashlib.sha512).hexdigest()


@pytest.fixture
def crypto_order(fake_db: FakeSupabase) -> dict[str, Any]:
    product = fake_db.seed_product("Spotify Premium", price_usd="4.00")
    fake_db.seed_codes(product["id"], 1)
    order = fake_db.seed(
        "orders",
        order_number="ORD-200001-CRYPT",
        status="pending",
        payment_method="crypto",
        currency="USD",
        subtotal="4.00",
        tax_amount="0.00",
        total_amount="4.00",
        customer_email="buyer@example.com",
        payment_id="4522625843",
        payment_data={"invoice_id": "4522625843"},
    )
    fake_db.seed(
        "order_items",
        order_id=order["id"],
        product_id=product["id"],
        product_name="Spotify Premium",
        fulfillment_type="auto",
        quantity=1,
        unit_price="4.00",
        total_price="4.00",
    )
    return order


class TestNowPaymentsWebhook:
    """Tests for POST /api/v1/webhooks/nowpayments."""

    def test_missing_signature_returns_401(self, client: TestClient) -> None:
        """Test that webhook without signature is rejected."""
        response = client.post("/api/v1/webhooks/nowpayments", content=b'{"payment_status": "finished"}')

        assert response.status_code == 401

    def test_invalid_signature_returns_401(self, client: TestClient, crypto_order: dict[str, Any]) -> None:
        """Test that a forged IPN changes nothing."""
        body = {"payment_id": 1, "payment_status": "finished", "order_id": "ORD-200001-CRYPT"}

        response = client.post(
            "/api/v1/webhooks/nowpayments",
            content=json.dumps(body).encode(),
            headers={"x-nowpayments-sig": "0" * 128},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

    def test_valid_ipn_delivers_order(
        self, client: TestClient, fake_db: FakeSupabase, crypto_order: dict[str, Any]
    ) -> None:
        """Test that a signed IPN, confirmed by the payment API, delivers the order."""
        body = {"payment_id": 5077125051, "payment_status": "finished", "order_id": "ORD-200001-CRYPT"}
        status = ProviderResponse(
            200, {"payment_id": 5077125051, "payment_status": "finished", "order_id": "ORD-200001-CRYPT"}
        )

        with patch("storefront.services.crypto_gateway.request_json", AsyncMock(return_value=status)):
            response = client.post(
                "/api/v1/webhooks/nowpayments",
                content=json.dumps(body).encode(),
                headers={"x-nowpayments-sig": nowpayments_signature(body)},
            )

        assert response.status_code == 200
        assert response.json() == {"received": True, "order_status": "delivered"}
        [item] = fake_db.rows("order_items")
        assert item["delivery_status"] == "delivered"

    def test_ipn_claiming_paid_is_rechecked(
        self, client: TestClient, fake_db: FakeSupabase, crypto_order: dict[str, Any]
    ) -> None:
        """The IPN body is only a trigger; the payment API decides."""
        body = {"payment_id": 5077125051, "payment_status": "finished", "order_id": "ORD-200001-CRYPT"}
        status = ProviderResponse(
            200, {"payment_id": 5077125051, "payment_status": "waiting", "order_id": "ORD-200001-CRYPT"}
        )

        with patch("storefront.services.crypto_gateway.request_json", AsyncMock(return_value=status)):
            response = client.post(
                "/api/v1/webhooks/nowpayments",
                content=json.dumps(body).encode(),
                headers={"x-nowpayments-sig": nowpayments_signature(body)},
            )

        assert response.json()["order_status"] == "pending"
        assert fake_db.rows("codes")[0]["is_used"] is False


class TestChargilyWebhook:
    """Tests for POST /api/v1/webhooks/chargily."""

    def test_invalid_signature_returns_401(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/webhooks/chargily",
            content=b'{"type": "checkout.paid"}',
            headers={"signature": "bad"},
        )

        assert response.status_code == 401

    def test_unknown_order_is_acknowledged(self, client: TestClient) -> None:
        payload = json.dumps(
            {"type": "checkout.paid", "data": {"id": "chk-9", "metadata": {"order_id": str(uuid.uuid4())}}}
        ).encode()
        signature = hmac.new(b"test-chargily-key", payload, hashlib.sha256).hexdigest()

        response = client.post("/api/v1/webhooks/chargily", content=payload, headers={"signature": signature})

        assert response.status_code == 200
        assert response.json() == {"received": True, "order_status": None}

    def test_malformed_order_reference_is_acknowledged_without_lookup(
        self, client: TestClient, fake_db: FakeSupabase
    ) -> None:
        """Test that a non-UUID order reference is acknowledged and never queried."""
        payload = json.dumps(
            {"type": "checkout.paid", "data": {"id": "chk-9", "metadata": {"order_id": "gone"}}}
        ).encode()
        signature = hmac.new(b"test-chargily-key", payload, hashlib.sha256).hexdigest()

        response = client.post("/api/v1/webhooks/chargily", content=payload, headers={"signature": signature})

        assert response.status_code == 200
        assert response.json() == {"received": True, "order_status": None}
        assert ("orders", "select") not in fake_db.calls
