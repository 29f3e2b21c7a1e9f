"""Integration tests for public store routes."""

import pytest
from fastapi.testclient import TestClient

from fakes import FakeSupabase
from storefront.services.container import Services


class TestStoreSettings:
    """Tests for GET /api/v1/settings."""

    def test_defaults(self, client: TestClient) -> None:
        response = client.get("/api/v1/settings")

        assert response.status_code == 200
        data = response.json()
        assert data["exchange_rate_usd_to_dzd"] == "250"
        assert data["maintenance_mode"] is False
        assert data["payment_methods"] == {"paypal": True, "crypto": True, "edahabia": True}
        assert data["site_name"]["en"] == "ATHMANEBZN STORE"

    def test_disabled_method_is_hidden(self, client: TestClient, fake_db: FakeSupabase) -> None:
        fake_db.seed("settings", key="payment_methods", value={"paypal": True, "crypto": False, "edahabia": True})

        data = client.get("/api/v1/settings").json()

        assert data["payment_methods"]["crypto"] is False

    def test_unconfigured_method_is_hidden(self, client: TestClient, services: Services) -> None:
        gateway = services.gateways["edahabia"]
        gateway.settings = gateway.settings.model_copy(update={"chargily_api_key": ""})

        data = client.get("/api/v1/settings").json()

        assert data["payment_methods"]["edahabia"] is False


class TestChangeStream:
    """Tests for GET /api/v1/changes/{entity}."""

    def test_unknown_entity_returns_404(self, client: TestClient) -> None:
        response = client.get("/api/v1/changes/products")

        assert response.status_code == 404

    @pytest.mark.parametrize("entity", ["orders", "codes"])
    def test_admin_channels_require_session(self, client: TestClient, services: Services, entity: str) -> None:
        """Test that order and code events, which carry order IDs, are not public."""
        response = client.get(f"/api/v1/changes/{entity}")

        assert response.status_code == 401
        assert services.change_feed.subscriber_count(entity) == 0

    def test_forged_token_cannot_subscribe_to_orders(self, client: TestClient) -> None:
        response = client.get("/api/v1/changes/orders", headers={"Authorization": "Bearer forged-token"})

        assert response.status_code == 401
