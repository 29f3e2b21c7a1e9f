"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("FRONTEND_URL", "https://shop.example.com")
os.environ.setdefault("PUBLIC_API_URL", "https://api.example.com")
os.environ.setdefault("PAYPAL_CLIENT_ID", "test-paypal-client-id")
os.environ.setdefault("PAYPAL_CLIENT_SECRET", "test-paypal-client-secret")
os.environ.setdefault("NOWPAYMENTS_API_KEY", "test-nowpayments-key")
os.environ.setdefault("NOWPAYMENTS_IPN_SECRET", "test-ipn-secret")
os.environ.setdefault("CHARGILY_API_KEY", "test-chargily-key")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASSWORD", "correct-horse-battery")
os.environ.setdefault("ADMIN_COOKIE_SECURE", "false")

from fakes import FakeSupabase  # noqa: E402


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from storefront.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def fake_db() -> FakeSupabase:
    """Provide an empty in-memory Supabase stand-in."""
    return FakeSupabase()


@pytest.fixture
def services(test_settings: Any, fake_db: FakeSupabase) -> Any:
    """Provide the full service graph wired to the in-memory database."""
    from storefront.services.container import build_services

    return build_services(test_settings, fake_db)


@pytest.fixture
def client(services: Any) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        services: Service graph backed by the in-memory database.

    Yields:
        TestClient: FastAPI test client.
    """
    from storefront.main import create_app

    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def admin_client(client: TestClient) -> TestClient:
    """Provide a test client holding a live admin session cookie."""
    response = client.post(
        "/api/v1/admin/login",
        json={"email": "admin@example.com", "password": "correct-horse-battery"},
    )
    assert response.status_code == 200
    return client
