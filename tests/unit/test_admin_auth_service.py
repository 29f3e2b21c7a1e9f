"""Unit tests for admin sessions."""

from datetime import datetime, timedelta, timezone

import pytest

from storefront.api.middleware.error_handler import AuthenticationError
from storefront.core.config import Settings
from storefront.services.admin_auth_service import AdminAuthService


@pytest.fixture
def auth(test_settings: Settings) -> AdminAuthService:
    return AdminAuthService(test_settings)


class TestLogin:
    def test_valid_credentials_create_session(self, auth: AdminAuthService) -> None:
        session = auth.login("admin@example.com", "correct-horse-battery")

        assert session.email == "admin@example.com"
        assert len(session.token) >= 32
        assert session.expires_at - session.created_at == timedelta(hours=8)
        assert auth.validate(session.token) is session

    def test_email_is_case_insensitive(self, auth: AdminAuthService) -> None:
        assert auth.login("  Admin@Example.com ", "correct-horse-battery").email == "admin@example.com"

    @pytest.mark.parametrize(
        ("email", "password"),
        [
            ("admin@example.com", "wrong"),
            ("someone@example.com", "correct-horse-battery"),
            ("", ""),
        ],
    )
    def test_invalid_credentials(self, auth: AdminAuthService, email: str, password: str) -> None:
        with pytest.raises(AuthenticationError):
            auth.login(email, password)

    def test_login_disabled_without_configured_admin(self, test_settings: Settings) -> None:
        auth = AdminAuthService(test_settings.model_copy(update={"admin_password": ""}))

        assert auth.configured is False
        with pytest.raises(AuthenticationError):
            auth.login("admin@example.com", "")


class TestValidate:
    def test_missing_token(self, auth: AdminAuthService) -> None:
        with pytest.raises(AuthenticationError):
            auth.validate(None)

    def test_unknown_token(self, auth: AdminAuthService) -> None:
        with pytest.raises(AuthenticationError):
            auth.validate("forged-token")

    def test_expired_session_is_removed(self, auth: AdminAuthService) -> None:
        session = auth.login("admin@example.com", "correct-horse-battery")
        session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        with pytest.raises(AuthenticationError):
            auth.validate(session.token)
        with pytest.raises(AuthenticationError, match="not found"):
            auth.validate(session.token)

    def test_logout_ends_session(self, auth: AdminAuthService) -> None:
        session = auth.login("admin@example.com", "correct-horse-battery")

        auth.logout(session.token)

        with pytest.raises(AuthenticationError):
            auth.validate(session.token)

    def test_sessions_do_not_survive_a_new_service(self, test_settings: Settings, auth: AdminAuthService) -> None:
        """Sessions live in process memory, so a restart logs everyone out."""
        session = auth.login("admin@example.com", "correct-horse-battery")

        with pytest.raises(AuthenticationError):
            AdminAuthService(test_settings).validate(session.token)
