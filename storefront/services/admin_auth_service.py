"""Admin authentication with in-memory, expiring sessions."""

import hmac
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from storefront.api.middleware.error_handler import AuthenticationError
from storefront.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class AdminSession:
    """A logged-in admin. Only valid while it is held by the service."""

    token: str
    email: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class AdminAuthService:
    """Checks admin credentials and tracks sessions in process memory.

    A token (from the cookie or a Bearer header) is only accepted if a
    live session for it exists here, so restarting the process logs
    every admin out. Missing admin credentials disable login entirely.
    """

    def __init__(self, settings: Settings) -> None:
        self.admin_email = settings.admin_email
        self.admin_password = settings.admin_password
        self.session_ttl = timedelta(hours=settings.admin_session_ttl_hours)
        self._sessions: dict[str, AdminSession] = {}
        self._lock = threading.Lock()
        if not self.configured:
            logger.warning("ADMIN_EMAIL or ADMIN_PASSWORD not set, admin login is disabled")

    @property
    def configured(self) -> bool:
        return bool(self.admin_email and self.admin_password)

    def login(self, email: str, password: str) -> AdminSession:
        """Start a session for valid admin credentials.

        Raises:
            AuthenticationError: If credentials are wrong or admin login is disabled.
        """
        if not self.configured:
            raise AuthenticationError("Admin login is not configured")

        email_ok = hmac.compare_digest(email.strip().lower().encode(), self.admin_email.strip().lower().encode())
        password_ok = hmac.compare_digest(password.encode(), self.admin_password.encode())
        if not (email_ok and password_ok):
            logger.warning("Failed admin login attempt for %s", email)
            raise AuthenticationError("Invalid email or password")

        now = datetime.now(timezone.utc)
        session = AdminSession(
            token=secrets.token_urlsafe(32),
            email=self.admin_email,
            created_at=now,
            expires_at=now + self.session_ttl,
        )
        with self._lock:
            self._purge_expired(now)
            self._sessions[session.token] = session
        logger.info("Admin %s logged in", session.email)
        return session

    def validate(self, token: str | None) -> AdminSession:
        """Return the live session for a token.

        Raises:
            AuthenticationError: If the token is missing, unknown or expired.
        """
        if not token:
            raise AuthenticationError("Admin authentication required")
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                raise AuthenticationError("Admin session not found")
            if session.is_expired():
                del self._sessions[token]
                raise AuthenticationError("Admin session expired")
            return session

    def logout(self, token: str | None) -> None:
        if not token:
            return
        with self._lock:
            session = self._sessions.pop(token, None)
        if session:
            logger.info("Admin %s logged out", session.email)

    def _purge_expired(self, now: datetime) -> None:
        expired = [token for token, session in self._sessions.items() if session.is_expired(now)]
        for token in expired:
            del self._sessions[token]
