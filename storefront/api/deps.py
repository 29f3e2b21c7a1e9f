"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, Request, Response

from storefront.core.config import Settings
from storefront.services.admin_auth_service import AdminSession
from storefront.services.container import Services


def get_services(request: Request) -> Services:
    """Services built in the application lifespan."""
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_admin_cookie_config(settings: Settings) -> dict:
    """Get admin session cookie configuration from settings."""
    # SameSite=None requires Secure=True; fall back to Lax for local development
    samesite = "none" if settings.admin_cookie_secure else "lax"
    return {
        "key": settings.admin_cookie_name,
        "max_age": settings.admin_session_ttl_hours * 3600,
        "httponly": True,
        "secure": settings.admin_cookie_secure,
        "samesite": samesite,
        "path": "/",
    }


def get_admin_token(request: Request, settings: Settings, authorization: str | None = None) -> str | None:
    """Extract an admin token from a Bearer header, falling back to the cookie."""
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return request.cookies.get(settings.admin_cookie_name)


def set_admin_cookie(response: Response, settings: Settings, token: str) -> None:
    config = get_admin_cookie_config(settings)
    response.set_cookie(
        key=config["key"],
        value=token,
        max_age=config["max_age"],
        httponly=config["httponly"],
        secure=config["secure"],
        samesite=config["samesite"],
        path=config["path"],
    )


def clear_admin_cookie(response: Response, settings: Settings) -> None:
    config = get_admin_cookie_config(settings)
    response.delete_cookie(key=config["key"], path=config["path"])


async def get_admin_session(
    request: Request,
    services: ServicesDep,
    authorization: Annotated[str | None, Header()] = None,
) -> AdminSession:
    """Require a live admin session.

    A token, whether from the header or the cookie, is only accepted if
    the admin auth service still holds a session for it.

    Raises:
        AuthenticationError: 401 if there is no live session.
    """
    token = get_admin_token(request, services.settings, authorization)
    return services.admin_auth.validate(token)


AdminAuth = Annotated[AdminSession, Depends(get_admin_session)]
