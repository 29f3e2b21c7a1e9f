"""Global error handling middleware and the application error hierarchy."""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from storefront.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            details=details,
        )


class ValidationError(APIError):
    """Request validation error."""

    def __init__(self, message: str = "Validation error", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type="validation_error",
            details=details,
        )


class AuthenticationError(APIError):
    """Authentication failure error."""

    def __init__(self, message: str = "Authentication required", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="authentication_error",
            details=details,
        )


class MaintenanceModeError(APIError):
    """Store is in maintenance mode and refuses new checkouts."""

    def __init__(self, message: str = "The store is under maintenance. Please try again later.") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_type="maintenance",
        )


class OrderCreationError(APIError):
    """Order and its items could not be persisted together."""

    def __init__(self, message: str = "Failed to create order") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="order_creation_failed",
        )


class InvalidStatusTransitionError(APIError):
    """Requested order status change would move the order backwards."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            message=f"Cannot change order status from {current} to {requested}",
            status_code=status.HTTP_409_CONFLICT,
            error_type="invalid_status_transition",
        )
        self.current = current
        self.requested = requested


class PaymentError(APIError):
    """Base class for payment gateway failures.

    The message always names the failed provider step, e.g.
    "PayPal payment failed: <reason>", and the order stays pending.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        error_type: str = "payment_failed",
        provider: str | None = None,
    ) -> None:
        super().__init__(message=message, status_code=status_code, error_type=error_type)
        self.provider = provider


class CredentialsMissingError(PaymentError):
    """Provider credentials are not configured; the method is unavailable."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            message=f"{provider} payment is currently unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_type="payment_unavailable",
            provider=provider,
        )


class PaymentMethodDisabledError(PaymentError):
    """Payment method is switched off in the store settings."""

    def __init__(self, method: str) -> None:
        super().__init__(
            message=f"Payment method {method} is currently unavailable",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_type="payment_unavailable",
            provider=method,
        )


class ProviderRejectedError(PaymentError):
    """Provider answered but refused the request."""

    def __init__(self, provider: str, reason: str, provider_status: int | None = None) -> None:
        super().__init__(message=f"{provider} payment failed: {reason}", provider=provider)
        self.reason = reason
        self.provider_status = provider_status


class GatewayUnavailableError(PaymentError):
    """Provider could not be reached (transport error or timeout)."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(message=f"{provider} payment failed: {reason}", provider=provider)
        self.reason = reason


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Middleware to catch and format all exceptions.

    Ensures consistent error response format across the application.
    Logs full stack traces for debugging while returning safe messages to clients.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        response = await call_next(request)
        return response

    except APIError as e:
        logger.warning(
            "API error: %s - %s",
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
        )

    except HTTPException as e:
        logger.warning(
            "HTTP exception: %s - %s",
            e.status_code,
            e.detail,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception as e:
        logger.error(
            "Unhandled exception: %s\n%s",
            str(e),
            traceback.format_exc(),
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
