"""Response envelopes shared by the health and error paths."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class Timestamped(BaseModel):
    """Base for responses stamped with the time they were produced."""

    timestamp: datetime = Field(default_factory=utc_now, description="When the response was produced (UTC)")


class HealthResponse(Timestamped):
    """Liveness response. Never touches the database or a payment provider."""

    status: HealthStatus = Field(description="Current health status")
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    """Outcome of one dependency check."""

    name: str = Field(description="Dependency name, e.g. database")
    healthy: bool
    latency_ms: float | None = Field(default=None, description="Round trip in milliseconds")
    error: str | None = Field(default=None, description="Failure reason when unhealthy")


class ReadinessResponse(Timestamped):
    """Readiness response.

    Only the checks decide the status. payment_methods is informational:
    a provider without credentials is reported here and refused at
    checkout, but the service still takes traffic.
    """

    status: HealthStatus
    checks: list[CheckResult] = Field(default_factory=list)
    payment_methods: dict[str, bool] = Field(
        default_factory=dict,
        description="Payment method -> provider credentials configured",
    )

    @classmethod
    def from_checks(cls, checks: list[CheckResult], payment_methods: dict[str, bool]) -> "ReadinessResponse":
        healthy = all(check.healthy for check in checks)
        return cls(
            status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            checks=checks,
            payment_methods=payment_methods,
        )

    @property
    def healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY


class ErrorDetail(BaseModel):
    """One field-level problem, in the shape FastAPI uses for 422s."""

    loc: list[str | int] | None = Field(default=None, description="Path to the offending field")
    msg: str
    type: str = "error"


class ErrorResponse(Timestamped):
    """Body of every error the API returns.

    ``error`` is a stable machine-readable category (``payment_failed``,
    ``maintenance``, ``invalid_status_transition``...); ``message`` is
    safe to show to the customer.
    """

    error: str = Field(description="Error category")
    message: str = Field(description="Human-readable description")
    details: list[ErrorDetail] | None = None
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build the body for an error, tolerating loosely shaped detail dicts."""
        return cls(
            error=error_type,
            message=message,
            details=[
                ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
                for d in details
            ]
            if details
            else None,
            request_id=request_id,
        )
