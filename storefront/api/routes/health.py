"""Health check endpoints for monitoring and deployment verification."""

import time

from fastapi import APIRouter, Response, status

from storefront.api.deps import ServicesDep
from storefront.core.supabase import check_database_connection
from storefront.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check to verify the service is running. Used for liveness probes.",
)
async def health_check() -> HealthResponse:
    """Return basic health status.

    This endpoint should always return 200 if the service is running.
    It does not check external dependencies.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Readiness check",
    description="Check if all dependencies are available. Used for readiness probes.",
)
async def readiness_check(response: Response, services: ServicesDep) -> ReadinessResponse:
    """Check database connectivity and report which payment providers are configured.

    Returns 503 if the database is unreachable. Unconfigured payment
    providers do not fail readiness; those methods report as unavailable
    at checkout instead.
    """
    start_time = time.perf_counter()
    db_result = await check_database_connection(services.client)
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks = [
        CheckResult(
            name="database",
            healthy=db_result["healthy"],
            latency_ms=round(latency_ms, 2),
            error=db_result.get("error"),
        )
    ]

    readiness = ReadinessResponse.from_checks(
        checks,
        payment_methods={method: gateway.configured for method, gateway in services.gateways.items()},
    )
    if not readiness.healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return readiness
