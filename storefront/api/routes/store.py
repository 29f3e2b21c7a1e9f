"""Public store settings and live change stream routes."""

import json
import logging
from typing import Annotated, Any, AsyncIterator

from fastapi import APIRouter, Header, Request
from fastapi.responses import StreamingResponse

from storefront.api.deps import ServicesDep, get_admin_token
from storefront.api.middleware.error_handler import NotFoundError
from storefront.core.change_feed import ENTITIES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["store"])

PUBLIC_ENTITIES = frozenset({"settings"})


@router.get(
    "/settings",
    summary="Get store settings",
    description="Returns the public store settings: name, exchange rate, enabled payment methods, maintenance flag, contact info.",
)
async def get_store_settings(services: ServicesDep) -> dict[str, Any]:
    store_settings = await services.store_settings.get_settings()
    data = store_settings.model_dump(mode="json")
    # A method is only offered when it is both enabled and configured
    data["payment_methods"] = {
        method: enabled and services.gateways[method].configured
        for method, enabled in data["payment_methods"].items()
        if method in services.gateways
    }
    return data


@router.get(
    "/changes/{entity}",
    summary="Stream changes",
    description=(
        "Server-sent events announcing changes to settings, codes or orders. "
        "Only settings is public; codes and orders need an admin session."
    ),
)
async def stream_changes(
    entity: str,
    request: Request,
    services: ServicesDep,
    authorization: Annotated[str | None, Header()] = None,
) -> StreamingResponse:
    """Stream change events for one entity as server-sent events.

    Order events carry order IDs, and an order ID is enough to read the
    order's codes, so those channels are admin only.

    Raises:
        NotFoundError: 404 for an unknown entity.
        AuthenticationError: 401 for an admin channel without a live session.
    """
    if entity not in ENTITIES:
        raise NotFoundError(f"Unknown entity: {entity}")
    if entity not in PUBLIC_ENTITIES:
        services.admin_auth.validate(get_admin_token(request, services.settings, authorization))

    async def event_stream() -> AsyncIterator[str]:
        async for change in services.change_feed.subscribe(entity):
            if await request.is_disconnected():
                break
            yield f"event: {entity}\ndata: {json.dumps(change, default=str)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
