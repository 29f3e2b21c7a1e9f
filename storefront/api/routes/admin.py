"""Admin back-office API routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, Query, Request, Response, status

from storefront.api.deps import AdminAuth, ServicesDep, clear_admin_cookie, get_admin_token, set_admin_cookie
from storefront.schemas.admin import (
    AdminLoginRequest,
    AdminOrderStatusUpdate,
    AdminSessionResponse,
    CodeAvailabilityResponse,
    CodeImportRequest,
    CodeImportResponse,
    CodeListResponse,
    CodeResponse,
    DashboardStats,
    FulfillmentResponse,
    ManualDeliveryRequest,
)
from storefront.schemas.checkout import OrderListResponse, OrderResponse, OrderStatus
from storefront.schemas.settings import SettingUpdate, StoreSettings

router = APIRouter(prefix="/admin", tags=["admin"])


# Session


@router.post(
    "/login",
    response_model=AdminSessionResponse,
    summary="Admin login",
    description="Starts an admin session and sets the HttpOnly session cookie.",
)
async def login(data: AdminLoginRequest, response: Response, services: ServicesDep) -> AdminSessionResponse:
    """Raises AuthenticationError (401) on bad credentials."""
    session = services.admin_auth.login(data.email, data.password)
    set_admin_cookie(response, services.settings, session.token)
    return AdminSessionResponse(token=session.token, email=session.email, expires_at=session.expires_at)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Admin logout",
)
async def logout(
    request: Request,
    response: Response,
    services: ServicesDep,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    services.admin_auth.logout(get_admin_token(request, services.settings, authorization))
    clear_admin_cookie(response, services.settings)


@router.get("/session", response_model=AdminSessionResponse, summary="Current admin session")
async def current_session(admin: AdminAuth) -> AdminSessionResponse:
    return AdminSessionResponse(token=admin.token, email=admin.email, expires_at=admin.expires_at)


# Dashboard


@router.get("/stats", response_model=DashboardStats, summary="Dashboard statistics")
async def dashboard_stats(admin: AdminAuth, services: ServicesDep) -> DashboardStats:
    return DashboardStats(**await services.admin.get_dashboard_stats())


# Orders


@router.get("/orders", response_model=OrderListResponse, summary="List orders")
async def list_orders(
    admin: AdminAuth,
    services: ServicesDep,
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
    email: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> OrderListResponse:
    orders = await services.orders.list_orders(customer_email=email, status=status_filter, limit=limit)
    return OrderListResponse(items=[OrderResponse.from_order(order) for order in orders])


@router.patch(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Update order status",
    description="Moves an order forward in its lifecycle. Backwards moves are rejected with 409.",
)
async def update_order_status(
    order_id: UUID,
    data: AdminOrderStatusUpdate,
    admin: AdminAuth,
    services: ServicesDep,
) -> OrderResponse:
    await services.orders.update_order_status(str(order_id), data.status)
    if data.status == "paid":
        await services.fulfillment.fulfill_order(str(order_id))
    return OrderResponse.from_order(await services.orders.require_order(str(order_id)))


@router.delete("/orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete order")
async def delete_order(order_id: UUID, admin: AdminAuth, services: ServicesDep) -> None:
    await services.orders.delete_order(str(order_id))


@router.post(
    "/orders/{order_id}/fulfill",
    response_model=FulfillmentResponse,
    summary="Re-run fulfillment",
    description="Delivers pending auto items of a paid order, e.g. after restocking codes.",
)
async def refulfill_order(order_id: UUID, admin: AdminAuth, services: ServicesDep) -> FulfillmentResponse:
    result = await services.checkout.refulfill(str(order_id))
    order = await services.orders.require_order(str(order_id))
    return FulfillmentResponse(
        order_id=result.order_id,
        delivered_item_ids=[str(item["id"]) for item in result.delivered],
        out_of_stock_item_ids=[str(item["id"]) for item in result.out_of_stock],
        manual_item_ids=[str(item["id"]) for item in result.manual],
        order_delivered=result.order_delivered,
        order=OrderResponse.from_order(order),
    )


@router.post(
    "/orders/{order_id}/items/{item_id}/deliver",
    response_model=OrderResponse,
    summary="Deliver an item manually",
)
async def deliver_item(
    order_id: UUID,
    item_id: UUID,
    data: ManualDeliveryRequest,
    admin: AdminAuth,
    services: ServicesDep,
) -> OrderResponse:
    await services.fulfillment.deliver_manually(str(order_id), str(item_id), data.code.strip())
    return OrderResponse.from_order(await services.orders.require_order(str(order_id)))


# Codes


@router.get("/codes", response_model=CodeListResponse, summary="List codes")
async def list_codes(
    admin: AdminAuth,
    services: ServicesDep,
    product_id: UUID | None = None,
) -> CodeListResponse:
    codes = await services.codes.list_codes(product_id=str(product_id) if product_id else None)
    return CodeListResponse(items=[CodeResponse.model_validate(code) for code in codes])


@router.post(
    "/codes",
    response_model=CodeImportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import codes",
)
async def import_codes(data: CodeImportRequest, admin: AdminAuth, services: ServicesDep) -> CodeImportResponse:
    return CodeImportResponse(**await services.codes.add_codes(data.product_id, data.codes))


@router.delete("/codes/{code_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete unused code")
async def delete_code(code_id: UUID, admin: AdminAuth, services: ServicesDep) -> None:
    await services.codes.delete_code(str(code_id))


@router.get("/codes/availability", response_model=CodeAvailabilityResponse, summary="Unused codes per product")
async def code_availability(
    admin: AdminAuth,
    services: ServicesDep,
    product_id: Annotated[list[UUID] | None, Query()] = None,
) -> CodeAvailabilityResponse:
    product_ids = [str(pid) for pid in product_id] if product_id else None
    return CodeAvailabilityResponse(available=await services.codes.availability(product_ids))


# Settings


@router.get("/settings", response_model=StoreSettings, summary="Get all store settings")
async def get_settings(admin: AdminAuth, services: ServicesDep) -> StoreSettings:
    return await services.store_settings.get_settings()


@router.put("/settings", response_model=StoreSettings, summary="Update a store setting")
async def update_setting(data: SettingUpdate, admin: AdminAuth, services: ServicesDep) -> StoreSettings:
    return await services.store_settings.update_setting(data.key, data.value)
