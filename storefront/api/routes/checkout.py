"""Checkout and order lookup API routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from storefront.api.deps import ServicesDep
from storefront.schemas.checkout import (
    EMAIL_PATTERN,
    CheckoutRequest,
    CheckoutResponse,
    ConfirmPaymentRequest,
    OrderListResponse,
    OrderResponse,
)

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start checkout",
    description="Creates a pending order for the cart and returns the payment provider page to redirect to.",
)
async def start_checkout(data: CheckoutRequest, services: ServicesDep) -> CheckoutResponse:
    """Create a pending order and start the provider payment.

    The storefront should redirect the customer to redirect_url. If the
    provider step fails, the order stays pending and the error names
    the provider.
    """
    return await services.checkout.start_checkout(data)


@router.post(
    "/{order_id}/confirm",
    response_model=OrderResponse,
    summary="Confirm payment",
    description="Checks the payment with the provider after the customer returns from the provider page.",
)
async def confirm_payment(
    order_id: UUID,
    services: ServicesDep,
    data: ConfirmPaymentRequest | None = None,
) -> OrderResponse:
    """Confirm an order's payment with its provider.

    For PayPal, pass the ``token`` query parameter PayPal appended to the
    return URL. Calling this more than once is safe.
    """
    order = await services.checkout.confirm_payment(str(order_id), data.token if data else None)
    return await services.checkout.order_view(order)


# Separate router for order lookup
orders_router = APIRouter(prefix="/orders", tags=["orders"])


@orders_router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders by email",
    description=(
        "Returns the orders placed with an email address, newest first. "
        "Delivery codes are only shown by the order's own page."
    ),
)
async def list_orders(
    services: ServicesDep,
    email: str = Query(pattern=EMAIL_PATTERN, description="Customer email"),
) -> OrderListResponse:
    """List orders for an email.

    Anyone can type an email, so the listing never carries delivery codes;
    GET /orders/{order_id} with the ID from the return URL does.
    """
    orders = await services.orders.list_orders(customer_email=email.strip())
    return OrderListResponse(items=[(await services.checkout.order_view(order)).without_codes() for order in orders])


@orders_router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
    description="Returns an order with its items and delivery codes.",
)
async def get_order(order_id: UUID, services: ServicesDep) -> OrderResponse:
    """Get an order by its opaque ID (as used in the return URL).

    Raises:
        NotFoundError: 404 if the order doesn't exist.
    """
    order = await services.orders.require_order(str(order_id))
    return await services.checkout.order_view(order)
