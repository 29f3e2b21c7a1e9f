"""Checkout and order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

OrderStatus = Literal["pending", "paid", "failed", "delivered", "refunded"]
PaymentMethod = Literal["paypal", "crypto", "edahabia"]
Currency = Literal["USD", "DZD"]
FulfillmentType = Literal["auto", "manual", "assisted"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CartLineInput(BaseModel):
    """A cart line as sent by the storefront."""

    product_id: str = Field(min_length=1, description="Product ID")
    variant_id: str | None = Field(default=None, description="Optional variant ID")
    quantity: int = Field(default=1, ge=1, description="Quantity ordered")


class PricedLine(BaseModel):
    """A cart line resolved against the catalog at checkout time."""

    product_id: str
    variant_id: str | None = None
    product_name: str
    fulfillment_type: FulfillmentType
    quantity: int = Field(ge=1)
    price_usd: Decimal = Field(ge=0)
    price_dzd: Decimal | None = Field(default=None, ge=0)


class CheckoutRequest(BaseModel):
    """Schema for POST /checkout.

    Either items or cart_session_id/user_id must identify the cart.
    """

    method: PaymentMethod = Field(description="Payment gateway to charge through")
    currency: Currency | None = Field(
        default=None,
        description="Customer display currency; defaults to the method's settlement currency",
    )
    customer_email: str = Field(pattern=EMAIL_PATTERN, description="Customer email (required)")
    customer_phone: str | None = Field(default=None, max_length=32, description="Customer phone")
    items: list[CartLineInput] | None = Field(default=None, description="Explicit cart lines")
    cart_session_id: str | None = Field(default=None, description="Anonymous cart session ID")
    user_id: str | None = Field(default=None, description="Authenticated user ID")


class PaymentRequest(BaseModel):
    """Normalized input handed to the order ledger and a gateway adapter.

    amount is the cart total in `currency` (the customer's display
    currency), computed server-side from the catalog snapshot.
    """

    model_config = ConfigDict(frozen=True)

    method: PaymentMethod
    amount: Decimal = Field(ge=0)
    currency: Currency
    customer_email: str
    customer_phone: str | None = None
    items: list[PricedLine] = Field(min_length=1)
    user_id: str | None = None


class CheckoutResponse(BaseModel):
    """Schema for checkout creation response."""

    order_id: str = Field(description="Created order ID")
    order_number: str = Field(description="Human-facing order number")
    redirect_url: str = Field(description="Provider page to redirect the customer to")
    payment_id: str = Field(description="Provider correlation ID")
    amount: Decimal = Field(description="Order total in settlement currency")
    currency: Currency = Field(description="Settlement currency")
    cart: list[dict[str, Any]] = Field(default_factory=list, description="Cart state after checkout")


class ConfirmPaymentRequest(BaseModel):
    """Schema for POST /checkout/{order_id}/confirm."""

    token: str | None = Field(default=None, description="Provider token read from the return URL")


class OrderItemResponse(BaseModel):
    """Schema for a single order item."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    variant_id: str | None = None
    product_name: str = ""
    fulfillment_type: FulfillmentType = "manual"
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    delivery_status: Literal["pending", "delivered"]
    delivery_code: str | None = None
    delivered_at: datetime | None = None


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    status: OrderStatus
    payment_method: PaymentMethod
    payment_id: str | None = None
    currency: Currency
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    customer_email: str
    customer_phone: str | None = None
    items: list[OrderItemResponse] = Field(default_factory=list)
    needs_support: bool = Field(
        default=False,
        description="True when a paid order still has undelivered items",
    )
    support_contact: dict[str, str] | None = Field(
        default=None,
        description="Support channels shown when needs_support is true",
    )
    created_at: datetime | None = None

    @classmethod
    def from_order(
        cls,
        order: dict[str, Any],
        support_contact: dict[str, str] | None = None,
    ) -> "OrderResponse":
        """Build a response from an order row joined with its items."""
        items = [OrderItemResponse.model_validate(item) for item in order.get("items", [])]
        needs_support = order["status"] in ("paid", "delivered") and any(
            item.delivery_status != "delivered" for item in items
        )
        return cls(
            id=str(order["id"]),
            order_number=order["order_number"],
            status=order["status"],
            payment_method=order["payment_method"],
            payment_id=order.get("payment_id"),
            currency=order["currency"],
            subtotal=order["subtotal"],
            tax_amount=order["tax_amount"],
            total_amount=order["total_amount"],
            customer_email=order["customer_email"],
            customer_phone=order.get("customer_phone"),
            items=items,
            needs_support=needs_support,
            support_contact=support_contact if needs_support else None,
            created_at=order.get("created_at"),
        )

    def without_codes(self) -> "OrderResponse":
        """Copy with delivery codes removed, for listings not tied to the order ID."""
        items = [item.model_copy(update={"delivery_code": None}) for item in self.items]
        return self.model_copy(update={"items": items})


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    items: list[OrderResponse] = Field(description="List of orders")
