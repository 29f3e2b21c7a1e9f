"""Order model type definitions for database operations."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, TypedDict

# Values match the orders.status / order_items.delivery_status check constraints
OrderStatus = Literal["pending", "paid", "failed", "delivered", "refunded"]
PaymentMethod = Literal["paypal", "crypto", "edahabia"]
Currency = Literal["USD", "DZD"]
DeliveryStatus = Literal["pending", "delivered"]
FulfillmentType = Literal["auto", "manual", "assisted"]

# Settlement currency is a property of the payment method, not of the cart.
SETTLEMENT_CURRENCY: dict[str, Currency] = {
    "paypal": "USD",
    "crypto": "USD",
    "edahabia": "DZD",
}

# Forward-only lifecycle. "failed" may still become "paid" when a fresh
# provider confirmation arrives for a new payment attempt.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"paid", "failed"}),
    "failed": frozenset({"paid"}),
    "paid": frozenset({"delivered", "refunded"}),
    "delivered": frozenset({"refunded"}),
    "refunded": frozenset(),
}


class OrderItem(TypedDict):
    """order_items table row.

    Quantity, prices, product name and fulfillment type are a snapshot
    taken when the order was created.
    """

    id: str
    order_id: str
    product_id: str
    variant_id: str | None
    product_name: str
    fulfillment_type: FulfillmentType
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    delivery_status: DeliveryStatus
    delivery_code: str | None
    delivered_at: datetime | None


class Order(TypedDict):
    """orders table row."""

    id: str
    user_id: str | None
    order_number: str
    status: OrderStatus
    payment_method: PaymentMethod
    payment_id: str | None
    currency: Currency
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    customer_email: str
    customer_phone: str | None
    payment_data: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class OrderWithItems(Order):
    """Order row joined with its items."""

    items: list[OrderItem]


class OrderCreate(TypedDict, total=False):
    """Data required to insert a new order."""

    user_id: str | None
    order_number: str
    status: OrderStatus
    payment_method: PaymentMethod
    currency: Currency
    subtotal: str
    tax_amount: str
    total_amount: str
    customer_email: str
    customer_phone: str | None
    payment_data: dict[str, Any]


class OrderItemCreate(TypedDict, total=False):
    """Data required to insert a new order item."""

    order_id: str
    product_id: str
    variant_id: str | None
    product_name: str
    fulfillment_type: FulfillmentType
    quantity: int
    unit_price: str
    total_price: str
    delivery_status: DeliveryStatus
