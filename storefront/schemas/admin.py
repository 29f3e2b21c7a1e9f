"""Admin back-office Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.checkout import OrderResponse, OrderStatus


class AdminLoginRequest(BaseModel):
    """Schema for admin login."""

    email: str = Field(min_length=1, description="Admin email")
    password: str = Field(min_length=1, description="Admin password")


class AdminSessionResponse(BaseModel):
    """Schema for a started admin session."""

    token: str = Field(description="Session token, also set as an HttpOnly cookie")
    email: str
    expires_at: datetime


class AdminOrderStatusUpdate(BaseModel):
    """Schema for PATCH /admin/orders/{order_id}."""

    status: OrderStatus = Field(description="Target order status")


class ManualDeliveryRequest(BaseModel):
    """Schema for delivering an item by hand."""

    code: str = Field(min_length=1, description="Code or credentials handed to the customer")


class FulfillmentResponse(BaseModel):
    """Outcome of a fulfillment run."""

    order_id: str
    delivered_item_ids: list[str] = Field(default_factory=list)
    out_of_stock_item_ids: list[str] = Field(default_factory=list)
    manual_item_ids: list[str] = Field(default_factory=list)
    order_delivered: bool = False
    order: OrderResponse | None = None


class CodeImportRequest(BaseModel):
    """Schema for bulk code import."""

    product_id: str = Field(min_length=1, description="Product the codes belong to")
    codes: list[str] = Field(min_length=1, description="Codes, one per entry")


class CodeImportResponse(BaseModel):
    """Schema for bulk code import result."""

    added: int
    skipped: int


class CodeResponse(BaseModel):
    """Schema for a delivery code row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    code: str
    is_used: bool
    used_at: datetime | None = None
    order_item_id: str | None = None
    created_at: datetime | None = None


class CodeListResponse(BaseModel):
    items: list[CodeResponse]


class CodeAvailabilityResponse(BaseModel):
    """Unused code count per product ID."""

    available: dict[str, int]


class DashboardStats(BaseModel):
    """Schema for the admin dashboard."""

    total_products: int
    active_products: int
    total_orders: int
    pending_orders: int
    revenue: dict[str, Decimal] = Field(description="Paid and delivered revenue per currency")
    total_codes: int
    used_codes: int
    available_codes: int
    recent_orders: list[dict[str, Any]] = Field(default_factory=list)
