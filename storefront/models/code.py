"""Delivery code model type definitions."""

from datetime import datetime
from typing import TypedDict


class Code(TypedDict):
    """codes table row.

    A single-use access credential for one product. Once is_used is set
    the row is never reset; order_item_id records the item it went to.
    """

    id: str
    product_id: str
    code: str
    is_used: bool
    used_at: datetime | None
    order_item_id: str | None
    created_at: datetime


class CodeCreate(TypedDict):
    """Data required to insert a new code."""

    product_id: str
    code: str
    is_used: bool
