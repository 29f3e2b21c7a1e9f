"""Store settings schemas."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SettingKey = Literal[
    "site_name",
    "exchange_rate_usd_to_dzd",
    "tax_rate",
    "payment_methods",
    "maintenance_mode",
    "contact_info",
]


class PaymentMethodToggles(BaseModel):
    """Per-gateway enable flags."""

    paypal: bool = True
    crypto: bool = True
    edahabia: bool = True


class ContactInfo(BaseModel):
    """Support channels shown to customers."""

    whatsapp: str = ""
    telegram: str = ""
    email: str = "support@store.com"


class StoreSettings(BaseModel):
    """Store-wide settings read from the settings key/value table.

    tax_rate is a percentage (19 means 19%).
    """

    model_config = ConfigDict(from_attributes=True)

    site_name: dict[str, str] = Field(
        default_factory=lambda: {"en": "ATHMANEBZN STORE", "ar": "متجر عثمان بن"}
    )
    exchange_rate_usd_to_dzd: Decimal = Field(default=Decimal("250"), gt=0)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)
    payment_methods: PaymentMethodToggles = Field(default_factory=PaymentMethodToggles)
    maintenance_mode: bool = False
    contact_info: ContactInfo = Field(default_factory=ContactInfo)

    def is_method_enabled(self, method: str) -> bool:
        return bool(getattr(self.payment_methods, method, False))


class SettingUpdate(BaseModel):
    """Schema for PUT /admin/settings."""

    key: SettingKey = Field(description="Setting key")
    value: Any = Field(description="New value")
