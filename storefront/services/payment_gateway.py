"""Common contract for payment gateway adapters."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal
from urllib.parse import urlencode

from storefront.api.middleware.error_handler import CredentialsMissingError
from storefront.core.config import Settings
from storefront.schemas.checkout import PaymentRequest

ConfirmationOutcome = Literal["paid", "failed", "pending"]


@dataclass
class GatewayRedirect:
    """Result of starting a payment: where to send the customer."""

    redirect_url: str
    provider_payment_id: str
    payment_data: dict[str, Any]
    charge_amount: Decimal
    charge_currency: str


@dataclass
class PaymentConfirmation:
    """Normalized provider answer to "has this order been paid?"."""

    outcome: ConfirmationOutcome
    provider_status: str | None = None
    payment_data: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.outcome == "paid"


class PaymentGateway(ABC):
    """A translation layer between a generic charge and one provider's API.

    Adapters hold configuration only. They never write to the order
    ledger; the checkout service persists what they return.
    """

    method: str
    provider_name: str

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    @abstractmethod
    def configured(self) -> bool:
        """True when the provider's credentials are present."""

    def require_credentials(self) -> None:
        if not self.configured:
            raise CredentialsMissingError(self.provider_name)

    def success_url(self, order: dict[str, Any]) -> str:
        query = urlencode({"order": str(order["id"])})
        return f"{self.settings.frontend_url.rstrip('/')}/order-success?{query}"

    def cancel_url(self) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/cart"

    def webhook_url(self, provider_slug: str) -> str:
        return f"{self.settings.public_api_url.rstrip('/')}/api/v1/webhooks/{provider_slug}"

    def description(self, order: dict[str, Any]) -> str:
        return f"Order {order['order_number']} - {self.settings.store_brand_name}"

    @abstractmethod
    async def initiate(
        self,
        order: dict[str, Any],
        request: PaymentRequest,
        exchange_rate: Decimal,
    ) -> GatewayRedirect:
        """Create the provider-side payment for an order.

        Args:
            order: The pending order row.
            request: The payment request the order was created from.
            exchange_rate: USD->DZD rate read at call time.

        Raises:
            CredentialsMissingError: Provider is not configured.
            ProviderRejectedError: Provider refused the request.
            GatewayUnavailableError: Provider could not be reached.
        """

    @abstractmethod
    async def confirm(self, order: dict[str, Any], provider_token: str | None) -> PaymentConfirmation:
        """Ask the provider whether the order's payment went through."""
