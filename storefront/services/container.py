"""Service wiring, built once per application."""

from dataclasses import dataclass

from supabase import Client

from storefront.core.change_feed import ChangeFeed
from storefront.core.config import Settings
from storefront.services.admin_auth_service import AdminAuthService
from storefront.services.admin_service import AdminService
from storefront.services.cart_service import CartService
from storefront.services.catalog_service import CatalogService
from storefront.services.chargily_gateway import ChargilyGateway
from storefront.services.checkout_service import CheckoutService
from storefront.services.code_service import CodeService
from storefront.services.crypto_gateway import CryptoGateway
from storefront.services.email_service import EmailService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.paypal_gateway import PayPalGateway
from storefront.services.store_settings_service import StoreSettingsService


def build_gateways(settings: Settings) -> dict[str, PaymentGateway]:
    """One adapter per payment method."""
    gateways: list[PaymentGateway] = [
        PayPalGateway(settings),
        CryptoGateway(settings),
        ChargilyGateway(settings),
    ]
    return {gateway.method: gateway for gateway in gateways}


@dataclass
class Services:
    """Every service the API uses, sharing one client and one change feed."""

    settings: Settings
    client: Client
    change_feed: ChangeFeed
    store_settings: StoreSettingsService
    orders: OrderService
    fulfillment: FulfillmentService
    checkout: CheckoutService
    codes: CodeService
    admin: AdminService
    admin_auth: AdminAuthService
    gateways: dict[str, PaymentGateway]


def build_services(settings: Settings, client: Client) -> Services:
    """Construct the service graph from explicit settings and a Supabase client."""
    change_feed = ChangeFeed()
    store_settings = StoreSettingsService(client, settings, change_feed)
    orders = OrderService(client, change_feed)
    fulfillment = FulfillmentService(client, orders, change_feed)
    gateways = build_gateways(settings)
    checkout = CheckoutService(
        orders=orders,
        gateways=gateways,
        fulfillment=fulfillment,
        store_settings=store_settings,
        catalog=CatalogService(client),
        carts=CartService(client),
        notifications=NotificationService(settings),
        emails=EmailService(settings),
    )
    return Services(
        settings=settings,
        client=client,
        change_feed=change_feed,
        store_settings=store_settings,
        orders=orders,
        fulfillment=fulfillment,
        checkout=checkout,
        codes=CodeService(client, change_feed),
        admin=AdminService(client),
        admin_auth=AdminAuthService(settings),
        gateways=gateways,
    )
