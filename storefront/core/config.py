"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Payment provider credentials default to empty strings: an empty
    credential disables that payment method instead of failing startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Public URLs
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Storefront origin used for payment return and cancel URLs",
    )
    public_api_url: str = Field(
        default="http://localhost:8080",
        description="Public base URL of this API, used for provider webhooks",
    )
    store_brand_name: str = Field(default="ATHMANEBZN STORE", description="Brand shown on provider pages")

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")

    # PayPal
    paypal_client_id: str = Field(default="", description="PayPal REST client ID")
    paypal_client_secret: str = Field(default="", description="PayPal REST client secret")
    paypal_api_url: str = Field(default="https://api-m.paypal.com", description="PayPal API base URL")

    # NOWPayments
    nowpayments_api_key: str = Field(default="", description="NOWPayments API key")
    nowpayments_ipn_secret: str = Field(default="", description="NOWPayments IPN secret for webhook signatures")
    nowpayments_api_url: str = Field(default="https://api.nowpayments.io/v1", description="NOWPayments API base URL")
    nowpayments_pay_currency: str = Field(
        default="usdttrc20",
        description="Network-qualified ticker the customer pays in (bare tickers are rejected)",
    )
    nowpayments_min_amount_usd: Decimal = Field(
        default=Decimal("3"),
        description="Provider minimum invoice amount in USD; smaller amounts are raised to it",
    )

    # Chargily (Edahabia / CIB)
    chargily_api_key: str = Field(default="", description="Chargily Pay secret API key")
    chargily_api_url: str = Field(default="https://pay.chargily.com/api/v2", description="Chargily API base URL")

    # Outbound HTTP
    gateway_timeout_seconds: float = Field(default=20.0, description="Timeout for payment provider calls")

    # Pricing fallback
    default_exchange_rate_usd_to_dzd: Decimal = Field(
        default=Decimal("250"),
        description="USD to DZD rate used when the settings table has none",
    )

    # Telegram operator notifications
    telegram_bot_token: str = Field(default="", description="Telegram bot token")
    telegram_chat_id: str = Field(default="", description="Telegram chat ID receiving order notifications")

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for delivery emails")
    email_from_address: str = Field(
        default="ATHMANEBZN Store <noreply@athmanebzn.store>",
        description="From address for transactional emails",
    )

    # Admin back-office
    admin_email: str = Field(default="", description="Admin login email")
    admin_password: str = Field(default="", description="Admin login password")
    admin_session_ttl_hours: int = Field(default=8, description="Admin session lifetime in hours")
    admin_cookie_name: str = Field(default="admin_session", description="Admin session cookie name")
    admin_cookie_secure: bool = Field(default=True, description="Use secure admin cookie (HTTPS only)")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)

    @property
    def nowpayments_configured(self) -> bool:
        return bool(self.nowpayments_api_key)

    @property
    def chargily_configured(self) -> bool:
        return bool(self.chargily_api_key)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
