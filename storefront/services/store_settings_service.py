"""Store settings business logic service."""

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from storefront.api.middleware.error_handler import ValidationError
from storefront.core.change_feed import ChangeFeed
from storefront.core.config import Settings
from storefront.schemas.settings import StoreSettings


logger = logging.getLogger(__name__)


class StoreSettingsService:
    """Reads and updates the settings key/value table."""

    def __init__(self, client: Client, settings: Settings, change_feed: ChangeFeed | None = None) -> None:
        self.client = client
        self.settings = settings
        self.change_feed = change_feed

    def _defaults(self) -> StoreSettings:
        return StoreSettings(exchange_rate_usd_to_dzd=self.settings.default_exchange_rate_usd_to_dzd)

    async def get_settings(self) -> StoreSettings:
        """Load store settings, falling back to defaults for missing keys.

        A read failure also falls back to defaults so the storefront keeps
        working; the failure is logged.

        Returns:
            StoreSettings: Current store settings.
        """
        try:
            response = self.client.table("settings").select("key, value").execute()
        except Exception as e:
            logger.error("Failed to load store settings, using defaults: %s", str(e))
            return self._defaults()

        values: dict[str, Any] = {row["key"]: row["value"] for row in (response.data or [])}
        merged = self._defaults().model_dump()
        for key, value in values.items():
            if key not in merged or value is None or value == "":
                continue
            if key == "maintenance_mode" and isinstance(value, str):
                value = value.lower() == "true"
            merged[key] = value

        try:
            return StoreSettings.model_validate(merged)
        except PydanticValidationError as e:
            logger.error("Invalid store settings in database, using defaults: %s", str(e))
            return self._defaults()

    async def update_setting(self, key: str, value: Any) -> StoreSettings:
        """Upsert one setting and return the fresh settings.

        Args:
            key: Setting key.
            value: New value; validated against the StoreSettings schema.

        Returns:
            StoreSettings: Settings after the update.

        Raises:
            ValidationError: If the value does not fit the setting.
        """
        current = (await self.get_settings()).model_dump()
        current[key] = value
        try:
            validated = StoreSettings.model_validate(current)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for setting {key}") from e

        stored = validated.model_dump(mode="json")[key]
        self.client.table("settings").upsert(
            {
                "key": key,
                "value": stored,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="key",
        ).execute()
        logger.info("Store setting %s updated", key)

        if self.change_feed:
            self.change_feed.publish("settings", {"key": key, "value": stored})
        return validated
