"""Organisation settings, AI provider config and Xero integration state."""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from neura_dashboard.config import settings as app_settings
from neura_dashboard.domain import AIProviderConfig, SettingsData, TestConnectionResponse, XeroConnectResponse
from neura_dashboard.errors import ApiError, FieldValidationError
from neura_dashboard.stores.base import CachedResource, CachedStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="stores/settings")

SETTINGS_KEY = "settings"
AI_CONFIG_KEY = "ai-provider"


class SettingsStore(CachedStore):
    """Cached ``/settings/`` and ``/settings/ai-provider`` plus the actions that change them."""

    def __init__(self, client, *, ttl: Optional[float] = None, **kwargs) -> None:
        super().__init__(client, ttl=ttl if ttl is not None else app_settings.cache_ttl_seconds, **kwargs)

    @property
    def settings(self) -> Optional[SettingsData]:
        return self.get(SETTINGS_KEY)

    @property
    def ai_config(self) -> Optional[AIProviderConfig]:
        return self.get(AI_CONFIG_KEY)

    def fetch_settings(self, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            SETTINGS_KEY,
            lambda: SettingsData.model_validate(self.client.get("/settings/")),
            force_refresh=force_refresh,
            error_message="Failed to load settings",
        )

    def fetch_ai_config(self, force_refresh: bool = False) -> CachedResource:
        return self.fetch(
            AI_CONFIG_KEY,
            lambda: AIProviderConfig.model_validate(self.client.get("/settings/ai-provider")),
            force_refresh=force_refresh,
            error_message="Failed to load AI config",
        )

    def xero_connected(self) -> bool:
        current = self.settings
        return bool(current and current.xero_integration.is_connected)

    def update_settings(self, data: SettingsData) -> None:
        self.set_data(SETTINGS_KEY, data)

    def update_ai_config(self, config: AIProviderConfig) -> None:
        self.set_data(AI_CONFIG_KEY, config)

    def update_org_name(self, name: str) -> bool:
        """Rename the organisation; False when the backend refuses."""
        name = (name or "").strip()
        if not name:
            raise FieldValidationError("name", "Organization name is required")
        current = self.settings
        if current and current.organization_name == name:
            return True
        try:
            data = SettingsData.model_validate(
                self.client.patch("/settings/organization", json={"name": name})
            )
        except (ApiError, ValidationError) as exc:
            logger.warning("Failed to update organization name: %s", exc)
            return False
        self.update_settings(data)
        return True

    def save_ai_config(self, provider: str, api_key: str, model: Optional[str] = None) -> AIProviderConfig:
        if not (api_key or "").strip():
            raise FieldValidationError("api_key", "API key is required")
        data = AIProviderConfig.model_validate(
            self.client.put(
                "/settings/ai-provider",
                json={"provider": provider, "api_key": api_key, "model": model or None},
            )
        )
        self.update_ai_config(data)
        logger.info("Saved AI provider config (provider=%s, model=%s)", provider, model)
        return data

    def test_ai_connection(self) -> TestConnectionResponse:
        result = TestConnectionResponse.model_validate(self.client.post("/settings/ai-provider/test"))
        # validation_status / last_tested_at change server-side
        self.fetch_ai_config(force_refresh=True)
        return result

    def connect_xero(self) -> XeroConnectResponse:
        """Ask the backend for a Xero authorization URL to redirect the user to."""
        return XeroConnectResponse.model_validate(self.client.get("/integrations/xero/connect"))

    def disconnect_xero(self) -> CachedResource:
        self.client.post("/integrations/xero/disconnect")
        logger.info("Xero disconnected; refreshing settings")
        return self.fetch_settings(force_refresh=True)
