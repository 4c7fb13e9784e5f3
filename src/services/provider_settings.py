"""Versioned provider configuration and selection state.

The persisted snapshot carries a ``version`` tag and is always loaded
through an upgrade chain, one step per version:

    v0  legacy single ``chat-config`` blob (camelCase, keys inline)
    v1  shared ``chat-config`` storage with an explicit version
    v2  split ``providerConfig`` / ``selectedProvider`` sections
    v3  current: snake_case, API keys removed from the snapshot

API keys live in the system keychain (``KeyringStore``), never in the
settings file. Keys found inline in an older snapshot are moved to the
keychain when it is loaded.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.errors.domain import UnsupportedProviderError, ValidationError
from src.services.chat_providers import (
    ModelInfo,
    ProviderConfig,
    ProviderInfo,
    get_provider_by_id,
)
from src.services.keyring_store import KeyringStore, provider_key_name

logger = logging.getLogger(__name__)

CURRENT_VERSION = 3
LEGACY_KEYS_FIELD = "_legacy_api_keys"


class ProviderEntry(BaseModel):
    provider_id: str
    is_configured: bool = False


class ProviderSettingsState(BaseModel):
    """Configured providers and the current provider/model selection."""

    version: int = CURRENT_VERSION
    providers: list[ProviderEntry] = Field(default_factory=list)
    selected_provider: str = ""
    selected_model: str = ""

    def has_any_configured_provider(self) -> bool:
        return any(p.is_configured for p in self.providers)

    def entry(self, provider_id: str) -> Optional[ProviderEntry]:
        return next((p for p in self.providers if p.provider_id == provider_id), None)

    def is_provider_configured(self, provider_id: str) -> bool:
        entry = self.entry(provider_id)
        return entry is not None and entry.is_configured


# Upgrade chain


def _legacy_providers(raw: Any) -> list[dict[str, Any]]:
    return [p for p in (raw or []) if isinstance(p, dict) and p.get("providerId")]


def upgrade_v0_to_v1(data: dict[str, Any]) -> dict[str, Any]:
    """Legacy chat-config blob to versioned shared storage."""
    return {
        "version": 1,
        "userProviders": _legacy_providers(data.get("userProviders")),
        "selectedProvider": data.get("selectedProvider") or "",
        "selectedModel": data.get("selectedModel") or "",
    }


def upgrade_v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    """Split shared storage into provider config and selection sections."""
    return {
        "version": 2,
        "providerConfig": {"userProviders": _legacy_providers(data.get("userProviders"))},
        "selectedProvider": {
            "selectedProvider": data.get("selectedProvider") or "",
            "selectedModel": data.get("selectedModel") or "",
        },
    }


def upgrade_v2_to_v3(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten to snake_case and lift inline API keys out of the snapshot."""
    config = data.get("providerConfig") or {}
    selection = data.get("selectedProvider") or {}
    providers = []
    legacy_keys: dict[str, str] = {}
    for item in _legacy_providers(config.get("userProviders")):
        provider_id = item["providerId"]
        api_key = item.get("apiKey") or ""
        if api_key:
            legacy_keys[provider_id] = api_key
        providers.append({
            "provider_id": provider_id,
            "is_configured": bool(item.get("isConfigured")) and bool(api_key),
        })
    upgraded: dict[str, Any] = {
        "version": 3,
        "providers": providers,
        "selected_provider": selection.get("selectedProvider") or "",
        "selected_model": selection.get("selectedModel") or "",
    }
    if legacy_keys:
        upgraded[LEGACY_KEYS_FIELD] = legacy_keys
    return upgraded


UPGRADES: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: upgrade_v0_to_v1,
    1: upgrade_v1_to_v2,
    2: upgrade_v2_to_v3,
}


def upgrade_settings(data: dict[str, Any]) -> tuple[ProviderSettingsState, dict[str, str]]:
    """Run a persisted snapshot through the upgrade chain.

    Args:
        data: Raw snapshot; a missing ``version`` means v0.

    Returns:
        The current-version state and any API keys lifted out of it.

    Raises:
        ValidationError: The snapshot claims a version newer than supported.
    """
    version = int(data.get("version") or 0)
    if version > CURRENT_VERSION:
        raise ValidationError(f"Unsupported provider settings version: {version}")
    while version < CURRENT_VERSION:
        logger.info("Upgrading provider settings from v%d", version)
        data = UPGRADES[version](data)
        version = int(data["version"])
    legacy_keys = dict(data.pop(LEGACY_KEYS_FIELD, None) or {})
    return ProviderSettingsState.model_validate(data), legacy_keys


class ProviderSettingsStore:
    """Application state object for provider configuration and selection.

    Args:
        path: JSON snapshot location (None keeps state in memory only).
        keyring_store: Where API keys are kept.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        keyring_store: Optional[KeyringStore] = None,
    ) -> None:
        self._path = path
        self._keys = keyring_store or KeyringStore()
        self._state = ProviderSettingsState()

    @property
    def state(self) -> ProviderSettingsState:
        return self._state.model_copy(deep=True)

    def load(self) -> ProviderSettingsState:
        """Load and upgrade the snapshot; a missing file yields empty state."""
        if self._path is None or not self._path.exists():
            self._state = ProviderSettingsState()
            return self.state
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read provider settings %s: %s", self._path, e)
            self._state = ProviderSettingsState()
            return self.state
        previous_version = int(raw.get("version") or 0) if isinstance(raw, dict) else 0
        self._state, legacy_keys = upgrade_settings(raw if isinstance(raw, dict) else {})
        for provider_id, api_key in legacy_keys.items():
            self._keys.set(provider_key_name(provider_id), api_key)
        if previous_version != CURRENT_VERSION or legacy_keys:
            self.save()
        return self.state

    def save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(self._state.model_dump_json(indent=2), encoding="utf-8")

    # Provider configuration

    def has_any_configured_provider(self) -> bool:
        return self._state.has_any_configured_provider()

    def configure_provider(self, provider_id: str, api_key: str) -> None:
        """Store an API key and mark the provider configured."""
        self._require_known(provider_id)
        if not api_key:
            raise ValidationError("API key must not be empty")
        self._keys.set(provider_key_name(provider_id), api_key)
        entry = self._state.entry(provider_id)
        if entry is None:
            self._state.providers.append(ProviderEntry(provider_id=provider_id, is_configured=True))
        else:
            entry.is_configured = True
        self.save()

    def remove_provider(self, provider_id: str) -> None:
        self._keys.delete(provider_key_name(provider_id))
        self._state.providers = [p for p in self._state.providers if p.provider_id != provider_id]
        if self._state.selected_provider == provider_id:
            self._state.selected_provider = ""
            self._state.selected_model = ""
        self.save()

    def get_api_key(self, provider_id: str) -> Optional[str]:
        return self._keys.get(provider_key_name(provider_id))

    # Selection

    def select_provider(self, provider_id: str) -> None:
        """Select a provider and its first model."""
        provider = self._require_known(provider_id)
        self._state.selected_provider = provider_id
        self._state.selected_model = provider.models[0].id if provider.models else ""
        self.save()

    def select_model(self, model_id: str) -> None:
        provider = self.current_provider()
        if provider is not None and not any(m.id == model_id for m in provider.models):
            raise ValidationError(f"Model {model_id} is not offered by {provider.name}")
        self._state.selected_model = model_id
        self.save()

    def current_provider(self) -> Optional[ProviderInfo]:
        if not self._state.selected_provider:
            return None
        return get_provider_by_id(self._state.selected_provider)

    def current_model(self) -> Optional[ModelInfo]:
        provider = self.current_provider()
        if provider is None or not self._state.selected_model:
            return None
        return next((m for m in provider.models if m.id == self._state.selected_model), None)

    def reset_selection(self) -> None:
        self._state.selected_provider = ""
        self._state.selected_model = ""
        self.save()

    def provider_config(self) -> ProviderConfig:
        """ProviderConfig for the current selection.

        Raises:
            ValidationError: Nothing selected, or the provider has no key.
        """
        provider_id = self._state.selected_provider
        if not provider_id or not self._state.selected_model:
            raise ValidationError("No provider and model selected")
        api_key = self.get_api_key(provider_id)
        if not api_key:
            raise ValidationError(f"Provider {provider_id} is not configured")
        return ProviderConfig(
            provider=provider_id, model=self._state.selected_model, api_key=api_key
        )

    @staticmethod
    def _require_known(provider_id: str) -> ProviderInfo:
        provider = get_provider_by_id(provider_id)
        if provider is None:
            raise UnsupportedProviderError(provider_id)
        return provider
