"""Secure credential storage using the system keychain.

Uses the `keyring` library which maps to:
  macOS: Keychain Access
  Windows: Windows Credential Manager
  Linux: Secret Service API

Provider API keys and the Google refresh token are stored under the
service name 'com.drivechat.app'; they are never written to the provider
settings file or the database.
"""

import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

SERVICE_NAME = "com.drivechat.app"

# Credentials managed by this store
MANAGED_CREDENTIALS = [
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "MISTRAL_API_KEY",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REFRESH_TOKEN",
]


def provider_key_name(provider: str) -> str:
    """Return the keychain entry name for a chat provider's API key."""
    return f"{provider.upper()}_API_KEY"


class KeyringStore:
    """Thin wrapper around keyring for credential CRUD."""

    def __init__(self, service_name: str = SERVICE_NAME) -> None:
        self._service = service_name

    def get(self, key: str) -> str | None:
        """Retrieve a credential value. Returns None if not set or unreadable."""
        try:
            return keyring.get_password(self._service, key)
        except KeyringError:
            logger.warning("Keyring read failed for %s", key, exc_info=True)
            return None

    def set(self, key: str, value: str) -> None:
        """Store a credential value."""
        keyring.set_password(self._service, key, value)
        logger.info("Stored credential: %s", key)

    def delete(self, key: str) -> None:
        """Remove a credential."""
        try:
            keyring.delete_password(self._service, key)
            logger.info("Deleted credential: %s", key)
        except PasswordDeleteError:
            logger.debug("Credential %s not found for deletion", key)

    def has(self, key: str) -> bool:
        """Check if a credential is set."""
        return self.get(key) is not None

    def get_all_status(self) -> dict[str, bool]:
        """Return status of all managed credentials."""
        return {key: self.has(key) for key in MANAGED_CREDENTIALS}
