"""Google OAuth access-token provider for Drive calls.

Supplies a valid bearer token on demand. A cached access token is reused
until shortly before expiry; otherwise the refresh token is exchanged at
Google's OAuth token endpoint. A missing or rejected token surfaces as a
``DriveAPIError`` whose text contains "unauthorized", so the error
classifier maps it to an authentication error.

Credential resolution (first non-empty wins):
    GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET / GOOGLE_REFRESH_TOKEN env vars,
    then the system keychain for the secret and refresh token.
    GOOGLE_ACCESS_TOKEN may seed the cache with a pre-issued token.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from src.errors.domain import DriveAPIError
from src.services.keyring_store import KeyringStore

logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"

# Refresh this many seconds before the reported expiry.
_EXPIRY_MARGIN_SECONDS = 60


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies bearer tokens for Google API calls."""

    async def get_access_token(self) -> str:
        """Return a currently valid access token."""
        ...


@dataclass
class GoogleOAuthCredentials:
    """OAuth client + user grant used to mint access tokens."""

    client_id: str
    client_secret: str
    refresh_token: str | None = None
    access_token: str | None = None

    @classmethod
    def from_env(cls, secrets: KeyringStore | None = None) -> "GoogleOAuthCredentials":
        """Resolve credentials from env vars with keychain fallback."""
        client_secret = os.environ.get("GOOGLE_CLIENT_SECRET", "").strip()
        refresh_token = os.environ.get("GOOGLE_REFRESH_TOKEN", "").strip()
        if secrets is not None:
            client_secret = client_secret or (secrets.get("GOOGLE_CLIENT_SECRET") or "")
            refresh_token = refresh_token or (secrets.get("GOOGLE_REFRESH_TOKEN") or "")
        return cls(
            client_id=os.environ.get("GOOGLE_CLIENT_ID", "").strip(),
            client_secret=client_secret,
            refresh_token=refresh_token or None,
            access_token=os.environ.get("GOOGLE_ACCESS_TOKEN", "").strip() or None,
        )


class StaticTokenProvider:
    """Returns a fixed token. Used for pre-issued tokens and tests."""

    def __init__(self, token: str | None) -> None:
        self._token = token

    async def get_access_token(self) -> str:
        if not self._token:
            raise DriveAPIError(401, "Unauthorized", "No Google access token available")
        return self._token


class GoogleOAuthTokenProvider:
    """Refreshing token provider backed by Google's OAuth token endpoint.

    Concurrent callers share one refresh via an asyncio.Lock.

    Example:
        provider = GoogleOAuthTokenProvider(GoogleOAuthCredentials.from_env())
        token = await provider.get_access_token()
    """

    def __init__(
        self,
        credentials: GoogleOAuthCredentials,
        http_client: httpx.AsyncClient | None = None,
        token_endpoint: str = TOKEN_ENDPOINT,
    ) -> None:
        self._credentials = credentials
        self._client = http_client
        self._endpoint = token_endpoint
        self._access_token = credentials.access_token
        # A seeded token has unknown expiry; trust it until the first 401.
        self._expires_at = float("inf") if credentials.access_token else 0.0
        self._lock = asyncio.Lock()

    def invalidate(self) -> None:
        """Drop the cached token so the next call refreshes."""
        self._access_token = None
        self._expires_at = 0.0

    async def get_access_token(self) -> str:
        """Return a cached token or refresh it.

        Raises:
            DriveAPIError: When no refresh token is configured or Google
                rejects the refresh (classified as authentication).
        """
        async with self._lock:
            if self._access_token and time.monotonic() < self._expires_at:
                return self._access_token
            return await self._refresh()

    async def _refresh(self) -> str:
        creds = self._credentials
        if not creds.refresh_token or not creds.client_id:
            raise DriveAPIError(
                401, "Unauthorized", "User not authenticated with Google Drive"
            )

        payload = {
            "client_id": creds.client_id,
            "client_secret": creds.client_secret,
            "refresh_token": creds.refresh_token,
            "grant_type": "refresh_token",
        }
        client = self._client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(self._endpoint, data=payload)
        finally:
            if self._client is None:
                await client.aclose()

        if response.status_code != 200:
            body = _safe_json(response)
            reason = body.get("error", "unauthorized")
            description = body.get("error_description", "token refresh failed")
            logger.warning("Google token refresh failed: %s %s", response.status_code, reason)
            raise DriveAPIError(401, "Unauthorized", f"{reason}: {description}")

        body = response.json()
        self._access_token = body["access_token"]
        expires_in = float(body.get("expires_in", 3600))
        self._expires_at = time.monotonic() + max(expires_in - _EXPIRY_MARGIN_SECONDS, 0)
        logger.info("Refreshed Google access token (expires in %ss)", int(expires_in))
        return self._access_token


def _safe_json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
