"""Process-wide runtime objects for the API, exposed as FastAPI dependencies.

Routes take these through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

import logging
from typing import Optional

from src.orchestrator.agent.config import AgentConfig
from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.orchestrator.agent.executor import DriveOperationExecutor
from src.services.agent_session_manager import AgentSessionManager
from src.services.chat_stream import ChatStreamSession
from src.services.drive_service import GoogleDriveService
from src.services.google_credentials import GoogleOAuthCredentials, GoogleOAuthTokenProvider
from src.services.keyring_store import KeyringStore
from src.services.message_persistence import MessagePersistence, SQLMessagePersistence
from src.services.provider_settings import ProviderSettingsStore
from src.services.stream_reconciler import StreamReconciler
from src.services.thread_lifecycle import ThreadLifecycleManager
from src.utils.paths import get_provider_settings_path

logger = logging.getLogger(__name__)

_agent_config: Optional[AgentConfig] = None
_drive: Optional[GoogleDriveService] = None
_persistence: Optional[MessagePersistence] = None
_provider_store: Optional[ProviderSettingsStore] = None
_session_manager: Optional[AgentSessionManager] = None


def get_agent_config() -> AgentConfig:
    global _agent_config
    if _agent_config is None:
        _agent_config = AgentConfig.from_env()
    return _agent_config


def get_drive() -> GoogleDriveService:
    """Shared Drive client using refreshable OAuth credentials."""
    global _drive
    if _drive is None:
        config = get_agent_config()
        credentials = GoogleOAuthCredentials.from_env(KeyringStore())
        _drive = GoogleDriveService(
            GoogleOAuthTokenProvider(credentials),
            timeout_ms=config.timeout_ms,
            retry_attempts=config.retry_attempts,
        )
    return _drive


def get_message_persistence() -> MessagePersistence:
    global _persistence
    if _persistence is None:
        _persistence = SQLMessagePersistence()
    return _persistence


def get_provider_store() -> ProviderSettingsStore:
    global _provider_store
    if _provider_store is None:
        _provider_store = ProviderSettingsStore(get_provider_settings_path())
        _provider_store.load()
    return _provider_store


def _make_agent(session_id: str) -> ConversationalAgent:
    return ConversationalAgent(DriveOperationExecutor(get_drive()), config=get_agent_config())


def _make_chat(user_id: str) -> ChatStreamSession:
    persistence = get_message_persistence()
    reconciler = StreamReconciler(persistence, user_id)
    lifecycle = ThreadLifecycleManager(
        persistence, reconciler, user_id, providers=get_provider_store()
    )
    return ChatStreamSession(lifecycle)


def get_session_manager() -> AgentSessionManager:
    global _session_manager
    if _session_manager is None:
        _session_manager = AgentSessionManager(_make_agent, _make_chat)
    return _session_manager


async def shutdown_runtime() -> None:
    """Close the Drive client and forget all sessions."""
    global _drive, _session_manager
    if _drive is not None:
        await _drive.aclose()
        _drive = None
    _session_manager = None
