"""Service layer for DriveChat.

Provides chat thread persistence, stream reconciliation, thread lifecycle,
chat provider clients and settings, and the Google Drive REST client.
"""

from src.services.agent_session_manager import AgentSessionManager
from src.services.chat_persistence_service import ChatPersistenceService
from src.services.chat_stream import ChatStreamSession
from src.services.drive_service import GoogleDriveService
from src.services.message_persistence import SQLMessagePersistence
from src.services.provider_settings import ProviderSettingsStore
from src.services.stream_reconciler import StreamReconciler
from src.services.thread_lifecycle import ThreadLifecycleManager

__all__ = [
    "AgentSessionManager",
    "ChatPersistenceService",
    "ChatStreamSession",
    "GoogleDriveService",
    "SQLMessagePersistence",
    "ProviderSettingsStore",
    "StreamReconciler",
    "ThreadLifecycleManager",
]
