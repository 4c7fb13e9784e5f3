"""Database module for DriveChat thread and message persistence."""

from src.db.connection import (
    SessionLocal,
    async_engine,
    async_init_db,
    close_async_db,
    engine,
    get_db,
    get_db_context,
    init_db,
)
from src.db.models import (
    Base,
    ChatMessage,
    ChatThread,
)

__all__ = [
    # Models
    "Base",
    "ChatThread",
    "ChatMessage",
    # Connection
    "engine",
    "async_engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "async_init_db",
    "close_async_db",
]
