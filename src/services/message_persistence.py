"""Async Message Persistence interface consumed by the chat path.

The StreamReconciler and ThreadLifecycleManager only talk to this
protocol. ``SQLMessagePersistence`` adapts the synchronous
``ChatPersistenceService`` by running each call in a worker thread with
its own short-lived session.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Optional, Protocol, TypeVar, runtime_checkable

from sqlalchemy.orm import Session

from src.services.chat_models import (
    ChatThreadInfo,
    ChatTurn,
    CreateThreadRequest,
    SaveMessageRequest,
)
from src.services.chat_persistence_service import ChatPersistenceService

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], AbstractContextManager[Session]]


@runtime_checkable
class MessagePersistence(Protocol):
    """Message and thread store used by the reconciler and lifecycle manager."""

    async def save_message(self, request: SaveMessageRequest) -> ChatTurn: ...

    async def list_messages(self, thread_id: str) -> list[ChatTurn]: ...

    async def create_thread(self, request: CreateThreadRequest) -> ChatThreadInfo: ...

    async def list_threads(self, user_id: str) -> list[ChatThreadInfo]: ...

    async def delete_thread(self, thread_id: str) -> bool: ...

    async def update_thread_title(self, thread_id: str, title: str) -> ChatThreadInfo: ...


class SQLMessagePersistence:
    """MessagePersistence backed by SQLAlchemy.

    Args:
        session_factory: Context manager factory yielding a sync Session.
            Defaults to ``src.db.connection.get_db_context``.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        if session_factory is None:
            from src.db.connection import get_db_context

            session_factory = get_db_context
        self._session_factory = session_factory

    async def _run(self, fn: Callable[[ChatPersistenceService], T]) -> T:
        def call() -> T:
            with self._session_factory() as db:
                return fn(ChatPersistenceService(db))

        return await asyncio.to_thread(call)

    async def save_message(self, request: SaveMessageRequest) -> ChatTurn:
        return await self._run(lambda svc: svc.save_message(request))

    async def list_messages(self, thread_id: str) -> list[ChatTurn]:
        return await self._run(lambda svc: svc.list_messages(thread_id))

    async def create_thread(self, request: CreateThreadRequest) -> ChatThreadInfo:
        return await self._run(lambda svc: svc.create_thread(request))

    async def list_threads(self, user_id: str) -> list[ChatThreadInfo]:
        return await self._run(lambda svc: svc.list_threads(user_id))

    async def get_thread(self, thread_id: str) -> ChatThreadInfo | None:
        return await self._run(lambda svc: svc.get_thread(thread_id))

    async def delete_thread(self, thread_id: str) -> bool:
        return await self._run(lambda svc: svc.delete_thread(thread_id))

    async def update_thread_title(self, thread_id: str, title: str) -> ChatThreadInfo:
        return await self._run(lambda svc: svc.update_thread_title(thread_id, title))
