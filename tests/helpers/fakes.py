"""In-memory stand-ins for the keychain, message store and chat models."""

from collections.abc import AsyncIterator
from typing import Any, Optional

from src.db.models import generate_uuid, utc_now_iso
from src.errors.domain import NotFoundError
from src.services.chat_models import (
    ChatThreadInfo,
    ChatTurn,
    CreateThreadRequest,
    SaveMessageRequest,
)
from src.services.chat_providers import ProviderId
from src.services.thread_ids import default_thread_title, make_thread_id, next_thread_number


class FakeKeyringStore:
    """Dict-backed KeyringStore."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self.values


class InMemoryPersistence:
    """MessagePersistence that records every save call.

    ``fail_next_saves`` makes that many upcoming saves raise.
    """

    def __init__(self) -> None:
        self.threads: dict[str, ChatThreadInfo] = {}
        self.messages: dict[str, list[ChatTurn]] = {}
        self.save_calls: list[SaveMessageRequest] = []
        self.fail_next_saves = 0

    async def save_message(self, request: SaveMessageRequest) -> ChatTurn:
        self.save_calls.append(request)
        if self.fail_next_saves:
            self.fail_next_saves -= 1
            raise RuntimeError("database is locked")
        if request.thread_id not in self.threads:
            raise NotFoundError("Thread", request.thread_id)
        turn = ChatTurn(
            id=generate_uuid(),
            thread_id=request.thread_id,
            user_id=request.user_id,
            role=request.role,
            content=request.content,
            attachments=list(request.attachments),
            created_at=utc_now_iso(),
        )
        self.messages.setdefault(request.thread_id, []).append(turn)
        return turn

    async def list_messages(self, thread_id: str) -> list[ChatTurn]:
        return list(self.messages.get(thread_id, []))

    async def create_thread(self, request: CreateThreadRequest) -> ChatThreadInfo:
        owned = [t for t in self.threads if self.threads[t].user_id == request.user_id]
        number = next_thread_number(owned)
        now = utc_now_iso()
        thread = ChatThreadInfo(
            thread_id=make_thread_id(request.user_id, number),
            user_id=request.user_id,
            title=request.title or default_thread_title(number),
            created_at=now,
            updated_at=now,
        )
        self.threads[thread.thread_id] = thread
        return thread

    async def list_threads(self, user_id: str) -> list[ChatThreadInfo]:
        return [t for t in reversed(list(self.threads.values())) if t.user_id == user_id]

    async def delete_thread(self, thread_id: str) -> bool:
        self.messages.pop(thread_id, None)
        return self.threads.pop(thread_id, None) is not None

    async def update_thread_title(self, thread_id: str, title: str) -> ChatThreadInfo:
        thread = self.threads.get(thread_id)
        if thread is None:
            raise NotFoundError("Thread", thread_id)
        self.threads[thread_id] = thread.model_copy(update={"title": title})
        return self.threads[thread_id]


class ScriptedChatModel:
    """ChatModel that yields a fixed list of deltas."""

    provider = ProviderId.openai
    model = "scripted"

    def __init__(self, deltas: list[str], error: Optional[Exception] = None) -> None:
        self.deltas = deltas
        self.error = error
        self.received: list[list[dict[str, Any]]] = []

    async def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        self.received.append(messages)
        for delta in self.deltas:
            yield delta
        if self.error is not None:
            raise self.error


class StaticProviders:
    """ProviderAvailability with a fixed answer."""

    def __init__(self, configured: bool) -> None:
        self.configured = configured

    def has_any_configured_provider(self) -> bool:
        return self.configured
