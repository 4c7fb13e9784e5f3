"""Thread creation, selection and switching for one user's chat session.

States::

    Idle -> Creating | Selecting -> Loading Messages -> Ready

A switch always runs in this order: mark not ready, reset the
reconciler, fetch the target thread's persisted messages, bind them, mark
ready. Nothing can be saved for the new thread until the last step.
"""

import logging
from enum import Enum
from typing import Optional, Protocol

from src.errors.domain import NotFoundError
from src.services.chat_models import ChatThreadInfo, ChatTurn, CreateThreadRequest
from src.services.message_persistence import MessagePersistence
from src.services.stream_reconciler import StreamReconciler

logger = logging.getLogger(__name__)


class ThreadState(str, Enum):
    idle = "idle"
    creating = "creating"
    selecting = "selecting"
    loading_messages = "loading_messages"
    ready = "ready"


class ProviderAvailability(Protocol):
    def has_any_configured_provider(self) -> bool: ...


class ThreadLifecycleManager:
    """Owns the active thread and gates the reconciler on it.

    Args:
        persistence: Message store.
        reconciler: Reconciler for this user's session.
        user_id: Authenticated user.
        providers: Provider configuration; auto-creation only happens when
            at least one provider is configured.
    """

    def __init__(
        self,
        persistence: MessagePersistence,
        reconciler: StreamReconciler,
        user_id: str,
        providers: Optional[ProviderAvailability] = None,
    ) -> None:
        self._persistence = persistence
        self._reconciler = reconciler
        self._user_id = user_id
        self._providers = providers
        self._state = ThreadState.idle
        self._current: Optional[ChatThreadInfo] = None
        self._messages: list[ChatTurn] = []
        self._messages_ready = False
        self._switching = False
        self._fetched: set[str] = set()
        self._chat_key = 0

    @property
    def state(self) -> ThreadState:
        return self._state

    @property
    def current_thread(self) -> Optional[ChatThreadInfo]:
        return self._current

    @property
    def messages(self) -> list[ChatTurn]:
        return list(self._messages)

    @property
    def messages_ready(self) -> bool:
        """True once the current thread's messages are loaded and bound."""
        return self._messages_ready

    @property
    def is_thread_switching(self) -> bool:
        return self._switching

    @property
    def fetched_threads(self) -> frozenset[str]:
        return frozenset(self._fetched)

    @property
    def chat_key(self) -> int:
        """Incremented after every completed switch; streaming sessions restart on change."""
        return self._chat_key

    @property
    def reconciler(self) -> StreamReconciler:
        return self._reconciler

    async def ensure_active_thread(self) -> Optional[ChatThreadInfo]:
        """Auto-create a thread when none is active and a provider is configured."""
        if self._current is not None:
            return self._current
        if self._providers is not None and not self._providers.has_any_configured_provider():
            logger.debug("No configured provider; not auto-creating a thread")
            return None
        try:
            return await self.create_thread()
        except Exception as e:
            logger.error("Failed to auto-create thread for %s: %s", self._user_id, e)
            return None

    async def create_thread(self, title: Optional[str] = None) -> ChatThreadInfo:
        """Create a new thread and make it current (it starts empty)."""
        self._begin_switch(ThreadState.creating)
        try:
            thread = await self._persistence.create_thread(
                CreateThreadRequest(user_id=self._user_id, title=title)
            )
        except Exception:
            self._abort_switch()
            raise
        self._current = thread
        self._fetched.add(thread.thread_id)
        self._finish_switch(thread, [])
        logger.info("Created and selected thread %s", thread.thread_id)
        return thread

    async def select_thread(self, thread: ChatThreadInfo | str) -> list[ChatTurn]:
        """Switch to ``thread`` and load its messages.

        Returns:
            The thread's persisted messages.
        """
        if isinstance(thread, str):
            thread = await self._find_thread(thread)
        self._begin_switch(ThreadState.selecting)
        self._fetched.discard(thread.thread_id)
        self._current = thread
        try:
            messages = await self._fetch(thread.thread_id)
        except Exception:
            self._abort_switch()
            raise
        self._finish_switch(thread, messages)
        logger.info("Switched to thread %s", thread.thread_id)
        return messages

    async def load_current_if_needed(self) -> list[ChatTurn]:
        """Fetch the current thread's messages unless already fetched."""
        thread = self._current
        if thread is None or self._switching or thread.thread_id in self._fetched:
            return self.messages
        self._messages_ready = False
        self._reconciler.close_gate()
        messages = await self._fetch(thread.thread_id)
        self._finish_switch(thread, messages, switched=False)
        return messages

    async def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread; deleting the current one leaves no active thread."""
        deleted = await self._persistence.delete_thread(thread_id)
        self._fetched.discard(thread_id)
        if self._current is not None and self._current.thread_id == thread_id:
            self._current = None
            self._messages = []
            self._messages_ready = False
            self._reconciler.close_gate()
            self._reconciler.bind_thread(None)
            self._state = ThreadState.idle
        return deleted

    async def refresh_messages(self) -> list[ChatTurn]:
        """Re-read the current thread's messages without a switch."""
        if self._current is None:
            return []
        self._messages = await self._persistence.list_messages(self._current.thread_id)
        self._reconciler.bind_thread(self._current.thread_id, self._messages)
        return self.messages

    # Internals

    async def _find_thread(self, thread_id: str) -> ChatThreadInfo:
        for candidate in await self._persistence.list_threads(self._user_id):
            if candidate.thread_id == thread_id:
                return candidate
        raise NotFoundError("Thread", thread_id)

    async def _fetch(self, thread_id: str) -> list[ChatTurn]:
        self._state = ThreadState.loading_messages
        self._fetched.add(thread_id)
        try:
            return await self._persistence.list_messages(thread_id)
        except Exception as e:
            logger.error("Failed to fetch messages for thread %s: %s", thread_id, e)
            self._fetched.discard(thread_id)
            raise

    def _begin_switch(self, state: ThreadState) -> None:
        self._switching = True
        self._messages_ready = False
        self._state = state
        self._reconciler.close_gate()
        self._reconciler.set_thread_switching(True)

    def _abort_switch(self) -> None:
        self._switching = False
        self._messages_ready = False
        self._reconciler.set_thread_switching(False)
        self._state = ThreadState.idle

    def _finish_switch(
        self, thread: ChatThreadInfo, messages: list[ChatTurn], switched: bool = True
    ) -> None:
        self._messages = list(messages)
        self._reconciler.bind_thread(thread.thread_id, self._messages)
        self._messages_ready = True
        self._switching = False
        self._reconciler.set_thread_switching(False)
        self._reconciler.open_gate()
        self._state = ThreadState.ready
        if switched:
            self._chat_key += 1
