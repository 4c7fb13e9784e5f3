"""Reconciles a live, token-streamed transcript with the message store.

The transcript's last message is examined on every change. User messages
are saved as soon as they appear. Assistant messages are saved once they
settle: while the reply is still loading or still growing, a single-slot
debounce timer is re-armed, and when it finally fires the *current* last
message is saved. A stable, non-loading reply is saved immediately.

Every save is keyed by ``{role}-{content}``. The key is recorded before
the write starts so re-entrant change events cannot write twice, and is
removed again if the write fails so the next change event can retry.
Transport-assigned message ids are never used as keys because the
streaming transport reuses and regenerates them.

All state belongs to exactly one thread. Binding a different thread, or
entering thread switching, clears the key set, the length counter and any
pending timer. A save that completes after such a reset is discarded.
"""

import asyncio
import logging
from typing import Optional

from src.services.chat_models import (
    ChatTurn,
    FileAttachment,
    SaveMessageRequest,
    TranscriptMessage,
)
from src.services.debounce import DebouncedTask
from src.services.message_persistence import MessagePersistence

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 1.0


def dedup_key(role: str, content: str) -> str:
    return f"{role}-{content}"


def _has_attachments(attachments: Optional[list[FileAttachment]]) -> bool:
    return bool(attachments)


class StreamReconciler:
    """At-most-once persistence of a streamed transcript for one thread.

    Args:
        persistence: Message store.
        user_id: Owner of the messages being saved.
        settle_delay: Seconds a growing assistant reply must stay unchanged
            before it is saved.

    Example:
        reconciler = StreamReconciler(store, "u1")
        reconciler.bind_thread("u1-1", persisted)
        reconciler.open_gate()
        await reconciler.on_transcript_change(transcript, loading=True)
    """

    def __init__(
        self,
        persistence: MessagePersistence,
        user_id: str,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
    ) -> None:
        self._persistence = persistence
        self._user_id = user_id
        self._settle = DebouncedTask(settle_delay)
        self._saved_keys: set[str] = set()
        self._last_message_length = 0
        self._thread_id: Optional[str] = None
        self._persisted: list[ChatTurn] = []
        self._transcript: list[TranscriptMessage] = []
        self._generation = 0
        self._gate_open = False
        self._switching = False

    # State inspection

    @property
    def thread_id(self) -> Optional[str]:
        return self._thread_id

    @property
    def saved_keys(self) -> frozenset[str]:
        return frozenset(self._saved_keys)

    @property
    def last_message_length(self) -> int:
        return self._last_message_length

    @property
    def settle_pending(self) -> bool:
        return self._settle.pending

    @property
    def persisted_messages(self) -> list[ChatTurn]:
        return list(self._persisted)

    @property
    def gate_open(self) -> bool:
        return self._gate_open and not self._switching

    # Thread boundary

    def reset(self) -> None:
        """Forget all per-thread state and cancel any pending settle save."""
        self._saved_keys.clear()
        self._last_message_length = 0
        self._settle.cancel()
        self._transcript = []
        self._generation += 1
        logger.debug("Reconciler state reset (generation %d)", self._generation)

    def bind_thread(
        self, thread_id: Optional[str], persisted: Optional[list[ChatTurn]] = None
    ) -> None:
        """Make ``thread_id`` current; resets state when the thread changes."""
        if thread_id != self._thread_id:
            self.reset()
            self._thread_id = thread_id
        self._persisted = list(persisted or [])

    def set_thread_switching(self, switching: bool) -> None:
        """Flag a thread switch in progress; entering it resets state."""
        if switching and not self._switching:
            self.reset()
        self._switching = switching

    def open_gate(self) -> None:
        """Allow saves (messages for the bound thread are loaded)."""
        self._gate_open = True

    def close_gate(self) -> None:
        self._gate_open = False

    # Change handling

    async def on_transcript_change(
        self, transcript: list[TranscriptMessage], loading: bool
    ) -> None:
        """Handle one change of the in-memory transcript.

        Args:
            transcript: Full current transcript; only its tail is examined.
            loading: Whether the model call for this turn is still running.
        """
        self._transcript = list(transcript)
        if not transcript or self._thread_id is None or not self.gate_open:
            return

        last = transcript[-1]
        if last.role == "system" or not last.content.strip():
            return
        if self._already_persisted(last):
            return

        if last.role == "user":
            if _has_attachments(last.attachments) and self._attachment_duplicate(last):
                logger.info("Skipping duplicate user message with attachments")
                return
            await self._save(last, self._generation)
            return

        current_length = len(last.content)
        is_streaming = loading or current_length > self._last_message_length
        self._settle.cancel()
        if is_streaming:
            self._last_message_length = current_length
            generation = self._generation
            self._settle.arm(lambda: self._save_settled(generation))
        else:
            await self._save(last, self._generation)

    async def submit_user_message(self, message: TranscriptMessage) -> Optional[ChatTurn]:
        """Save a user message explicitly, as on the upload-then-submit path.

        Guarded by both the key set and the persisted-list attachment check,
        so a double submit writes one row.
        """
        if self._thread_id is None:
            return None
        if _has_attachments(message.attachments) and self._attachment_duplicate(message):
            logger.info("Skipping duplicate submit of user message with attachments")
            return None
        return await self._save(message, self._generation)

    async def wait_idle(self) -> None:
        """Wait for any pending settle save to complete."""
        await self._settle.wait()

    # Internals

    def _already_persisted(self, message: TranscriptMessage) -> bool:
        return any(
            turn.role == message.role and turn.content == message.content
            for turn in self._persisted
        )

    def _attachment_duplicate(self, message: TranscriptMessage) -> bool:
        return any(
            turn.role == "user"
            and turn.content == message.content
            and _has_attachments(turn.attachments)
            for turn in self._persisted
        )

    async def _save_settled(self, generation: int) -> None:
        if generation != self._generation or not self._transcript:
            return
        final = self._transcript[-1]
        if final.role != "assistant" or not final.content.strip():
            return
        await self._save(final, generation)

    async def _save(self, message: TranscriptMessage, generation: int) -> Optional[ChatTurn]:
        key = dedup_key(message.role, message.content)
        if key in self._saved_keys:
            return None
        self._saved_keys.add(key)
        thread_id = self._thread_id
        request = SaveMessageRequest(
            thread_id=thread_id,
            user_id=self._user_id,
            role=message.role,
            content=message.content,
            attachments=list(message.attachments),
        )
        try:
            turn = await self._persistence.save_message(request)
        except Exception as e:
            logger.warning(
                "Failed to save %s message to thread %s: %s", message.role, thread_id, e
            )
            if generation == self._generation:
                self._saved_keys.discard(key)
            return None
        except asyncio.CancelledError:
            if generation == self._generation:
                self._saved_keys.discard(key)
            raise

        if generation != self._generation or turn.thread_id != self._thread_id:
            logger.info("Discarding save for thread %s after thread switch", thread_id)
            return None
        self._persisted.append(turn)
        logger.debug("Saved %s message %s", message.role, turn.id)
        return turn
