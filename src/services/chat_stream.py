"""Chat path: stream one assistant reply through the reconciler.

The session builds the transcript from the active thread's persisted
messages plus the new user message, streams the model's reply and feeds
every growth step to the StreamReconciler with ``loading=True``. When the
stream ends the final transcript is reported with ``loading=False`` and
the pending settle save is awaited, so the reply is persisted exactly once.
"""

import logging
from collections.abc import AsyncIterator, Callable
from typing import Optional

from src.db.models import generate_uuid
from src.errors.domain import ValidationError
from src.services.chat_models import FileAttachment, TranscriptMessage
from src.services.chat_providers import (
    ChatModel,
    ProviderConfig,
    build_provider_messages,
    create_chat_model,
)
from src.services.thread_lifecycle import ThreadLifecycleManager

logger = logging.getLogger(__name__)

ModelFactory = Callable[[ProviderConfig], ChatModel]


class ChatStreamSession:
    """One user's chat surface over a ThreadLifecycleManager.

    Args:
        lifecycle: Active-thread owner; its reconciler does the saving.
        model_factory: Builds the streaming model for a ProviderConfig.
    """

    def __init__(
        self,
        lifecycle: ThreadLifecycleManager,
        model_factory: ModelFactory = create_chat_model,
    ) -> None:
        self._lifecycle = lifecycle
        self._model_factory = model_factory
        self._loading = False

    @property
    def lifecycle(self) -> ThreadLifecycleManager:
        return self._lifecycle

    @property
    def loading(self) -> bool:
        """True while a reply is streaming."""
        return self._loading

    async def stream_reply(
        self,
        content: str,
        config: ProviderConfig,
        attachments: Optional[list[FileAttachment]] = None,
    ) -> AsyncIterator[str]:
        """Send a user message and yield the assistant reply's text deltas.

        Raises:
            ValidationError: Empty message, or the thread's messages are
                not ready yet.
        """
        if not content.strip() and not attachments:
            raise ValidationError("Message content must not be empty")
        if not self._lifecycle.messages_ready or self._lifecycle.current_thread is None:
            raise ValidationError("Messages for the current thread are not ready")

        reconciler = self._lifecycle.reconciler
        chat_key = self._lifecycle.chat_key
        model = self._model_factory(config)

        history = [
            TranscriptMessage(
                id=turn.id, role=turn.role, content=turn.content, attachments=turn.attachments
            )
            for turn in self._lifecycle.messages
        ]
        user_message = TranscriptMessage(
            id=generate_uuid(), role="user", content=content, attachments=attachments or []
        )
        transcript = [*history, user_message]
        if user_message.attachments:
            await reconciler.submit_user_message(user_message)
        else:
            await reconciler.on_transcript_change(transcript, loading=False)

        assistant = TranscriptMessage(id=generate_uuid(), role="assistant", content="")
        self._loading = True
        try:
            async for delta in model.stream(build_provider_messages(transcript)):
                if self._lifecycle.chat_key != chat_key:
                    logger.info("Thread switched during streaming; stopping reply")
                    return
                assistant = assistant.model_copy(update={"content": assistant.content + delta})
                await reconciler.on_transcript_change([*transcript, assistant], loading=True)
                yield delta
        finally:
            self._loading = False
            if self._lifecycle.chat_key == chat_key and assistant.content:
                await reconciler.on_transcript_change([*transcript, assistant], loading=False)
                await reconciler.wait_idle()
                await self._lifecycle.refresh_messages()
