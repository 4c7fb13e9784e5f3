"""Persistence service for chat threads and messages.

Thin layer between callers (API routes, the async Message Persistence
adapter) and the SQLAlchemy models. Messages are append-only: every save
is an insert, never an update.

Server-side duplicate detection is the last line of defense against
double writes from the client. Saving a message whose
``(thread_id, role, content)`` matches an existing row returns that row
instead of inserting. By default the lookup is time-unbounded (the most
recent matching row wins); set ``DRIVECHAT_DEDUP_WINDOW_SECONDS`` to only
treat rows written within that many seconds as duplicates.
"""

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.db.models import ChatMessage, ChatThread, generate_uuid, utc_now_iso
from src.errors.domain import NotFoundError
from src.services.chat_models import (
    ChatThreadInfo,
    ChatTurn,
    CreateThreadRequest,
    FileAttachment,
    SaveMessageRequest,
)
from src.services.thread_ids import (
    default_thread_title,
    make_thread_id,
    next_thread_number,
)

logger = logging.getLogger(__name__)


def get_dedup_window() -> Optional[timedelta]:
    """Read the duplicate window from the environment (None = unbounded)."""
    raw = os.environ.get("DRIVECHAT_DEDUP_WINDOW_SECONDS", "").strip()
    if not raw:
        return None
    try:
        seconds = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid DRIVECHAT_DEDUP_WINDOW_SECONDS=%r", raw)
        return None
    return timedelta(seconds=seconds) if seconds > 0 else None


def _load_attachments(msg: ChatMessage) -> list[FileAttachment]:
    if not msg.attachments_json:
        return []
    try:
        raw = json.loads(msg.attachments_json)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Corrupted attachments_json for message %s", msg.id)
        return []
    return [FileAttachment.model_validate(item) for item in raw or []]


def to_chat_turn(msg: ChatMessage) -> ChatTurn:
    """Convert an ORM message row into a ChatTurn."""
    return ChatTurn(
        id=msg.id,
        thread_id=msg.thread_id,
        user_id=msg.user_id,
        role=msg.role,
        content=msg.content,
        attachments=_load_attachments(msg),
        created_at=msg.created_at,
    )


class ChatPersistenceService:
    """CRUD operations for chat threads and messages.

    Args:
        db: SQLAlchemy session (sync).
        dedup_window: Duplicate window for ``save_message``; defaults to
            the ``DRIVECHAT_DEDUP_WINDOW_SECONDS`` setting.
    """

    def __init__(self, db: Session, dedup_window: Optional[timedelta] = None) -> None:
        self._db = db
        self._dedup_window = dedup_window if dedup_window is not None else get_dedup_window()

    # Threads

    def create_thread(self, request: CreateThreadRequest) -> ChatThreadInfo:
        """Create a thread with the next sequential id for the user.

        Args:
            request: Owning user and optional title.

        Returns:
            The created thread. Title defaults to ``Chat {n}``.
        """
        existing = (
            self._db.query(ChatThread.thread_id)
            .filter(ChatThread.user_id == request.user_id)
            .order_by(ChatThread.created_at)
            .all()
        )
        number = next_thread_number(row[0] for row in existing)
        now = utc_now_iso()
        thread = ChatThread(
            thread_id=make_thread_id(request.user_id, number),
            user_id=request.user_id,
            title=request.title or default_thread_title(number),
            message_count=0,
            created_at=now,
            updated_at=now,
        )
        self._db.add(thread)
        self._db.commit()
        logger.info("Created thread %s", thread.thread_id)
        return ChatThreadInfo.model_validate(thread)

    def list_threads(self, user_id: str) -> list[ChatThreadInfo]:
        """List a user's threads, most recently updated first."""
        rows = (
            self._db.query(ChatThread)
            .filter(ChatThread.user_id == user_id)
            .order_by(ChatThread.updated_at.desc(), ChatThread.created_at.desc())
            .all()
        )
        return [ChatThreadInfo.model_validate(row) for row in rows]

    def get_thread(self, thread_id: str) -> ChatThreadInfo | None:
        thread = self._db.get(ChatThread, thread_id)
        return ChatThreadInfo.model_validate(thread) if thread else None

    def update_thread_title(self, thread_id: str, title: str) -> ChatThreadInfo:
        """Rename a thread.

        Raises:
            NotFoundError: If the thread does not exist.
        """
        thread = self._db.get(ChatThread, thread_id)
        if thread is None:
            raise NotFoundError("Thread", thread_id)
        thread.title = title
        thread.updated_at = utc_now_iso()
        self._db.commit()
        return ChatThreadInfo.model_validate(thread)

    def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread and all of its messages.

        Returns:
            True if the thread existed, False otherwise.
        """
        thread = self._db.get(ChatThread, thread_id)
        if thread is None:
            return False
        self._db.query(ChatMessage).filter(ChatMessage.thread_id == thread_id).delete(
            synchronize_session=False
        )
        self._db.delete(thread)
        self._db.commit()
        logger.info("Deleted thread %s", thread_id)
        return True

    # Messages

    def list_messages(self, thread_id: str) -> list[ChatTurn]:
        """Messages of one thread in creation order."""
        rows = (
            self._db.query(ChatMessage)
            .filter(ChatMessage.thread_id == thread_id)
            .order_by(ChatMessage.sequence)
            .all()
        )
        return [to_chat_turn(row) for row in rows]

    def find_duplicate(self, request: SaveMessageRequest) -> ChatMessage | None:
        """Most recent row with the same (thread, role, content), if any."""
        existing = (
            self._db.query(ChatMessage)
            .filter(
                ChatMessage.thread_id == request.thread_id,
                ChatMessage.role == request.role,
                ChatMessage.content == request.content,
            )
            .order_by(ChatMessage.sequence.desc())
            .first()
        )
        if existing is None or self._dedup_window is None:
            return existing
        created = datetime.fromisoformat(existing.created_at)
        if datetime.now(UTC) - created <= self._dedup_window:
            return existing
        return None

    def save_message(self, request: SaveMessageRequest) -> ChatTurn:
        """Append a message, or return the existing duplicate row.

        Args:
            request: Thread, user, role, content and attachments.

        Returns:
            The inserted ChatTurn, or the already-persisted duplicate.

        Raises:
            NotFoundError: If the thread does not exist.
        """
        duplicate = self.find_duplicate(request)
        if duplicate is not None:
            logger.info(
                "Duplicate message detected in thread %s, returning %s",
                request.thread_id,
                duplicate.id,
            )
            return to_chat_turn(duplicate)

        thread = self._db.get(ChatThread, request.thread_id)
        if thread is None:
            raise NotFoundError("Thread", request.thread_id)

        # SELECT+INSERT is safe under SQLite's single-writer semantics.
        max_seq = (
            self._db.query(func.max(ChatMessage.sequence))
            .filter(ChatMessage.thread_id == request.thread_id)
            .scalar()
        )
        attachments = [a.model_dump(exclude_none=True) for a in request.attachments]
        msg = ChatMessage(
            id=generate_uuid(),
            thread_id=request.thread_id,
            user_id=request.user_id,
            role=request.role,
            content=request.content,
            attachments_json=json.dumps(attachments) if attachments else None,
            sequence=(max_seq or 0) + 1,
            created_at=utc_now_iso(),
        )
        self._db.add(msg)
        self._db.flush()

        thread.message_count = (
            self._db.query(func.count(ChatMessage.id))
            .filter(ChatMessage.thread_id == request.thread_id)
            .scalar()
            or 0
        )
        thread.updated_at = utc_now_iso()
        self._db.commit()
        logger.debug(
            "Saved %s message %s to thread %s (len=%d)",
            request.role,
            msg.id,
            request.thread_id,
            len(request.content),
        )
        return to_chat_turn(msg)
