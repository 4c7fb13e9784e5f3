"""SQLAlchemy ORM models for the DriveChat state database.

This module defines the chat thread and chat message models backing
message persistence. Uses SQLAlchemy 2.0 style with Mapped and
mapped_column.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class ChatThread(Base):
    """User-scoped conversation container.

    Attributes:
        thread_id: Sequential identifier ``{user_id}-{n}``.
        user_id: Owning user.
        title: Display title (defaults to ``Chat {n}``).
        message_count: Number of persisted messages.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 timestamp of the last successful save.
    """

    __tablename__ = "chat_threads"
    __table_args__ = (
        Index("ix_chatthread_user_updated", "user_id", "updated_at"),
    )

    thread_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage",
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="ChatMessage.sequence",
    )

    def __repr__(self) -> str:
        return f"<ChatThread(thread_id={self.thread_id!r}, title={self.title!r})>"


class ChatMessage(Base):
    """Persisted chat turn. Inserted once, never updated.

    Attributes:
        id: UUID primary key.
        thread_id: FK to ChatThread.
        user_id: Owning user.
        role: 'user', 'assistant', or 'system'.
        content: Message text.
        attachments_json: Optional JSON list of file attachments.
        sequence: Ordering within thread (monotonically increasing).
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        UniqueConstraint("thread_id", "sequence", name="uq_chatmsg_thread_seq"),
        Index("ix_chatmsg_thread_seq", "thread_id", "sequence"),
        Index("ix_chatmsg_thread_role", "thread_id", "role"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    thread_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("chat_threads.thread_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    attachments_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    thread: Mapped["ChatThread"] = relationship(
        "ChatThread", back_populates="messages"
    )

    def __repr__(self) -> str:
        return (
            f"<ChatMessage(id={self.id!r}, role={self.role!r}, "
            f"seq={self.sequence})>"
        )
