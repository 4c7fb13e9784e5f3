"""Tests for the chat thread and message ORM models."""

import pytest
from sqlalchemy.exc import IntegrityError

from src.db.models import ChatMessage, ChatThread


def _thread(thread_id: str = "alice-1") -> ChatThread:
    return ChatThread(thread_id=thread_id, user_id="alice", title="Chat 1")


def _message(seq: int, thread_id: str = "alice-1") -> ChatMessage:
    return ChatMessage(
        thread_id=thread_id, user_id="alice", role="user", content=f"m{seq}", sequence=seq
    )


def test_defaults(db_session):
    thread = _thread()
    db_session.add(thread)
    db_session.commit()

    assert thread.message_count == 0
    assert thread.created_at
    assert thread.updated_at
    assert "alice-1" in repr(thread)


def test_messages_ordered_by_sequence(db_session):
    thread = _thread()
    db_session.add(thread)
    db_session.add_all([_message(2), _message(0), _message(1)])
    db_session.commit()
    db_session.refresh(thread)

    assert [m.content for m in thread.messages] == ["m0", "m1", "m2"]
    assert len(thread.messages[0].id) == 36


def test_sequence_unique_within_thread(db_session):
    db_session.add(_thread())
    db_session.add_all([_message(0), _message(0)])
    with pytest.raises(IntegrityError):
        db_session.commit()


def test_delete_thread_cascades(db_session):
    thread = _thread()
    db_session.add(thread)
    db_session.add(_message(0))
    db_session.commit()

    db_session.delete(thread)
    db_session.commit()
    assert db_session.query(ChatMessage).count() == 0
