"""Tests for AgentSessionManager.

Manages per-conversation agent sessions and per-user chat sessions:
creation, caching by id, isolation of contexts, and teardown.
"""

import pytest

from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.orchestrator.agent.executor import DriveOperationExecutor
from src.orchestrator.models.intent import AgentRequest
from src.services.agent_session_manager import AgentSession, AgentSessionManager
from src.services.chat_stream import ChatStreamSession
from src.services.stream_reconciler import StreamReconciler
from src.services.thread_lifecycle import ThreadLifecycleManager
from tests.helpers import FakeDrive, InMemoryPersistence


def make_manager() -> AgentSessionManager:
    drive = FakeDrive()
    store = InMemoryPersistence()

    def agent_factory(session_id: str) -> ConversationalAgent:
        return ConversationalAgent(DriveOperationExecutor(drive))

    def chat_factory(user_id: str) -> ChatStreamSession:
        reconciler = StreamReconciler(store, user_id)
        return ChatStreamSession(ThreadLifecycleManager(store, reconciler, user_id))

    return AgentSessionManager(agent_factory=agent_factory, chat_factory=chat_factory)


# =========================================================================
# Agent Sessions
# =========================================================================


def test_create_new_session():
    """get_or_create_session creates a session tagged with its id."""
    mgr = make_manager()
    session = mgr.get_or_create_session("conv-1")
    assert isinstance(session, AgentSession)
    assert session.agent.get_context().conversation_id == "conv-1"


def test_get_existing_session():
    mgr = make_manager()
    assert mgr.get_or_create_session("conv-1") is mgr.get_or_create_session("conv-1")


def test_get_session_does_not_create():
    mgr = make_manager()
    assert mgr.get_session("conv-1") is None
    assert mgr.list_sessions() == []


def test_remove_session_is_idempotent():
    mgr = make_manager()
    mgr.get_or_create_session("conv-1")
    assert mgr.remove_session("conv-1") is True
    assert mgr.remove_session("conv-1") is False


def test_missing_factory_raises():
    with pytest.raises(RuntimeError):
        AgentSessionManager().get_or_create_session("conv-1")


@pytest.mark.asyncio
async def test_contexts_are_isolated():
    """A folder created in one conversation does not leak into another."""
    mgr = make_manager()
    first = mgr.get_or_create_session("a")
    second = mgr.get_or_create_session("b")
    async with first.lock:
        await first.agent.process_request(
            AgentRequest(user_id="u", message="make a new folder called Reports")
        )
    assert first.agent.get_context().current_folder is not None
    assert second.agent.get_context().current_folder is None


# =========================================================================
# Chat Sessions
# =========================================================================


def test_chat_session_per_user():
    mgr = make_manager()
    alice = mgr.get_or_create_chat("alice")
    assert mgr.get_or_create_chat("alice") is alice
    assert mgr.get_or_create_chat("bob") is not alice
    assert mgr.get_chat("carol") is None


def test_remove_chat():
    mgr = make_manager()
    mgr.get_or_create_chat("alice")
    mgr.remove_chat("alice")
    assert mgr.get_chat("alice") is None
    mgr.remove_chat("alice")
