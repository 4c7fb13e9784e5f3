"""Pytest fixtures for API tests.

Provides a TestClient whose database, session manager and provider store
are replaced with in-memory fakes.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from src.api.dependencies import get_provider_store, get_session_manager
from src.api.main import app
from src.db.connection import get_db
from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.orchestrator.agent.executor import DriveOperationExecutor
from src.services.agent_session_manager import AgentSessionManager
from src.services.chat_stream import ChatStreamSession
from src.services.provider_settings import ProviderSettingsStore
from src.services.stream_reconciler import StreamReconciler
from src.services.thread_lifecycle import ThreadLifecycleManager
from tests.helpers import FakeDrive, FakeKeyringStore, InMemoryPersistence, ScriptedChatModel


class ChatScript:
    """Deltas (and optional error) the next chat model will produce."""

    def __init__(self) -> None:
        self.deltas: list[str] = ["Hello", " from", " the model"]
        self.error: Exception | None = None
        self.models: list[ScriptedChatModel] = []

    def factory(self, config) -> ScriptedChatModel:
        model = ScriptedChatModel(self.deltas, self.error)
        self.models.append(model)
        return model


@pytest.fixture
def chat_script() -> ChatScript:
    return ChatScript()


@pytest.fixture
def chat_store() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def provider_store() -> ProviderSettingsStore:
    store = ProviderSettingsStore(None, FakeKeyringStore())
    store.configure_provider("openai", "sk-test")
    store.select_provider("openai")
    return store


@pytest.fixture
def session_manager(fake_drive, chat_store, chat_script, provider_store) -> AgentSessionManager:
    def make_agent(session_id: str) -> ConversationalAgent:
        return ConversationalAgent(DriveOperationExecutor(fake_drive))

    def make_chat(user_id: str) -> ChatStreamSession:
        reconciler = StreamReconciler(chat_store, user_id, settle_delay=0.01)
        lifecycle = ThreadLifecycleManager(
            chat_store, reconciler, user_id, providers=provider_store
        )
        return ChatStreamSession(lifecycle, model_factory=chat_script.factory)

    return AgentSessionManager(make_agent, make_chat)


@pytest.fixture
def client(
    db_session: Session, session_manager: AgentSessionManager, provider_store
) -> Generator[TestClient, None, None]:
    """TestClient with overridden database, sessions and provider store."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_manager] = lambda: session_manager
    app.dependency_overrides[get_provider_store] = lambda: provider_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
