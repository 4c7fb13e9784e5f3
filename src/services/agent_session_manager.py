"""Session registry for agent conversations and per-user chat sessions.

Each conversation id owns exactly one ConversationalAgent, and with it one
AgentContext; contexts are never shared across conversations. Each user
owns one ChatStreamSession (thread lifecycle plus reconciler). An
asyncio.Lock per session serializes turns so a conversation's context and
a thread's dedup state are only touched by one request at a time.

Example:
    mgr = AgentSessionManager(agent_factory=make_agent, chat_factory=make_chat)
    session = mgr.get_or_create_session("conv-123")
    async with session.lock:
        response = await session.agent.process_request(request)
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.services.chat_stream import ChatStreamSession

logger = logging.getLogger(__name__)

AgentFactory = Callable[[str], ConversationalAgent]
ChatFactory = Callable[[str], ChatStreamSession]


class AgentSession:
    """A single agent conversation.

    Attributes:
        session_id: Conversation identifier (also the context's conversation_id).
        agent: The conversation's agent.
        created_at: When the session was created.
        lock: Serializes turns for this conversation.
    """

    def __init__(self, session_id: str, agent: ConversationalAgent) -> None:
        self.session_id = session_id
        self.agent = agent
        self.created_at = datetime.now(timezone.utc)
        self.lock = asyncio.Lock()
        agent.update_context({"conversation_id": session_id})


class ChatSession:
    """A user's chat surface.

    Attributes:
        user_id: Owner.
        stream: Streaming session over the user's thread lifecycle.
        lock: Serializes thread switches and replies for this user.
    """

    def __init__(self, user_id: str, stream: ChatStreamSession) -> None:
        self.user_id = user_id
        self.stream = stream
        self.created_at = datetime.now(timezone.utc)
        self.lock = asyncio.Lock()


class AgentSessionManager:
    """Manages agent conversations and chat sessions.

    Safe for single-process usage (FastAPI's async loop).
    Not designed for multi-process deployment.
    """

    def __init__(
        self,
        agent_factory: Optional[AgentFactory] = None,
        chat_factory: Optional[ChatFactory] = None,
    ) -> None:
        self._agent_factory = agent_factory
        self._chat_factory = chat_factory
        self._sessions: dict[str, AgentSession] = {}
        self._chats: dict[str, ChatSession] = {}

    # Agent conversations

    def get_session(self, session_id: str) -> AgentSession | None:
        """Get a session without auto-creating. Returns None if not found."""
        return self._sessions.get(session_id)

    def get_or_create_session(self, session_id: str) -> AgentSession:
        """Get an existing conversation or create one with a fresh context.

        Raises:
            RuntimeError: No agent factory was configured.
        """
        if session_id not in self._sessions:
            if self._agent_factory is None:
                raise RuntimeError("AgentSessionManager has no agent factory")
            self._sessions[session_id] = AgentSession(session_id, self._agent_factory(session_id))
            logger.info("Created new agent session: %s", session_id)
        return self._sessions[session_id]

    def remove_session(self, session_id: str) -> bool:
        """Forget a conversation and its context. Idempotent."""
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Removed agent session: %s", session_id)
        return session is not None

    def list_sessions(self) -> list[str]:
        return list(self._sessions.keys())

    # Chat sessions

    def get_chat(self, user_id: str) -> ChatSession | None:
        return self._chats.get(user_id)

    def get_or_create_chat(self, user_id: str) -> ChatSession:
        """Get or create the user's chat session.

        Raises:
            RuntimeError: No chat factory was configured.
        """
        if user_id not in self._chats:
            if self._chat_factory is None:
                raise RuntimeError("AgentSessionManager has no chat factory")
            self._chats[user_id] = ChatSession(user_id, self._chat_factory(user_id))
            logger.info("Created chat session for user %s", user_id)
        return self._chats[user_id]

    def remove_chat(self, user_id: str) -> None:
        chat = self._chats.pop(user_id, None)
        if chat is not None:
            chat.stream.lifecycle.reconciler.reset()
            logger.info("Removed chat session for user %s", user_id)
