"""Pydantic schemas for API request/response validation.

Agent responses reuse the orchestrator models directly; thread and
message responses reuse the chat read models.
"""

from typing import Optional

from pydantic import BaseModel, Field

from src.orchestrator.models.intent import AgentContext, AgentContextUpdate, AgentResponse
from src.services.chat_models import FileAttachment


class AgentRequestBody(BaseModel):
    """Request for one agent turn.

    Omitting ``conversation_id`` starts a new conversation.
    """

    user_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, description="Typed or transcribed utterance")
    conversation_id: Optional[str] = None
    context: Optional[AgentContextUpdate] = None


class AgentTurnResponse(AgentResponse):
    """AgentResponse plus the conversation it belongs to."""

    conversation_id: str


class ConversationContextResponse(BaseModel):
    conversation_id: str
    context: AgentContext


class CreateThreadBody(BaseModel):
    user_id: str = Field(..., min_length=1)
    title: Optional[str] = Field(default=None, max_length=255)


class RenameThreadBody(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class ChatStreamBody(BaseModel):
    """Request for one streamed chat reply.

    ``provider``/``model`` override the saved selection; ``api_key``
    overrides the keychain entry for this request only.
    """

    user_id: str = Field(..., min_length=1)
    content: str = ""
    attachments: list[FileAttachment] = Field(default_factory=list)
    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = Field(default=None, repr=False)


class ModelSummary(BaseModel):
    id: str
    name: str
    supports_vision: bool = False


class ProviderSummary(BaseModel):
    id: str
    name: str
    description: str
    configured: bool
    models: list[ModelSummary]


class ProvidersResponse(BaseModel):
    providers: list[ProviderSummary]
    selected_provider: str = ""
    selected_model: str = ""
