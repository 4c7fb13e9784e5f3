"""Intent models for natural language Drive commands.

These Pydantic models define the structure of parsed user requests,
executed operations, and the rolling conversation context the agent
keeps between turns.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.db.models import utc_now_iso


class OperationKind(str, Enum):
    """Drive operations the agent can perform."""

    list_files = "list_files"
    search_files = "search_files"
    create_file = "create_file"
    create_folder = "create_folder"
    read_file = "read_file"
    update_file = "update_file"
    delete_file = "delete_file"
    share_file = "share_file"
    upload_file = "upload_file"
    get_file_details = "get_file_details"
    move_file = "move_file"
    copy_file = "copy_file"


class OperationStatus(str, Enum):
    """Outcome of one attempted operation."""

    success = "success"
    error = "error"
    pending = "pending"


class Operation(BaseModel):
    """One concrete attempted action against the Drive capability.

    Immutable once recorded.

    Attributes:
        type: Operation kind.
        status: success, error or pending.
        result: Raw capability result on success.
        error: User-facing error message on failure.
        timestamp: ISO8601 UTC time the operation was recorded.
        parameters: Parameters the operation was invoked with.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    type: OperationKind
    status: OperationStatus
    result: Optional[Any] = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)
    parameters: dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        """True when the operation completed successfully."""
        return self.status == OperationStatus.success


class ParsedIntent(BaseModel):
    """Structured interpretation of a free-text request.

    Ephemeral: produced and consumed within one request.

    Attributes:
        primary_action: Operation selected by the first matching pattern.
        secondary_actions: Follow-up operations from compound clauses.
        parameters: Extracted parameters for the primary action.
        secondary_parameters: Extracted parameters per secondary action.
        confidence: 0.8 on a pattern match, 0.3 for the fallback.
        requires_clarification: Whether required parameters are missing.
        clarification_questions: One question per missing parameter.
    """

    model_config = ConfigDict(from_attributes=True)

    primary_action: OperationKind
    secondary_actions: list[OperationKind] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    secondary_parameters: list[dict[str, Any]] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    requires_clarification: bool = False
    clarification_questions: list[str] = Field(default_factory=list)


class AgentContext(BaseModel):
    """Rolling context for one conversation.

    Mutated by the agent after every request. ``previous_operations`` holds
    only the last turn's operations.
    """

    model_config = ConfigDict(from_attributes=True)

    conversation_id: Optional[str] = None
    previous_operations: list[Operation] = Field(default_factory=list)
    current_folder: Optional[str] = None
    selected_files: list[str] = Field(default_factory=list)
    user_preferences: dict[str, Any] = Field(default_factory=dict)


class AgentContextUpdate(BaseModel):
    """Caller-supplied context fragment merged into AgentContext on receipt."""

    conversation_id: Optional[str] = None
    current_folder: Optional[str] = None
    selected_files: Optional[list[str]] = None
    user_preferences: Optional[dict[str, Any]] = None


class AgentRequest(BaseModel):
    """One user request to the agent."""

    user_id: str = Field(..., min_length=1)
    message: str
    context: Optional[AgentContextUpdate] = None


AgentStatus = Literal["completed", "partial", "error"]


class AgentResponse(BaseModel):
    """Agent reply for one turn.

    Attributes:
        message: Natural-language response text.
        operations: Operations executed this turn.
        suggestions: Up to three follow-up suggestions.
        status: completed, partial (clarification or a failed secondary) or error.
        context: Context after the turn.
    """

    message: str
    operations: list[Operation] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    status: AgentStatus
    context: AgentContext
