"""Conversational Drive agent.

Orchestrates one request through the state machine

    Received -> Parsing -> (Clarifying | Executing) -> Responding -> Done

Parsing uses the IntentParser. A request missing required parameters ends
the turn with clarification questions (status ``partial``) and runs nothing.
Otherwise the primary action runs first, then secondary actions in order
until ``max_operations_per_request`` operations exist. Secondary actions
see the primary's results: a created file or folder id fills a missing
``fileId``/``folderId`` in later operations.

Any unexpected exception is converted into a fixed apologetic response;
``process_request`` never raises.
"""

import logging
from enum import Enum
from typing import Any, Optional

from src.errors.classifier import classify_agent_error, log_agent_error
from src.orchestrator.agent.config import AgentConfig
from src.orchestrator.agent.executor import DriveOperationExecutor
from src.orchestrator.agent.responses import (
    FATAL_ERROR_MESSAGE,
    FATAL_ERROR_SUGGESTIONS,
    generate_response,
    generate_suggestions,
)
from src.orchestrator.models.intent import (
    AgentContext,
    AgentContextUpdate,
    AgentRequest,
    AgentResponse,
    AgentStatus,
    Operation,
    OperationKind,
    ParsedIntent,
)
from src.orchestrator.nl_engine.clarification import format_clarification_message
from src.orchestrator.nl_engine.intent_parser import IntentParser

logger = logging.getLogger(__name__)

# Operations that act on an existing file and can take a prior result's id.
_FILE_TARGETS = {
    OperationKind.read_file,
    OperationKind.update_file,
    OperationKind.delete_file,
    OperationKind.share_file,
    OperationKind.get_file_details,
    OperationKind.move_file,
    OperationKind.copy_file,
}
# Operations that place something inside a folder.
_FOLDER_TARGETS = {
    OperationKind.create_file: "folderId",
    OperationKind.upload_file: "folderId",
    OperationKind.list_files: "folderId",
    OperationKind.create_folder: "parentId",
}


class AgentState(str, Enum):
    """Turn lifecycle states."""

    received = "received"
    parsing = "parsing"
    clarifying = "clarifying"
    executing = "executing"
    responding = "responding"
    done = "done"


def overall_status(operations: list[Operation]) -> AgentStatus:
    """Status follows the primary operation; a failed secondary makes it partial."""
    if not operations or not operations[0].succeeded:
        return "error"
    if all(op.succeeded for op in operations[1:]):
        return "completed"
    return "partial"


def _result_id(op: Operation) -> Optional[str]:
    if op.succeeded and isinstance(op.result, dict):
        value = op.result.get("id")
        return str(value) if value else None
    return None


class ConversationalAgent:
    """Drive agent owning one conversation's context.

    Example:
        agent = ConversationalAgent(DriveOperationExecutor(drive))
        response = await agent.process_request(
            AgentRequest(user_id="u", message="list my files")
        )
    """

    def __init__(
        self,
        executor: DriveOperationExecutor,
        parser: IntentParser | None = None,
        config: AgentConfig | None = None,
        context: AgentContext | None = None,
    ) -> None:
        self._executor = executor
        self._parser = parser or IntentParser()
        self._config = config or AgentConfig()
        self._context = context or AgentContext()
        self._state = AgentState.done
        self._config.apply_log_level()

    @property
    def state(self) -> AgentState:
        """Current lifecycle state (``done`` between turns)."""
        return self._state

    @property
    def config(self) -> AgentConfig:
        return self._config

    def get_context(self) -> AgentContext:
        """Return a copy of the conversation context."""
        return self._context.model_copy(deep=True)

    def update_context(self, update: AgentContextUpdate | dict[str, Any] | None) -> None:
        """Merge a caller-supplied context fragment (unset fields are kept)."""
        if update is None:
            return
        if isinstance(update, dict):
            update = AgentContextUpdate.model_validate(update)
        changes = update.model_dump(exclude_none=True)
        self._context = self._context.model_copy(update=changes)

    async def process_request(self, request: AgentRequest) -> AgentResponse:
        """Run one turn. Never raises.

        Args:
            request: User id, message and optional context fragment.

        Returns:
            AgentResponse with message, operations, suggestions and status.
        """
        try:
            self._state = AgentState.received
            self.update_context(request.context)

            self._state = AgentState.parsing
            intent = self._parser.parse(request.message, self._context)
            logger.debug(
                "Parsed intent primary=%s secondary=%s confidence=%s",
                intent.primary_action.value,
                [a.value for a in intent.secondary_actions],
                intent.confidence,
            )

            if intent.requires_clarification:
                self._state = AgentState.clarifying
                return self._clarification_response(intent)

            self._state = AgentState.executing
            operations = await self._execute(intent, request.user_id)

            self._state = AgentState.responding
            self._context.previous_operations = operations
            suggestions = (
                generate_suggestions(operations) if self._config.enable_suggestions else []
            )
            return AgentResponse(
                message=generate_response(operations),
                operations=operations,
                suggestions=suggestions,
                status=overall_status(operations),
                context=self.get_context(),
            )
        except Exception as e:
            error = classify_agent_error(e, "process your request")
            log_agent_error(error, "process_request", request.user_id)
            return AgentResponse(
                message=FATAL_ERROR_MESSAGE,
                operations=[],
                suggestions=list(FATAL_ERROR_SUGGESTIONS),
                status="error",
                context=self.get_context(),
            )
        finally:
            self._state = AgentState.done

    def _clarification_response(self, intent: ParsedIntent) -> AgentResponse:
        questions = list(intent.clarification_questions)
        return AgentResponse(
            message=format_clarification_message(questions),
            operations=[],
            suggestions=questions,
            status="partial",
            context=self.get_context(),
        )

    async def _execute(self, intent: ParsedIntent, user_id: str) -> list[Operation]:
        limit = self._config.max_operations_per_request
        operations: list[Operation] = []

        primary_params = {**intent.parameters}
        primary_params.setdefault("userId", user_id)
        primary = await self._executor.execute(intent.primary_action, primary_params)
        operations.append(primary)
        self._absorb(primary)

        for kind, params in zip(intent.secondary_actions, intent.secondary_parameters):
            if len(operations) >= limit:
                logger.info("Operation limit %d reached; skipping remaining actions", limit)
                break
            params = self._carry_forward(kind, {**params}, operations)
            params.setdefault("userId", user_id)
            op = await self._executor.execute(kind, params)
            operations.append(op)
            self._absorb(op)

        return operations

    @staticmethod
    def _carry_forward(
        kind: OperationKind, params: dict[str, Any], previous: list[Operation]
    ) -> dict[str, Any]:
        """Fill a missing file/folder reference from the latest successful result."""
        last_success = next((op for op in reversed(previous) if op.succeeded), None)
        if last_success is None:
            return params
        produced = _result_id(last_success)
        if not produced:
            return params
        if kind in _FILE_TARGETS and not params.get("fileId"):
            params["fileId"] = produced
        folder_key = _FOLDER_TARGETS.get(kind)
        if (
            folder_key
            and not params.get(folder_key)
            and last_success.type == OperationKind.create_folder
        ):
            params[folder_key] = produced
        return params

    def _absorb(self, op: Operation) -> None:
        """Update current folder / selected files from a successful operation."""
        if not op.succeeded:
            return
        produced = _result_id(op)
        if op.type == OperationKind.create_folder and produced:
            self._context.current_folder = produced
        elif op.type in (
            OperationKind.create_file,
            OperationKind.upload_file,
            OperationKind.copy_file,
        ) and produced:
            self._context.selected_files = [produced]
        elif op.type == OperationKind.search_files and isinstance(op.result, dict):
            self._context.selected_files = [
                f["id"] for f in op.result.get("files") or [] if f.get("id")
            ]
