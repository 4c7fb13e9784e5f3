"""Drive agent orchestration for DriveChat.

This package turns free-text requests into Google Drive operations.

Main Entry Points:
    ConversationalAgent: Per-conversation agent (parse, execute, respond).
    IntentParser: Deterministic pattern-table intent parser.
    DriveOperationExecutor: Validates and runs single Drive operations.

Supporting Models:
    ParsedIntent, Operation, AgentContext, AgentRequest, AgentResponse.
"""

from src.orchestrator.agent.config import AgentConfig
from src.orchestrator.agent.conversational_agent import ConversationalAgent
from src.orchestrator.agent.executor import DriveOperationExecutor
from src.orchestrator.models.intent import (
    AgentContext,
    AgentRequest,
    AgentResponse,
    Operation,
    OperationKind,
    OperationStatus,
    ParsedIntent,
)
from src.orchestrator.nl_engine.intent_parser import IntentParser

__all__ = [
    "AgentConfig",
    "AgentContext",
    "AgentRequest",
    "AgentResponse",
    "ConversationalAgent",
    "DriveOperationExecutor",
    "IntentParser",
    "Operation",
    "OperationKind",
    "OperationStatus",
    "ParsedIntent",
]
