"""Pydantic models for the Drive agent."""

from src.orchestrator.models.intent import (
    AgentContext,
    AgentContextUpdate,
    AgentRequest,
    AgentResponse,
    Operation,
    OperationKind,
    OperationStatus,
    ParsedIntent,
)

__all__ = [
    "AgentContext",
    "AgentContextUpdate",
    "AgentRequest",
    "AgentResponse",
    "Operation",
    "OperationKind",
    "OperationStatus",
    "ParsedIntent",
]
