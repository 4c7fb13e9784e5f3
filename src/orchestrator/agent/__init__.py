"""Drive agent package.

Modules:
    config: AgentConfig (defaults and env overrides)
    tools: DriveTool schema table and parameter validation
    executor: DriveOperationExecutor
    responses: Response templates and suggestion tables
    conversational_agent: ConversationalAgent state machine
"""

from src.orchestrator.agent.config import AgentConfig
from src.orchestrator.agent.conversational_agent import (
    AgentState,
    ConversationalAgent,
    overall_status,
)
from src.orchestrator.agent.executor import (
    MISSING_PARAMETERS_ERROR,
    DriveOperationExecutor,
)
from src.orchestrator.agent.tools import (
    DRIVE_TOOLS,
    DriveTool,
    get_tool_schema,
    missing_required_parameters,
    validate_tool_parameters,
)

__all__ = [
    "AgentConfig",
    "AgentState",
    "ConversationalAgent",
    "overall_status",
    "DriveOperationExecutor",
    "MISSING_PARAMETERS_ERROR",
    "DRIVE_TOOLS",
    "DriveTool",
    "get_tool_schema",
    "missing_required_parameters",
    "validate_tool_parameters",
]
