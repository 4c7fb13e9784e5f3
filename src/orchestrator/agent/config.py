"""Configuration for the Drive conversational agent.

Defaults can be overridden per instance or from the environment:

    DRIVECHAT_AGENT_MAX_OPERATIONS   max operations per request (default 5)
    DRIVECHAT_AGENT_TIMEOUT_MS       request ceiling in ms (default 30000)
    DRIVECHAT_AGENT_RETRY_ATTEMPTS   retry budget (default 3)
    DRIVECHAT_AGENT_SUGGESTIONS      "true"/"false" (default true)
    DRIVECHAT_AGENT_LOG_LEVEL        debug|info|warn|error (default info)

``timeout_ms`` and ``retry_attempts`` are enforced by the Drive capability's
HTTP client, not by the agent's own logic.
"""

import logging
import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

LogLevelName = Literal["debug", "info", "warn", "error"]

_LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class AgentConfig(BaseModel):
    """Agent tuning knobs.

    Attributes:
        max_operations_per_request: Cap on primary + secondary operations.
        timeout_ms: Intended ceiling for one request.
        retry_attempts: Intended retry budget for Drive calls.
        enable_suggestions: Whether responses carry follow-up suggestions.
        log_level: Level applied to the orchestrator logger.
    """

    model_config = ConfigDict(frozen=True)

    max_operations_per_request: int = Field(default=5, ge=1)
    timeout_ms: int = Field(default=30000, ge=1)
    retry_attempts: int = Field(default=3, ge=0)
    enable_suggestions: bool = True
    log_level: LogLevelName = "info"

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Build a config from DRIVECHAT_AGENT_* environment variables."""
        values: dict[str, object] = {}
        env_map = {
            "DRIVECHAT_AGENT_MAX_OPERATIONS": "max_operations_per_request",
            "DRIVECHAT_AGENT_TIMEOUT_MS": "timeout_ms",
            "DRIVECHAT_AGENT_RETRY_ATTEMPTS": "retry_attempts",
            "DRIVECHAT_AGENT_LOG_LEVEL": "log_level",
        }
        for env_name, field_name in env_map.items():
            raw = os.environ.get(env_name, "").strip()
            if raw:
                values[field_name] = raw.lower() if field_name == "log_level" else raw
        suggestions = os.environ.get("DRIVECHAT_AGENT_SUGGESTIONS", "").strip().lower()
        if suggestions:
            values["enable_suggestions"] = suggestions not in {"0", "false", "no", "off"}
        return cls.model_validate(values)

    def apply_log_level(self) -> None:
        """Set the orchestrator logger's level from ``log_level``."""
        logging.getLogger("src.orchestrator").setLevel(_LOG_LEVELS[self.log_level])
