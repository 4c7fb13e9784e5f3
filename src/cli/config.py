"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./drivechat.yaml (working directory)
3. ~/.drivechat/config.yaml (user home)

Environment variables override YAML: DRIVECHAT_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.

Example:
    user_id: alice
    agent:
      max_operations_per_request: 3
      log_level: debug
    chat:
      provider: anthropic
      api_key: ${ANTHROPIC_API_KEY}
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from src.orchestrator.agent.config import AgentConfig
from src.utils.redaction import redact_for_logging

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
_ENV_PREFIX = "DRIVECHAT_"


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class AgentSection(BaseModel):
    """Drive agent tuning (mirrors AgentConfig)."""

    max_operations_per_request: int = Field(default=5, ge=1)
    timeout_ms: int = Field(default=30000, ge=1)
    retry_attempts: int = Field(default=3, ge=0)
    enable_suggestions: bool = True
    log_level: Literal["debug", "info", "warn", "error"] = "info"

    def to_agent_config(self) -> AgentConfig:
        return AgentConfig(**self.model_dump())


class ChatSection(BaseModel):
    """Default chat provider selection for CLI commands."""

    provider: str | None = None
    model: str | None = None
    api_key: str | None = Field(default=None, repr=False)
    settle_delay_seconds: float = Field(default=1.0, gt=0)


class GoogleSection(BaseModel):
    """Google OAuth settings; secrets normally come from env or keychain."""

    client_id: str = ""
    client_secret: str = Field(default="", repr=False)
    refresh_token: str = Field(default="", repr=False)


class DriveChatConfig(BaseModel):
    """Top-level configuration for the DriveChat CLI."""

    user_id: str = "local"
    agent: AgentSection = AgentSection()
    chat: ChatSection = ChatSection()
    google: GoogleSection = GoogleSection()


def _find_config_file() -> Path | None:
    candidates = [
        Path.cwd() / "drivechat.yaml",
        Path.cwd() / "drivechat.yml",
        Path.home() / ".drivechat" / "config.yaml",
        Path.home() / ".drivechat" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply DRIVECHAT_<SECTION>_<KEY> env var overrides to config data.

    Only the nested sections (agent, chat, google) are overridable this
    way. ``DRIVECHAT_AGENT_*`` names used by AgentConfig.from_env are not
    field names here and are ignored unless they match a field.
    """
    sections = [
        name
        for name, field in DriveChatConfig.model_fields.items()
        if isinstance(field.default, BaseModel)
    ]
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        suffix = key[len(_ENV_PREFIX):].lower()
        for section in sections:
            section_prefix = section + "_"
            if not suffix.startswith(section_prefix):
                continue
            field_name = suffix[len(section_prefix):]
            model = type(DriveChatConfig.model_fields[section].default)
            if field_name not in model.model_fields:
                break
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = _coerce(value)
            break
    return data


def load_config(config_path: str | None = None) -> DriveChatConfig | None:
    """Load DriveChat configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.drivechat/).

    Returns:
        Parsed and validated DriveChatConfig, or None if no config found.

    Raises:
        FileNotFoundError: An explicit path does not exist.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()
        if path is None:
            return None

    logger.info("Loading config from %s", path)

    with open(path) as f:
        raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    logger.debug("Config values: %s", redact_for_logging(data))
    return DriveChatConfig(**data)


def load_config_or_default(config_path: str | None = None) -> DriveChatConfig:
    """Like load_config, but an absent file yields defaults."""
    return load_config(config_path) or DriveChatConfig()
