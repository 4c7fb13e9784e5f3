"""Tests for AgentConfig."""

import logging

import pytest
from pydantic import ValidationError

from src.orchestrator.agent.config import AgentConfig


def test_defaults():
    config = AgentConfig()
    assert config.max_operations_per_request == 5
    assert config.timeout_ms == 30000
    assert config.retry_attempts == 3
    assert config.enable_suggestions is True
    assert config.log_level == "info"


def test_frozen():
    with pytest.raises(ValidationError):
        AgentConfig().max_operations_per_request = 2


def test_rejects_zero_operations():
    with pytest.raises(ValidationError):
        AgentConfig(max_operations_per_request=0)


def test_from_env(monkeypatch):
    monkeypatch.setenv("DRIVECHAT_AGENT_MAX_OPERATIONS", "2")
    monkeypatch.setenv("DRIVECHAT_AGENT_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("DRIVECHAT_AGENT_SUGGESTIONS", "off")
    config = AgentConfig.from_env()
    assert config.max_operations_per_request == 2
    assert config.log_level == "debug"
    assert config.enable_suggestions is False


def test_from_env_ignores_blank(monkeypatch):
    monkeypatch.setenv("DRIVECHAT_AGENT_TIMEOUT_MS", "  ")
    assert AgentConfig.from_env().timeout_ms == 30000


def test_apply_log_level():
    AgentConfig(log_level="warn").apply_log_level()
    assert logging.getLogger("src.orchestrator").level == logging.WARNING
    AgentConfig().apply_log_level()
