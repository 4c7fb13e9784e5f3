"""Tests for the Drive tool schema table."""

import pytest

from src.orchestrator.agent.tools import (
    DRIVE_TOOLS,
    get_tool_definitions,
    get_tool_schema,
    missing_required_parameters,
    validate_tool_parameters,
)
from src.orchestrator.models.intent import OperationKind


def test_every_operation_kind_has_a_tool():
    assert set(DRIVE_TOOLS) == set(OperationKind)


def test_user_id_is_never_required():
    for tool in DRIVE_TOOLS.values():
        assert "userId" in tool.parameters.properties
        assert "userId" not in tool.parameters.required


@pytest.mark.parametrize(
    "kind,required",
    [
        (OperationKind.create_file, ["fileName", "content"]),
        (OperationKind.create_folder, ["folderName"]),
        (OperationKind.share_file, ["fileId", "email"]),
        (OperationKind.list_files, []),
    ],
)
def test_required_parameters(kind, required):
    assert DRIVE_TOOLS[kind].parameters.required == required


def test_missing_required_treats_empty_as_missing():
    missing = missing_required_parameters(
        OperationKind.create_file, {"userId": "u1", "fileName": ""}
    )
    assert missing == ["fileName", "content"]


def test_validate_rejects_unknown_kind():
    assert get_tool_schema("rename_everything") is None
    assert validate_tool_parameters("rename_everything", {}) is False


def test_validate_accepts_complete_parameters():
    assert validate_tool_parameters("search_files", {"query": "budget"}) is True


def test_definitions_have_input_schema():
    definitions = get_tool_definitions()
    assert len(definitions) == len(OperationKind)
    create = next(d for d in definitions if d["name"] == "create_file")
    assert create["input_schema"]["required"] == ["fileName", "content"]
    assert create["input_schema"]["properties"]["content"]["type"] == "string"
