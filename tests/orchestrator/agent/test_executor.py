"""Tests for DriveOperationExecutor."""

import pytest

from src.errors.domain import DriveAPIError
from src.orchestrator.agent.executor import (
    MISSING_PARAMETERS_ERROR,
    DriveOperationExecutor,
    describe_operation,
    looks_like_drive_id,
)
from src.orchestrator.models.intent import OperationKind, OperationStatus
from src.services.drive_service import FOLDER_MIME_TYPE


@pytest.fixture
def executor(fake_drive) -> DriveOperationExecutor:
    return DriveOperationExecutor(fake_drive)


class TestValidation:
    @pytest.mark.asyncio
    async def test_missing_required_makes_no_call(self, executor, fake_drive):
        op = await executor.execute(OperationKind.create_file, {"userId": "u1"})
        assert op.status == OperationStatus.error
        assert op.error == MISSING_PARAMETERS_ERROR
        assert fake_drive.calls == []

    @pytest.mark.asyncio
    async def test_unknown_kind_is_error(self, executor, fake_drive):
        op = await executor.execute("rename_everything", {})
        assert op.status == OperationStatus.error
        assert "Unknown operation" in op.error
        assert fake_drive.calls == []

    @pytest.mark.asyncio
    async def test_records_parameters(self, executor):
        op = await executor.execute(
            OperationKind.create_folder, {"folderName": "Reports", "userId": "u1"}
        )
        assert op.parameters == {"folderName": "Reports", "userId": "u1"}
        assert op.timestamp


class TestExecution:
    @pytest.mark.asyncio
    async def test_create_file(self, executor, fake_drive):
        op = await executor.execute(
            OperationKind.create_file,
            {"fileName": "notes.txt", "content": "Hello", "userId": "u1"},
        )
        assert op.succeeded
        assert op.result["name"] == "notes.txt"
        assert op.result["link"]
        assert fake_drive.contents[op.result["id"]] == "Hello"

    @pytest.mark.asyncio
    async def test_list_defaults_to_root(self, executor, fake_drive):
        fake_drive.add_file("a.txt")
        op = await executor.execute(OperationKind.list_files, {})
        assert op.succeeded
        assert fake_drive.calls[0] == ("list_files", ("root", 50, None))
        assert [f["name"] for f in op.result["files"]] == ["a.txt"]

    @pytest.mark.asyncio
    async def test_share_resolves_name_to_id(self, executor, fake_drive):
        item = fake_drive.add_file("budget.xlsx")
        op = await executor.execute(
            OperationKind.share_file, {"fileId": "budget.xlsx", "email": "a@example.com"}
        )
        assert op.succeeded
        assert fake_drive.permissions == [(item["id"], "a@example.com", "reader")]

    @pytest.mark.asyncio
    async def test_exact_name_preferred(self, executor, fake_drive):
        fake_drive.add_file("report-old.txt")
        exact = fake_drive.add_file("report")
        assert await executor.resolve_file_id("report") == exact["id"]

    @pytest.mark.asyncio
    async def test_folder_resolution_filters_by_mime_type(self, executor, fake_drive):
        folder = fake_drive.add_folder("Archive")
        doc = fake_drive.add_file("report.pdf")
        op = await executor.execute(
            OperationKind.move_file, {"fileId": "report.pdf", "folderId": "Archive"}
        )
        assert op.succeeded
        assert fake_drive.files[doc["id"]]["parents"] == [folder["id"]]
        search = [args for name, args in fake_drive.calls if name == "search_files"]
        assert search[-1][3] == FOLDER_MIME_TYPE

    @pytest.mark.asyncio
    async def test_create_is_not_deduplicated(self, executor, fake_drive):
        params = {"folderName": "Reports"}
        await executor.execute(OperationKind.create_folder, params)
        await executor.execute(OperationKind.create_folder, params)
        assert fake_drive.call_names().count("create_folder") == 2


class TestFailures:
    @pytest.mark.asyncio
    async def test_unresolvable_name_is_not_found(self, executor):
        op = await executor.execute(OperationKind.delete_file, {"fileId": "ghost.txt"})
        assert op.status == OperationStatus.error
        assert "doesn't exist" in op.error

    @pytest.mark.asyncio
    async def test_permission_error_message(self, executor, fake_drive):
        fake_drive.fail_with["create_folder"] = DriveAPIError(
            403, "Forbidden", "insufficient permission"
        )
        op = await executor.execute(OperationKind.create_folder, {"folderName": "X"})
        assert op.status == OperationStatus.error
        assert op.error == (
            "I don't have permission to create that folder. Please check the file permissions."
        )

    @pytest.mark.asyncio
    async def test_exception_never_escapes(self, executor, fake_drive):
        fake_drive.fail_with["list_files"] = RuntimeError("socket exploded")
        op = await executor.execute(OperationKind.list_files, {})
        assert op.status == OperationStatus.error
        assert op.error.startswith("I encountered an unexpected error")


def test_looks_like_drive_id():
    assert looks_like_drive_id("root")
    assert looks_like_drive_id("1AbCdEfGhIjKlMnOpQrStUvWxYz")
    assert not looks_like_drive_id("budget.xlsx")


def test_describe_operation():
    assert describe_operation(OperationKind.share_file) == "share that file"
