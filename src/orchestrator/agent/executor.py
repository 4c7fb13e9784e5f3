"""Drive operation executor.

Validates parameters against the DriveTool schema, resolves human file
names to Drive ids, invokes the Drive capability and wraps the outcome in
an Operation. Failures never escape: a missing required parameter yields
an error Operation without any external call, and capability exceptions
are classified into user-facing messages.

Mutating operations (create, delete, share) are not deduplicated here;
calling execute twice creates twice.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from src.errors.classifier import classify_drive_error
from src.errors.domain import DriveAPIError
from src.orchestrator.agent.tools import get_tool_schema, validate_tool_parameters
from src.orchestrator.models.intent import Operation, OperationKind, OperationStatus
from src.services.drive_service import FOLDER_MIME_TYPE, DriveCapability, get_mime_type

logger = logging.getLogger(__name__)

MISSING_PARAMETERS_ERROR = "Missing required parameters"

# Drive ids are long url-safe tokens; anything else is treated as a name.
_DRIVE_ID = re.compile(r"^[A-Za-z0-9_-]{20,}$")

# Human phrasing of each operation, used in permission/validation messages.
_OPERATION_PHRASES: dict[OperationKind, str] = {
    OperationKind.list_files: "list those files",
    OperationKind.search_files: "search your files",
    OperationKind.create_file: "create that file",
    OperationKind.create_folder: "create that folder",
    OperationKind.read_file: "read that file",
    OperationKind.update_file: "update that file",
    OperationKind.delete_file: "delete that file",
    OperationKind.share_file: "share that file",
    OperationKind.upload_file: "upload that file",
    OperationKind.get_file_details: "get that file's details",
    OperationKind.move_file: "move that file",
    OperationKind.copy_file: "copy that file",
}

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


def describe_operation(kind: OperationKind) -> str:
    """Return the human phrase for an operation kind."""
    return _OPERATION_PHRASES.get(kind, f"complete the {kind.value} operation")


def looks_like_drive_id(value: str) -> bool:
    """True for 'root' and strings shaped like Drive file ids."""
    return value == "root" or bool(_DRIVE_ID.match(value))


class DriveOperationExecutor:
    """Executes one Drive operation and records it as an Operation.

    Example:
        executor = DriveOperationExecutor(drive)
        op = await executor.execute(OperationKind.create_folder, {"folderName": "Reports"})
    """

    def __init__(self, drive: DriveCapability, page_size: int = 50) -> None:
        self._drive = drive
        self._page_size = page_size
        self._handlers: dict[OperationKind, Handler] = {
            OperationKind.list_files: self._list_files,
            OperationKind.search_files: self._search_files,
            OperationKind.create_file: self._create_file,
            OperationKind.create_folder: self._create_folder,
            OperationKind.read_file: self._read_file,
            OperationKind.update_file: self._update_file,
            OperationKind.delete_file: self._delete_file,
            OperationKind.share_file: self._share_file,
            OperationKind.upload_file: self._upload_file,
            OperationKind.get_file_details: self._get_file_details,
            OperationKind.move_file: self._move_file,
            OperationKind.copy_file: self._copy_file,
        }

    async def execute(self, kind: OperationKind | str, params: dict[str, Any]) -> Operation:
        """Validate and run one operation.

        Args:
            kind: Operation kind.
            params: Operation parameters (DriveTool property names).

        Returns:
            Operation with status success (and the raw result) or error
            (and a classified user-facing message).
        """
        params = dict(params)
        try:
            kind = OperationKind(kind)
        except ValueError:
            logger.warning("Unknown operation kind: %s", kind)
            return Operation(
                type=OperationKind.search_files,
                status=OperationStatus.error,
                error=f"Unknown operation: {kind}",
                parameters=params,
            )

        if get_tool_schema(kind) is None or not validate_tool_parameters(kind, params):
            return Operation(
                type=kind,
                status=OperationStatus.error,
                error=MISSING_PARAMETERS_ERROR,
                parameters=params,
            )

        try:
            result = await self._handlers[kind](params)
        except Exception as e:
            classified = classify_drive_error(e, describe_operation(kind))
            logger.warning(
                "Drive operation %s failed (%s): %s",
                kind.value,
                classified.type.value,
                classified.details,
            )
            return Operation(
                type=kind,
                status=OperationStatus.error,
                error=classified.message,
                parameters=params,
            )

        logger.info("Drive operation %s succeeded", kind.value)
        return Operation(
            type=kind,
            status=OperationStatus.success,
            result=result,
            parameters=params,
        )

    # Reference resolution

    async def resolve_file_id(self, reference: str) -> str:
        """Map a file name to its Drive id via search; ids pass through.

        Raises:
            DriveAPIError: 404 when no file matches the name.
        """
        if looks_like_drive_id(reference):
            return reference
        found = await self._drive.search_files(reference, page_size=10)
        return self._pick(found, reference)

    async def resolve_folder_id(self, reference: str) -> str:
        """Map a folder name to its Drive id via search; ids pass through."""
        if reference.lower() in {"root", "main"}:
            return "root"
        if looks_like_drive_id(reference):
            return reference
        found = await self._drive.search_files(
            reference, page_size=10, mime_type=FOLDER_MIME_TYPE
        )
        return self._pick(found, reference)

    @staticmethod
    def _pick(found: dict[str, Any], reference: str) -> str:
        files = found.get("files") or []
        if not files:
            raise DriveAPIError(404, "Not Found", f"File not found: {reference}")
        exact = [f for f in files if f.get("name", "").lower() == reference.lower()]
        return (exact or files)[0]["id"]

    # Handlers

    async def _list_files(self, params: dict[str, Any]) -> Any:
        folder_id = await self.resolve_folder_id(params.get("folderId") or "root")
        return await self._drive.list_files(
            folder_id,
            int(params.get("pageSize") or self._page_size),
            params.get("pageToken"),
        )

    async def _search_files(self, params: dict[str, Any]) -> Any:
        return await self._drive.search_files(
            params["query"],
            int(params.get("pageSize") or self._page_size),
            params.get("pageToken"),
        )

    async def _create_file(self, params: dict[str, Any]) -> Any:
        parent = params.get("folderId")
        parent_id = await self.resolve_folder_id(parent) if parent else None
        return await self._drive.create_file(
            params["fileName"], params["content"], params.get("userId"), parent_id
        )

    async def _create_folder(self, params: dict[str, Any]) -> Any:
        parent = params.get("parentId")
        parent_id = await self.resolve_folder_id(parent) if parent else None
        return await self._drive.create_folder(
            params["folderName"], params.get("userId"), parent_id
        )

    async def _read_file(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        return await self._drive.read_document(file_id)

    async def _update_file(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        await self._drive.update_document(file_id, params["content"])
        return {"id": file_id, "updated": True}

    async def _delete_file(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        await self._drive.delete_file(file_id)
        return {"id": file_id, "deleted": True}

    async def _share_file(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        role = params.get("role") or "reader"
        await self._drive.share_file(file_id, params["email"], role)
        return {"id": file_id, "email": params["email"], "role": role}

    async def _upload_file(self, params: dict[str, Any]) -> Any:
        parent = params.get("folderId")
        parent_id = await self.resolve_folder_id(parent) if parent else None
        mime_type = params.get("mimeType") or get_mime_type(params["fileName"])
        return await self._drive.upload_file(
            params["fileName"], params["content"], mime_type, parent_id
        )

    async def _get_file_details(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        return await self._drive.get_file(file_id)

    async def _move_file(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        folder_id = await self.resolve_folder_id(params["folderId"])
        return await self._drive.move_file(file_id, folder_id)

    async def _copy_file(self, params: dict[str, Any]) -> Any:
        file_id = await self.resolve_file_id(params["fileId"])
        return await self._drive.copy_file(file_id, params.get("fileName"))
