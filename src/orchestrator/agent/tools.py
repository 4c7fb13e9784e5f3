"""Drive tool schema table.

One DriveTool entry per OperationKind. The ``required`` list of each entry
drives both clarification (which questions to ask) and pre-execution
parameter validation in the executor.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.orchestrator.models.intent import OperationKind


class ToolParameter(BaseModel):
    """One parameter of a Drive tool."""

    type: str = "string"
    description: str
    required: bool = False


class ToolParameters(BaseModel):
    """Parameter block of a Drive tool schema."""

    type: str = "object"
    properties: dict[str, ToolParameter] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class DriveTool(BaseModel):
    """Static schema for one Drive operation."""

    name: OperationKind
    description: str
    parameters: ToolParameters

    def to_definition(self) -> dict[str, Any]:
        """Return the tool as a name/description/input_schema definition dict."""
        return {
            "name": self.name.value,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {
                    key: {"type": prop.type, "description": prop.description}
                    for key, prop in self.parameters.properties.items()
                },
                "required": list(self.parameters.required),
            },
        }


_USER_ID = ToolParameter(description="ID of the user performing the operation")
_FILE_ID = ToolParameter(
    description="ID or name of the file to work with", required=True
)


def _tool(
    kind: OperationKind,
    description: str,
    properties: dict[str, ToolParameter],
) -> DriveTool:
    properties = {**properties, "userId": _USER_ID}
    return DriveTool(
        name=kind,
        description=description,
        parameters=ToolParameters(
            properties=properties,
            required=[name for name, prop in properties.items() if prop.required],
        ),
    )


DRIVE_TOOLS: dict[OperationKind, DriveTool] = {
    tool.name: tool
    for tool in (
        _tool(
            OperationKind.list_files,
            "List files and folders in a Google Drive folder",
            {
                "folderId": ToolParameter(
                    description="Folder to list (defaults to the Drive root)"
                ),
                "pageSize": ToolParameter(
                    type="integer", description="Maximum number of items to return"
                ),
                "pageToken": ToolParameter(description="Token for the next page"),
            },
        ),
        _tool(
            OperationKind.search_files,
            "Search Google Drive for files whose name contains a query",
            {
                "query": ToolParameter(description="Text to search for", required=True),
                "pageSize": ToolParameter(
                    type="integer", description="Maximum number of results"
                ),
                "pageToken": ToolParameter(description="Token for the next page"),
            },
        ),
        _tool(
            OperationKind.create_file,
            "Create a new file with specified content in Google Drive",
            {
                "fileName": ToolParameter(
                    description="Name of the file to create", required=True
                ),
                "content": ToolParameter(
                    description="Content to write to the file", required=True
                ),
                "folderId": ToolParameter(description="Parent folder ID"),
            },
        ),
        _tool(
            OperationKind.create_folder,
            "Create a new folder in Google Drive",
            {
                "folderName": ToolParameter(
                    description="Name of the folder to create", required=True
                ),
                "parentId": ToolParameter(description="Parent folder ID"),
            },
        ),
        _tool(
            OperationKind.read_file,
            "Read the text content of a Google Document",
            {"fileId": _FILE_ID},
        ),
        _tool(
            OperationKind.update_file,
            "Insert new content into a Google Document",
            {
                "fileId": _FILE_ID,
                "content": ToolParameter(
                    description="Content to add to the document", required=True
                ),
            },
        ),
        _tool(
            OperationKind.delete_file,
            "Delete a file or folder from Google Drive",
            {"fileId": _FILE_ID},
        ),
        _tool(
            OperationKind.share_file,
            "Share a file with another user by email",
            {
                "fileId": _FILE_ID,
                "email": ToolParameter(
                    description="Email address to share with", required=True
                ),
                "role": ToolParameter(
                    description="Permission role: reader, writer or commenter"
                ),
            },
        ),
        _tool(
            OperationKind.upload_file,
            "Upload a file (base64 or data URL content) to Google Drive",
            {
                "fileName": ToolParameter(
                    description="Name of the uploaded file", required=True
                ),
                "content": ToolParameter(
                    description="Base64 or data URL encoded file content",
                    required=True,
                ),
                "mimeType": ToolParameter(description="MIME type of the file"),
                "folderId": ToolParameter(description="Parent folder ID"),
            },
        ),
        _tool(
            OperationKind.get_file_details,
            "Get metadata (name, size, modified time) for a file",
            {"fileId": _FILE_ID},
        ),
        _tool(
            OperationKind.move_file,
            "Move a file into another folder",
            {
                "fileId": _FILE_ID,
                "folderId": ToolParameter(
                    description="Destination folder ID or name", required=True
                ),
            },
        ),
        _tool(
            OperationKind.copy_file,
            "Make a copy of a file",
            {
                "fileId": _FILE_ID,
                "fileName": ToolParameter(description="Name for the copy"),
            },
        ),
    )
}


def get_tool_schema(kind: OperationKind | str) -> DriveTool | None:
    """Return the schema for an operation kind, or None if unknown."""
    try:
        return DRIVE_TOOLS.get(OperationKind(kind))
    except ValueError:
        return None


def missing_required_parameters(
    kind: OperationKind | str, parameters: dict[str, Any]
) -> list[str]:
    """Return required parameter names that are absent or empty.

    Unknown operation kinds report no missing parameters; callers check
    ``get_tool_schema`` for existence first.
    """
    tool = get_tool_schema(kind)
    if tool is None:
        return []
    return [name for name in tool.parameters.required if not parameters.get(name)]


def validate_tool_parameters(kind: OperationKind | str, parameters: dict[str, Any]) -> bool:
    """True when the kind is known and every required parameter is present."""
    if get_tool_schema(kind) is None:
        return False
    return not missing_required_parameters(kind, parameters)


def get_tool_definitions() -> list[dict[str, Any]]:
    """Return every Drive tool as a definition dict, in table order."""
    return [tool.to_definition() for tool in DRIVE_TOOLS.values()]
