"""Natural-language responses and follow-up suggestions for agent turns.

The response text is keyed off the first successful operation; the
suggestions are keyed off the last operation, success or failure.
"""

from collections.abc import Callable
from typing import Any

from src.orchestrator.models.intent import Operation, OperationKind

MAX_SUGGESTIONS = 3
MAX_LISTED_NAMES = 3

FATAL_ERROR_MESSAGE = (
    "I encountered an error while processing your request. Please try again."
)
FATAL_ERROR_SUGGESTIONS = [
    "Try rephrasing your request",
    "Check if you have the necessary permissions",
]
NO_OPERATIONS_MESSAGE = "I couldn't complete any operations. Please try again."

SUGGESTIONS: dict[OperationKind, list[str]] = {
    OperationKind.list_files: [
        "Search for specific files",
        "Create a new folder",
        "Upload a file",
    ],
    OperationKind.search_files: [
        "Open one of the files",
        "Create a new file",
        "List all files",
    ],
    OperationKind.create_file: [
        "Edit the file",
        "Share the file",
        "Create another file",
    ],
    OperationKind.create_folder: [
        "Add files to the folder",
        "List files in the folder",
        "Create another folder",
    ],
    OperationKind.read_file: [
        "Edit the file",
        "Share the file",
        "Create a copy",
    ],
}
DEFAULT_SUGGESTIONS = ["List your files", "Search for files", "Create a new file"]
FAILURE_SUGGESTIONS = ["Try a different approach", "Check your permissions", "List your files"]


def _names(files: list[dict[str, Any]]) -> str:
    listed = ", ".join(str(f.get("name", "")) for f in files[:MAX_LISTED_NAMES])
    if len(files) > MAX_LISTED_NAMES:
        listed += " and more..."
    return listed


def _list_response(op: Operation) -> str:
    files = (op.result or {}).get("files") or []
    text = f"I found {len(files)} items in the folder. "
    if files:
        text += "The files include: " + _names(files)
    return text.strip()


def _search_response(op: Operation) -> str:
    files = (op.result or {}).get("files") or []
    text = f"I found {len(files)} files matching your search. "
    if files:
        text += "Results include: " + _names(files)
    return text.strip()


def _create_file_response(op: Operation) -> str:
    name = op.parameters.get("fileName") or "your file"
    return f'I\'ve successfully created the file "{name}" with your content.'


def _create_folder_response(op: Operation) -> str:
    name = op.parameters.get("folderName") or "your folder"
    return f'I\'ve successfully created the folder "{name}".'


def _read_response(op: Operation) -> str:
    result = op.result or {}
    content = result.get("content") or result.get("title") or "the file"
    return f"I've read {content}. The file contains the requested information."


def _share_response(op: Operation) -> str:
    email = op.parameters.get("email") or "the specified user"
    return f"I've successfully shared the file with {email}."


def _details_response(op: Operation) -> str:
    details = op.result or {}
    return (
        f"File details: {details.get('name') or 'Unknown file'}, "
        f"size: {details.get('size') or 'Unknown'}, "
        f"modified: {details.get('modifiedTime') or 'Unknown'}."
    )


RESPONSE_TEMPLATES: dict[OperationKind, Callable[[Operation], str]] = {
    OperationKind.list_files: _list_response,
    OperationKind.search_files: _search_response,
    OperationKind.create_file: _create_file_response,
    OperationKind.create_folder: _create_folder_response,
    OperationKind.read_file: _read_response,
    OperationKind.update_file: lambda op: "I've successfully updated the file with your new content.",
    OperationKind.delete_file: lambda op: "I've successfully deleted the file.",
    OperationKind.share_file: _share_response,
    OperationKind.get_file_details: _details_response,
}


def generate_response(operations: list[Operation]) -> str:
    """Summarize a turn's operations.

    Uses the first successful operation's template. With no successes, the
    first failure's error message is returned verbatim.
    """
    if not operations:
        return NO_OPERATIONS_MESSAGE

    successful = [op for op in operations if op.succeeded]
    if not successful:
        failed = next((op for op in operations if op.error), None)
        return failed.error if failed else NO_OPERATIONS_MESSAGE

    first = successful[0]
    template = RESPONSE_TEMPLATES.get(first.type)
    if template is None:
        return f"I've successfully completed the {first.type.value} operation."
    return template(first)


def generate_suggestions(operations: list[Operation]) -> list[str]:
    """Suggest follow-ups based on the last operation, capped at three."""
    if not operations:
        return list(FAILURE_SUGGESTIONS[:MAX_SUGGESTIONS])
    last = operations[-1]
    if not last.succeeded:
        return list(FAILURE_SUGGESTIONS[:MAX_SUGGESTIONS])
    return list(SUGGESTIONS.get(last.type, DEFAULT_SUGGESTIONS)[:MAX_SUGGESTIONS])
