"""Google Drive capability: protocol and REST implementation.

DriveCapability is the narrow interface the operation executor consumes.
GoogleDriveService implements it against the Drive v3 and Docs v1 REST
APIs using httpx. Every failure is raised as ``DriveAPIError`` with text
of the form ``"<status> <reason>: <google message>"`` so the error
classifier can pattern-match it.

The client timeout and connection retry budget come from AgentConfig
(``timeout_ms``, ``retry_attempts``).
"""

import base64
import json
import logging
import mimetypes
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import httpx

from src.errors.domain import DriveAPIError
from src.services.google_credentials import TokenProvider
from src.utils.redaction import redact_for_logging, sanitize_error_message

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
DOCS_API = "https://docs.googleapis.com/v1"

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id,name,mimeType,size,modifiedTime,parents,webViewLink,thumbnailLink"
LIST_FIELDS = f"nextPageToken,files({FILE_FIELDS})"

# Text formats Drive should store with a specific MIME type.
_EXTRA_MIME_TYPES = {
    ".md": "text/markdown",
    ".py": "text/x-python",
    ".java": "text/x-java-source",
    ".cpp": "text/x-c++src",
    ".cc": "text/x-c++src",
    ".cxx": "text/x-c++src",
    ".c": "text/x-csrc",
}


@runtime_checkable
class DriveCapability(Protocol):
    """Drive operations consumed by the executor.

    Each call may raise an error whose text the ErrorClassifier can match.
    """

    async def create_file(
        self, name: str, content: str, owner_id: str | None, parent_id: str | None = None
    ) -> dict[str, Any]:
        """Create a file; returns at least ``id`` and ``link``."""
        ...

    async def create_folder(
        self, name: str, owner_id: str | None, parent_id: str | None = None
    ) -> dict[str, Any]:
        """Create a folder; returns at least ``id`` and ``link``."""
        ...

    async def list_files(
        self, folder_id: str = "root", page_size: int = 50, page_token: str | None = None
    ) -> dict[str, Any]:
        """List a folder; returns ``files`` and optional ``nextPageToken``."""
        ...

    async def search_files(
        self,
        query: str,
        page_size: int = 50,
        page_token: str | None = None,
        mime_type: str | None = None,
    ) -> dict[str, Any]:
        """Search by name; returns ``files`` and optional ``nextPageToken``."""
        ...

    async def get_file(self, file_id: str) -> dict[str, Any]:
        """Return file metadata."""
        ...

    async def delete_file(self, file_id: str) -> None:
        """Delete a file or folder."""
        ...

    async def share_file(self, file_id: str, email: str, role: str = "reader") -> None:
        """Grant a user access to a file."""
        ...

    async def read_document(self, document_id: str) -> dict[str, Any]:
        """Return ``id``, ``title`` and plain-text ``content`` of a document."""
        ...

    async def update_document(self, document_id: str, content: str) -> None:
        """Insert content at the start of a document."""
        ...

    async def upload_file(
        self, name: str, content: str, mime_type: str, parent_id: str | None = None
    ) -> dict[str, Any]:
        """Upload base64 or data-URL content as a new file."""
        ...

    async def move_file(self, file_id: str, folder_id: str) -> dict[str, Any]:
        """Move a file into a folder."""
        ...

    async def copy_file(self, file_id: str, name: str | None = None) -> dict[str, Any]:
        """Copy a file; returns the new file's metadata."""
        ...


def get_mime_type(file_name: str) -> str:
    """Guess the MIME type for a file name, defaulting to text/plain."""
    lowered = file_name.lower()
    for ext, mime in _EXTRA_MIME_TYPES.items():
        if lowered.endswith(ext):
            return mime
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "text/plain"


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _normalize_file(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": item.get("id", ""),
        "name": item.get("name", ""),
        "mimeType": item.get("mimeType", ""),
        "size": item.get("size"),
        "modifiedTime": item.get("modifiedTime", ""),
        "parents": item.get("parents"),
        "webViewLink": item.get("webViewLink"),
        "thumbnailLink": item.get("thumbnailLink"),
    }


def _extract_text(document: dict[str, Any]) -> str:
    """Concatenate the text runs of a Docs API document body."""
    parts: list[str] = []
    for element in (document.get("body") or {}).get("content") or []:
        paragraph = element.get("paragraph") or {}
        for text_element in paragraph.get("elements") or []:
            run = text_element.get("textRun") or {}
            if run.get("content"):
                parts.append(run["content"])
    return "".join(parts)


def _decode_content(content: str) -> bytes:
    """Decode data-URL or bare base64 content."""
    if content.startswith("data:"):
        content = content.split(",", 1)[1]
    return base64.b64decode(content)


class GoogleDriveService:
    """DriveCapability backed by the Google Drive and Docs REST APIs.

    Example:
        service = GoogleDriveService(token_provider, timeout_ms=30000, retry_attempts=3)
        listing = await service.list_files("root")
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        timeout_ms: int = 30000,
        retry_attempts: int = 3,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._tokens = token_provider
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout_ms / 1000,
            transport=httpx.AsyncHTTPTransport(retries=retry_attempts),
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(
        self, method: str, url: str, *, retry_auth: bool = True, **kwargs: Any
    ) -> httpx.Response:
        token = await self._tokens.get_access_token()
        headers = {**kwargs.pop("headers", {}), "Authorization": f"Bearer {token}"}
        logger.debug(
            "Drive request %s %s params=%s",
            method,
            url,
            redact_for_logging(kwargs.get("params") or {}),
        )
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise DriveAPIError(None, "Request timeout", f"{type(e).__name__}: {e}") from e
        except httpx.TransportError as e:
            raise DriveAPIError(None, "Network connection error", f"{type(e).__name__}: {e}") from e

        if response.status_code == 401 and retry_auth and hasattr(self._tokens, "invalidate"):
            self._tokens.invalidate()
            return await self._request(method, url, retry_auth=False, headers=headers, **kwargs)

        if response.status_code >= 400:
            raise _api_error(response)
        return response

    async def create_file(
        self, name: str, content: str, owner_id: str | None, parent_id: str | None = None
    ) -> dict[str, Any]:
        mime_type = get_mime_type(name)
        metadata: dict[str, Any] = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]
        logger.info("Creating Drive file %s for user %s", name, owner_id)
        created = await self._multipart_upload(metadata, content.encode("utf-8"), mime_type)
        return {**created, "link": created.get("webViewLink")}

    async def create_folder(
        self, name: str, owner_id: str | None, parent_id: str | None = None
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]
        logger.info("Creating Drive folder %s for user %s", name, owner_id)
        response = await self._request(
            "POST", f"{DRIVE_API}/files", params={"fields": FILE_FIELDS}, json=metadata
        )
        created = _normalize_file(response.json())
        return {**created, "link": created.get("webViewLink")}

    async def list_files(
        self, folder_id: str = "root", page_size: int = 50, page_token: str | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "pageSize": page_size,
            "fields": LIST_FIELDS,
            "q": f"'{_escape_query(folder_id)}' in parents and trashed=false",
            "orderBy": "name",
        }
        if page_token:
            params["pageToken"] = page_token
        response = await self._request("GET", f"{DRIVE_API}/files", params=params)
        return self._listing(response.json())

    async def search_files(
        self,
        query: str,
        page_size: int = 50,
        page_token: str | None = None,
        mime_type: str | None = None,
    ) -> dict[str, Any]:
        q = f"name contains '{_escape_query(query)}' and trashed=false"
        if mime_type:
            q += f" and mimeType='{mime_type}'"
        params: dict[str, Any] = {
            "pageSize": page_size,
            "fields": LIST_FIELDS,
            "q": q,
            "orderBy": "modifiedTime desc",
        }
        if page_token:
            params["pageToken"] = page_token
        response = await self._request("GET", f"{DRIVE_API}/files", params=params)
        return self._listing(response.json())

    async def get_file(self, file_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET", f"{DRIVE_API}/files/{file_id}", params={"fields": FILE_FIELDS}
        )
        return _normalize_file(response.json())

    async def delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"{DRIVE_API}/files/{file_id}")

    async def share_file(self, file_id: str, email: str, role: str = "reader") -> None:
        await self._request(
            "POST",
            f"{DRIVE_API}/files/{file_id}/permissions",
            json={"type": "user", "role": role, "emailAddress": email},
        )

    async def read_document(self, document_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"{DOCS_API}/documents/{document_id}")
        document = response.json()
        return {
            "id": document_id,
            "title": document.get("title") or "Untitled",
            "content": _extract_text(document),
            "lastModified": document.get("revisionId"),
        }

    async def update_document(self, document_id: str, content: str) -> None:
        await self._request(
            "POST",
            f"{DOCS_API}/documents/{document_id}:batchUpdate",
            json={
                "requests": [
                    {"insertText": {"location": {"index": 1}, "text": content}}
                ]
            },
        )

    async def upload_file(
        self, name: str, content: str, mime_type: str, parent_id: str | None = None
    ) -> dict[str, Any]:
        try:
            payload = _decode_content(content)
        except (ValueError, IndexError) as e:
            raise DriveAPIError(400, "Bad Request", f"Invalid upload content: {e}") from e
        metadata: dict[str, Any] = {"name": name}
        if parent_id:
            metadata["parents"] = [parent_id]
        return await self._multipart_upload(metadata, payload, mime_type)

    async def move_file(self, file_id: str, folder_id: str) -> dict[str, Any]:
        current = await self.get_file(file_id)
        params: dict[str, Any] = {"addParents": folder_id, "fields": FILE_FIELDS}
        if current.get("parents"):
            params["removeParents"] = ",".join(current["parents"])
        response = await self._request(
            "PATCH", f"{DRIVE_API}/files/{file_id}", params=params, json={}
        )
        return _normalize_file(response.json())

    async def copy_file(self, file_id: str, name: str | None = None) -> dict[str, Any]:
        body = {"name": name} if name else {}
        response = await self._request(
            "POST",
            f"{DRIVE_API}/files/{file_id}/copy",
            params={"fields": FILE_FIELDS},
            json=body,
        )
        return _normalize_file(response.json())

    async def _multipart_upload(
        self, metadata: dict[str, Any], payload: bytes, mime_type: str
    ) -> dict[str, Any]:
        boundary = f"drivechat-{uuid4().hex}"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode(),
                b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
                json.dumps(metadata).encode("utf-8"),
                f"\r\n--{boundary}\r\n".encode(),
                f"Content-Type: {mime_type}\r\n\r\n".encode(),
                payload,
                f"\r\n--{boundary}--".encode(),
            ]
        )
        response = await self._request(
            "POST",
            f"{DRIVE_UPLOAD_API}/files",
            params={"uploadType": "multipart", "fields": FILE_FIELDS},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        return _normalize_file(response.json())

    @staticmethod
    def _listing(data: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {
            "files": [_normalize_file(item) for item in data.get("files", [])]
        }
        if data.get("nextPageToken"):
            result["nextPageToken"] = data["nextPageToken"]
        return result


def _api_error(response: httpx.Response) -> DriveAPIError:
    """Build a DriveAPIError from a Google error response."""
    message = ""
    reason = response.reason_phrase or "Error"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        message = error.get("message", "")
        details = error.get("errors") or []
        google_reason = details[0].get("reason", "") if details else ""
        # Drive reports quota and rate limits as 403; keep them distinguishable.
        if "quota" in google_reason.lower():
            reason = "Storage Quota Exceeded"
        elif "ratelimit" in google_reason.lower():
            reason = "Rate Limit Exceeded"
    elif response.text:
        message = response.text[:500]
    logger.warning(
        "Drive API error %s %s: %s", response.status_code, reason, sanitize_error_message(message)
    )
    return DriveAPIError(response.status_code, reason, message)
