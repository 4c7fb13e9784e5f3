"""Tests for GoogleDriveService against a mocked Drive REST API."""

import base64
import json

import httpx
import pytest

from src.errors.classifier import classify_drive_error
from src.errors.domain import DriveAPIError
from src.errors.registry import AgentErrorType
from src.services.drive_service import (
    FOLDER_MIME_TYPE,
    DriveCapability,
    GoogleDriveService,
    get_mime_type,
)
from src.services.google_credentials import StaticTokenProvider


class RecordingHandler:
    """MockTransport handler that replays canned responses in order."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def make_service(handler, tokens=None) -> GoogleDriveService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleDriveService(tokens or StaticTokenProvider("tok"), http_client=client)


FILE = {"id": "f1", "name": "notes.txt", "mimeType": "text/plain", "webViewLink": "https://x"}


def test_satisfies_protocol():
    assert isinstance(make_service(RecordingHandler()), DriveCapability)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("notes.md", "text/markdown"),
        ("main.cpp", "text/x-c++src"),
        ("photo.png", "image/png"),
        ("README", "text/plain"),
    ],
)
def test_get_mime_type(name, expected):
    assert get_mime_type(name) == expected


class TestRequests:
    @pytest.mark.asyncio
    async def test_list_files_query(self):
        handler = RecordingHandler(
            httpx.Response(200, json={"files": [FILE], "nextPageToken": "p2"})
        )
        service = make_service(handler)
        listing = await service.list_files("root", 10)
        request = handler.requests[0]
        assert request.headers["authorization"] == "Bearer tok"
        assert request.url.params["q"] == "'root' in parents and trashed=false"
        assert request.url.params["pageSize"] == "10"
        assert listing["files"][0]["name"] == "notes.txt"
        assert listing["nextPageToken"] == "p2"

    @pytest.mark.asyncio
    async def test_search_escapes_and_filters(self):
        handler = RecordingHandler(httpx.Response(200, json={"files": []}))
        await make_service(handler).search_files("bob's", mime_type=FOLDER_MIME_TYPE)
        q = handler.requests[0].url.params["q"]
        assert "name contains 'bob\\'s'" in q
        assert f"mimeType='{FOLDER_MIME_TYPE}'" in q

    @pytest.mark.asyncio
    async def test_create_file_multipart(self):
        handler = RecordingHandler(httpx.Response(200, json=FILE))
        created = await make_service(handler).create_file("notes.txt", "Hello", "u1", "p1")
        request = handler.requests[0]
        assert request.url.params["uploadType"] == "multipart"
        assert request.headers["content-type"].startswith("multipart/related; boundary=")
        body = request.content
        assert b'"parents": ["p1"]' in body
        assert b"Hello" in body
        assert created["link"] == "https://x"

    @pytest.mark.asyncio
    async def test_create_folder(self):
        handler = RecordingHandler(httpx.Response(200, json={"id": "d1", "name": "Reports"}))
        await make_service(handler).create_folder("Reports", "u1")
        assert json.loads(handler.requests[0].content) == {
            "name": "Reports",
            "mimeType": FOLDER_MIME_TYPE,
        }

    @pytest.mark.asyncio
    async def test_share_file(self):
        handler = RecordingHandler(httpx.Response(200, json={"id": "perm"}))
        await make_service(handler).share_file("f1", "a@example.com", "writer")
        request = handler.requests[0]
        assert request.url.path.endswith("/files/f1/permissions")
        assert json.loads(request.content) == {
            "type": "user",
            "role": "writer",
            "emailAddress": "a@example.com",
        }

    @pytest.mark.asyncio
    async def test_read_document_extracts_text(self):
        document = {
            "title": "Plan",
            "body": {"content": [
                {"paragraph": {"elements": [{"textRun": {"content": "Hello "}}]}},
                {"paragraph": {"elements": [{"textRun": {"content": "world"}}]}},
                {"sectionBreak": {}},
            ]},
        }
        handler = RecordingHandler(httpx.Response(200, json=document))
        result = await make_service(handler).read_document("doc1")
        assert result["title"] == "Plan"
        assert result["content"] == "Hello world"

    @pytest.mark.asyncio
    async def test_move_replaces_parents(self):
        handler = RecordingHandler(
            httpx.Response(200, json={**FILE, "parents": ["old"]}),
            httpx.Response(200, json={**FILE, "parents": ["new"]}),
        )
        moved = await make_service(handler).move_file("f1", "new")
        patch = handler.requests[1]
        assert patch.method == "PATCH"
        assert patch.url.params["addParents"] == "new"
        assert patch.url.params["removeParents"] == "old"
        assert moved["parents"] == ["new"]

    @pytest.mark.asyncio
    async def test_upload_decodes_data_url(self):
        handler = RecordingHandler(httpx.Response(200, json=FILE))
        encoded = base64.b64encode(b"raw-bytes").decode()
        await make_service(handler).upload_file(
            "a.bin", f"data:application/octet-stream;base64,{encoded}", "application/octet-stream"
        )
        assert b"raw-bytes" in handler.requests[0].content

    @pytest.mark.asyncio
    async def test_upload_rejects_bad_content(self):
        with pytest.raises(DriveAPIError) as exc_info:
            await make_service(RecordingHandler()).upload_file("a", "abc", "text/plain")
        assert exc_info.value.status_code == 400


class TestErrors:
    @pytest.mark.asyncio
    async def test_google_error_body(self):
        body = {"error": {"code": 404, "message": "File not found: f9", "errors": []}}
        handler = RecordingHandler(httpx.Response(404, json=body))
        with pytest.raises(DriveAPIError) as exc_info:
            await make_service(handler).get_file("f9")
        assert str(exc_info.value) == "404 Not Found: File not found: f9"
        assert classify_drive_error(exc_info.value, "x").type == AgentErrorType.not_found

    @pytest.mark.asyncio
    async def test_storage_quota_is_distinct(self):
        body = {"error": {
            "code": 403,
            "message": "The user's Drive storage quota has been exceeded.",
            "errors": [{"reason": "storageQuotaExceeded"}],
        }}
        handler = RecordingHandler(httpx.Response(403, json=body))
        with pytest.raises(DriveAPIError) as exc_info:
            await make_service(handler).create_folder("x", None)
        assert exc_info.value.reason == "Storage Quota Exceeded"
        assert classify_drive_error(exc_info.value, "x").type == AgentErrorType.quota

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(DriveAPIError) as exc_info:
            await make_service(handler).delete_file("f1")
        assert classify_drive_error(exc_info.value, "x").type == AgentErrorType.network

    @pytest.mark.asyncio
    async def test_401_invalidates_and_retries_once(self):
        class CountingTokens:
            def __init__(self):
                self.issued = 0
                self.invalidated = 0

            async def get_access_token(self):
                self.issued += 1
                return f"tok-{self.issued}"

            def invalidate(self):
                self.invalidated += 1

        tokens = CountingTokens()
        handler = RecordingHandler(
            httpx.Response(401, json={"error": {"message": "Invalid Credentials"}}),
            httpx.Response(200, json=FILE),
        )
        await make_service(handler, tokens).get_file("f1")
        assert tokens.invalidated == 1
        assert handler.requests[1].headers["authorization"] == "Bearer tok-2"

    @pytest.mark.asyncio
    async def test_missing_token_is_authentication_error(self):
        with pytest.raises(DriveAPIError) as exc_info:
            await make_service(RecordingHandler(), StaticTokenProvider(None)).get_file("f1")
        classified = classify_drive_error(exc_info.value, "x")
        assert classified.type == AgentErrorType.authentication
