"""Tests for /api/v1/threads endpoints."""

from src.services.chat_models import SaveMessageRequest
from src.services.chat_persistence_service import ChatPersistenceService


def test_create_and_list(client):
    first = client.post("/api/v1/threads", json={"user_id": "alice"})
    assert first.status_code == 201
    assert first.json()["thread_id"] == "alice-1"
    assert first.json()["title"] == "Chat 1"
    client.post("/api/v1/threads", json={"user_id": "alice", "title": "Budget"})

    listed = client.get("/api/v1/threads", params={"user_id": "alice"})
    assert listed.status_code == 200
    assert {t["title"] for t in listed.json()} == {"Chat 1", "Budget"}


def test_list_requires_user(client):
    assert client.get("/api/v1/threads").status_code == 422


def test_get_missing_thread(client):
    assert client.get("/api/v1/threads/alice-9").status_code == 404


def test_rename(client):
    client.post("/api/v1/threads", json={"user_id": "alice"})
    response = client.patch("/api/v1/threads/alice-1", json={"title": "Plans"})
    assert response.status_code == 200
    assert response.json()["title"] == "Plans"
    assert client.patch("/api/v1/threads/alice-5", json={"title": "x"}).status_code == 404


def test_rename_rejects_empty_title(client):
    client.post("/api/v1/threads", json={"user_id": "alice"})
    assert client.patch("/api/v1/threads/alice-1", json={"title": ""}).status_code == 422


def test_delete(client):
    client.post("/api/v1/threads", json={"user_id": "alice"})
    assert client.delete("/api/v1/threads/alice-1").status_code == 204
    assert client.delete("/api/v1/threads/alice-1").status_code == 404


def test_messages(client, db_session):
    client.post("/api/v1/threads", json={"user_id": "alice"})
    ChatPersistenceService(db_session).save_message(
        SaveMessageRequest(thread_id="alice-1", user_id="alice", role="user", content="hi")
    )
    response = client.get("/api/v1/threads/alice-1/messages")
    assert response.status_code == 200
    assert [m["content"] for m in response.json()] == ["hi"]
    assert client.get("/api/v1/threads/alice-2/messages").status_code == 404
