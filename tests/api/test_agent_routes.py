"""Tests for /api/v1/agent endpoints."""


def test_turn_starts_conversation(client, fake_drive):
    response = client.post(
        "/api/v1/agent/requests",
        json={"user_id": "alice", "message": "make a new folder called Reports"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["conversation_id"]
    assert data["operations"][0]["type"] == "create_folder"
    assert data["context"]["conversation_id"] == data["conversation_id"]
    assert fake_drive.call_names() == ["create_folder"]


def test_conversation_carries_context(client):
    first = client.post(
        "/api/v1/agent/requests",
        json={"user_id": "alice", "message": "make a new folder called Reports"},
    ).json()
    conversation_id = first["conversation_id"]

    context = client.get(f"/api/v1/agent/conversations/{conversation_id}").json()
    assert context["context"]["current_folder"] == first["operations"][0]["result"]["id"]


def test_clarification_is_partial(client, fake_drive):
    response = client.post(
        "/api/v1/agent/requests", json={"user_id": "alice", "message": "create a new file"}
    )
    data = response.json()
    assert data["status"] == "partial"
    assert data["operations"] == []
    assert fake_drive.calls == []


def test_failure_is_200_with_error_status(client):
    response = client.post(
        "/api/v1/agent/requests", json={"user_id": "alice", "message": "delete ghost.txt"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "error"


def test_rejects_empty_message(client):
    response = client.post("/api/v1/agent/requests", json={"user_id": "alice", "message": ""})
    assert response.status_code == 422


def test_unknown_conversation(client):
    assert client.get("/api/v1/agent/conversations/nope").status_code == 404


def test_delete_conversation(client):
    conversation_id = client.post(
        "/api/v1/agent/requests", json={"user_id": "alice", "message": "list my files"}
    ).json()["conversation_id"]
    assert client.delete(f"/api/v1/agent/conversations/{conversation_id}").status_code == 204
    assert client.get(f"/api/v1/agent/conversations/{conversation_id}").status_code == 404
    assert client.delete(f"/api/v1/agent/conversations/{conversation_id}").status_code == 204


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
