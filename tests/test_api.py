"""End-to-end tests through the HTTP surface."""
import base64
import json
import sqlite3
import time

import httpx
import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.main import create_fastapi_app
from conftest import completion_handler, http_resource, make_settings


def build_client(database_url, handler, **lifecycle) -> TestClient:
    app = create_fastapi_app(make_settings(database_url, **lifecycle))
    app.container.infrastructure.http_client.override(
        providers.Object(http_resource(handler))
    )
    return TestClient(app)


@pytest.fixture
def client(database_url):
    with build_client(database_url, completion_handler("hi there")) as test_client:
        yield test_client


def test_post_message_end_to_end(client):
    conversation = client.post("/conversations").json()
    assert conversation["title"] == "Conversation #1"

    response = client.post(
        f"/conversations/{conversation['id']}/messages", json={"content": "hello"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"]["role"] == "user"
    assert body["message"]["content"] == "hello"
    assert body["message"]["conversationId"] == conversation["id"]
    assert body["reply"]["role"] == "assistant"
    assert body["reply"]["content"] == "hi there"
    assert body["error"] is None

    page = client.get(f"/conversations/{conversation['id']}/messages").json()
    assert [(m["role"], m["content"]) for m in page["messages"]] == [
        ("user", "hello"),
        ("assistant", "hi there"),
    ]
    assert page["nextCursor"] is None
    assert page["prevCursor"] is None


def test_create_and_list_conversations(client):
    assert client.get("/conversations").json() == []

    first = client.post("/conversations")
    second = client.post("/conversations")
    assert first.status_code == 201
    assert second.json()["title"] == "Conversation #2"

    listed = client.get("/conversations").json()
    assert [c["id"] for c in listed] == [first.json()["id"], second.json()["id"]]
    assert all(c["deletedAt"] is None for c in listed)


def test_delete_and_undo(client):
    conversation_id = client.post("/conversations").json()["id"]

    assert client.delete(f"/conversations/{conversation_id}").status_code == 204
    assert client.get("/conversations").json() == []

    undo = client.post(f"/conversations/{conversation_id}/undo")
    assert undo.status_code == 200
    assert undo.json()["data"]["id"] == conversation_id
    assert undo.json()["status"] == "ok"
    assert [c["id"] for c in client.get("/conversations").json()] == [conversation_id]

    # restored conversations are no longer soft-deleted
    assert client.post(f"/conversations/{conversation_id}/undo").status_code == 400


def test_undo_after_window_is_not_found(client):
    conversation_id = client.post("/conversations").json()["id"]
    client.post(f"/conversations/{conversation_id}/messages", json={"content": "bye"})

    assert client.delete(f"/conversations/{conversation_id}").status_code == 204
    time.sleep(0.6)

    assert client.post(f"/conversations/{conversation_id}/undo").status_code == 404
    page = client.get(f"/conversations/{conversation_id}/messages").json()
    assert page["messages"] == []


def test_unknown_conversation(client):
    assert client.delete("/conversations/999").status_code == 404
    assert client.post("/conversations/999/undo").status_code == 404
    response = client.post("/conversations/999/messages", json={"content": "hi"})
    assert response.status_code == 404


def test_missing_content_is_bad_request(client):
    conversation_id = client.post("/conversations").json()["id"]

    for payload in ({}, {"content": ""}, None):
        response = client.post(f"/conversations/{conversation_id}/messages", json=payload)
        assert response.status_code == 400

    assert client.get(f"/conversations/{conversation_id}/messages").json()["messages"] == []


def test_bad_cursor_is_bad_request(client):
    conversation_id = client.post("/conversations").json()["id"]

    response = client.get(
        f"/conversations/{conversation_id}/messages", params={"cursor": "garbage!"}
    )
    assert response.status_code == 400

    response = client.get(
        f"/conversations/{conversation_id}/messages", params={"direction": "sideways"}
    )
    assert response.status_code == 422


def test_paginates_over_http(client):
    conversation_id = client.post("/conversations").json()["id"]
    for i in range(3):
        client.post(f"/conversations/{conversation_id}/messages", json={"content": f"q{i}"})

    first = client.get(
        f"/conversations/{conversation_id}/messages", params={"limit": 4}
    ).json()
    assert [m["content"] for m in first["messages"]] == ["q1", "hi there", "q2", "hi there"]
    assert first["nextCursor"] is not None

    second = client.get(
        f"/conversations/{conversation_id}/messages",
        params={"limit": 4, "cursor": first["nextCursor"]},
    ).json()
    assert [m["content"] for m in second["messages"]] == ["q0", "hi there"]
    assert second["nextCursor"] is None
    assert second["prevCursor"] is not None


def test_upstream_outage_returns_partial_result(database_url):
    handler = completion_handler(status_code=500)
    with build_client(database_url, handler) as client:
        conversation_id = client.post("/conversations").json()["id"]

        response = client.post(
            f"/conversations/{conversation_id}/messages", json={"content": "hello"}
        )

        assert response.status_code == 503
        body = response.json()
        assert body["message"]["content"] == "hello"
        assert body["reply"] is None
        assert body["error"]
        assert len(handler.calls) == 3

        page = client.get(f"/conversations/{conversation_id}/messages").json()
        assert [m["content"] for m in page["messages"]] == ["hello"]


def test_health_probes(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    ready = client.get("/readyz")
    assert ready.status_code == 200
    assert ready.json()["dependencies"] == {"database": "ok", "upstream": "ok"}


def test_readiness_fails_when_upstream_is_down(database_url):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with build_client(database_url, handler) as client:
        assert client.get("/healthz").status_code == 200

        ready = client.get("/readyz")
        assert ready.status_code == 503
        assert ready.json()["status"] == "unavailable"
        assert ready.json()["dependencies"]["upstream"] == "unavailable"
        assert ready.json()["dependencies"]["database"] == "ok"


HUGE_ID = 2**70


def test_out_of_range_ids_behave_like_unknown_ones(client):
    assert client.delete(f"/conversations/{HUGE_ID}").status_code == 404
    assert client.post(f"/conversations/{HUGE_ID}/undo").status_code == 404
    response = client.post(f"/conversations/{HUGE_ID}/messages", json={"content": "hi"})
    assert response.status_code == 404

    for conversation_id in (HUGE_ID, 2**31, -5):
        page = client.get(f"/conversations/{conversation_id}/messages")
        assert page.status_code == 200
        assert page.json() == {"messages": [], "nextCursor": None, "prevCursor": None}


def test_out_of_range_cursor_id_is_bad_request(client):
    conversation_id = client.post("/conversations").json()["id"]
    raw = json.dumps({"t": "2025-01-01T00:00:00+00:00", "id": HUGE_ID}).encode()
    cursor = base64.urlsafe_b64encode(raw).decode().rstrip("=")

    response = client.get(
        f"/conversations/{conversation_id}/messages", params={"cursor": cursor}
    )
    assert response.status_code == 400


class BrokenSession(AsyncSession):
    """Session whose every statement fails the way a lost connection does."""

    executed = []

    async def execute(self, statement, *args, **kwargs):
        BrokenSession.executed.append(statement)
        raise OperationalError(str(statement), None, sqlite3.OperationalError("disk I/O error"))


def test_store_outage_is_internal_error_without_upstream_call(database_url):
    handler = completion_handler("hi there")
    with build_client(database_url, handler) as client:
        conversation_id = client.post("/conversations").json()["id"]

        database = client.app.container.infrastructure.database()
        database.session_factory = async_sessionmaker(
            bind=database.engine, class_=BrokenSession, expire_on_commit=False
        )
        BrokenSession.executed.clear()

        response = client.post(
            f"/conversations/{conversation_id}/messages", json={"content": "hello"}
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "STORE_UNAVAILABLE"
        assert body["status_code"] == 500
        # one failed statement, no retry
        assert len(BrokenSession.executed) == 1
        assert handler.calls == []

        assert client.get("/conversations").json()["error_code"] == "STORE_UNAVAILABLE"
