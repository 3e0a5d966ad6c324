import json
from typing import Any, Callable, Dict, List

import pytest
from fastapi.testclient import TestClient

from backend.src.api.main import app
from backend.src.api.routes.assistant import get_send_stream
from backend.src.models.assistant import ChatRequest
from backend.src.services.ai_client import AIClientError

client = TestClient(app)

TS = "2025-01-01T00:00:00Z"


@pytest.fixture(autouse=True)
def reset_app_state():
    app.state.assistant_state_cache.clear()
    yield
    app.dependency_overrides = {}
    app.state.assistant_state_cache.clear()


def _fake_stream(chunks: List[Dict[str, Any]], captured: List[ChatRequest]):
    async def send_stream(request: ChatRequest, on_chunk: Callable[[Any], None]) -> None:
        captured.append(request)
        for chunk in chunks:
            on_chunk(chunk)

    return send_stream


def _events(response) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def _workspace() -> Dict[str, Any]:
    return {
        "projects": [
            {"id": "p1", "createdAt": TS, "updatedAt": TS, "name": "Apollo launch", "description": "Moon mission"}
        ],
        "notes": [
            {"id": "n1", "created_at": TS, "updated_at": TS, "title": "Launch checklist", "body": "<p>Fuel</p>"}
        ],
    }


def test_documents_endpoint_flattens_workspace():
    response = client.post("/api/assistant/documents", json=_workspace())

    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == ["project:p1", "note:n1"]
    assert response.json()[1]["source_type"] == "Note"


def test_retrieve_endpoint_returns_context_block():
    documents = client.post("/api/assistant/documents", json=_workspace()).json()

    response = client.post(
        "/api/assistant/retrieve",
        json={"query": "launch checklist", "documents": documents, "max_documents": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert [d["id"] for d in body["documents"]] == ["note:n1"]
    assert body["context_block"].startswith("[1] Note: Launch checklist")


def test_citations_endpoint_renumbers():
    sources = [
        {"id": "a", "source_type": "Note", "title": "A"},
        {"id": "b", "source_type": "Note", "title": "B"},
    ]

    response = client.post("/api/assistant/citations", json={"content": "Refs [2] [2] [1]", "sources": sources})

    assert response.status_code == 200
    body = response.json()
    assert body["content"] == "Refs [1] [1] [2]"
    assert [c["source"]["id"] for c in body["citations"]] == ["b", "a"]


def test_stream_emits_documents_deltas_and_done():
    captured: List[ChatRequest] = []
    app.dependency_overrides[get_send_stream] = lambda: _fake_stream(
        [
            {"delta": "<think>Plan"},
            {"delta": "</think>See [1]."},
            {"done": True},
        ],
        captured,
    )

    response = client.post(
        "/api/assistant/stream",
        headers={"X-User-Id": "alice", "Authorization": "Bearer tok-123"},
        json={
            "prompt": "launch checklist",
            "conversation_id": "conv-1",
            "chat_history": [{"role": "assistant", "content": "Hello"}],
            "workspace": _workspace(),
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    events = _events(response)
    assert [e["type"] for e in events] == ["documents", "thinking", "reply", "thinking", "reply", "done"]
    assert events[0]["documents"][0]["id"] == "note:n1"
    assert events[1]["content"] == "Plan"
    assert events[2]["content"] == ""
    assert events[4]["content"] == "See [1]."
    assert events[-1]["content"] == "See [1]."
    assert events[-1]["citations"][0]["source"]["id"] == "note:n1"
    assert events[-1]["raw_content"] == "<think>Plan</think>See [1]."

    (request,) = captured
    assert request.user_id == "alice"
    assert request.auth_token == "tok-123"
    assert request.provider == "ollama"
    assert request.model == "qwen3:8b"
    assert [m.role for m in request.messages] == ["assistant", "user"]
    assert "[1] Note: Launch checklist" in request.system_prompt


def test_stream_reports_chunk_errors_as_error_event():
    app.dependency_overrides[get_send_stream] = lambda: _fake_stream(
        [{"delta": "partial"}, {"error": "model overloaded"}, {"delta": "ignored"}], []
    )

    response = client.post("/api/assistant/stream", json={"prompt": "hi there", "conversation_id": "c"})

    events = _events(response)
    assert events[-1] == {"type": "error", "error": "model overloaded"}
    assert "done" not in [e["type"] for e in events]


def test_stream_reports_empty_stream():
    app.dependency_overrides[get_send_stream] = lambda: _fake_stream([], [])

    response = client.post("/api/assistant/stream", json={"prompt": "hello", "conversation_id": "c"})

    events = _events(response)
    assert events[0] == {"type": "documents", "documents": []}
    assert events[-1]["type"] == "error"
    assert "No streamed response" in events[-1]["error"]


def test_stream_reports_transport_errors():
    async def failing(request, on_chunk):
        raise AIClientError("backend unavailable", {"status_code": 503})

    app.dependency_overrides[get_send_stream] = lambda: failing

    response = client.post("/api/assistant/stream", json={"prompt": "hello", "conversation_id": "c"})

    assert _events(response)[-1] == {"type": "error", "error": "backend unavailable"}


def test_stream_uses_cached_state_settings():
    captured: List[ChatRequest] = []
    app.dependency_overrides[get_send_stream] = lambda: _fake_stream([{"delta": "ok", "done": True}], captured)
    client.put(
        "/api/assistant/state",
        headers={"X-User-Id": "bob"},
        json={"provider": "vertex", "model": "gemini-2.5-pro", "systemPrompt": "Be terse"},
    )

    client.post(
        "/api/assistant/stream",
        headers={"X-User-Id": "bob"},
        json={"prompt": "hello", "conversation_id": "c"},
    )

    (request,) = captured
    assert request.provider == "vertex"
    assert request.model == "gemini-2.5-pro"
    assert request.system_prompt == "Be terse"


def test_stream_rejects_empty_prompt():
    response = client.post("/api/assistant/stream", json={"prompt": "", "conversation_id": "c"})
    assert response.status_code == 400


def test_state_lifecycle_per_user():
    created = client.get("/api/assistant/state", headers={"X-User-Id": "carol"})
    assert created.status_code == 200
    state = created.json()
    assert len(state["conversations"]) == 1
    assert state["active_conversation_id"] == state["conversations"][0]["id"]

    updated = client.put(
        "/api/assistant/state",
        headers={"X-User-Id": "carol"},
        json={"conversations": [{"id": "c1", "title": "Trip"}], "active_conversation_id": "c1"},
    )
    assert updated.json()["active_conversation_id"] == "c1"
    assert client.get("/api/assistant/state", headers={"X-User-Id": "carol"}).json()["conversations"][0]["title"] == "Trip"

    guest = client.get("/api/assistant/state").json()
    assert guest["conversations"][0]["id"] != "c1"

    deleted = client.delete("/api/assistant/state", headers={"X-User-Id": "carol"})
    assert deleted.json() == {"status": "ok", "invalidated": True}
    assert client.get("/api/assistant/state", headers={"X-User-Id": "carol"}).json()["conversations"][0]["id"] != "c1"


def test_stream_titles_untitled_conversation_from_prompt():
    captured: List[ChatRequest] = []
    app.dependency_overrides[get_send_stream] = lambda: _fake_stream([{"delta": "ok", "done": True}], captured)

    client.post("/api/assistant/stream", json={"prompt": "  plan the\nlaunch  ", "conversation_id": "c"})
    client.post(
        "/api/assistant/stream",
        json={"prompt": "hello", "conversation_id": "c", "conversation_title": "Existing"},
    )

    assert [request.conversation_title for request in captured] == ["plan the launch", "Existing"]
