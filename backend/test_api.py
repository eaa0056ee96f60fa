"""
HTTP tests for the FastAPI app, with stores and models swapped for fakes.
"""

import json

import pytest
from httpx import ASGITransport, AsyncClient

import main
from conftest import SOLUTION_JSON
from errors import UploadError
from preferences import PreferencesStore


@pytest.fixture
async def client(workflow, sessions, redis_client):
    main.app.dependency_overrides[main.get_sessions] = lambda: sessions
    main.app.dependency_overrides[main.get_workflow] = lambda: workflow
    main.app.dependency_overrides[main.get_preferences_store] = lambda: PreferencesStore(redis_client)
    async with AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as ac:
        yield ac
    main.app.dependency_overrides.clear()


def parse_events(body: str) -> list:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


async def create_session(client) -> str:
    response = await client.post("/v1/sessions")
    assert response.status_code == 200
    return response.json()["session_id"]


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_session_lifecycle(client):
    session_id = await create_session(client)

    response = await client.put(f"/v1/sessions/{session_id}/input", json={"text": "x + 1 = 2"})
    assert response.json()["state"]["input"] == "x + 1 = 2"

    response = await client.post(f"/v1/sessions/{session_id}/provider/toggle")
    assert response.json()["state"]["provider"] == "gpt"

    response = await client.post(f"/v1/sessions/{session_id}/panels/history/toggle")
    assert response.json()["state"]["panels"]["history"] is True

    response = await client.post(f"/v1/sessions/{session_id}/clear")
    assert response.json()["state"]["input"] == ""


async def test_unknown_session(client):
    response = await client.get("/v1/sessions/nope")
    assert response.status_code == 404
    response = await client.post("/v1/sessions/nope/solve", json={"text": "1 + 1"})
    assert response.status_code == 404


async def test_unknown_panel(client):
    session_id = await create_session(client)
    response = await client.post(f"/v1/sessions/{session_id}/panels/sidebar/toggle")
    assert response.status_code == 404


async def test_solve_streams_events(client):
    session_id = await create_session(client)
    response = await client.post(f"/v1/sessions/{session_id}/solve", json={"text": "2x + 5 = 13"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = parse_events(response.text)
    types = [e["type"] for e in events]
    assert types[0] == "started"
    assert types[-1] == "done"
    assert "solution" in types
    chunks = [e["text"] for e in events if e["type"] == "chunk"]
    assert chunks[-1] == SOLUTION_JSON

    history = (await client.get(f"/v1/sessions/{session_id}/history")).json()
    assert history[0]["input"] == "2x + 5 = 13"

    share = (await client.get(f"/v1/sessions/{session_id}/share")).json()
    assert "Solution: x = 4" in share["text"]


async def test_image_upload_rejects_non_image(client):
    session_id = await create_session(client)
    response = await client.post(
        f"/v1/sessions/{session_id}/image",
        files={"file": ("notes.txt", b"2x + 5 = 13", "text/plain")},
    )
    assert response.status_code == 400
    state = (await client.get(f"/v1/sessions/{session_id}")).json()["state"]
    assert state["error"] == UploadError.message


async def test_image_upload_rejects_oversized_file(client, workflow):
    session_id = await create_session(client)
    oversized = b"\x89PNG" + b"0" * workflow.uploader.max_bytes
    response = await client.post(
        f"/v1/sessions/{session_id}/image",
        files={"file": ("big.png", oversized, "image/png")},
    )
    assert response.status_code == 400
    state = (await client.get(f"/v1/sessions/{session_id}")).json()["state"]
    assert state["error"] == UploadError.message
    assert state["preview_image"] is None


async def test_image_upload_solves(client):
    session_id = await create_session(client)
    response = await client.post(
        f"/v1/sessions/{session_id}/image",
        files={"file": ("problem.png", b"\x89PNG fake", "image/png")},
    )
    events = parse_events(response.text)
    assert events[0]["type"] == "preview"
    assert {"type": "input", "text": "2x + 5 = 13"} in events


async def test_on_demand_enrichment(client):
    session_id = await create_session(client)
    await client.put(f"/v1/sessions/{session_id}/input", json={"text": "2x + 5 = 13"})

    state = (await client.post(f"/v1/sessions/{session_id}/practice")).json()["state"]
    assert state["show_practice"] is True
    state = (await client.post(f"/v1/sessions/{session_id}/alternatives")).json()["state"]
    assert len(state["alternative_methods"]) == 2


async def test_saved_solution_endpoints(client):
    solution = json.loads(SOLUTION_JSON)
    items = (await client.post("/v1/saved", json={"equation": "2x + 5 = 13", "solution": solution})).json()
    saved_id = items[0]["id"]

    items = (await client.post(f"/v1/saved/{saved_id}/favorite/toggle", json={"current": False})).json()
    assert items[0]["is_favorite"] is True

    items = (await client.patch(f"/v1/saved/{saved_id}/notes", json={"notes": "nice"})).json()
    assert items[0]["notes"] == "nice"

    items = (await client.patch(f"/v1/saved/{saved_id}/favorite", json={"is_favorite": False})).json()
    assert items[0]["is_favorite"] is False

    response = await client.patch("/v1/saved/999/notes", json={"notes": "x"})
    assert response.status_code == 404


async def test_session_save_and_mount_load(client):
    session_id = await create_session(client)
    response = await client.post(f"/v1/sessions/{session_id}/save")
    assert response.status_code == 409

    await client.post(f"/v1/sessions/{session_id}/solve", json={"text": "2x + 5 = 13"})
    await client.put(f"/v1/sessions/{session_id}/notes", json={"notes": "ok"})
    items = (await client.post(f"/v1/sessions/{session_id}/save")).json()
    assert items[0]["notes"] == "ok"

    other = await create_session(client)
    state = (await client.get(f"/v1/sessions/{other}")).json()["state"]
    assert [s["id"] for s in state["saved_solutions"]] == [items[0]["id"]]


async def test_legacy_multiplexed_endpoint(client):
    solution = json.loads(SOLUTION_JSON)
    assert (await client.post("/api/math-solutions", json={"method": "GET"})).json() == []

    items = (await client.post(
        "/api/math-solutions",
        json={"method": "POST", "equation": "2x + 5 = 13", "solution": solution, "notes": "n"},
    )).json()
    saved_id = items[0]["id"]

    items = (await client.post(
        "/api/math-solutions",
        json={"method": "PATCH", "id": saved_id, "is_favorite": True},
    )).json()
    assert items[0]["is_favorite"] is True

    items = (await client.post(
        "/api/math-solutions",
        json={"method": "PATCH", "id": saved_id, "notes": "updated"},
    )).json()
    assert items[0]["notes"] == "updated"

    response = await client.post("/api/math-solutions", json={"method": "PATCH", "notes": "x"})
    assert response.status_code == 422
    response = await client.post("/api/math-solutions", json={"method": "DELETE"})
    assert response.status_code == 422


async def test_preferences(client):
    assert (await client.get("/v1/preferences")).json() == {
        "theme": "system", "font_size": "base", "high_contrast": False
    }
    response = await client.put("/v1/preferences", json={"theme": "dark", "font_size": "sm", "high_contrast": True})
    assert response.json()["theme"] == "dark"
    assert (await client.get("/v1/preferences")).json()["high_contrast"] is True

    response = await client.put("/v1/preferences", json={"theme": "neon"})
    assert response.status_code == 422
