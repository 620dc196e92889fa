"""Tests for the HTTP surface."""

import json

import pytest
from fastapi.testclient import TestClient

import main


@pytest.fixture
def client():
    with TestClient(main.app) as test_client:
        yield test_client


def _sse_events(text: str):
    return [json.loads(line[len("data: "):]) for line in text.split("\n\n") if line.startswith("data: ")]


class TestHealth:
    """Tests for /health."""

    def test_all_modules_loaded(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert set(body["modules_loaded"]) == {
            "unified_modify", "analyze_intent", "preview_modifications", "apply_modifications", "memory",
        }
        assert body["cache"]["maxEntries"] == 50


class TestUnifiedModify:
    """Tests for /api/unified-modify."""

    def test_streams_events(self, client, fake_llm, sample_project, button_color_response):
        fake_llm.response = button_color_response

        response = client.post("/api/unified-modify", json={
            "message": "change the button color to #03A5C0",
            "projectFiles": sample_project,
            "sessionId": "http-session",
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(response.text)
        assert events[0]["type"] == "generation_event"
        assert events[-1]["type"] == "complete"
        assert events[-1]["success"] is True

    def test_missing_message(self, client, sample_project):
        response = client.post("/api/unified-modify", json={"projectFiles": sample_project, "sessionId": "s1"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid request: message required"}

    def test_body_must_be_an_object(self, client):
        response = client.post("/api/unified-modify", json=["not", "an", "object"])

        assert response.status_code == 400


class TestJsonRoutes:
    """Tests for the non-streaming routes."""

    def test_analyze_intent(self, client, sample_project):
        response = client.post("/api/analyze-intent", json={
            "message": "change the button color to #03A5C0",
            "projectFiles": sample_project,
        })

        body = response.json()
        assert body["success"] is True
        assert body["analysis"]["complexity"] == "trivial"
        assert "src/styles.css" in body["relevantFiles"]
        assert body["importance"]["src/App.tsx"] == 70

    def test_analyze_intent_requires_message(self, client):
        response = client.post("/api/analyze-intent", json={"projectFiles": {}})

        assert response.status_code == 400
        assert response.json()["error"] == "message is required"

    def test_preview(self, client, sample_project):
        response = client.post("/api/preview-modifications", json={
            "projectFiles": sample_project,
            "modifications": [
                {"type": "css-change", "path": "src/styles.css", "target": ".button", "property": "color", "value": "red"},
            ],
        })

        body = response.json()
        assert body["success"] is True
        assert body["previews"][0]["file"] == "src/styles.css"
        assert "+ 1: .button { color: red; }" in body["display"]

    def test_apply_accepted_suggestion(self, client, sample_project):
        suggestion = {
            "type": "accessibility",
            "modification": {"type": "css-change", "path": "src/styles.css", "target": ".button:focus",
                             "property": "outline", "value": "2px solid #03A5C0"},
        }

        response = client.post("/api/apply-modifications", json={
            "projectFiles": sample_project,
            "suggestion": suggestion,
        })

        body = response.json()
        assert body["success"] is True
        assert body["updatedFiles"]["src/styles.css"].endswith(".button:focus {\n  outline: 2px solid #03A5C0;\n}\n")

    def test_apply_rejects_unknown_files(self, client, sample_project):
        response = client.post("/api/apply-modifications", json={
            "projectFiles": sample_project,
            "modifications": [{"type": "css-change", "path": "zzz.md", "target": ".a", "property": "color", "value": "red"}],
        })

        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed after auto-fix"


class TestMemoryRoute:
    """Tests for /api/memory."""

    def test_round_trip(self, client):
        created = client.post("/api/memory", json={"action": "init", "sessionId": "m1"}).json()
        fetched = client.get("/api/memory", params={"sessionId": "m1"}).json()
        deleted = client.delete("/api/memory", params={"sessionId": "m1"}).json()
        after = client.get("/api/memory", params={"sessionId": "m1"}).json()

        assert created["success"] is True
        assert fetched["memory"]["sessionId"] == "m1"
        assert deleted == {"success": True, "deleted": True}
        assert after == {"success": True, "memory": None}

    def test_missing_session(self, client):
        assert client.get("/api/memory").json() == {"success": False, "error": "sessionId is required"}
