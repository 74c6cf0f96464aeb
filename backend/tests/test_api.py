"""Tests for the HTTP API routes (FastAPI TestClient, fakes behind dependencies)."""

import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from conftest import FakeAdapter, ScriptedRenderClient, make_orchestrator, status
from soundtrack.api import routes
from soundtrack.api.app import app
from soundtrack.services.playback import NowPlaying

URL = "https://cdn.example.com/abc123.mp3"


@pytest.fixture
def playback():
    return NowPlaying()


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def client(playback, adapter):
    render = ScriptedRenderClient([status("queued"), status("streaming", URL), status("complete", URL)])
    orchestrator = make_orchestrator(render, playback, adapter)

    def demo_factory(scenario):
        scripted = ScriptedRenderClient([status("complete", f"https://cdn.example.com/{scenario.id}.mp3")])
        return make_orchestrator(scripted, NowPlaying(), FakeAdapter(), label=scenario.id)

    app.dependency_overrides[routes.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[routes.get_playback] = lambda: playback
    app.dependency_overrides[routes.get_demo_factory] = lambda: demo_factory
    routes.DEMO_STATUS.clear()
    routes.DEMO_STATUS.update({"status": "not_started", "scenarios": {}, "tracks": []})
    yield TestClient(app)
    app.dependency_overrides.clear()


def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (800, 600), (10, 200, 90)).save(buf, "PNG")
    return buf.getvalue()


def test_scene_run_completes_and_plays(client, playback):
    response = client.post(
        "/api/runs",
        data={"stress": "high", "instrumental": "false", "scene": "Squash court"},
    )
    assert response.status_code == 202
    assert response.json()["status_url"] == "/api/runs/current"

    current = client.get("/api/runs/current").json()
    assert current["phase"] == "complete"
    assert current["step"] == "playing"
    assert current["job_id"] == "abc123"
    assert current["media_url"] == URL
    assert current["directive"]["target_bpm"] == 128

    assert client.get("/api/playback").json() == {"url": URL, "is_playing": True}
    assert client.post("/api/playback/toggle").json()["is_playing"] is False


def test_frame_run_uses_vision_call(client, adapter):
    response = client.post(
        "/api/runs",
        data={"stress": "low"},
        files={"frame": ("frame.png", _png(), "image/png")},
    )
    assert response.status_code == 202
    assert adapter.calls[0]["kind"] == "image"


def test_cancel_returns_to_idle_and_stops_playback(client, playback):
    client.post("/api/runs", data={"scene": "Forest trail"})

    response = client.post("/api/runs/cancel")

    assert response.status_code == 200
    body = response.json()
    assert body["phase"] == "idle"
    assert body["directive"] is None
    assert playback.url is None


def test_dismiss_clears_finished_run(client, playback):
    client.post("/api/runs", data={"scene": "Hackathon table"})
    assert client.get("/api/runs/current").json()["phase"] == "complete"

    response = client.post("/api/runs/dismiss")

    assert response.status_code == 200
    body = response.json()
    assert body["phase"] == "idle"
    assert body["directive"] is None
    assert body["media_url"] is None
    assert playback.url is None


@pytest.mark.parametrize("data,files", [
    ({"stress": "panic", "scene": "x"}, None),
    ({"stress": "high"}, None),
    ({"stress": "high"}, {"frame": ("notes.txt", b"hello", "text/plain")}),
    ({"stress": "high"}, {"frame": ("IMG_0042.HEIC", b"\x00\x00\x00\x18ftypheic", "image/heic")}),
])
def test_run_rejects_bad_input(client, data, files):
    response = client.post("/api/runs", data=data, files=files)
    assert response.status_code == 422


def test_toggle_without_playback_conflicts(client):
    assert client.post("/api/playback/toggle").status_code == 409


def test_demo_fan_out(client):
    response = client.post("/api/demo")
    assert response.status_code == 202
    assert response.json()["status"] == "running"

    body = client.get("/api/demo").json()
    assert body["status"] == "complete"
    assert [t["scenario_id"] for t in body["tracks"]] == ["hackathon", "squash", "nature"]
    assert all(t["media_url"] for t in body["tracks"])
    assert body["scenarios"]["squash"]["phase"] == "complete"


def test_demo_already_running_conflicts(client):
    routes.DEMO_STATUS["status"] = "running"
    assert client.post("/api/demo").status_code == 409
