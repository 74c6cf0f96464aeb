"""Tests for soundtrack.services.render_client.RenderJobClient (mocked HTTP)."""

import json

import httpx
import pytest

from soundtrack.config import settings
from soundtrack.errors import InvalidResponse, RemoteError, TransientNetworkError
from soundtrack.schemas.render import RenderState
from soundtrack.services import render_client as render_client_module
from soundtrack.services.render_client import RenderJobClient, normalize_state

BASE_URL = "https://render.example.com/api/"
TOKEN = "test-token"


def _client(handler) -> RenderJobClient:
    rc = RenderJobClient(BASE_URL, TOKEN)
    rc._client = httpx.AsyncClient(
        base_url=rc.base_url,
        headers={"Authorization": f"Bearer {TOKEN}"},
        transport=httpx.MockTransport(handler),
    )
    return rc


# ---------------------------------------------------------------------------
# submit
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_submit_posts_generate_and_returns_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "abc123", "status": "submitted"})

    rc = _client(handler)
    job_id = await rc.submit("Driving electronic pop", "electronic, 128 bpm", instrumental=False)
    await rc.close()

    assert job_id == "abc123"
    assert seen["method"] == "POST"
    assert seen["url"] == BASE_URL + "generate"
    assert seen["auth"] == f"Bearer {TOKEN}"
    assert seen["body"] == {
        "topic": "Driving electronic pop",
        "tags": "electronic, 128 bpm",
        "make_instrumental": False,
    }


@pytest.mark.asyncio
async def test_submit_surfaces_remote_detail():
    rc = _client(lambda request: httpx.Response(402, json={"detail": "Out of credits"}))

    with pytest.raises(RemoteError) as exc_info:
        await rc.submit("p", "t")
    assert exc_info.value.message == "Out of credits"


@pytest.mark.asyncio
async def test_submit_http_error_without_detail():
    rc = _client(lambda request: httpx.Response(500, text="oops"))

    with pytest.raises(RemoteError, match="HTTP 500"):
        await rc.submit("p", "t")


@pytest.mark.asyncio
async def test_submit_without_id_is_invalid():
    rc = _client(lambda request: httpx.Response(200, json={"status": "ok"}))

    with pytest.raises(InvalidResponse):
        await rc.submit("p", "t")


@pytest.mark.asyncio
async def test_submit_transport_error_is_remote_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RemoteError):
        await _client(handler).submit("p", "t")


# ---------------------------------------------------------------------------
# fetch_status
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_status_normalizes_clip():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["ids"] = request.url.params["ids"]
        return httpx.Response(200, json=[{
            "id": "abc123",
            "status": "streaming",
            "audio_url": "https://cdn.example.com/abc123.mp3",
            "title": "Match Point",
            "image_url": "",
        }])

    result = await _client(handler).fetch_status("abc123")

    assert seen == {"path": "/api/clips", "ids": "abc123"}
    assert result.state is RenderState.STREAMING
    assert result.audio_url == "https://cdn.example.com/abc123.mp3"
    assert result.title == "Match Point"
    assert result.image_url is None
    assert result.playable


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [429, 502, 503])
async def test_fetch_status_retryable_http_is_transient(code):
    rc = _client(lambda request: httpx.Response(code))

    with pytest.raises(TransientNetworkError):
        await rc.fetch_status("abc123")


@pytest.mark.asyncio
async def test_fetch_status_timeout_is_transient():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransientNetworkError):
        await _client(handler).fetch_status("abc123")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    [],
    {"id": "abc123"},
    [{"id": "abc123"}],
    [{"status": "complete"}],
    [{"id": "abc123", "status": "streaming", "audio_url": 123}],
    [{"id": "abc123", "status": "complete", "title": ["Match", "Point"]}],
    [{"id": "abc123", "status": "complete", "image_url": {"src": "x"}}],
])
async def test_fetch_status_malformed_body_is_invalid(body):
    rc = _client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(InvalidResponse):
        await rc.fetch_status("abc123")


@pytest.mark.parametrize("raw,expected", [
    ("submitted", RenderState.QUEUED),
    ("queued", RenderState.QUEUED),
    ("something_new", RenderState.QUEUED),
    ("streaming", RenderState.STREAMING),
    ("complete", RenderState.COMPLETE),
    ("error", RenderState.ERROR),
])
def test_normalize_state(raw, expected):
    assert normalize_state(raw) is expected


# ---------------------------------------------------------------------------
# singleton
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_singleton_requires_token(monkeypatch):
    monkeypatch.setattr(render_client_module, "_render_client", None)
    monkeypatch.setattr(settings.render, "bearer_token", "")
    with pytest.raises(ValueError):
        await render_client_module.get_render_client(base_url=BASE_URL, bearer_token="")


@pytest.mark.asyncio
async def test_singleton_is_reused_until_config_changes(monkeypatch):
    monkeypatch.setattr(render_client_module, "_render_client", None)

    first = await render_client_module.get_render_client(BASE_URL, "token-a")
    again = await render_client_module.get_render_client(BASE_URL, "token-a")
    other = await render_client_module.get_render_client(BASE_URL, "token-b")
    await render_client_module.close_render_client()

    assert first is again
    assert other is not first
