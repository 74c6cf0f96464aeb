"""Async API client for the music rendering service.

Provides:
- Job submission (prompt, tags, instrumental flag) returning an opaque job id
- Status fetch by job id, normalized to RenderStatus
- Module-level lazy singleton configured from settings

Usage:
    from soundtrack.services.render_client import get_render_client

    client = await get_render_client()
    job_id = await client.submit(prompt, tags, instrumental=True)
    status = await client.fetch_status(job_id)
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from soundtrack.errors import InvalidResponse, RemoteError, TransientNetworkError
from soundtrack.schemas.render import RenderState, RenderStatus

logger = logging.getLogger(__name__)

# Status normalization sets. Anything unknown is treated as still queued.
_STREAMING_STATUSES = frozenset({"streaming"})
_COMPLETE_STATUSES = frozenset({"complete", "completed", "success"})
_ERROR_STATUSES = frozenset({"error", "failed"})

# HTTP codes on a status fetch that mean "try again later"
_RETRYABLE_HTTP = frozenset({408, 425, 429, 500, 502, 503, 504})


def normalize_state(raw_status: str) -> RenderState:
    """Map a raw service status string to a RenderState."""
    raw = raw_status.lower()
    if raw in _STREAMING_STATUSES:
        return RenderState.STREAMING
    if raw in _COMPLETE_STATUSES:
        return RenderState.COMPLETE
    if raw in _ERROR_STATUSES:
        return RenderState.ERROR
    return RenderState.QUEUED


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class RenderJobClient:
    """Async client for the music rendering API.

    The bearer token is attached to every request. The underlying
    httpx.AsyncClient is created lazily and recreated after close().
    """

    def __init__(self, base_url: str, bearer_token: str, timeout: float = 60.0):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.bearer_token = bearer_token
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.bearer_token}"},
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout, connect=15.0),
            )
        return self._client

    async def submit(self, prompt: str, tags: str, instrumental: bool = True) -> str:
        """Submit a render job.

        Returns the job id for status polling.

        Raises:
            RemoteError: The service reported a failure (``detail``), returned
                an HTTP error, or could not be reached.
            InvalidResponse: The reply carried no job id.
        """
        logger.info(
            f"POST {self.base_url}generate "
            f"(prompt={len(prompt)} chars, tags={tags!r}, instrumental={instrumental})"
        )
        try:
            response = await self.client.post(
                "generate",
                json={"topic": prompt, "tags": tags, "make_instrumental": instrumental},
            )
        except httpx.HTTPError as e:
            logger.error(f"  submit transport error: {e}")
            raise RemoteError(f"Render service unreachable: {e}") from e

        logger.info(f"  submit response: HTTP {response.status_code}")
        data = _json_or_none(response)

        if isinstance(data, dict) and isinstance(data.get("id"), str) and response.is_success:
            job_id = data["id"]
            logger.info(f"  job id: {job_id}")
            return job_id
        if isinstance(data, dict) and isinstance(data.get("detail"), str):
            raise RemoteError(data["detail"])
        if response.is_error:
            raise RemoteError(f"Render service returned HTTP {response.status_code}")
        raise InvalidResponse("Invalid response from render service.")

    async def fetch_status(self, job_id: str) -> RenderStatus:
        """Fetch the current status of a render job.

        Raises:
            TransientNetworkError: Transport failure or a retryable HTTP code.
            InvalidResponse: The reply is not a non-empty list of clips with
                an id and a status, or a clip field has the wrong type.
        """
        try:
            response = await self.client.get("clips", params={"ids": job_id})
        except httpx.HTTPError as e:
            raise TransientNetworkError(f"Status fetch for {job_id} failed: {e}") from e

        logger.debug("GET %sclips?ids=%s: HTTP %d", self.base_url, job_id, response.status_code)
        if response.status_code in _RETRYABLE_HTTP:
            raise TransientNetworkError(
                f"Status fetch for {job_id} returned HTTP {response.status_code}"
            )

        data = _json_or_none(response)
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise InvalidResponse("Invalid response from render service.")
        clip = data[0]
        clip_id, raw_status = clip.get("id"), clip.get("status")
        if not isinstance(clip_id, str) or not isinstance(raw_status, str):
            raise InvalidResponse("Invalid response from render service.")

        try:
            status = RenderStatus(
                id=clip_id,
                state=normalize_state(raw_status),
                audio_url=clip.get("audio_url") or None,
                title=clip.get("title") or None,
                image_url=clip.get("image_url") or None,
            )
        except ValidationError as e:
            raise InvalidResponse(f"Invalid clip fields from render service: {e}") from e
        logger.debug(
            "  raw status=%s -> %s audio_url=%s", raw_status, status.state.value,
            "yes" if status.audio_url else "no",
        )
        return status

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


# ---------------------------------------------------------------------------
# Module-level lazy singleton
# ---------------------------------------------------------------------------

_render_client: Optional[RenderJobClient] = None


async def get_render_client(
    base_url: Optional[str] = None,
    bearer_token: Optional[str] = None,
) -> RenderJobClient:
    """Get or create a singleton RenderJobClient.

    Falls back to settings.render when base_url/bearer_token are not given.
    """
    global _render_client
    from soundtrack.config import settings

    resolved_url = base_url or settings.render.base_url
    resolved_token = bearer_token or settings.render.bearer_token

    # Recreate if config changed
    if _render_client is not None:
        if (
            _render_client.base_url.rstrip("/") != resolved_url.rstrip("/")
            or _render_client.bearer_token != resolved_token
        ):
            await _render_client.close()
            _render_client = None

    if _render_client is None:
        if not resolved_token:
            raise ValueError(
                "Render bearer token not configured. Set "
                "SOUNDTRACK_RENDER__BEARER_TOKEN or render.bearer_token in config.yaml."
            )
        _render_client = RenderJobClient(
            resolved_url, resolved_token, timeout=settings.render.request_timeout
        )

    return _render_client


async def close_render_client() -> None:
    """Close the singleton RenderJobClient (for app shutdown)."""
    global _render_client
    if _render_client is not None:
        await _render_client.close()
        _render_client = None
