"""Shared fakes and fixtures for the pipeline tests.

The fakes stand in for the three network boundaries (reasoning model,
render service, player) so orchestrator tests run with zero poll delay
and fully scripted remote behaviour.
"""

import asyncio
import json
from typing import Optional, Sequence, Union

import pytest

from soundtrack.orchestrator.pipeline import PipelineOrchestrator
from soundtrack.schemas.context import GenerationContext, StressLevel
from soundtrack.schemas.render import RenderState, RenderStatus
from soundtrack.services.llm.base import LLMAdapter, parse_structured
from soundtrack.services.playback import PlaybackHandoff
from soundtrack.services.prompt_generator import PromptGenerator

SQUASH_REPLY = {
    "scene_description": "A fast squash rally on an indoor court.",
    "activity": "squash",
    "reasoning": "Competitive arousal, not anxiety: keep the intensity and sharpen focus.",
    "suno_prompt": "Driving electronic pop with tight drums and a focused vocal hook",
    "suno_tags": "electronic, pop, driving, 128 bpm",
    "target_bpm": 128,
    "energy": "high",
    "mood": "focused intensity",
}


def status(state: str, url: Optional[str] = None, job_id: str = "abc123", **kwargs) -> RenderStatus:
    return RenderStatus(id=job_id, state=RenderState(state), audio_url=url, **kwargs)


class FakeAdapter(LLMAdapter):
    """Replies with a canned JSON body, optionally after waiting on a gate."""

    def __init__(self, reply: Union[dict, str, None] = None, error: Optional[Exception] = None):
        if reply is None:
            reply = SQUASH_REPLY
        self.reply = reply if isinstance(reply, str) else json.dumps(reply)
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[dict] = []

    async def _answer(self, schema):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return parse_structured(self.reply, schema)

    async def generate_text(self, prompt, schema, *, temperature=0.7, system_prompt=None):
        self.calls.append({"kind": "text", "prompt": prompt, "system_prompt": system_prompt})
        return await self._answer(schema)

    async def analyze_image(
        self, image_bytes, prompt, schema, *, mime_type="image/jpeg", temperature=0.7, system_prompt=None
    ):
        self.calls.append({
            "kind": "image",
            "prompt": prompt,
            "system_prompt": system_prompt,
            "image_bytes": image_bytes,
            "mime_type": mime_type,
        })
        return await self._answer(schema)


class ScriptedRenderClient:
    """Render client whose fetch_status walks through a fixed script.

    Script entries are RenderStatus objects or exceptions to raise. Once the
    script is exhausted, the last entry repeats.
    """

    def __init__(
        self,
        script: Sequence[Union[RenderStatus, Exception]] = (),
        job_id: str = "abc123",
        submit_error: Optional[Exception] = None,
    ):
        self.script = list(script)
        self.job_id = job_id
        self.submit_error = submit_error
        self.submit_gate: Optional[asyncio.Event] = None
        self.submissions: list[dict] = []
        self.fetches = 0

    async def submit(self, prompt: str, tags: str, instrumental: bool = True) -> str:
        self.submissions.append({"prompt": prompt, "tags": tags, "instrumental": instrumental})
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return self.job_id

    async def fetch_status(self, job_id: str) -> RenderStatus:
        assert job_id == self.job_id
        self.fetches += 1
        item = self.script[min(self.fetches, len(self.script)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


class RecordingPlayback(PlaybackHandoff):
    """Player that records every call it receives."""

    def __init__(self):
        self.calls: list[tuple] = []
        self._playing = False

    def start(self, url: str) -> None:
        self.calls.append(("start", url))
        self._playing = True

    def stop(self) -> None:
        self.calls.append(("stop",))
        self._playing = False

    def pause(self) -> None:
        self.calls.append(("pause",))
        self._playing = False

    def resume(self) -> None:
        self.calls.append(("resume",))
        self._playing = True

    def is_playing(self) -> bool:
        return self._playing

    @property
    def starts(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "start"]


def make_orchestrator(
    render_client: ScriptedRenderClient,
    playback: Optional[RecordingPlayback] = None,
    adapter: Optional[FakeAdapter] = None,
    *,
    poll_interval: float = 0,
    max_poll_attempts: int = 60,
    label: str = "",
) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        PromptGenerator(adapter or FakeAdapter()),
        render_client,
        playback or RecordingPlayback(),
        poll_interval=poll_interval,
        max_poll_attempts=max_poll_attempts,
        label=label,
    )


@pytest.fixture
def squash_context() -> GenerationContext:
    return GenerationContext(
        stress=StressLevel.HIGH,
        heart_rate=156,
        hrv=18,
        scene="First-person squash rally on an indoor court",
        instrumental=False,
    )


@pytest.fixture
def playback() -> RecordingPlayback:
    return RecordingPlayback()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)
