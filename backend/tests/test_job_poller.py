"""Tests for soundtrack.services.job_poller.JobPoller."""

import asyncio

import pytest

from conftest import ScriptedRenderClient, status
from soundtrack.cancellation import CancellationToken
from soundtrack.errors import InvalidResponse, RenderFailed, RenderTimeout, TransientNetworkError
from soundtrack.schemas.render import RenderState
from soundtrack.services.job_poller import JobPoller

URL_A = "https://cdn.example.com/a.mp3"


async def _collect(poller: JobPoller, job_id: str = "abc123", token=None):
    return [s async for s in poller.poll(job_id, token)]


@pytest.mark.asyncio
async def test_transient_failure_is_absorbed_and_duplicates_collapsed():
    client = ScriptedRenderClient([
        status("queued"),
        status("queued"),
        TransientNetworkError("connection reset"),
        status("streaming", URL_A),
        status("streaming", URL_A),
        status("complete", URL_A),
    ])
    poller = JobPoller(client, interval=0, max_attempts=60)

    seen = await _collect(poller)

    assert [s.state for s in seen] == [RenderState.QUEUED, RenderState.STREAMING, RenderState.COMPLETE]
    assert seen[1].audio_url == URL_A
    assert client.fetches == 6
    assert poller.attempts == 6


@pytest.mark.asyncio
async def test_times_out_after_exactly_max_attempts():
    client = ScriptedRenderClient([status("queued")])
    poller = JobPoller(client, interval=0, max_attempts=90)

    with pytest.raises(RenderTimeout) as exc_info:
        await _collect(poller)

    assert client.fetches == 90
    assert exc_info.value.attempts == 90


@pytest.mark.asyncio
async def test_failed_fetches_still_count_towards_the_budget():
    client = ScriptedRenderClient([TransientNetworkError("down")])
    poller = JobPoller(client, interval=0, max_attempts=5)

    with pytest.raises(RenderTimeout):
        await _collect(poller)
    assert client.fetches == 5


@pytest.mark.asyncio
async def test_error_status_is_yielded_then_raised():
    client = ScriptedRenderClient([status("queued"), status("error")])
    poller = JobPoller(client, interval=0, max_attempts=10)
    seen = []

    with pytest.raises(RenderFailed) as exc_info:
        async for s in poller.poll("abc123"):
            seen.append(s.state)

    assert seen == [RenderState.QUEUED, RenderState.ERROR]
    assert exc_info.value.job_id == "abc123"
    assert client.fetches == 2


@pytest.mark.asyncio
async def test_invalid_response_during_polling_is_not_fatal():
    client = ScriptedRenderClient([InvalidResponse(), status("complete", URL_A)])
    poller = JobPoller(client, interval=0, max_attempts=10)

    seen = await _collect(poller)

    assert [s.state for s in seen] == [RenderState.COMPLETE]


@pytest.mark.asyncio
async def test_new_metadata_on_same_state_is_emitted():
    client = ScriptedRenderClient([
        status("streaming", URL_A),
        status("streaming", URL_A, title="Match Point"),
        status("complete", URL_A, title="Match Point"),
    ])
    seen = await _collect(JobPoller(client, interval=0))

    assert [(s.state, s.title) for s in seen] == [
        (RenderState.STREAMING, None),
        (RenderState.STREAMING, "Match Point"),
        (RenderState.COMPLETE, "Match Point"),
    ]


@pytest.mark.asyncio
async def test_cancelled_token_stops_before_any_fetch():
    client = ScriptedRenderClient([status("queued")])
    token = CancellationToken()
    token.cancel()

    seen = await _collect(JobPoller(client, interval=0), token=token)

    assert seen == []
    assert client.fetches == 0


@pytest.mark.asyncio
async def test_cancel_interrupts_the_inter_poll_sleep():
    client = ScriptedRenderClient([status("queued")])
    token = CancellationToken()
    poller = JobPoller(client, interval=30, max_attempts=3)

    async def cancel_soon():
        await asyncio.sleep(0.05)
        token.cancel()

    canceller = asyncio.create_task(cancel_soon())
    seen = await asyncio.wait_for(_collect(poller, token=token), timeout=2)
    await canceller

    assert seen == []
    assert client.fetches == 0


def test_rejects_non_positive_budget():
    with pytest.raises(ValueError):
        JobPoller(ScriptedRenderClient(), max_attempts=0)
