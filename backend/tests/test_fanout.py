"""Tests for the three-way demo fan-out."""

import pytest

from conftest import FakeAdapter, RecordingPlayback, ScriptedRenderClient, make_orchestrator, status
from soundtrack.errors import RemoteError
from soundtrack.orchestrator.fanout import FanOutCoordinator
from soundtrack.orchestrator.scenarios import DEMO_SCENARIOS, get_scenario
from soundtrack.orchestrator.state import RunPhase
from soundtrack.schemas.context import StressLevel

TASTE = "Genres: indie, electronic\nFavorite songs/artists:\n- Midnight City by M83"


def _url(scenario_id: str) -> str:
    return f"https://cdn.example.com/{scenario_id}.mp3"


class _Harness:
    """Builds one scripted orchestrator per scenario and keeps the fakes."""

    def __init__(self, failing: dict | None = None):
        self.failing = failing or {}
        self.adapters: dict[str, FakeAdapter] = {}
        self.clients: dict[str, ScriptedRenderClient] = {}
        self.players: dict[str, RecordingPlayback] = {}

    def __call__(self, scenario):
        adapter = FakeAdapter(error=self.failing.get(scenario.id))
        client = ScriptedRenderClient(
            [status("queued"), status("streaming", _url(scenario.id)), status("complete", _url(scenario.id))],
            job_id=f"job-{scenario.id}",
        )
        player = RecordingPlayback()
        self.adapters[scenario.id] = adapter
        self.clients[scenario.id] = client
        self.players[scenario.id] = player
        return make_orchestrator(client, player, adapter, label=scenario.id)


def test_demo_scenarios():
    assert [s.id for s in DEMO_SCENARIOS] == ["hackathon", "squash", "nature"]
    squash = get_scenario("squash")
    assert squash.stress is StressLevel.HIGH
    assert (squash.heart_rate, squash.hrv) == (156, 18)
    assert squash.instrumental is False
    assert get_scenario("nature").instrumental is True
    with pytest.raises(KeyError):
        get_scenario("office")


@pytest.mark.asyncio
async def test_all_three_tracks_in_scenario_order():
    harness = _Harness()
    tracks = await FanOutCoordinator(harness).run(TASTE)

    assert [t.scenario_id for t in tracks] == ["hackathon", "squash", "nature"]
    assert [t.media_url for t in tracks] == [_url(s.id) for s in DEMO_SCENARIOS]
    assert all(t.succeeded for t in tracks)
    for scenario_id, player in harness.players.items():
        assert player.starts == [_url(scenario_id)]


@pytest.mark.asyncio
async def test_failing_scenario_does_not_cancel_siblings():
    harness = _Harness(failing={"squash": RemoteError("Quota exceeded")})
    coordinator = FanOutCoordinator(harness)

    tracks = await coordinator.run(TASTE)

    hackathon, squash, nature = tracks
    assert hackathon.media_url == _url("hackathon")
    assert nature.media_url == _url("nature")
    assert squash.media_url is None
    assert squash.reason == "Quota exceeded"
    assert coordinator.orchestrators["hackathon"].phase is RunPhase.COMPLETE
    assert coordinator.orchestrators["nature"].phase is RunPhase.COMPLETE
    assert coordinator.orchestrators["squash"].phase is RunPhase.FAILED
    assert harness.clients["squash"].submissions == []


@pytest.mark.asyncio
async def test_unexpected_error_becomes_failure_marker():
    harness = _Harness(failing={"nature": KeyError("boom")})

    tracks = await FanOutCoordinator(harness).run(TASTE)

    assert tracks[0].succeeded and tracks[1].succeeded
    assert not tracks[2].succeeded
    assert "KeyError" in tracks[2].reason


@pytest.mark.asyncio
async def test_scenarios_share_taste_and_keep_their_own_inputs():
    harness = _Harness()
    await FanOutCoordinator(harness).run(TASTE)

    for scenario in DEMO_SCENARIOS:
        call = harness.adapters[scenario.id].calls[0]
        assert call["kind"] == "text"
        assert TASTE in call["prompt"]
        assert scenario.scene in call["prompt"]
        assert scenario.musical_direction in call["prompt"]
    assert harness.clients["squash"].submissions[0]["instrumental"] is False
    assert harness.clients["hackathon"].submissions[0]["instrumental"] is True


@pytest.mark.asyncio
async def test_listener_receives_events_per_scenario():
    seen = set()
    await FanOutCoordinator(_Harness(), listener=lambda sid, e: seen.add((sid, e.phase))).run(TASTE)

    for scenario in DEMO_SCENARIOS:
        assert (scenario.id, RunPhase.COMPLETE) in seen


def test_requires_exactly_three_scenarios():
    with pytest.raises(ValueError):
        FanOutCoordinator(_Harness(), scenarios=DEMO_SCENARIOS[:2])
