"""API route handlers and Pydantic response schemas."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from soundtrack.config import settings
from soundtrack.orchestrator.factory import build_orchestrator
from soundtrack.orchestrator.fanout import FanOutCoordinator, OrchestratorFactory
from soundtrack.orchestrator.pipeline import PipelineEvent, PipelineOrchestrator
from soundtrack.orchestrator.scenarios import DEMO_SCENARIOS, DemoScenario
from soundtrack.schemas.context import GenerationContext, StressLevel, load_taste_snapshot
from soundtrack.services.playback import NowPlaying
from soundtrack.services.render_client import get_render_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Formats Pillow decodes without plugins
ALLOWED_FRAME_TYPES = {"image/png", "image/jpeg", "image/webp"}
MAX_FRAME_BYTES = 10 * 1024 * 1024

# Interactive session state (one orchestrator per process)
_playback = NowPlaying()
_orchestrator: Optional[PipelineOrchestrator] = None

# Module-level dict for in-memory demo progress tracking
DEMO_STATUS: dict = {"status": "not_started", "scenarios": {}, "tracks": []}
_demo_coordinator: Optional[FanOutCoordinator] = None


# ============================================================================
# Response Schemas
# ============================================================================

class RunAcceptedResponse(BaseModel):
    """Response schema for POST /runs."""
    status: str
    status_url: str


class DirectiveResponse(BaseModel):
    scene_description: str
    activity: str
    reasoning: str
    prompt: str
    tags: str
    target_bpm: int
    energy: str
    mood: str


class RunStatusResponse(BaseModel):
    """Response schema for the interactive run state."""
    epoch: int
    phase: str
    step: str
    reason: Optional[str] = None
    directive: Optional[DirectiveResponse] = None
    job_id: Optional[str] = None
    media_url: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    playback_started: bool = False
    is_playing: bool = False


class DemoScenarioStatus(BaseModel):
    phase: str
    step: str
    message: Optional[str] = None
    reason: Optional[str] = None


class DemoTrackResponse(BaseModel):
    scenario_id: str
    media_url: Optional[str] = None
    title: Optional[str] = None
    reason: Optional[str] = None


class DemoStatusResponse(BaseModel):
    """Response schema for GET /demo."""
    status: str  # not_started, running, complete, error
    scenarios: dict[str, DemoScenarioStatus] = {}
    tracks: list[DemoTrackResponse] = []
    error: Optional[str] = None


class PlaybackResponse(BaseModel):
    url: Optional[str] = None
    is_playing: bool = False


# ============================================================================
# Dependencies
# ============================================================================

def get_playback() -> NowPlaying:
    return _playback


async def get_orchestrator() -> PipelineOrchestrator:
    """Get or create the interactive session orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        try:
            render_client = await get_render_client()
        except ValueError as e:
            raise HTTPException(status_code=503, detail=str(e))
        _orchestrator = build_orchestrator(render_client, _playback, label="session")
    return _orchestrator


async def get_demo_factory() -> OrchestratorFactory:
    """Factory giving each demo scenario its own orchestrator and player."""
    try:
        render_client = await get_render_client()
    except ValueError as e:
        raise HTTPException(status_code=503, detail=str(e))

    def factory(scenario: DemoScenario) -> PipelineOrchestrator:
        return build_orchestrator(render_client, NowPlaying(), demo=True, label=scenario.id)

    return factory


async def shutdown_sessions() -> None:
    """Cancel in-flight work (for app shutdown)."""
    if _orchestrator is not None:
        await _orchestrator.cancel()
    if _demo_coordinator is not None:
        await _demo_coordinator.cancel()


# ============================================================================
# Background Task Wrappers
# ============================================================================

async def run_session_background(
    orchestrator: PipelineOrchestrator,
    frame: Optional[bytes],
    context: GenerationContext,
):
    """Run one interactive generation in the background."""
    try:
        outcome = await orchestrator.run(frame, context)
        if outcome.cancelled:
            logger.info(f"Session run {outcome.epoch} was cancelled")
    except Exception as e:
        # Failure already recorded on the orchestrator
        logger.error(f"Background run failed: {type(e).__name__}: {e}")


async def run_demo_background(factory: OrchestratorFactory, taste: str):
    """Run the three-way demo fan-out and publish progress into DEMO_STATUS."""
    global _demo_coordinator

    def on_event(scenario_id: str, event: PipelineEvent) -> None:
        DEMO_STATUS["scenarios"][scenario_id] = {
            "phase": event.phase.value,
            "step": event.step.name.lower(),
            "message": event.message,
            "reason": event.reason,
        }

    _demo_coordinator = FanOutCoordinator(factory, listener=on_event)
    try:
        tracks = await _demo_coordinator.run(taste)
        DEMO_STATUS["tracks"] = [
            {
                "scenario_id": t.scenario_id,
                "media_url": t.media_url,
                "title": t.title,
                "reason": t.reason,
            }
            for t in tracks
        ]
        DEMO_STATUS["status"] = "complete"
    except Exception as e:
        logger.error(f"Demo fan-out failed: {e}", exc_info=True)
        DEMO_STATUS["status"] = "error"
        DEMO_STATUS["error"] = str(e)
    finally:
        _demo_coordinator = None


def _status_response(orchestrator: PipelineOrchestrator) -> RunStatusResponse:
    snapshot = orchestrator.snapshot()
    return RunStatusResponse(**snapshot)


# ============================================================================
# Endpoint Handlers
# ============================================================================

@router.post("/runs", status_code=202, response_model=RunAcceptedResponse)
async def start_run(
    background_tasks: BackgroundTasks,
    frame: Optional[UploadFile] = File(None),
    stress: str = Form(settings.pipeline.default_stress),
    instrumental: bool = Form(settings.pipeline.default_instrumental),
    scene: Optional[str] = Form(None),
    heart_rate: Optional[int] = Form(None),
    hrv: Optional[int] = Form(None),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Start a generation run from a captured frame and/or a scene descriptor.

    A run already in flight is cancelled first (cancel-and-restart). Returns
    202 Accepted; poll GET /runs/current for progress.
    """
    try:
        stress_level = StressLevel(stress)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"stress must be one of {[s.value for s in StressLevel]}, got {stress}",
        )

    frame_bytes: Optional[bytes] = None
    if frame is not None:
        if frame.content_type not in ALLOWED_FRAME_TYPES:
            raise HTTPException(
                status_code=422,
                detail=f"Invalid content type {frame.content_type}. Must be one of {sorted(ALLOWED_FRAME_TYPES)}",
            )
        frame_bytes = await frame.read()
        if len(frame_bytes) > MAX_FRAME_BYTES:
            raise HTTPException(status_code=422, detail="Frame too large. Maximum size is 10MB")

    if frame_bytes is None and not scene:
        raise HTTPException(status_code=422, detail="Either a frame or a scene description is required")

    overrides = {}
    if heart_rate is not None:
        overrides["heart_rate"] = heart_rate
    if hrv is not None:
        overrides["hrv"] = hrv
    context = GenerationContext.for_stress(
        stress_level,
        taste=load_taste_snapshot(settings.pipeline.taste_profile_path),
        scene=scene,
        instrumental=instrumental,
        **overrides,
    )

    background_tasks.add_task(run_session_background, orchestrator, frame_bytes, context)
    return RunAcceptedResponse(status="accepted", status_url="/api/runs/current")


@router.get("/runs/current", response_model=RunStatusResponse)
async def get_current_run(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Current phase, progress step, directive and failure reason."""
    return _status_response(orchestrator)


@router.post("/runs/cancel", response_model=RunStatusResponse)
async def cancel_run(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Cancel the active run, stop playback and return to idle. Always succeeds."""
    await orchestrator.cancel()
    return _status_response(orchestrator)


@router.post("/runs/dismiss", response_model=RunStatusResponse)
async def dismiss_run(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Clear a finished or failed run (directive, reason, track) and return to idle."""
    await orchestrator.dismiss()
    return _status_response(orchestrator)


@router.post("/demo", status_code=202, response_model=DemoStatusResponse)
async def start_demo(
    background_tasks: BackgroundTasks,
    factory: OrchestratorFactory = Depends(get_demo_factory),
):
    """Generate one track per demo scenario concurrently."""
    if DEMO_STATUS.get("status") == "running":
        raise HTTPException(status_code=409, detail="A demo fan-out is already running")

    DEMO_STATUS.clear()
    DEMO_STATUS.update({
        "status": "running",
        "scenarios": {
            s.id: {"phase": "idle", "step": "idle", "message": None, "reason": None}
            for s in DEMO_SCENARIOS
        },
        "tracks": [],
    })
    taste = load_taste_snapshot(settings.pipeline.taste_profile_path)
    background_tasks.add_task(run_demo_background, factory, taste)
    return DemoStatusResponse(**DEMO_STATUS)


@router.get("/demo", response_model=DemoStatusResponse)
async def get_demo():
    """Progress of the demo fan-out, and its tracks once all three are done."""
    return DemoStatusResponse(**DEMO_STATUS)


@router.get("/playback", response_model=PlaybackResponse)
async def get_playback_state(playback: NowPlaying = Depends(get_playback)):
    return PlaybackResponse(url=playback.url, is_playing=playback.is_playing())


@router.post("/playback/toggle", response_model=PlaybackResponse)
async def toggle_playback(
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    playback: NowPlaying = Depends(get_playback),
):
    """Pause or resume the current track. 409 if nothing has started playing."""
    if not orchestrator.playback_started:
        raise HTTPException(status_code=409, detail="Nothing is playing")
    orchestrator.toggle_playback()
    return PlaybackResponse(url=playback.url, is_playing=playback.is_playing())
