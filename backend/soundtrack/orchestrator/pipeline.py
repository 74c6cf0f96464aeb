"""Pipeline orchestrator: one cancellable run from scene to playing track.

Coordinates a generation run with:
- Phase transitions (idle → analyzing → rendering → streaming → complete,
  or failed) plus a cosmetic progress step for display
- Early playback: the first playable ``streaming`` URL is handed to the
  player while polling continues towards ``complete``
- Cancellation through a per-run token and an epoch counter, so results
  arriving after cancel() or after a newer run started are discarded
- Explicit transition events for presentation layers to subscribe to

Re-entrancy: run() on a busy orchestrator cancels the active run, waits
for that cancellation to take effect, then starts the new one.
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Callable, Optional

from soundtrack.cancellation import CancellationToken
from soundtrack.errors import PipelineCancelled, RenderFailed, RenderTimeout, SoundtrackError
from soundtrack.orchestrator.state import (
    IN_FLIGHT_PHASES,
    ProgressStep,
    RunPhase,
    advance_step,
    can_transition,
)
from soundtrack.schemas.context import GenerationContext
from soundtrack.schemas.directive import GenerationDirective
from soundtrack.schemas.render import RenderState, RenderStatus
from soundtrack.services.job_poller import JobPoller
from soundtrack.services.playback import PlaybackHandoff
from soundtrack.services.prompt_generator import PromptGenerator
from soundtrack.services.render_client import RenderJobClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineEvent:
    """One state change of the orchestrator, delivered to subscribers."""

    epoch: int
    phase: RunPhase
    step: ProgressStep
    message: str
    status: Optional[RenderStatus] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class RunOutcome:
    """Terminal result of one run: complete, failed, or cancelled."""

    epoch: int
    phase: RunPhase
    cancelled: bool = False
    reason: Optional[str] = None
    directive: Optional[GenerationDirective] = None
    job_id: Optional[str] = None
    media_url: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.phase is RunPhase.COMPLETE


@dataclass
class _ActiveRun:
    epoch: int
    token: CancellationToken
    task: "asyncio.Task[RunOutcome]"


Listener = Callable[[PipelineEvent], Any]


class PipelineOrchestrator:
    """State machine driving prompt generation, render submission and polling."""

    def __init__(
        self,
        prompt_generator: PromptGenerator,
        render_client: RenderJobClient,
        playback: PlaybackHandoff,
        *,
        poll_interval: float = 5.0,
        max_poll_attempts: int = 60,
        system_template: Optional[str] = None,
        label: str = "",
    ) -> None:
        self._generator = prompt_generator
        self._render_client = render_client
        self._playback = playback
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._system_template = system_template
        self._label = label
        self._listeners: list[Listener] = []
        self._epoch = 0
        self._active: Optional[_ActiveRun] = None
        self._reset_run_state()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def step(self) -> ProgressStep:
        return self._step

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    @property
    def directive(self) -> Optional[GenerationDirective]:
        return self._directive

    @property
    def job_id(self) -> Optional[str]:
        return self._job_id

    @property
    def media_url(self) -> Optional[str]:
        return self._media_url

    @property
    def playback_started(self) -> bool:
        return self._playback_started

    @property
    def is_running(self) -> bool:
        return self._active is not None and not self._active.task.done()

    def snapshot(self) -> dict:
        """Plain-data view of the current state for API/CLI rendering."""
        return {
            "epoch": self._epoch,
            "phase": self._phase.value,
            "step": self._step.name.lower(),
            "reason": self._failure_reason,
            "directive": self._directive.model_dump() if self._directive else None,
            "job_id": self._job_id,
            "media_url": self._media_url,
            "title": self._title,
            "image_url": self._image_url,
            "playback_started": self._playback_started,
            "is_playing": self._playback.is_playing(),
        }

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for PipelineEvents. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, message: str, status: Optional[RenderStatus] = None) -> None:
        event = PipelineEvent(
            epoch=self._epoch,
            phase=self._phase,
            step=self._step,
            message=message,
            status=status,
            reason=self._failure_reason,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"{self._prefix}Listener {listener!r} failed on {message!r}")

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def run(self, frame: Optional[bytes], context: GenerationContext) -> RunOutcome:
        """Execute one full run and return its terminal outcome.

        Args:
            frame: Captured camera frame, or None for a scene-only run.
            context: Immutable run input.

        Returns:
            RunOutcome with phase COMPLETE or FAILED, or cancelled=True.

        Raises:
            ValueError: If neither a frame nor a scene descriptor is given.
        """
        if frame is None and not context.scene:
            raise ValueError("A camera frame or a scene descriptor is required")

        # Supersede whatever ran before, stopping its playback
        await self.cancel()
        while self._active is not None:
            await self.cancel()

        self._epoch += 1
        epoch = self._epoch
        self._reset_run_state()
        token = CancellationToken()
        task = asyncio.create_task(
            self._drive(epoch, token, frame, context),
            name=f"soundtrack-run-{self._label or 'main'}-{epoch}",
        )
        self._active = _ActiveRun(epoch=epoch, token=token, task=task)
        logger.info(f"{self._prefix}Run {epoch} started")

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return RunOutcome(epoch=epoch, phase=RunPhase.IDLE, cancelled=True)
            # Our caller was cancelled: take the run down with it
            if self._active is not None and self._active.epoch == epoch:
                await self.cancel()
            raise
        finally:
            if self._active is not None and self._active.epoch == epoch and task.done():
                self._active = None

    def start(self, frame: Optional[bytes], context: GenerationContext) -> "asyncio.Task[RunOutcome]":
        """Schedule run() in the background and return its task."""
        return asyncio.create_task(self.run(frame, context))

    async def cancel(self) -> None:
        """Abort the active run (if any) and return to idle.

        Idempotent and safe from any phase, terminal ones included. Stops
        playback if this run started it and discards the directive and job
        id. Returns once the cancelled run can no longer write state.
        """
        active = self._active
        self._active = None
        self._epoch += 1

        if active is not None:
            active.token.cancel()
            if active.task is not asyncio.current_task():
                active.task.cancel()
                await asyncio.gather(active.task, return_exceptions=True)
            logger.info(f"{self._prefix}Run {active.epoch} cancelled")

        changed = self._phase is not RunPhase.IDLE or self._playback_started
        if self._playback_started:
            self._playback.stop()
        self._reset_run_state()
        if changed:
            self._emit("Cancelled")

    async def dismiss(self) -> None:
        """Return to idle and forget the last directive and failure reason."""
        await self.cancel()

    def toggle_playback(self) -> bool:
        """Pause/resume the current track. Returns the new playing state."""
        if not self._playback_started:
            return False
        return self._playback.toggle()

    # ------------------------------------------------------------------
    # Run body
    # ------------------------------------------------------------------

    @property
    def _prefix(self) -> str:
        return f"[{self._label}] " if self._label else ""

    def _reset_run_state(self) -> None:
        self._phase = RunPhase.IDLE
        self._step = ProgressStep.IDLE
        self._failure_reason: Optional[str] = None
        self._directive: Optional[GenerationDirective] = None
        self._job_id: Optional[str] = None
        self._media_url: Optional[str] = None
        self._title: Optional[str] = None
        self._image_url: Optional[str] = None
        self._playback_started = False
        self._run_started = time.monotonic()

    def _guard(self, epoch: int, token: CancellationToken) -> None:
        """Raise PipelineCancelled if this run was cancelled or superseded."""
        token.raise_if_cancelled()
        if epoch != self._epoch:
            raise PipelineCancelled()

    def _set_phase(self, phase: RunPhase, step: Optional[ProgressStep] = None) -> None:
        if not can_transition(self._phase, phase):
            raise RuntimeError(f"Illegal transition {self._phase.value} -> {phase.value}")
        self._phase = phase
        if step is not None:
            self._step = advance_step(self._step, step)

    def _outcome(self, epoch: int) -> RunOutcome:
        return RunOutcome(
            epoch=epoch,
            phase=self._phase,
            reason=self._failure_reason,
            directive=self._directive,
            job_id=self._job_id,
            media_url=self._media_url,
            title=self._title,
            image_url=self._image_url,
            elapsed=time.monotonic() - self._run_started,
        )

    def _fail(self, epoch: int, reason: str) -> RunOutcome:
        logger.error(f"{self._prefix}Run {epoch} failed in {self._phase.value}: {reason}")
        if self._playback_started:
            self._playback.stop()
        self._set_phase(RunPhase.FAILED)
        self._failure_reason = reason
        self._emit(f"Failed: {reason}")
        return self._outcome(epoch)

    def _start_playback(self, url: str) -> None:
        self._playback_started = True
        self._media_url = url
        self._step = advance_step(self._step, ProgressStep.PLAYING)
        try:
            self._playback.start(url)
        except Exception as e:
            # Player failures are reported by the player, not by the run
            logger.warning(f"{self._prefix}Playback start for {url} raised: {e}")

    def _absorb_metadata(self, status: RenderStatus) -> None:
        self._title = status.title or self._title
        self._image_url = status.image_url or self._image_url

    async def _drive(
        self,
        epoch: int,
        token: CancellationToken,
        frame: Optional[bytes],
        context: GenerationContext,
    ) -> RunOutcome:
        try:
            self._set_phase(RunPhase.ANALYZING, ProgressStep.CAPTURING)
            self._emit("Scene captured")

            # Stage 1: reasoning
            self._guard(epoch, token)
            self._step = advance_step(self._step, ProgressStep.ANALYZING)
            self._emit("Analyzing scene...")
            try:
                directive = await self._generator.generate(
                    context, self._system_template, frame=frame
                )
            except SoundtrackError as e:
                self._guard(epoch, token)
                return self._fail(epoch, str(e))
            self._guard(epoch, token)

            self._directive = directive
            self._set_phase(RunPhase.RENDERING, ProgressStep.REASONING)
            self._emit("Directive received")

            # Stage 2: render submission
            self._guard(epoch, token)
            self._step = advance_step(self._step, ProgressStep.COMPOSING)
            self._emit("Composing...")
            try:
                job_id = await self._render_client.submit(
                    directive.prompt, directive.tags, context.instrumental
                )
            except SoundtrackError as e:
                self._guard(epoch, token)
                return self._fail(epoch, str(e))
            self._guard(epoch, token)

            self._job_id = job_id
            self._emit(f"Render job {job_id} submitted")

            # Stage 3: polling
            poller = JobPoller(
                self._render_client,
                interval=self._poll_interval,
                max_attempts=self._max_poll_attempts,
                label=self._label,
            )
            try:
                async with aclosing(poller.poll(job_id, token)) as statuses:
                    async for status in statuses:
                        self._guard(epoch, token)
                        outcome = self._on_status(epoch, status)
                        if outcome is not None:
                            return outcome
            except RenderFailed:
                self._guard(epoch, token)
                return self._fail(epoch, "Music generation failed.")
            except RenderTimeout as e:
                self._guard(epoch, token)
                return self._fail(epoch, str(e))

            # The poll stream only ends early when the token was cancelled
            raise PipelineCancelled()

        except PipelineCancelled:
            logger.info(f"{self._prefix}Run {epoch} observed cancellation")
            return RunOutcome(epoch=epoch, phase=RunPhase.IDLE, cancelled=True)

        except Exception as e:
            if epoch == self._epoch and self._phase in IN_FLIGHT_PHASES:
                self._fail(epoch, f"{type(e).__name__}: {e}")
            raise

    def _on_status(self, epoch: int, status: RenderStatus) -> Optional[RunOutcome]:
        """Apply one poll observation. Returns an outcome when the run ends."""
        self._absorb_metadata(status)

        if status.state is RenderState.QUEUED:
            self._emit("Render queued", status)
            return None

        if status.state is RenderState.STREAMING:
            if status.playable:
                if not self._playback_started:
                    self._start_playback(status.audio_url)
                    self._set_phase(RunPhase.STREAMING)
                    self._emit("Streaming started", status)
                else:
                    self._set_phase(RunPhase.STREAMING)
                    self._emit("Streaming", status)
            else:
                self._emit("Streaming without audio yet", status)
            return None

        if status.state is RenderState.COMPLETE:
            if not self._playback_started:
                if not status.playable:
                    return self._fail(epoch, "Render completed without an audio URL.")
                self._start_playback(status.audio_url)
            elif status.audio_url:
                self._media_url = status.audio_url
            self._set_phase(RunPhase.COMPLETE)
            self._emit("Complete", status)
            elapsed = time.monotonic() - self._run_started
            logger.info(f"{self._prefix}Run {epoch} complete in {elapsed:.1f}s: {self._media_url}")
            return self._outcome(epoch)

        return self._fail(epoch, "Music generation failed.")
