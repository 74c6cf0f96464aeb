"""Three-way demo fan-out.

Runs one orchestrator per demo scenario concurrently and joins on all of
them. A failing scenario never cancels its siblings; the result is always
one DemoTrack per scenario, in scenario order.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from soundtrack.orchestrator.pipeline import PipelineEvent, PipelineOrchestrator, RunOutcome
from soundtrack.orchestrator.scenarios import DEMO_SCENARIOS, DemoScenario
from soundtrack.schemas.directive import GenerationDirective

logger = logging.getLogger(__name__)

FAN_OUT_WIDTH = 3

OrchestratorFactory = Callable[[DemoScenario], PipelineOrchestrator]
ScenarioListener = Callable[[str, PipelineEvent], None]


@dataclass(frozen=True)
class DemoTrack:
    """Resolved media reference, or failure marker, for one scenario."""

    scenario_id: str
    media_url: Optional[str] = None
    reason: Optional[str] = None
    title: Optional[str] = None
    directive: Optional[GenerationDirective] = None
    job_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.media_url is not None


def _to_track(scenario: DemoScenario, result) -> DemoTrack:
    if isinstance(result, BaseException):
        return DemoTrack(scenario_id=scenario.id, reason=f"{type(result).__name__}: {result}")
    outcome: RunOutcome = result
    if outcome.cancelled:
        return DemoTrack(scenario_id=scenario.id, reason="Cancelled")
    if not outcome.succeeded:
        return DemoTrack(
            scenario_id=scenario.id,
            reason=outcome.reason,
            directive=outcome.directive,
            job_id=outcome.job_id,
        )
    return DemoTrack(
        scenario_id=scenario.id,
        media_url=outcome.media_url,
        title=outcome.title,
        directive=outcome.directive,
        job_id=outcome.job_id,
    )


class FanOutCoordinator:
    """Runs the demo scenarios side by side and collects their tracks."""

    def __init__(
        self,
        factory: OrchestratorFactory,
        scenarios: Sequence[DemoScenario] = DEMO_SCENARIOS,
        listener: Optional[ScenarioListener] = None,
    ) -> None:
        if len(scenarios) != FAN_OUT_WIDTH:
            raise ValueError(f"Fan-out needs exactly {FAN_OUT_WIDTH} scenarios, got {len(scenarios)}")
        self._factory = factory
        self._scenarios = tuple(scenarios)
        self._listener = listener
        self.orchestrators: dict[str, PipelineOrchestrator] = {}

    async def run(self, taste: str) -> list[DemoTrack]:
        """Generate one track per scenario from the shared taste snapshot.

        Args:
            taste: Formatted music-taste snapshot, read-only for every run.

        Returns:
            One DemoTrack per scenario, in scenario order.
        """
        start = time.monotonic()
        runs = []
        for scenario in self._scenarios:
            orchestrator = self._factory(scenario)
            if self._listener is not None:
                orchestrator.subscribe(
                    lambda event, sid=scenario.id: self._listener(sid, event)
                )
            self.orchestrators[scenario.id] = orchestrator
            runs.append(orchestrator.run(None, scenario.to_context(taste)))

        logger.info(f"Fan-out started: {', '.join(s.id for s in self._scenarios)}")
        results = await asyncio.gather(*runs, return_exceptions=True)

        tracks = [_to_track(s, r) for s, r in zip(self._scenarios, results)]
        ready = sum(t.succeeded for t in tracks)
        logger.info(
            f"Fan-out finished in {time.monotonic() - start:.1f}s: "
            f"{ready}/{len(tracks)} tracks ready"
        )
        for track in tracks:
            if not track.succeeded:
                logger.warning(f"Scenario {track.scenario_id} produced no track: {track.reason}")
        return tracks

    async def cancel(self) -> None:
        await asyncio.gather(*(o.cancel() for o in self.orchestrators.values()))
