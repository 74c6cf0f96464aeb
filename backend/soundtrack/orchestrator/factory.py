"""Assemble orchestrators from settings."""

from typing import Optional

from soundtrack.config import settings
from soundtrack.orchestrator.pipeline import PipelineOrchestrator
from soundtrack.services.llm import LLMAdapter, get_adapter
from soundtrack.services.playback import PlaybackHandoff
from soundtrack.services.prompt_generator import PromptGenerator
from soundtrack.services.render_client import RenderJobClient


def build_prompt_generator(adapter: Optional[LLMAdapter] = None) -> PromptGenerator:
    return PromptGenerator(
        adapter or get_adapter(),
        temperature=settings.llm.temperature,
        frame_max_dimension=settings.pipeline.frame_max_dimension,
        frame_jpeg_quality=settings.pipeline.frame_jpeg_quality,
    )


def build_orchestrator(
    render_client: RenderJobClient,
    playback: PlaybackHandoff,
    *,
    adapter: Optional[LLMAdapter] = None,
    demo: bool = False,
    label: str = "",
) -> PipelineOrchestrator:
    """Create an orchestrator wired to the configured providers.

    Args:
        render_client: Shared render client (see get_render_client()).
        playback: Player receiving this orchestrator's media URLs.
        adapter: LLM adapter override; defaults to settings.llm.model.
        demo: Use the demo poll interval and budget instead of the
            interactive ones.
        label: Log prefix identifying the run (e.g. a scenario id).
    """
    render = settings.render
    return PipelineOrchestrator(
        build_prompt_generator(adapter),
        render_client,
        playback,
        poll_interval=render.demo_poll_interval if demo else render.poll_interval,
        max_poll_attempts=render.demo_poll_max if demo else render.poll_max,
        label=label,
    )
