"""CLI commands for soundtrack using Typer and Rich.

Implements the three CLI commands:
- run: One orchestrated generation from a captured frame (or a scene text)
- demo: Three-way fan-out over the demo scenarios
- serve: Start the HTTP API with uvicorn
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from soundtrack import validate_dependencies
from soundtrack.config import settings
from soundtrack.orchestrator.factory import build_orchestrator
from soundtrack.orchestrator.fanout import FanOutCoordinator
from soundtrack.orchestrator.pipeline import PipelineEvent, RunOutcome
from soundtrack.orchestrator.scenarios import DEMO_SCENARIOS, DemoScenario
from soundtrack.orchestrator.state import RunPhase
from soundtrack.schemas.context import GenerationContext, StressLevel, load_taste_snapshot
from soundtrack.services.playback import NowPlaying
from soundtrack.services.render_client import close_render_client, get_render_client

app = typer.Typer(name="soundtrack", help="Scene-aware music generation pipeline")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _validate_or_exit() -> None:
    try:
        validate_dependencies()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)


@app.command()
def run(
    image: Optional[Path] = typer.Argument(None, help="Captured camera frame (PNG/JPEG/WebP)"),
    scene: Optional[str] = typer.Option(None, "--scene", help="Scene description (used when no image is given)"),
    stress: StressLevel = typer.Option(StressLevel.HIGH, "--stress", "-s", help="Stress level"),
    instrumental: bool = typer.Option(True, "--instrumental/--vocals", help="Instrumental or with vocals"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Generate a track for the current scene and stream it as soon as it is playable."""
    _configure_logging(verbose)
    _validate_or_exit()

    if image is None and not scene:
        console.print("[red]Error:[/red] Provide an IMAGE or --scene")
        raise typer.Exit(code=1)
    if image is not None and not image.is_file():
        console.print(f"[red]Error:[/red] Image not found: {image}")
        raise typer.Exit(code=1)

    frame = image.read_bytes() if image is not None else None
    context = GenerationContext.for_stress(
        stress,
        taste=load_taste_snapshot(settings.pipeline.taste_profile_path),
        scene=scene,
        instrumental=instrumental,
    )

    try:
        outcome = asyncio.run(_run_async(frame, context))
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Run cancelled.[/yellow]")
        raise typer.Exit(code=130)

    if outcome.cancelled:
        console.print("[yellow]Run cancelled.[/yellow]")
        raise typer.Exit(code=130)
    if not outcome.succeeded:
        console.print(f"[red]✗ Run failed:[/red] {outcome.reason}")
        raise typer.Exit(code=1)

    directive = outcome.directive
    console.print(Panel(
        f"[bold]Activity:[/bold] {directive.activity}\n"
        f"[bold]Reasoning:[/bold] {directive.reasoning}\n"
        f"[bold]Tags:[/bold] {directive.tags}\n"
        f"[bold]BPM:[/bold] {directive.target_bpm}   "
        f"[bold]Energy:[/bold] {directive.energy}   "
        f"[bold]Mood:[/bold] {directive.mood}",
        title=outcome.title or "Generated track",
    ))
    console.print(f"[green]✓[/green] Track ready in {outcome.elapsed:.0f}s")
    console.print(f"[green]Audio:[/green] {outcome.media_url}")


async def _run_async(frame: Optional[bytes], context: GenerationContext) -> RunOutcome:
    """Async implementation of run command."""
    render_client = await get_render_client()
    orchestrator = build_orchestrator(render_client, NowPlaying())
    try:
        announced = {"url": None}
        with console.status("[bold green]Starting...") as status:

            def on_event(event: PipelineEvent) -> None:
                status.update(f"[bold green]{event.message}")
                if event.phase is RunPhase.STREAMING and announced["url"] is None:
                    announced["url"] = orchestrator.media_url
                    console.print(f"[green]▶ Streaming:[/green] {orchestrator.media_url}")

            orchestrator.subscribe(on_event)
            return await orchestrator.run(frame, context)
    finally:
        await close_render_client()


@app.command()
def demo(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Generate one track per demo scenario, all three at once."""
    _configure_logging(verbose)
    _validate_or_exit()

    try:
        tracks = asyncio.run(_demo_async())
    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Demo cancelled.[/yellow]")
        raise typer.Exit(code=130)

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Scenario")
    table.add_column("Stress")
    table.add_column("Result")
    table.add_column("Audio / reason")

    for scenario, track in zip(DEMO_SCENARIOS, tracks):
        if track.succeeded:
            result = "[green]ready[/green]"
            detail = track.media_url
        else:
            result = "[red]failed[/red]"
            detail = track.reason or "unknown"
        table.add_row(scenario.title, scenario.stress.label, result, detail)

    console.print(table)
    if not any(t.succeeded for t in tracks):
        raise typer.Exit(code=1)


async def _demo_async():
    """Async implementation of demo command."""
    render_client = await get_render_client()

    def factory(scenario: DemoScenario):
        return build_orchestrator(render_client, NowPlaying(), demo=True, label=scenario.id)

    def on_event(scenario_id: str, event: PipelineEvent) -> None:
        color = _get_phase_color(event.phase)
        console.print(f"  [dim]{scenario_id:>9}[/dim] [{color}]{event.message}[/{color}]")

    coordinator = FanOutCoordinator(factory, listener=on_event)
    try:
        return await coordinator.run(load_taste_snapshot(settings.pipeline.taste_profile_path))
    finally:
        await close_render_client()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port"),
):
    """Start the HTTP API."""
    import uvicorn

    _configure_logging(False)
    uvicorn.run(
        "soundtrack.api.app:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
        reload=False,
    )


def _get_phase_color(phase: RunPhase) -> str:
    """Get Rich color for a run phase.

    Color coding:
    - complete: green
    - failed: red
    - in-flight phases: yellow
    - idle: dim
    """
    if phase is RunPhase.COMPLETE:
        return "green"
    elif phase is RunPhase.FAILED:
        return "red"
    elif phase is RunPhase.IDLE:
        return "dim"
    return "yellow"
