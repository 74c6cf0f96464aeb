"""State machine constants and transition logic for the pipeline orchestrator.

Two independent orderings live here:
- RunPhase is the real control state of a run.
- ProgressStep is cosmetic, used only for progress display. It only ever
  moves forward within a run and is reset to IDLE on cancel or a new run.
"""

from enum import Enum, IntEnum


class RunPhase(str, Enum):
    """Control state of one orchestrated run."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    RENDERING = "rendering"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"


class ProgressStep(IntEnum):
    """Ordered progress steps shown to the user."""

    IDLE = 0
    CAPTURING = 1
    ANALYZING = 2
    FUSING = 3
    REASONING = 4
    COMPOSING = 5
    PLAYING = 6


# Allowed forward transitions within one run. Any phase may go back to IDLE
# through cancel().
PHASE_TRANSITIONS = {
    RunPhase.IDLE: {RunPhase.ANALYZING},
    RunPhase.ANALYZING: {RunPhase.RENDERING, RunPhase.FAILED},
    RunPhase.RENDERING: {RunPhase.STREAMING, RunPhase.COMPLETE, RunPhase.FAILED},
    RunPhase.STREAMING: {RunPhase.STREAMING, RunPhase.COMPLETE, RunPhase.FAILED},
    RunPhase.COMPLETE: set(),
    RunPhase.FAILED: set(),
}

IN_FLIGHT_PHASES = {RunPhase.ANALYZING, RunPhase.RENDERING, RunPhase.STREAMING}


def can_transition(current: RunPhase, target: RunPhase) -> bool:
    """Check whether ``current -> target`` is a legal transition.

    Args:
        current: Phase the run is in
        target: Requested next phase

    Returns:
        True if allowed, False otherwise

    Examples:
        >>> can_transition(RunPhase.RENDERING, RunPhase.STREAMING)
        True
        >>> can_transition(RunPhase.COMPLETE, RunPhase.STREAMING)
        False
    """
    if target is RunPhase.IDLE:
        return True
    return target in PHASE_TRANSITIONS[current]


def advance_step(current: ProgressStep, target: ProgressStep) -> ProgressStep:
    """Return ``target`` if it moves progress forward, else ``current``."""
    return target if target > current else current
