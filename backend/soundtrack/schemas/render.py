"""Render job status models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class RenderState(str, Enum):
    """Normalized render job states."""

    QUEUED = "queued"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RenderState.COMPLETE, RenderState.ERROR)


class RenderStatus(BaseModel):
    """One observation of a render job.

    ``streaming`` and ``complete`` may both carry a playable ``audio_url``;
    the remote service does not guarantee monotonic transitions, so the same
    URL can be reported by several consecutive observations.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    state: RenderState
    audio_url: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def playable(self) -> bool:
        return self.state in (RenderState.STREAMING, RenderState.COMPLETE) and bool(self.audio_url)
