"""Exception taxonomy shared by the generation services and the orchestrator.

Provider-specific failures (google-genai, ollama, httpx) are translated into
these types at the adapter/client boundary so the orchestrator only reasons
about four outcomes: a malformed reply, an explicit remote failure, a
transient network blip, or an exhausted poll budget.
"""


class SoundtrackError(Exception):
    """Base class for all pipeline errors."""


class InvalidResponse(SoundtrackError):
    """A remote reply could not be parsed into the expected structure."""

    def __init__(self, message: str = "Invalid response from remote service."):
        super().__init__(message)


class RemoteError(SoundtrackError):
    """The remote service explicitly reported a failure (quota, bad key, ...)."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidImage(SoundtrackError):
    """The captured frame could not be decoded or re-encoded."""

    def __init__(self, message: str = "Failed to encode image."):
        super().__init__(message)


class TransientNetworkError(SoundtrackError):
    """A status fetch failed for reasons unrelated to the job itself.

    Raised by RenderJobClient.fetch_status and absorbed by JobPoller.
    """


class RenderTimeout(SoundtrackError):
    """The poll budget was exhausted before the job reached a terminal state."""

    def __init__(self, attempts: int):
        super().__init__(f"Music generation timed out after {attempts} polls.")
        self.attempts = attempts


class RenderFailed(SoundtrackError):
    """The render job itself reported an ``error`` status."""

    def __init__(self, job_id: str):
        super().__init__("Music generation failed.")
        self.job_id = job_id


class PipelineCancelled(SoundtrackError):
    """Raised internally when a run observes its cancellation token.

    Never surfaced as a failure: a cancelled run returns silently to idle.
    """
