"""Bounded polling of a render job.

JobPoller turns a job id into an async stream of status transitions:
- sleep, then fetch, once per attempt, for at most ``max_attempts`` attempts
- a fetch that fails transiently is logged and costs only its own attempt
- consecutive observations that carry the same state and metadata are
  collapsed, so a repeated ``streaming`` with the same URL is emitted once
- ``streaming`` does not end the stream; ``complete`` ends it normally,
  ``error`` ends it with RenderFailed
- an exhausted budget ends it with RenderTimeout
- a cancelled token ends it silently, at the top of an attempt, during the
  sleep, or right after a fetch returns

Usage:
    poller = JobPoller(client, interval=5.0, max_attempts=60)
    async for status in poller.poll(job_id, token):
        ...
"""

import logging
import time
from typing import AsyncIterator, Optional

from soundtrack.cancellation import CancellationToken
from soundtrack.errors import InvalidResponse, RenderFailed, RenderTimeout, TransientNetworkError
from soundtrack.schemas.render import RenderState, RenderStatus
from soundtrack.services.render_client import RenderJobClient

logger = logging.getLogger(__name__)


def _fingerprint(status: RenderStatus) -> tuple:
    return (status.state, status.audio_url, status.title, status.image_url)


class JobPoller:
    """Fixed-interval, bounded-attempt poller over RenderJobClient.fetch_status."""

    def __init__(
        self,
        client: RenderJobClient,
        *,
        interval: float = 5.0,
        max_attempts: int = 60,
        label: str = "",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._client = client
        self._interval = interval
        self._max_attempts = max_attempts
        self._label = label
        self.attempts = 0

    async def poll(
        self, job_id: str, token: Optional[CancellationToken] = None
    ) -> AsyncIterator[RenderStatus]:
        """Yield each distinct status of ``job_id`` until it is terminal.

        Raises:
            RenderFailed: The job reported ``error`` (after it is yielded).
            RenderTimeout: ``max_attempts`` polls without a terminal state.
        """
        token = token or CancellationToken()
        prefix = f"[{self._label}] " if self._label else ""
        started = time.monotonic()
        last: Optional[tuple] = None
        self.attempts = 0

        for attempt in range(1, self._max_attempts + 1):
            if token.cancelled:
                return
            if await token.sleep(self._interval):
                logger.info(f"{prefix}Polling of {job_id} cancelled during wait")
                return

            self.attempts = attempt
            try:
                status = await self._client.fetch_status(job_id)
            except (TransientNetworkError, InvalidResponse) as e:
                # The job keeps rendering even if one poll fails
                logger.warning(
                    f"{prefix}Poll #{attempt} for {job_id} failed "
                    f"({type(e).__name__}: {e}), continuing"
                )
                continue

            if token.cancelled:
                return

            logger.info(
                f"{prefix}Poll #{attempt}: status={status.state.value} "
                f"audio_url={'yes' if status.audio_url else 'no'} "
                f"elapsed={time.monotonic() - started:.0f}s"
            )

            fingerprint = _fingerprint(status)
            if fingerprint != last:
                last = fingerprint
                yield status
                if token.cancelled:
                    return

            if status.state.is_terminal:
                if status.state is RenderState.ERROR:
                    raise RenderFailed(job_id)
                return

        logger.warning(f"{prefix}Timed out after {self._max_attempts} polls of {job_id}")
        raise RenderTimeout(self._max_attempts)
