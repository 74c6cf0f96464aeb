"""Run-scoped cancellation token.

A token is created per run and passed through every async boundary of that
run. Once cancelled it stays cancelled; a new run always gets a new token.
"""

import asyncio

from soundtrack.errors import PipelineCancelled


class CancellationToken:
    """One-shot cancellation signal with an interruptible sleep."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` or until cancelled, whichever comes first.

        Returns True if the token was cancelled.
        """
        if self._event.is_set():
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return self._event.is_set()
