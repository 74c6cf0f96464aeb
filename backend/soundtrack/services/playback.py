"""Playback boundary.

The orchestrator hands a resolved media URL to a PlaybackHandoff and never
waits on it: whether the player actually manages to play the stream is
reported by the player itself, outside the run's state machine.

NowPlaying is the in-process implementation used by the CLI and the HTTP
API. It does not decode audio; it holds the "now playing" state that a
client-side player renders and controls.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class PlaybackHandoff(ABC):
    """Receives a playable URL and start/stop/pause/resume signals."""

    @abstractmethod
    def start(self, url: str) -> None:
        """Begin playing ``url`` immediately."""

    @abstractmethod
    def stop(self) -> None:
        """Stop and release the current stream, if any."""

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def resume(self) -> None: ...

    @abstractmethod
    def is_playing(self) -> bool: ...

    def toggle(self) -> bool:
        """Pause if playing, resume otherwise. Returns the new playing state."""
        if self.is_playing():
            self.pause()
        else:
            self.resume()
        return self.is_playing()


class NowPlaying(PlaybackHandoff):
    """Holds the currently announced stream for a client-side player."""

    def __init__(self) -> None:
        self.url: Optional[str] = None
        self._playing = False

    def start(self, url: str) -> None:
        logger.info(f"Playback start: {url}")
        self.url = url
        self._playing = True

    def stop(self) -> None:
        if self.url is not None:
            logger.info(f"Playback stop: {self.url}")
        self.url = None
        self._playing = False

    def pause(self) -> None:
        if self.url is not None:
            self._playing = False

    def resume(self) -> None:
        if self.url is not None:
            self._playing = True

    def is_playing(self) -> bool:
        return self._playing
