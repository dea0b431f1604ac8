"""
Stop watchdogs.

A watchdog is the third way a recording can stop, next to an explicit stop
and the meeting ending. The orchestrator runs every configured watchdog while
a session is recording; the first one whose ``watch`` returns triggers a
timeout stop with the returned reason. None are enforced by default.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

from meeting_recorder.config.settings import RecordingSettings
from meeting_recorder.core.exceptions import ConfigurationError

# Returns the time of the last captured fragment, or the recording start
ActivityProbe = Callable[[], Optional[datetime]]


class StopWatchdog(ABC):
    """Policy deciding when a recording should stop on its own."""

    @abstractmethod
    async def watch(self, last_activity: ActivityProbe) -> str:
        """Return a reason once the session should stop. Runs until cancelled otherwise."""
        raise NotImplementedError


class MaxDurationWatchdog(StopWatchdog):
    """Stops a recording after a fixed duration."""

    def __init__(self, max_seconds: float):
        if max_seconds <= 0:
            raise ValueError("max_seconds must be positive")
        self.max_seconds = max_seconds

    async def watch(self, last_activity: ActivityProbe) -> str:
        await asyncio.sleep(self.max_seconds)
        return f"maximum duration of {self.max_seconds:g}s reached"


class InactivityWatchdog(StopWatchdog):
    """Stops a recording when no fragment has arrived for ``timeout_seconds``."""

    def __init__(self, timeout_seconds: float, poll_seconds: Optional[float] = None):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = timeout_seconds
        self.poll_seconds = poll_seconds or min(5.0, timeout_seconds / 2)

    async def watch(self, last_activity: ActivityProbe) -> str:
        while True:
            await asyncio.sleep(self.poll_seconds)
            last = last_activity()
            if last is None:
                continue
            idle = (datetime.now() - last).total_seconds()
            if idle >= self.timeout_seconds:
                return f"no audio for {idle:.0f}s"


def watchdogs_from_settings(recording: RecordingSettings) -> List[StopWatchdog]:
    """Build the watchdogs enabled in configuration."""
    watchdogs: List[StopWatchdog] = []
    try:
        if recording.max_duration_seconds is not None:
            watchdogs.append(MaxDurationWatchdog(recording.max_duration_seconds))
        if recording.inactivity_timeout_seconds is not None:
            watchdogs.append(InactivityWatchdog(recording.inactivity_timeout_seconds))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid watchdog setting: {exc}") from exc
    return watchdogs
