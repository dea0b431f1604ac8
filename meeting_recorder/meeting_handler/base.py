"""
Automation driver contract.

A driver owns one controlled browser session: it joins the meeting, streams
captured audio fragments back through ``on_fragment`` and reports the end of
the meeting through ``on_meeting_ended``. The orchestrator creates one driver
per session and releases it during cleanup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

FragmentCallback = Callable[[bytes], None]
MeetingEndedCallback = Callable[[str], None]


class AutomationDriver(ABC):
    """Joins a meeting and streams its mixed audio."""

    def __init__(self) -> None:
        self._fragment_callback: Optional[FragmentCallback] = None
        self._meeting_ended_callback: Optional[MeetingEndedCallback] = None

    def on_fragment(self, callback: FragmentCallback) -> None:
        """Register the receiver for captured fragments (raw bytes). Callable from any thread."""
        self._fragment_callback = callback

    def on_meeting_ended(self, callback: MeetingEndedCallback) -> None:
        """
        Register the receiver for the meeting-ended signal (with a reason).

        The orchestrator's receiver may be called from any thread; calls made
        off the event loop are handed over to it.
        """
        self._meeting_ended_callback = callback

    def emit_fragment(self, data: bytes) -> None:
        if self._fragment_callback is not None and data:
            self._fragment_callback(data)

    def emit_meeting_ended(self, reason: str) -> None:
        if self._meeting_ended_callback is not None:
            self._meeting_ended_callback(reason)

    @abstractmethod
    async def join(self, target: str, passcode: str = "") -> None:
        """
        Enter the meeting and start capture.

        Raises:
            JoinFailedError: if the meeting cannot be reached or entered
        """
        raise NotImplementedError

    @abstractmethod
    async def stop_capture(self) -> None:
        """Stop producing fragments. Safe to call more than once."""
        raise NotImplementedError

    @abstractmethod
    async def release(self) -> None:
        """Free every browser resource. Best effort, never raises."""
        raise NotImplementedError
