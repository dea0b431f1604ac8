"""
Data models for the recording session lifecycle.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from meeting_recorder.meeting_handler.base import AutomationDriver
    from meeting_recorder.recording.chunk_store import ChunkStore


class Phase(str, Enum):
    """Lifecycle phase of the single recording session."""
    IDLE = "idle"
    JOINING = "joining"
    RECORDING = "recording"
    STOPPING = "stopping"
    CONVERTING = "converting"
    DELIVERING = "delivering"
    CLEANING_UP = "cleaning_up"
    FAILED = "failed"


# Phases in which captured fragments are still accepted
CAPTURE_PHASES = frozenset({Phase.JOINING, Phase.RECORDING, Phase.STOPPING})


class StopTrigger(str, Enum):
    """What asked the session to stop."""
    MANUAL = "manual"
    MEETING_ENDED = "meeting_ended"
    TIMEOUT = "timeout"


class StopResult(str, Enum):
    """Result of a stop request against an active session."""
    ACCEPTED = "accepted"
    DEFERRED = "deferred"
    ALREADY_STOPPING = "already_stopping"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Fragment:
    """
    One captured unit of audio, in memory or spilled to disk.

    ``received_at`` is only used for naming; ``sequence`` is the authoritative
    assembly order.
    """
    sequence: int
    received_at: datetime
    size: int
    data: Optional[bytes] = None
    path: Optional[Path] = None

    @property
    def spilled(self) -> bool:
        return self.path is not None

    def read(self) -> bytes:
        """Return the fragment bytes, loading them from the spill file if needed."""
        if self.data is not None:
            return self.data
        if self.path is None:
            return b""
        return self.path.read_bytes()


@dataclass(frozen=True)
class Artifact:
    """Transcoded audio plus attribution metadata, ready for delivery."""
    path: Path
    requester_label: str
    meeting_target: str
    size_bytes: int
    created_at: datetime
    content_type: str = "audio/mpeg"

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class SessionOutcome:
    """How the most recent session ended. Survives the session reset."""
    generation: int
    meeting_target: str
    requester_label: str
    succeeded: bool
    finished_at: datetime
    error_kind: Optional[str] = None
    error: Optional[str] = None
    stop_trigger: Optional[StopTrigger] = None
    delivered: Optional[bool] = None
    delivery_error: Optional[str] = None
    artifact_size: Optional[int] = None
    fragment_count: int = 0

    def to_dict(self) -> dict:
        return {
            "generation": self.generation,
            "meeting_target": self.meeting_target,
            "requester_label": self.requester_label,
            "succeeded": self.succeeded,
            "finished_at": self.finished_at.isoformat(),
            "error_kind": self.error_kind,
            "error": self.error,
            "stop_trigger": self.stop_trigger.value if self.stop_trigger else None,
            "delivered": self.delivered,
            "delivery_error": self.delivery_error,
            "artifact_size": self.artifact_size,
            "fragment_count": self.fragment_count,
        }


@dataclass(frozen=True)
class SessionStatus:
    """Point-in-time view of the orchestrator."""
    phase: Phase
    generation: int
    meeting_target: Optional[str] = None
    requester_label: Optional[str] = None
    started_at: Optional[datetime] = None
    fragment_count: int = 0
    bytes_received: int = 0
    stop_trigger: Optional[StopTrigger] = None
    last_outcome: Optional[SessionOutcome] = None

    @property
    def is_idle(self) -> bool:
        return self.phase == Phase.IDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "generation": self.generation,
            "meeting_target": self.meeting_target,
            "requester_label": self.requester_label,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "fragment_count": self.fragment_count,
            "bytes_received": self.bytes_received,
            "stop_trigger": self.stop_trigger.value if self.stop_trigger else None,
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
        }


@dataclass
class Session:
    """
    The single in-flight unit of join, capture and delivery work.

    Only the orchestrator mutates a Session, and only while holding its lock.
    """
    generation: int
    meeting_target: str
    requester_label: str
    started_at: datetime
    store: "ChunkStore"
    passcode: str = ""
    phase: Phase = Phase.JOINING
    driver: Optional["AutomationDriver"] = None
    stop_trigger: Optional[StopTrigger] = None
    pending_stop: Optional[StopTrigger] = None
    last_fragment_at: Optional[datetime] = None
    artifact_paths: List[Path] = field(default_factory=list)
    artifact: Optional[Artifact] = None
    watchdog_tasks: List[asyncio.Task] = field(default_factory=list)
    cleanup_started: bool = False

    # Outcome bookkeeping, folded into SessionOutcome at cleanup
    error: Optional[BaseException] = None
    delivered: Optional[bool] = None
    delivery_error: Optional[str] = None
    fragment_count: int = 0
