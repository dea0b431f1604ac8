"""
Session Orchestrator

Owns the single recording session and drives it through
join -> record -> stop -> convert -> deliver -> clean up.

Every mutation of the session happens under one lock that is never held
across an await. Background work commits its results only if the session
generation it started with is still current, so callbacks and tasks from a
superseded session can never touch its successor. Every exit path, including
failures and cancellation, ends in exactly one cleanup.
"""

from __future__ import annotations

import asyncio
import shutil
from datetime import datetime
from functools import partial
from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from meeting_recorder.core.exceptions import (
    DeliveryFailedError,
    EmptyCaptureError,
    InvalidJoinRequest,
    MeetingRecorderException,
    NoActiveSessionError,
    SessionConflictError,
)
from meeting_recorder.core.logging import get_logger
from meeting_recorder.domain.models import (
    CAPTURE_PHASES,
    Artifact,
    Phase,
    Session,
    SessionOutcome,
    SessionStatus,
    StopResult,
    StopTrigger,
)
from meeting_recorder.meeting_handler.base import AutomationDriver
from meeting_recorder.recording.chunk_store import ChunkStore, assemble
from .supervisor import TaskSupervisor
from .watchdog import StopWatchdog

if TYPE_CHECKING:
    from meeting_recorder.config.settings import Settings
    from meeting_recorder.delivery.webhook import WebhookDelivery
    from meeting_recorder.recording.transcoder import FfmpegTranscoder

logger = get_logger("session_orchestrator")

DriverFactory = Callable[[], AutomationDriver]


class SessionOrchestrator:
    """
    Single-slot state machine for recording sessions.

    Phases: idle -> joining -> recording -> stopping -> converting ->
    delivering -> cleaning_up -> idle, with ``failed`` reachable from any
    active phase and always followed by cleanup.
    """

    def __init__(
        self,
        driver_factory: DriverFactory,
        transcoder: "FfmpegTranscoder",
        delivery: Optional["WebhookDelivery"] = None,
        *,
        work_dir: Path = Path("recordings/work"),
        output_dir: Path = Path("recordings"),
        keep_artifacts: bool = False,
        drain_seconds: float = 3.0,
        memory_limit_bytes: int = 32 * 1024 * 1024,
        watchdogs: Optional[Sequence[StopWatchdog]] = None,
        supervisor: Optional[TaskSupervisor] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            driver_factory: Builds a fresh automation driver for each session
            transcoder: Converts the assembled capture (``convert(source, destination)``)
            delivery: Forwards the artifact; None or disabled skips delivery
            work_dir: Spool and intermediate files
            output_dir: Destination for kept artifacts
            keep_artifacts: Keep the final audio after cleanup
            drain_seconds: Grace period after stop-capture for in-flight fragments
            memory_limit_bytes: In-memory fragment bytes before spilling to disk
            watchdogs: Policies that may stop a recording on their own
            supervisor: Owner of background tasks
        """
        self.driver_factory = driver_factory
        self.transcoder = transcoder
        self.delivery = delivery
        self.work_dir = Path(work_dir)
        self.output_dir = Path(output_dir)
        self.keep_artifacts = keep_artifacts
        self.drain_seconds = drain_seconds
        self.memory_limit_bytes = memory_limit_bytes
        self.watchdogs: List[StopWatchdog] = list(watchdogs or [])
        self.supervisor = supervisor or TaskSupervisor()

        self._lock = Lock()
        self._generation = 0
        self._session: Optional[Session] = None
        self._last_outcome: Optional[SessionOutcome] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SessionOrchestrator":
        """Wire the Zoom driver, ffmpeg transcoder and webhook delivery from configuration."""
        from meeting_recorder.delivery.webhook import WebhookDelivery
        from meeting_recorder.meeting_handler.zoom_driver import ZoomWebDriver
        from meeting_recorder.recording.transcoder import FfmpegTranscoder
        from .watchdog import watchdogs_from_settings

        recording = settings.recording
        return cls(
            driver_factory=partial(ZoomWebDriver, settings.bot),
            transcoder=FfmpegTranscoder.from_settings(recording),
            delivery=WebhookDelivery.from_settings(settings.delivery),
            work_dir=recording.work_path,
            output_dir=recording.output_path,
            keep_artifacts=recording.keep_artifacts,
            drain_seconds=recording.drain_seconds,
            memory_limit_bytes=recording.memory_limit_bytes,
            watchdogs=watchdogs_from_settings(recording),
        )

    # ------------------------------------------------------------------
    # Request surface
    # ------------------------------------------------------------------

    async def join(self, meeting_target: str, passcode: str = "", requester_label: str = "") -> int:
        """
        Accept a join request and start the join sequence in the background.

        Returns:
            Generation of the new session

        Raises:
            InvalidJoinRequest: empty meeting target
            SessionConflictError: another session has not finished cleanup
        """
        target = (meeting_target or "").strip()
        if not target:
            raise InvalidJoinRequest("meeting target is required")

        self._loop = asyncio.get_running_loop()

        with self._lock:
            current = self._session
            if current is not None:
                raise SessionConflictError(
                    f"Bot already busy ({current.phase.value}). Stop first.",
                    {"phase": current.phase.value, "meeting_target": current.meeting_target},
                )

            self._generation += 1
            generation = self._generation
            self._session = Session(
                generation=generation,
                meeting_target=target,
                requester_label=(requester_label or "").strip(),
                passcode=passcode or "",
                started_at=datetime.now(),
                store=ChunkStore(self.work_dir, self.memory_limit_bytes),
            )
            self._idle.clear()
            self.supervisor.spawn(
                self._join_sequence(generation),
                name=f"join-{generation}",
                on_failure=partial(self._abort, generation),
            )

        logger.info(f"Join accepted (session {generation}): target='{target}', label='{requester_label}'")
        return generation

    async def stop(self, trigger: StopTrigger = StopTrigger.MANUAL) -> StopResult:
        """
        Ask the active session to stop. Repeated calls are no-ops.

        Raises:
            NoActiveSessionError: nothing is in flight
        """
        with self._lock:
            session = self._session
            if session is None:
                raise NoActiveSessionError("No active recording")
            result = self._request_stop_locked(session, trigger, "requested")

        logger.info(f"Stop request ({trigger.value}) for session {session.generation}: {result.value}")
        return result

    def status(self) -> SessionStatus:
        """Snapshot of the current phase and the last finished session."""
        with self._lock:
            session = self._session
            if session is None:
                return SessionStatus(
                    phase=Phase.IDLE,
                    generation=self._generation,
                    last_outcome=self._last_outcome,
                )
            return SessionStatus(
                phase=session.phase,
                generation=session.generation,
                meeting_target=session.meeting_target,
                requester_label=session.requester_label,
                started_at=session.started_at,
                fragment_count=session.fragment_count,
                bytes_received=session.store.total_bytes,
                stop_trigger=session.stop_trigger,
                last_outcome=self._last_outcome,
            )

    async def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for the slot to be free. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def shutdown(self, timeout: Optional[float] = 30.0) -> None:
        """Cancel background work and clean up whatever session is left."""
        logger.info("Shutting down session orchestrator...")
        await self.supervisor.cancel_all(timeout=timeout)

        with self._lock:
            generation = self._session.generation if self._session else None
        if generation is not None:
            await self._record_failure(generation, asyncio.CancelledError("service shutting down"))
            await self._cleanup(generation)

    # ------------------------------------------------------------------
    # Driver callbacks
    # ------------------------------------------------------------------

    def _on_fragment(self, generation: int, data: bytes) -> None:
        with self._lock:
            session = self._current(generation)
            if session is None:
                logger.debug(f"Dropping fragment from superseded session {generation}")
                return
            if session.phase not in CAPTURE_PHASES:
                logger.debug(
                    f"Dropping late fragment ({len(data)} bytes) in phase {session.phase.value}"
                )
                return
            session.store.append(data)
            session.fragment_count += 1
            session.last_fragment_at = datetime.now()

    def _on_meeting_ended(self, generation: int, reason: str = "") -> None:
        if not self._on_loop_thread():
            # Stop transitions spawn tasks, so they run on the loop thread
            if self._loop is not None and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._on_meeting_ended, generation, reason)
            return
        result = self._request_stop(generation, StopTrigger.MEETING_ENDED, reason)
        logger.info(f"Meeting-ended signal ({reason or 'no reason'}): {result.value}")

    # ------------------------------------------------------------------
    # Background sequences
    # ------------------------------------------------------------------

    async def _join_sequence(self, generation: int) -> None:
        driver = self.driver_factory()
        driver.on_fragment(partial(self._on_fragment, generation))
        driver.on_meeting_ended(partial(self._on_meeting_ended, generation))

        with self._lock:
            session = self._current(generation)
            if session is not None:
                session.driver = driver
                target, passcode = session.meeting_target, session.passcode
        if session is None:
            await self._release_driver(driver)
            return

        logger.info(f"Session {generation}: joining {target}...")
        await driver.join(target, passcode)

        with self._lock:
            session = self._current(generation)
            if session is None or session.phase != Phase.JOINING:
                return
            session.phase = Phase.RECORDING
            self._start_watchdogs_locked(session)
            pending = session.pending_stop
            if pending is not None:
                self._begin_stop_locked(session, pending)

        logger.info(f"Session {generation}: joined and recording")
        if pending is not None:
            logger.info(f"Session {generation}: honouring stop requested while joining ({pending.value})")

    async def _finish_sequence(self, generation: int) -> None:
        with self._lock:
            session = self._current(generation)
            if session is None:
                return
            driver = session.driver

        if driver is not None:
            try:
                await driver.stop_capture()
            except Exception as exc:
                logger.warning(f"Error stopping capture: {exc}")

        # Give in-flight fragments time to arrive; later ones are dropped
        if self.drain_seconds > 0:
            await asyncio.sleep(self.drain_seconds)

        with self._lock:
            session = self._current(generation)
            if session is None:
                return
            session.phase = Phase.CONVERTING
            fragments = session.store.drain_all()
            target, label = session.meeting_target, session.requester_label

            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            extension = getattr(self.transcoder, "output_format", "mp3")
            raw_path = self.work_dir / f"meeting-{generation}-{stamp}.webm"
            output_path = self.work_dir / f"meeting-{generation}-{stamp}.{extension}"
            if fragments:
                session.artifact_paths.extend([raw_path, output_path])

        if not fragments:
            raise EmptyCaptureError()

        logger.info(f"Session {generation}: assembling {len(fragments)} fragments")
        size = await asyncio.to_thread(assemble, fragments, raw_path)
        logger.info(f"Session {generation}: converting {size} bytes")
        produced = await self.transcoder.convert(raw_path, output_path)

        artifact = Artifact(
            path=Path(produced),
            requester_label=label,
            meeting_target=target,
            size_bytes=Path(produced).stat().st_size,
            created_at=datetime.now(),
            content_type=getattr(self.transcoder, "content_type", "audio/mpeg"),
        )

        with self._lock:
            session = self._current(generation)
            if session is None:
                return
            session.artifact = artifact
            if produced != output_path:
                session.artifact_paths.append(artifact.path)
            session.phase = Phase.DELIVERING

        delivered, delivery_error = await self._deliver(artifact)

        with self._lock:
            session = self._current(generation)
            if session is not None:
                session.delivered = delivered
                session.delivery_error = delivery_error

    async def _deliver(self, artifact: Artifact):
        if self.delivery is None or not self.delivery.is_enabled():
            logger.warning("Delivery not configured - skipping upload")
            return None, None
        try:
            await self.delivery.deliver(artifact)
        except DeliveryFailedError as exc:
            logger.error(f"Delivery failed: {exc}")
            return False, str(exc)
        except Exception as exc:
            logger.exception(f"Delivery failed unexpectedly: {exc}")
            return False, str(exc)
        logger.info(f"✅ Recording delivered for '{artifact.requester_label or 'Unknown'}'")
        return True, None

    async def _run_watchdog(self, generation: int, watchdog: StopWatchdog) -> None:
        reason = await watchdog.watch(partial(self._last_activity, generation))
        result = self._request_stop(generation, StopTrigger.TIMEOUT, reason)
        logger.info(f"Watchdog fired for session {generation} ({reason}): {result.value}")

    # ------------------------------------------------------------------
    # Transitions (callers hold the lock where noted)
    # ------------------------------------------------------------------

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _current(self, generation: int) -> Optional[Session]:
        session = self._session
        if session is None or session.generation != generation:
            return None
        return session

    def _last_activity(self, generation: int) -> Optional[datetime]:
        with self._lock:
            session = self._current(generation)
            if session is None:
                return None
            return session.last_fragment_at or session.started_at

    def _request_stop(self, generation: int, trigger: StopTrigger, reason: str = "") -> StopResult:
        with self._lock:
            session = self._current(generation)
            if session is None:
                return StopResult.IGNORED
            return self._request_stop_locked(session, trigger, reason)

    def _request_stop_locked(self, session: Session, trigger: StopTrigger, reason: str) -> StopResult:
        if session.phase == Phase.JOINING:
            if session.pending_stop is None:
                session.pending_stop = trigger
            return StopResult.DEFERRED
        if session.phase == Phase.RECORDING:
            logger.info(f"Session {session.generation}: stopping ({trigger.value}: {reason})")
            self._begin_stop_locked(session, trigger)
            return StopResult.ACCEPTED
        return StopResult.ALREADY_STOPPING

    def _begin_stop_locked(self, session: Session, trigger: StopTrigger) -> None:
        generation = session.generation
        session.phase = Phase.STOPPING
        session.stop_trigger = trigger
        self.supervisor.spawn(
            self._finish_sequence(generation),
            name=f"finish-{generation}",
            on_failure=partial(self._record_failure, generation),
            on_exit=partial(self._cleanup, generation),
        )

    def _start_watchdogs_locked(self, session: Session) -> None:
        for index, watchdog in enumerate(self.watchdogs):
            task = self.supervisor.spawn(
                self._run_watchdog(session.generation, watchdog),
                name=f"watchdog-{session.generation}-{index}",
            )
            session.watchdog_tasks.append(task)

    # ------------------------------------------------------------------
    # Failure and cleanup
    # ------------------------------------------------------------------

    async def _record_failure(self, generation: int, exc: BaseException) -> None:
        with self._lock:
            session = self._current(generation)
            if session is None or session.cleanup_started:
                return
            if session.error is None:
                session.error = exc
            phase = session.phase
            session.phase = Phase.FAILED
        logger.error(f"Session {generation} failed during {phase.value}: {exc!r}")

    async def _abort(self, generation: int, exc: BaseException) -> None:
        await self._record_failure(generation, exc)
        await self._cleanup(generation)

    async def _cleanup(self, generation: int) -> None:
        """Release everything the session owns and free the slot. Runs once, never raises."""
        with self._lock:
            session = self._current(generation)
            if session is None or session.cleanup_started:
                return
            session.cleanup_started = True
            session.phase = Phase.CLEANING_UP
            watchdog_tasks = list(session.watchdog_tasks)
            driver = session.driver

        logger.info(f"Session {generation}: cleaning up")
        try:
            current = asyncio.current_task()
            for task in watchdog_tasks:
                if task is not current and not task.done():
                    task.cancel()

            if driver is not None:
                await self._release_driver(driver)

            try:
                session.store.discard()
            except OSError as exc:
                logger.warning(f"Error discarding chunk store: {exc}")

            self._dispose_artifacts(session)
        except Exception:
            logger.exception(f"Session {generation}: unexpected error during cleanup")
        finally:
            outcome = self._build_outcome(session)
            with self._lock:
                self._last_outcome = outcome
                self._session = None
                self._generation += 1
                self._idle.set()
            self._log_outcome(outcome)

    async def _release_driver(self, driver: AutomationDriver) -> None:
        try:
            await driver.release()
        except Exception as exc:
            logger.warning(f"Error releasing automation driver: {exc}")

    def _dispose_artifacts(self, session: Session) -> None:
        final = session.artifact.path if session.artifact else None
        for path in session.artifact_paths:
            try:
                if self.keep_artifacts and path == final and path.exists():
                    self.output_dir.mkdir(parents=True, exist_ok=True)
                    kept = shutil.move(str(path), str(self.output_dir / path.name))
                    logger.info(f"Recording kept at {kept}")
                else:
                    path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning(f"Could not remove {path}: {exc}")

    @staticmethod
    def _build_outcome(session: Session) -> SessionOutcome:
        error = session.error
        if error is None:
            error_kind = None
        elif isinstance(error, asyncio.CancelledError):
            error_kind = "cancelled"
        elif isinstance(error, MeetingRecorderException):
            error_kind = error.kind
        else:
            error_kind = "internal_error"

        return SessionOutcome(
            generation=session.generation,
            meeting_target=session.meeting_target,
            requester_label=session.requester_label,
            succeeded=error is None and session.artifact is not None,
            finished_at=datetime.now(),
            error_kind=error_kind,
            error=str(error) if error is not None else None,
            stop_trigger=session.stop_trigger,
            delivered=session.delivered,
            delivery_error=session.delivery_error,
            artifact_size=session.artifact.size_bytes if session.artifact else None,
            fragment_count=session.fragment_count,
        )

    @staticmethod
    def _log_outcome(outcome: SessionOutcome) -> None:
        if outcome.succeeded:
            delivery = {True: "delivered", False: "delivery failed", None: "not delivered"}[outcome.delivered]
            logger.info(
                f"✅ Session {outcome.generation} complete: {outcome.fragment_count} fragments, "
                f"{outcome.artifact_size} bytes, {delivery}"
            )
        else:
            logger.warning(
                f"Session {outcome.generation} ended without a recording "
                f"({outcome.error_kind}: {outcome.error})"
            )
