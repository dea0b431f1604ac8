from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

import pytest

from meeting_recorder.core.exceptions import (
    ConversionFailedError,
    DeliveryFailedError,
    JoinFailedError,
)
from meeting_recorder.domain.models import Artifact, Phase
from meeting_recorder.meeting_handler.base import AutomationDriver
from meeting_recorder.session.orchestrator import SessionOrchestrator


class FakeDriver(AutomationDriver):
    """In-process driver: fragments and meeting-ended are pushed by the test."""

    def __init__(self, fail: bool = False, gate: Optional[asyncio.Event] = None):
        super().__init__()
        self.fail = fail
        self.gate = gate
        self.joined: List[tuple] = []
        self.stop_calls = 0
        self.release_calls = 0

    async def join(self, target: str, passcode: str = "") -> None:
        self.joined.append((target, passcode))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise JoinFailedError("meeting unreachable", {"target": target})

    async def stop_capture(self) -> None:
        self.stop_calls += 1

    async def release(self) -> None:
        self.release_calls += 1

    def send(self, data: bytes) -> None:
        self.emit_fragment(data)

    def end(self, reason: str = "ended by host") -> None:
        self.emit_meeting_ended(reason)


class DriverFactory:
    """Builds FakeDrivers and remembers them in creation order."""

    def __init__(self):
        self.drivers: List[FakeDriver] = []
        self.fail = False
        self.gate: Optional[asyncio.Event] = None

    def __call__(self) -> FakeDriver:
        driver = FakeDriver(fail=self.fail, gate=self.gate)
        self.drivers.append(driver)
        return driver

    @property
    def last(self) -> FakeDriver:
        return self.drivers[-1]


class FakeTranscoder:
    """Copies the assembled input to the destination and records what it saw."""

    output_format = "mp3"
    content_type = "audio/mpeg"

    def __init__(self):
        self.inputs: List[bytes] = []
        self.fail = False
        self.on_convert = None

    @property
    def calls(self) -> int:
        return len(self.inputs)

    async def convert(self, source: Path, destination: Path) -> Path:
        data = Path(source).read_bytes()
        self.inputs.append(data)
        if self.on_convert is not None:
            self.on_convert()
        if self.fail:
            raise ConversionFailedError("ffmpeg exited with 1", exit_code=1, reason="Invalid data")
        Path(destination).write_bytes(b"MP3" + data)
        return Path(destination)


class FakeDelivery:
    """Keeps delivered artifacts and their bytes."""

    def __init__(self):
        self.enabled = True
        self.fail = False
        self.error: Optional[Exception] = None
        self.delivered: List[Artifact] = []
        self.payloads: List[bytes] = []

    def is_enabled(self) -> bool:
        return self.enabled

    async def deliver(self, artifact: Artifact):
        if self.fail:
            raise DeliveryFailedError("Webhook answered 502", status_code=502)
        if self.error is not None:
            raise self.error
        self.delivered.append(artifact)
        self.payloads.append(artifact.path.read_bytes())


@pytest.fixture
def driver_factory() -> DriverFactory:
    return DriverFactory()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def delivery() -> FakeDelivery:
    return FakeDelivery()


@pytest.fixture
def make_orchestrator(tmp_path, driver_factory, transcoder, delivery):
    def _make(**overrides) -> SessionOrchestrator:
        options = dict(
            work_dir=tmp_path / "work",
            output_dir=tmp_path / "out",
            drain_seconds=0,
        )
        options.update(overrides)
        return SessionOrchestrator(driver_factory, transcoder, delivery, **options)

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> SessionOrchestrator:
    return make_orchestrator()


async def wait_for_phase(orchestrator: SessionOrchestrator, phase: Phase, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while orchestrator.status().phase != phase:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(
                f"phase {orchestrator.status().phase.value} never became {phase.value}"
            )
        await asyncio.sleep(0.01)
