from __future__ import annotations

import asyncio

import pytest

from meeting_recorder.session.supervisor import TaskSupervisor


@pytest.mark.asyncio
async def test_failure_and_exit_handlers_run_on_error():
    supervisor = TaskSupervisor()
    events = []

    async def boom():
        raise ValueError("bad")

    async def on_failure(exc):
        events.append(("failure", type(exc).__name__))

    async def on_exit():
        events.append(("exit", None))

    task = supervisor.spawn(boom(), name="boom", on_failure=on_failure, on_exit=on_exit)
    await task

    assert events == [("failure", "ValueError"), ("exit", None)]
    assert supervisor.active_count == 0


@pytest.mark.asyncio
async def test_exit_handler_runs_on_success_only():
    supervisor = TaskSupervisor()
    events = []

    async def work():
        events.append("work")

    async def on_failure(exc):
        events.append("failure")

    async def on_exit():
        events.append("exit")

    await supervisor.spawn(work(), name="work", on_failure=on_failure, on_exit=on_exit)
    assert events == ["work", "exit"]


@pytest.mark.asyncio
async def test_cancel_all_runs_handlers_for_cancelled_tasks():
    supervisor = TaskSupervisor()
    started = asyncio.Event()
    events = []

    async def forever():
        started.set()
        await asyncio.sleep(3600)

    async def on_failure(exc):
        events.append(type(exc).__name__)

    async def on_exit():
        events.append("exit")

    supervisor.spawn(forever(), name="forever", on_failure=on_failure, on_exit=on_exit)
    await started.wait()
    assert supervisor.active_count == 1

    await supervisor.cancel_all(timeout=1)

    assert events == ["CancelledError", "exit"]
    assert supervisor.active_count == 0


@pytest.mark.asyncio
async def test_handler_errors_do_not_escape():
    supervisor = TaskSupervisor()

    async def boom():
        raise RuntimeError("first")

    async def bad_handler(exc):
        raise RuntimeError("handler")

    async def bad_exit():
        raise RuntimeError("exit")

    task = supervisor.spawn(boom(), name="boom", on_failure=bad_handler, on_exit=bad_exit)
    await task
    assert task.exception() is None
