"""
Background task supervision.

Request handlers never await the long-running parts of a session. They hand
coroutines to a TaskSupervisor, which keeps a reference to every task,
captures and logs its errors, and runs the failure and exit callbacks on
success, error and cancellation alike.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Coroutine, Optional, Set

from meeting_recorder.core.logging import get_logger

logger = get_logger("supervisor")

FailureHandler = Callable[[BaseException], Awaitable[None]]
ExitHandler = Callable[[], Awaitable[None]]


class TaskSupervisor:
    """Owns detached asyncio tasks and their error/exit callbacks."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def spawn(
        self,
        coro: Coroutine,
        *,
        name: str,
        on_failure: Optional[FailureHandler] = None,
        on_exit: Optional[ExitHandler] = None,
    ) -> asyncio.Task:
        """
        Start ``coro`` as a supervised task.

        Args:
            coro: Work to run
            name: Task name used in logs
            on_failure: Awaited with the exception when the work raises or is cancelled
            on_exit: Awaited after the work ends, whatever the outcome

        Returns:
            The created task
        """
        task = asyncio.get_running_loop().create_task(
            self._guard(coro, name, on_failure, on_exit), name=name
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(
        self,
        coro: Coroutine,
        name: str,
        on_failure: Optional[FailureHandler],
        on_exit: Optional[ExitHandler],
    ) -> None:
        try:
            await coro
        except asyncio.CancelledError as exc:
            logger.info(f"Task '{name}' cancelled")
            await self._call_failure(name, on_failure, exc)
            raise
        except Exception as exc:
            logger.error(f"Task '{name}' failed: {exc}", exc_info=True)
            await self._call_failure(name, on_failure, exc)
        finally:
            if on_exit is not None:
                try:
                    await on_exit()
                except Exception:
                    logger.exception(f"Exit handler of task '{name}' failed")

    @staticmethod
    async def _call_failure(
        name: str, on_failure: Optional[FailureHandler], exc: BaseException
    ) -> None:
        if on_failure is None:
            return
        try:
            await on_failure(exc)
        except Exception:
            logger.exception(f"Failure handler of task '{name}' failed")

    async def cancel_all(self, timeout: Optional[float] = None) -> None:
        """Cancel every running task and wait for their handlers to finish."""
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current and not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)
