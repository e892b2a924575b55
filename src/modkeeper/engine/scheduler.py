"""Tick-driven task scheduler.

The hosting process owns one TickScheduler and calls :meth:`tick` once per
simulation tick from its main thread. Components receive the scheduler
by injection and register repeating tasks with it; nothing in the library
starts timers of its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from modkeeper.core.logging import get_logger


logger = get_logger(__name__)


@dataclass
class ScheduledTask:
    """A repeating task registered with the scheduler.

    Attributes:
        name: Task name used in logs.
        callback: Zero-argument callable run when due.
        period: Ticks between runs.
        next_run: Tick at which the task next runs.
        cancelled: Cancelled tasks are dropped on the next tick.
        runs: Number of completed runs.
    """

    name: str
    callback: Callable[[], None]
    period: int
    next_run: int
    cancelled: bool = False
    runs: int = 0

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class TickScheduler:
    """Single-threaded scheduler advanced explicitly by the host.

    Attributes:
        current_tick: Number of ticks processed so far.
    """

    current_tick: int = 0
    _tasks: list[ScheduledTask] = field(default_factory=list)

    def schedule_repeating(
        self,
        callback: Callable[[], None],
        period: int,
        *,
        delay: int = 0,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run ``callback`` every ``period`` ticks, first after ``delay`` ticks.

        Raises:
            ValueError: If period < 1 or delay < 0.
        """
        if period < 1:
            raise ValueError(f"period must be at least 1 tick, got {period}")
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        task = ScheduledTask(
            name=name or getattr(callback, "__qualname__", repr(callback)),
            callback=callback,
            period=period,
            next_run=self.current_tick + delay,
        )
        self._tasks.append(task)
        logger.debug("Scheduled task", task=task.name, period=period, delay=delay)
        return task

    def tick(self) -> None:
        """Run every task due at the current tick, then advance the clock.

        A failing task is logged and keeps its schedule; one task's error
        never prevents the others from running.
        """
        self._tasks = [task for task in self._tasks if not task.cancelled]
        for task in list(self._tasks):
            if task.cancelled or task.next_run > self.current_tick:
                continue
            task.next_run = self.current_tick + task.period
            try:
                task.callback()
            except Exception:
                logger.exception("Scheduled task failed", task=task.name, tick=self.current_tick)
            else:
                task.runs += 1
        self.current_tick += 1

    def run_ticks(self, count: int) -> None:
        for _ in range(count):
            self.tick()

    def cancel_all(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    @property
    def tasks(self) -> list[ScheduledTask]:
        return [task for task in self._tasks if not task.cancelled]


__all__ = ["ScheduledTask", "TickScheduler"]
