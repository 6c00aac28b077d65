# Periodic task registry for Action Hub.
#
# Tasks are polled through tick(now); nothing here assumes it is driven by a
# UI redraw. Inside Blender a single bpy.app.timers function drives tick().

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

try:
    import bpy  # for timers when running inside Blender
except Exception:
    bpy = None

logger = logging.getLogger(__name__)

TIMER_INTERVAL_S = 0.25


@dataclass
class PeriodicTask:
    """
    A callback run every `interval_s` seconds. The callback receives the tick
    time and returns False to stop itself.
    """
    name: str
    interval_s: float
    callback: Callable[[float], Optional[bool]]
    next_due: float = field(default=0.0, compare=False)
    last_run: Optional[float] = field(default=None, compare=False)


class TaskScheduler:
    """Registry of cooperative periodic tasks; single-threaded, polled."""

    def __init__(self) -> None:
        self._tasks: Dict[str, PeriodicTask] = {}
        self._timer_fn: Optional[Callable[[], Optional[float]]] = None

    def start(self, task: PeriodicTask, now: Optional[float] = None) -> None:
        """Register a task; it first runs one interval from `now`. Replaces a task with the same name."""
        now = time.monotonic() if now is None else now
        task.next_due = now + max(0.0, task.interval_s)
        task.last_run = None
        if task.name in self._tasks:
            logger.debug(f"Replacing periodic task '{task.name}'")
        self._tasks[task.name] = task

    def stop(self, name: str) -> bool:
        return self._tasks.pop(name, None) is not None

    def is_running(self, name: str) -> bool:
        return name in self._tasks

    def task_names(self) -> List[str]:
        return list(self._tasks)

    def tick(self, now: Optional[float] = None) -> int:
        """
        Run every task that is due at `now`, each at most once. Calling tick
        again with the same `now` runs nothing new. Returns the number of
        callbacks invoked.
        """
        now = time.monotonic() if now is None else now
        ran = 0
        for task in list(self._tasks.values()):
            if task.last_run is not None and task.last_run >= now:
                continue
            if now < task.next_due:
                continue
            task.last_run = now
            task.next_due = now + max(0.0, task.interval_s)
            ran += 1
            try:
                keep = task.callback(now)
            except Exception as ex:
                logger.error(f"Periodic task '{task.name}' failed and was stopped: {ex}")
                self._tasks.pop(task.name, None)
                continue
            if keep is False:
                self._tasks.pop(task.name, None)
                logger.debug(f"Periodic task '{task.name}' finished")
        return ran

    # -------- Blender integration --------
    def install_blender_timer(self, interval_s: float = TIMER_INTERVAL_S) -> bool:
        """Drive tick() from bpy.app.timers. Returns False outside Blender."""
        if not (bpy and hasattr(bpy, "app") and hasattr(bpy.app, "timers")):
            return False
        if self._timer_fn is not None:
            return True

        def _timer() -> float:
            try:
                self.tick()
            except Exception as ex:
                logger.debug(f"Scheduler tick failed: {ex}")
            return interval_s  # run again

        try:
            bpy.app.timers.register(_timer, first_interval=interval_s, persistent=True)
        except Exception as ex:
            logger.debug(f"Failed to register scheduler timer: {ex}")
            return False
        self._timer_fn = _timer
        return True

    def uninstall_blender_timer(self) -> None:
        if self._timer_fn is None:
            return
        try:
            if bpy and bpy.app.timers.is_registered(self._timer_fn):
                bpy.app.timers.unregister(self._timer_fn)
        except Exception as ex:
            logger.debug(f"Failed to unregister scheduler timer: {ex}")
        self._timer_fn = None


# --- Scheduler singleton shared by operators and the panel ---

_SCHEDULER: Optional[TaskScheduler] = None


def get_scheduler() -> TaskScheduler:
    """Module-level singleton so every operator ticks the same registry."""
    global _SCHEDULER
    if _SCHEDULER is None:
        _SCHEDULER = TaskScheduler()
    return _SCHEDULER


def register() -> None:
    get_scheduler().install_blender_timer()


def unregister() -> None:
    get_scheduler().uninstall_blender_timer()
