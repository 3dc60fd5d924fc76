from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class DeadlineHandle(Protocol):
    def cancel(self) -> None: ...


class DeadlineScheduler(Protocol):
    """Runs ``callback`` once after ``delay_seconds`` unless the returned handle is cancelled."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> DeadlineHandle: ...


class ThreadingDeadlineScheduler:
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> DeadlineHandle:
        def run() -> None:
            try:
                callback()
            except Exception:
                logger.exception("payments.deadline_failed delay=%s", delay_seconds)

        timer = threading.Timer(max(delay_seconds, 0.0), run)
        timer.daemon = True
        timer.start()
        return timer


@dataclass
class ManualDeadline:
    delay_seconds: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.callback()


@dataclass
class ManualDeadlineScheduler:
    """Deadlines that only fire when told to. Used by tests and the demo script."""

    deadlines: list[ManualDeadline] = field(default_factory=list)

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> DeadlineHandle:
        deadline = ManualDeadline(delay_seconds=delay_seconds, callback=callback)
        self.deadlines.append(deadline)
        return deadline

    def pending(self) -> list[ManualDeadline]:
        return [d for d in self.deadlines if not d.cancelled and not d.fired]

    def fire_all(self) -> int:
        due = self.pending()
        for deadline in due:
            deadline.fire()
        return len(due)
