from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    worker_id: int
    elapsed: float  # seconds since the worker started
    percent: float
    index: int
    length: int

    def message(self) -> str:
        return f"Worker #{self.worker_id} [{self.elapsed:.2f}s] resolved {self.percent:.2f}%"


ProgressSink = Callable[[ProgressEvent], None]


class ProgressThrottle:
    """Lets a report through at most once per `interval` seconds."""

    def __init__(self, interval: float = 0.5, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last = clock()

    def due(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        if now - self._last >= self.interval:
            self._last = now
            return True
        return False


def log_progress(event: ProgressEvent) -> None:
    logger.info(event.message())
