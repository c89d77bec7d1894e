from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from almanac.errors import EmptyDomainError, SearchCancelled
from almanac.resolver.core import MappingChain, apply_route
from almanac.search.progress import ProgressEvent, ProgressSink, ProgressThrottle
from almanac.search.seeds import Range

logger = logging.getLogger(__name__)

# clock reads and cancel checks happen once per this many values
CHECK_EVERY = 4096


@dataclass(frozen=True)
class WorkerResult:
    worker_id: int
    range: Range
    minimum: int
    elapsed: float

    @property
    def values(self) -> int:
        return self.range[1] - self.range[0]


@dataclass
class Worker:
    """Sequentially resolves every value of one half-open range and keeps the minimum."""

    id: int
    chain: MappingChain
    range: Range
    origin: str = "seed"
    target: str = "location"
    progress: Optional[ProgressSink] = None
    progress_interval: float = 0.5
    cancel: Optional[threading.Event] = None

    def run(self) -> int:
        return self.run_with_stats().minimum

    def run_with_stats(self) -> WorkerResult:
        start, end = self.range
        length = end - start
        if length <= 0:
            raise EmptyDomainError(f"worker #{self.id}: range [{start}, {end}) is empty")
        route = self.chain.route(self.origin, self.target)
        logger.debug("Worker #%s start range [%s, %s)", self.id, start, end)

        began = time.monotonic()
        throttle = ProgressThrottle(self.progress_interval)
        progress, cancel = self.progress, self.cancel
        best = apply_route(route, start)
        for idx in range(1, length):
            if not idx % CHECK_EVERY:
                if cancel is not None and cancel.is_set():
                    raise SearchCancelled(f"worker #{self.id} cancelled at {idx}/{length}")
                if progress is not None and throttle.due():
                    progress(ProgressEvent(
                        worker_id=self.id,
                        elapsed=time.monotonic() - began,
                        percent=idx * 100 / length,
                        index=idx,
                        length=length,
                    ))
            v = apply_route(route, start + idx)
            if v < best:
                best = v

        elapsed = time.monotonic() - began
        logger.debug("Worker #%s done in %.3fs, minimum %s", self.id, elapsed, best)
        return WorkerResult(worker_id=self.id, range=(start, end), minimum=best, elapsed=elapsed)
