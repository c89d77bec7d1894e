from __future__ import annotations
import logging
import multiprocessing
import queue
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from almanac.config.env import get_search_config
from almanac.errors import EmptyDomainError, SearchCancelled, SearchError, SearchTimeout
from almanac.resolver.core import MappingChain, apply_route
from almanac.search.progress import ProgressEvent, ProgressSink, log_progress
from almanac.search.seeds import Range, SeedRangeSet, split, validate_ranges
from almanac.search.worker import Worker, WorkerResult

logger = logging.getLogger(__name__)

SeedRanges = Union[SeedRangeSet, Iterable[Range]]

# queued sub-ranges per pool worker; the rest stay in the split() generator
QUEUE_DEPTH = 2
# how often the process backend wakes up to look at cancel/timeout
POLL_INTERVAL = 0.05

_POOL_DONE = object()


@dataclass(frozen=True)
class SearchOutcome:
    minimum: int
    results: Tuple[WorkerResult, ...]  # sorted by range start; empty unless kept


class _Reduction:
    """Running minimum over worker results, optionally keeping each result."""

    def __init__(self, keep: bool):
        self.keep = keep
        self.minimum: Optional[int] = None
        self.finished = 0
        self.values = 0
        self.results: List[WorkerResult] = []

    def add(self, res: WorkerResult) -> None:
        if self.minimum is None or res.minimum < self.minimum:
            self.minimum = res.minimum
        self.finished += 1
        self.values += res.values
        if self.keep:
            self.results.append(res)


def _validated(seed_ranges: SeedRanges) -> List[Range]:
    if isinstance(seed_ranges, SeedRangeSet):
        return seed_ranges.validate()
    return validate_ranges(seed_ranges)


def _sub_ranges(ranges: List[Range], chunk_size: int) -> Iterator[Range]:
    for r in ranges:
        yield from split(r, chunk_size)


def _count_sub_ranges(ranges: List[Range], chunk_size: int) -> int:
    return sum(-(-(e - s) // chunk_size) for s, e in ranges)


def _search(
    chain: MappingChain,
    seed_ranges: SeedRanges,
    keep_results: bool,
    workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    origin: Optional[str] = None,
    target: Optional[str] = None,
    progress: Optional[ProgressSink] = log_progress,
    progress_interval: Optional[float] = None,
    timeout: Optional[float] = None,
    backend: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
) -> SearchOutcome:
    cfg = get_search_config()
    workers = workers or cfg.workers
    chunk_size = chunk_size or cfg.chunk_size
    origin = origin or cfg.origin
    target = target or cfg.target
    progress_interval = cfg.progress_interval if progress_interval is None else progress_interval
    timeout = cfg.timeout if timeout is None else timeout
    backend = backend or cfg.backend
    cancel = cancel or threading.Event()
    if backend not in ("thread", "process"):
        raise SearchError(f"unknown search backend '{backend}'")

    ranges = _validated(seed_ranges)
    chain.validate(origin, target)
    if cancel.is_set():
        raise SearchCancelled("search cancelled before start")

    task_count = _count_sub_ranges(ranges, chunk_size)
    pool_size = max(1, min(workers, task_count))
    logger.info(
        "Searching %s sub-ranges with %s %s worker(s) (%s -> %s)",
        task_count, pool_size, backend, origin, target,
    )

    reduction = _Reduction(keep_results)
    tasks = _sub_ranges(ranges, chunk_size)
    if backend == "process":
        _run_processes(chain, tasks, task_count, pool_size, origin, target, progress, timeout, cancel, reduction)
    else:
        jobs = (
            Worker(
                id=i, chain=chain, range=rng, origin=origin, target=target,
                progress=progress, progress_interval=progress_interval, cancel=cancel,
            )
            for i, rng in enumerate(tasks)
        )
        _run_threads(jobs, pool_size, cancel, timeout, reduction)

    if reduction.finished < task_count:
        raise SearchCancelled(f"search cancelled after {reduction.finished}/{task_count} sub-ranges")
    logger.info("Search finished: minimum %s over %s values", reduction.minimum, reduction.values)
    results = tuple(sorted(reduction.results, key=lambda r: r.range))
    return SearchOutcome(minimum=reduction.minimum, results=results)


def search_with_results(chain: MappingChain, seed_ranges: SeedRanges, **kwargs) -> SearchOutcome:
    """Minimum resolved value over every seed range, plus one result per sub-range.

    The domain and the origin -> target route are validated before any
    worker starts. Any worker error fails the whole search.
    """
    return _search(chain, seed_ranges, True, **kwargs)


def search(chain: MappingChain, seed_ranges: SeedRanges, **kwargs) -> int:
    return _search(chain, seed_ranges, False, **kwargs).minimum


def _feed(jobs: Iterator[Worker], task_q: "queue.Queue[Optional[Worker]]", pool_size: int, cancel: threading.Event):
    for w in jobs:
        while not cancel.is_set():
            try:
                task_q.put(w, timeout=POLL_INTERVAL)
                break
            except queue.Full:
                continue
        if cancel.is_set():
            break
    for _ in range(pool_size):
        task_q.put(None)  # one stop sentinel per pool thread


def _pool_loop(task_q: "queue.Queue[Optional[Worker]]", result_q: "queue.Queue[object]", cancel: threading.Event):
    try:
        while True:
            w = task_q.get()
            if w is None:
                return
            if cancel.is_set():
                continue
            try:
                result_q.put(w.run_with_stats())
            except Exception as e:
                result_q.put(e)
    finally:
        result_q.put(_POOL_DONE)


def _run_threads(
    jobs: Iterator[Worker],
    pool_size: int,
    cancel: threading.Event,
    timeout: Optional[float],
    reduction: _Reduction,
) -> None:
    task_q: "queue.Queue[Optional[Worker]]" = queue.Queue(maxsize=pool_size * QUEUE_DEPTH)
    result_q: "queue.Queue[object]" = queue.Queue()

    threads = [threading.Thread(target=_feed, args=(jobs, task_q, pool_size, cancel), name="almanac-feeder", daemon=True)]
    threads += [
        threading.Thread(target=_pool_loop, args=(task_q, result_q, cancel), name=f"almanac-worker-{i}", daemon=True)
        for i in range(pool_size)
    ]
    for t in threads:
        t.start()

    deadline = None if timeout is None else time.monotonic() + timeout
    stopped = 0
    try:
        while stopped < pool_size:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                raise SearchTimeout(f"search did not finish within {timeout}s")
            try:
                item = result_q.get(timeout=remaining)
            except queue.Empty:
                raise SearchTimeout(f"search did not finish within {timeout}s") from None
            if item is _POOL_DONE:
                stopped += 1
            elif isinstance(item, Exception):
                raise item
            else:
                reduction.add(item)
    finally:
        if stopped < pool_size:
            cancel.set()
    for t in threads:
        t.join()


def _run_chunk(worker_id: int, chain: MappingChain, rng: Range, origin: str, target: str, stop) -> WorkerResult:
    return Worker(id=worker_id, chain=chain, range=rng, origin=origin, target=target, cancel=stop).run_with_stats()


def _run_processes(
    chain: MappingChain,
    tasks: Iterator[Range],
    task_count: int,
    pool_size: int,
    origin: str,
    target: str,
    progress: Optional[ProgressSink],
    timeout: Optional[float],
    cancel: threading.Event,
    reduction: _Reduction,
) -> None:
    # progress is reported by the parent once per finished sub-range
    began = time.monotonic()
    deadline = None if timeout is None else began + timeout
    numbered = enumerate(tasks)
    with multiprocessing.Manager() as manager:
        stop = manager.Event()  # seen by running workers in the child processes
        pool = ProcessPoolExecutor(max_workers=pool_size)
        pending = set()
        try:
            while True:
                while len(pending) < pool_size * QUEUE_DEPTH:
                    nxt = next(numbered, None)
                    if nxt is None:
                        break
                    i, rng = nxt
                    pending.add(pool.submit(_run_chunk, i, chain, rng, origin, target, stop))
                if not pending:
                    return
                done, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for fut in done:
                    res = fut.result()
                    reduction.add(res)
                    if progress is not None:
                        progress(ProgressEvent(
                            worker_id=res.worker_id,
                            elapsed=time.monotonic() - began,
                            percent=reduction.finished * 100 / task_count,
                            index=reduction.finished,
                            length=task_count,
                        ))
                if cancel.is_set():
                    raise SearchCancelled(f"search cancelled after {reduction.finished}/{task_count} sub-ranges")
                if deadline is not None and time.monotonic() >= deadline:
                    raise SearchTimeout(f"search did not finish within {timeout}s")
        except BaseException:
            stop.set()
            for fut in pending:
                fut.cancel()
            raise
        finally:
            # running workers leave their loop once `stop` is set
            pool.shutdown(wait=True, cancel_futures=True)


def search_sequential(
    chain: MappingChain, seed_ranges: SeedRanges, origin: str = "seed", target: str = "location"
) -> int:
    """Single-thread reference evaluation; agrees with `search` exactly."""
    ranges = _validated(seed_ranges)
    route = chain.route(origin, target)
    return min(min(apply_route(route, v) for v in range(s, e)) for s, e in ranges)


def lowest_location(
    chain: MappingChain, seeds: Iterable[int], origin: str = "seed", target: str = "location"
) -> int:
    """Minimum over individual seed values (the seed list read as plain numbers)."""
    values = list(seeds)
    if not values:
        raise EmptyDomainError("no seeds to resolve")
    route = chain.route(origin, target)
    return min(apply_route(route, v) for v in values)
