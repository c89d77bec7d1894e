"""Parallel minimum search over seed ranges.

- seeds.py: seed range set (pairwise start/length) and sub-range splitting
- worker.py: sequential evaluation of one sub-range
- scheduler.py: bounded worker pool, join barrier and min-reduction
- progress.py: throttled progress events and the logging sink
"""

from .scheduler import SearchOutcome, lowest_location, search, search_sequential, search_with_results
from .seeds import SeedRangeSet
from .worker import Worker, WorkerResult

__all__ = [
    "SearchOutcome",
    "SeedRangeSet",
    "Worker",
    "WorkerResult",
    "lowest_location",
    "search",
    "search_sequential",
    "search_with_results",
]
