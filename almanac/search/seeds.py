from __future__ import annotations
from typing import Iterable, Iterator, List, Sequence, Tuple

from almanac.errors import EmptyDomainError, ParseError

Range = Tuple[int, int]  # half-open (start, end)


class SeedRangeSet:
    """Raw seed numbers read pairwise as (start, length).

    Only the bounds are kept; members are never materialised.
    """

    def __init__(self, values: Sequence[int]):
        vals = tuple(int(v) for v in values)
        if len(vals) % 2:
            raise ParseError(f"seed ranges need (start, length) pairs, got {len(vals)} numbers")
        self._values = vals

    def ranges(self) -> Iterator[Range]:
        vals = self._values
        for i in range(0, len(vals), 2):
            start, length = vals[i], vals[i + 1]
            yield (start, start + length)

    __iter__ = ranges

    def __len__(self) -> int:
        return len(self._values) // 2

    def __repr__(self) -> str:
        return f"SeedRangeSet({list(self.ranges())!r})"

    def total(self) -> int:
        return sum(e - s for s, e in self.ranges())

    def validate(self) -> List[Range]:
        return validate_ranges(self.ranges())


def validate_ranges(ranges: Iterable[Range]) -> List[Range]:
    """Materialise the bounds and reject an empty domain."""
    out = [(int(s), int(e)) for s, e in ranges]
    if not out:
        raise EmptyDomainError("no seed ranges to search")
    for i, (s, e) in enumerate(out):
        if e <= s:
            raise EmptyDomainError(f"seed range #{i} [{s}, {e}) is empty")
    return out


def split(rng: Range, chunk_size: int) -> Iterator[Range]:
    """Contiguous sub-ranges of at most `chunk_size` values covering `rng` exactly."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    start, end = rng
    while start < end:
        stop = min(start + chunk_size, end)
        yield (start, stop)
        start = stop
