from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from almanac.errors import ChainError, ChainResolutionError
from almanac.mapper.engine import CategoryMap

Route = Tuple[CategoryMap, ...]


def apply_route(route: Route, value: int) -> int:
    for m in route:
        value = m.translate(value)
    return value


class MappingChain:
    """Read-only collection of category maps indexed by source category.

    Built once; workers share one instance by reference.
    """

    __slots__ = ("_maps", "_by_source")

    def __init__(self, maps: Iterable[CategoryMap]):
        ordered: List[CategoryMap] = []
        by_source: Dict[str, CategoryMap] = {}
        for m in maps:
            if m.source in by_source:
                raise ChainError(f"duplicate map for source category '{m.source}'")
            by_source[m.source] = m
            ordered.append(m)
        self._maps: Tuple[CategoryMap, ...] = tuple(ordered)
        self._by_source = by_source

    def __len__(self) -> int:
        return len(self._maps)

    def __iter__(self) -> Iterator[CategoryMap]:
        return iter(self._maps)

    def __getstate__(self):
        return (self._maps,)

    def __setstate__(self, state):
        (self._maps,) = state
        self._by_source = {m.source: m for m in self._maps}

    def get(self, source: str) -> Optional[CategoryMap]:
        return self._by_source.get(source)

    def categories(self) -> List[str]:
        seen: Dict[str, None] = {}
        for m in self._maps:
            seen.setdefault(m.source)
            seen.setdefault(m.destination)
        return list(seen)

    def route(self, origin: str, target: str) -> Route:
        """Category maps to apply, in order, to get from `origin` to `target`."""
        hops: List[CategoryMap] = []
        visited = {origin}
        current = origin
        while current != target:
            m = self._by_source.get(current)
            if m is None:
                raise ChainResolutionError(
                    f"chain exhausted at '{current}' before reaching '{target}' (from '{origin}')"
                )
            if m.destination in visited:
                raise ChainResolutionError(
                    f"cycle at '{m.source}-to-{m.destination}' while resolving '{origin}' -> '{target}'"
                )
            visited.add(m.destination)
            hops.append(m)
            current = m.destination
        return tuple(hops)

    def validate(self, origin: str, target: str) -> None:
        self.route(origin, target)

    def resolve(self, value: int, origin: str = "seed", target: str = "location") -> int:
        return apply_route(self.route(origin, target), value)
