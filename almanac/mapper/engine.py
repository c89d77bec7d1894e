from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from almanac.errors import ParseError

HEADER_SUFFIX = " map:"
HEADER_JOIN = "-to-"


@dataclass(frozen=True)
class RangeRule:
    destination_start: int
    source_start: int
    length: int

    @property
    def source_end(self) -> int:
        return self.source_start + self.length  # exclusive

    def map(self, value: int) -> Optional[int]:
        if self.source_start <= value < self.source_end:
            return self.destination_start + (value - self.source_start)
        return None

    @staticmethod
    def parse(line: str) -> "RangeRule":
        parts = line.split()
        if len(parts) != 3:
            raise ParseError(f"expected 3 integers (destination source length), got {line!r}")
        try:
            dest, src, length = (int(p) for p in parts)
        except ValueError:
            raise ParseError(f"non-integer range field in {line!r}") from None
        if dest < 0 or src < 0 or length < 0:
            raise ParseError(f"range fields must be non-negative in {line!r}")
        return RangeRule(destination_start=dest, source_start=src, length=length)


def parse_header(line: str) -> Tuple[str, str]:
    """Split `"<source>-to-<destination> map:"` into its two category names."""
    text = line.strip()
    if not text.endswith(HEADER_SUFFIX):
        raise ParseError(f"map header must end with 'map:', got {line!r}")
    path = text[: -len(HEADER_SUFFIX)].strip()
    source, sep, destination = path.partition(HEADER_JOIN)
    if not sep:
        raise ParseError(f"expected '<source>-to-<destination>', got {path!r}")
    if not source or not destination or HEADER_JOIN in destination:
        raise ParseError(f"bad category names in header {line!r}")
    return source, destination


@dataclass(frozen=True)
class CategoryMap:
    source: str
    destination: str
    rules: Tuple[RangeRule, ...] = ()

    def map(self, value: int) -> Optional[int]:
        # first rule in declaration order wins on overlap
        for rule in self.rules:
            out = rule.map(value)
            if out is not None:
                return out
        return None

    def translate(self, value: int) -> int:
        out = self.map(value)
        return value if out is None else out

    @staticmethod
    def from_rules(source: str, destination: str, rules: Iterable[Sequence[int]]) -> "CategoryMap":
        return CategoryMap(
            source=source,
            destination=destination,
            rules=tuple(RangeRule(int(d), int(s), int(n)) for d, s, n in rules),
        )

    @staticmethod
    def from_block(lines: Sequence[str], block_no: int = 1) -> "CategoryMap":
        """Parse one map block: a header line followed by one or more rule lines.

        Errors are re-raised with the block number (and rule line) attached.
        """
        if not lines:
            raise ParseError(f"block {block_no}: empty map block")
        try:
            source, destination = parse_header(lines[0])
        except ParseError as e:
            raise ParseError(f"block {block_no}: {e}") from None
        if len(lines) < 2:
            raise ParseError(f"block {block_no}: '{source}-to-{destination}' has no range lines")
        rules = []
        for i, line in enumerate(lines[1:], start=1):
            try:
                rules.append(RangeRule.parse(line))
            except ParseError as e:
                raise ParseError(f"block {block_no}, line {i}: {e}") from None
        return CategoryMap(source=source, destination=destination, rules=tuple(rules))
