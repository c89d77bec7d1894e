from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from almanac.errors import ParseError
from almanac.mapper.engine import CategoryMap
from almanac.resolver.core import MappingChain


@dataclass(frozen=True)
class Almanac:
    seeds: Tuple[int, ...]
    chain: MappingChain


def parse_seeds(line: str) -> List[int]:
    """Parse `"seeds: 79 14 55 13"`; the label before the colon is not checked."""
    label, sep, rest = line.partition(":")
    if not sep:
        raise ParseError(f"line 1: seed line needs '<label>:' prefix, got {line!r}")
    tokens = rest.split()
    if not tokens:
        raise ParseError(f"line 1: no seed numbers after '{label.strip()}:'")
    try:
        seeds = [int(t) for t in tokens]
    except ValueError:
        raise ParseError(f"line 1: non-integer seed in {rest.strip()!r}") from None
    if any(s < 0 for s in seeds):
        raise ParseError("line 1: seed numbers must be non-negative")
    return seeds


def split_blocks(lines: Iterable[str]) -> List[List[str]]:
    blocks: List[List[str]] = []
    current: List[str] = []
    for raw in lines:
        line = raw.strip()
        if not line:
            if current:
                blocks.append(current)
                current = []
            continue
        current.append(line)
    if current:
        blocks.append(current)
    return blocks


def parse_almanac(text: str) -> Almanac:
    lines = text.splitlines()
    if not lines or not lines[0].strip():
        raise ParseError("line 1: missing seed line")
    seeds = parse_seeds(lines[0])
    blocks = split_blocks(lines[1:])
    if not blocks:
        raise ParseError("no map blocks after the seed line")
    maps = [CategoryMap.from_block(b, block_no=i) for i, b in enumerate(blocks, start=1)]
    return Almanac(seeds=tuple(seeds), chain=MappingChain(maps))


def load_almanac(path: str | Path) -> Almanac:
    return parse_almanac(Path(path).read_text())
