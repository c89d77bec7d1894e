from __future__ import annotations
import argparse
import json
import logging
import sys
from typing import List, Optional

from almanac.config.env import get_search_config
from almanac.errors import AlmanacError
from almanac.ingestion.parser import load_almanac
from almanac.search.scheduler import lowest_location, search
from almanac.search.seeds import SeedRangeSet


def build_parser() -> argparse.ArgumentParser:
    cfg = get_search_config()
    p = argparse.ArgumentParser(prog="almanac", description="Lowest location reachable from an almanac's seeds.")
    p.add_argument("input", help="almanac text file")
    p.add_argument("--part", choices=("1", "2", "all"), default="all",
                   help="1: individual seeds, 2: seed ranges (parallel), all: both")
    p.add_argument("--workers", type=int, default=cfg.workers, help="worker pool size")
    p.add_argument("--chunk-size", type=int, default=cfg.chunk_size, help="values per worker task")
    p.add_argument("--backend", choices=("thread", "process"), default=cfg.backend)
    p.add_argument("--timeout", type=float, default=cfg.timeout, help="seconds before the search is abandoned")
    p.add_argument("--origin", default=cfg.origin)
    p.add_argument("--target", default=cfg.target)
    p.add_argument("--json", action="store_true", help="print answers as JSON")
    p.add_argument("--debug", action="store_true", help="verbose logging")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    try:
        parser = build_parser()
    except ValueError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="%(levelname)s: %(message)s")
    if args.workers < 1 or args.chunk_size < 1:
        print("--workers and --chunk-size must be >= 1", file=sys.stderr)
        return 2

    try:
        almanac = load_almanac(args.input)
    except OSError as e:
        print(f"cannot read {args.input}: {e}", file=sys.stderr)
        return 2
    except AlmanacError as e:
        print(f"failed to solve ({e.stage}): {e}", file=sys.stderr)
        return 1

    parts = ("1", "2") if args.part == "all" else (args.part,)
    answers = {}
    for part in parts:
        try:
            if part == "1":
                answer = lowest_location(almanac.chain, almanac.seeds, args.origin, args.target)
            else:
                answer = search(
                    almanac.chain,
                    SeedRangeSet(almanac.seeds),
                    workers=args.workers,
                    chunk_size=args.chunk_size,
                    origin=args.origin,
                    target=args.target,
                    backend=args.backend,
                    timeout=args.timeout,
                )
        except AlmanacError as e:
            print(f"failed to solve part {part} ({e.stage}): {e}", file=sys.stderr)
            return 1
        answers[f"part_{part}"] = answer
        if not args.json:
            print(f"Answer for part {part}: {answer}")

    if args.json:
        print(json.dumps(answers, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
