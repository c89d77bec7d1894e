"""Almanac search: chained interval remapping with a parallel brute-force minimum.

- mapper/: range rules and category maps
- resolver/: the mapping chain (multi-hop resolution) and the CLI driver
- ingestion/: almanac text -> seeds + mapping chain
- search/: seed ranges, workers, the parallel scheduler and progress telemetry
- exports/: per-worker CSV and markdown summary
- api/: background search runs and the HTTP API
"""

__version__ = "0.1.0"
