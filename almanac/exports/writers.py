from __future__ import annotations
from typing import Any, Dict, Iterable, List
import csv
import io

from almanac.search.worker import WorkerResult

SCHEMAS = {
    "workers": ["worker_id", "range_start", "range_end", "values", "minimum", "elapsed_sec"],
}


def write_csv(rows: Iterable[Dict[str, Any]], columns: List[str]) -> str:
    buf = io.StringIO()
    w = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore")
    w.writeheader()
    for r in rows:
        w.writerow({k: r.get(k) for k in columns})
    return buf.getvalue()


def worker_rows(results: Iterable[WorkerResult]) -> List[Dict[str, Any]]:
    return [
        {
            "worker_id": r.worker_id,
            "range_start": r.range[0],
            "range_end": r.range[1],
            "values": r.values,
            "minimum": r.minimum,
            "elapsed_sec": round(r.elapsed, 6),
        }
        for r in results
    ]


def write_workers(results: Iterable[WorkerResult]) -> str:
    return write_csv(worker_rows(results), SCHEMAS["workers"])
