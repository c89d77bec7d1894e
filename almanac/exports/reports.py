from __future__ import annotations
from typing import Any, Dict, Iterable

from almanac.search.worker import WorkerResult


def summary_md(summary: Dict[str, Any], results: Iterable[WorkerResult] = ()) -> str:
    lines = ["# Search Summary", ""]
    for k, v in summary.items():
        lines.append(f"- {k}: {v}")
    results = list(results)
    if results:
        best = min(results, key=lambda r: (r.minimum, r.range))
        lines.append("\n## Workers")
        lines.append(f"- tasks: {len(results)}")
        lines.append(f"- slowest: {max(r.elapsed for r in results):.3f}s")
        lines.append(f"- minimum found by worker #{best.worker_id} on [{best.range[0]}, {best.range[1]})")
    return "\n".join(lines) + "\n"
