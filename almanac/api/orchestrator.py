from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging
import threading
import time
import uuid

import json
import queue

from almanac.config.env import get_api_config
from almanac.errors import AlmanacError
from almanac.ingestion.parser import parse_almanac
from almanac.search.progress import ProgressEvent
from almanac.search.scheduler import lowest_location, search_with_results
from almanac.search.seeds import SeedRangeSet
from almanac.exports.writers import write_workers
from almanac.exports.reports import summary_md

logger = logging.getLogger(__name__)

FINISHED = ("completed", "failed")


@dataclass
class SearchRun:
    id: str
    almanac: str
    part: int = 2
    options: Dict[str, Any] = field(default_factory=dict)  # workers, chunk_size, origin, target
    status: str = "queued"  # queued|running|completed|failed
    events: List[Dict[str, Any]] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    artifacts: Dict[str, str] = field(default_factory=dict)  # filename -> content
    error: Optional[str] = None
    error_stage: Optional[str] = None
    _changed: threading.Condition = field(default_factory=threading.Condition, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self.status in FINISHED

    def record(self, stage: str, message: str, **extra: Any) -> None:
        with self._changed:
            self.events.append({"stage": stage, "message": message, "ts": time.time(), **extra})
            self._changed.notify_all()

    def record_progress(self, ev: ProgressEvent) -> None:
        self.record("Search", ev.message(), worker_id=ev.worker_id, percent=round(ev.percent, 2))

    def finish(self, status: str, stage: str, message: str) -> None:
        with self._changed:
            self.status = status
            self.events.append({"stage": stage, "message": message, "ts": time.time()})
            self._changed.notify_all()

    def events_since(self, seen: int, timeout: float = 1.0) -> Tuple[List[Dict[str, Any]], bool]:
        """Events after the first `seen`, waiting up to `timeout` for new ones."""
        with self._changed:
            self._changed.wait_for(lambda: len(self.events) > seen or self.finished, timeout=timeout)
            return list(self.events[seen:]), self.finished

    def view(self) -> Dict[str, Any]:
        return {
            "search_id": self.id,
            "part": self.part,
            "status": self.status,
            "summary": self.summary,
            "artifacts": list(self.artifacts.keys()),
            "events": list(self.events),
            "error": self.error,
            "error_stage": self.error_stage,
        }


class RunRegistry:
    def __init__(self):
        self._runs: Dict[str, SearchRun] = {}
        self._lock = threading.Lock()

    def create(self, almanac: str, part: int = 2, **options) -> SearchRun:
        rid = f"s_{uuid.uuid4().hex[:8]}"
        run = SearchRun(id=rid, almanac=almanac, part=part, options=options)
        with self._lock:
            self._runs[rid] = run
        return run

    def get(self, rid: str) -> Optional[SearchRun]:
        with self._lock:
            return self._runs.get(rid)

    def all(self) -> List[SearchRun]:
        with self._lock:
            return list(self._runs.values())


_CONFIG = get_api_config()
ARTIFACTS_ROOT = _CONFIG.artifacts_root
ARTIFACTS_ROOT.mkdir(parents=True, exist_ok=True)

# Bounded in-process queue drained by background search threads
_JOB_Q: "queue.Queue[str]" = queue.Queue(maxsize=100)

REGISTRY = RunRegistry()


def _persist_run(run: SearchRun) -> None:
    """Write artifacts, then run.json; its presence marks a finished run on disk."""
    run_dir = ARTIFACTS_ROOT / run.id
    run_dir.mkdir(parents=True, exist_ok=True)
    for name, body in run.artifacts.items():
        (run_dir / name).write_text(body)
    meta = {**run.view(), "options": run.options, "completed_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}
    tmp = run_dir / "run.json.tmp"
    tmp.write_text(json.dumps(meta, indent=2))
    tmp.replace(run_dir / "run.json")


def list_runs() -> List[Dict[str, Any]]:
    """Searches known in memory plus those only found on disk, oldest id first."""
    listed = {
        r.id: {"search_id": r.id, "status": r.status, "summary": r.summary, "source": "memory"}
        for r in REGISTRY.all()
    }
    for meta_path in ARTIFACTS_ROOT.glob("*/run.json"):
        sid = meta_path.parent.name
        if sid in listed:
            continue
        try:
            meta = json.loads(meta_path.read_text())
        except (OSError, ValueError):
            logger.warning("skipping unreadable %s", meta_path)
            continue
        listed[sid] = {
            "search_id": meta.get("search_id", sid),
            "status": meta.get("status"),
            "summary": meta.get("summary"),
            "source": "disk",
        }
    return [listed[k] for k in sorted(listed)]


def _worker_loop(worker_id: int = 0):  # pragma: no cover (verified via API tests)
    while True:
        rid = _JOB_Q.get()
        try:
            run = REGISTRY.get(rid)
            if run is None:
                continue
            logger.debug("job worker %s picked up search %s", worker_id, rid)
            orchestrate(run)
            try:
                _persist_run(run)
            except OSError:
                logger.exception("job worker %s could not persist search %s", worker_id, rid)
        finally:
            _JOB_Q.task_done()


_workers: List[threading.Thread] = []
for i in range(_CONFIG.job_workers):
    t = threading.Thread(target=_worker_loop, args=(i,), name=f"almanac-job-{i}", daemon=True)
    t.start()
    _workers.append(t)


def orchestrate(run: SearchRun):
    try:
        run.status = "running"
        opts = run.options
        origin = opts.get("origin") or "seed"
        target = opts.get("target") or "location"

        run.record("Parse", "Parsing almanac")
        almanac = parse_almanac(run.almanac)

        run.record("Validate", f"Validating route {origin} -> {target} over {len(almanac.chain)} maps")
        almanac.chain.validate(origin, target)

        results = ()
        if run.part == 1:
            run.record("Search", f"Resolving {len(almanac.seeds)} seeds")
            minimum = lowest_location(almanac.chain, almanac.seeds, origin, target)
            run.summary = {"part": 1, "minimum": minimum, "values": len(almanac.seeds)}
        else:
            seeds = SeedRangeSet(almanac.seeds)
            seeds.validate()
            run.record("Search", f"Searching {len(seeds)} seed ranges ({seeds.total()} values)")
            outcome = search_with_results(
                almanac.chain,
                seeds,
                workers=opts.get("workers"),
                chunk_size=opts.get("chunk_size"),
                origin=origin,
                target=target,
                progress=run.record_progress,
                backend="thread",
            )
            results = outcome.results
            minimum = outcome.minimum
            run.summary = {"part": 2, "minimum": minimum, "ranges": len(seeds), "values": seeds.total()}

        run.record("Export", "Writing worker results and summary")
        run.artifacts = {
            "workers.csv": write_workers(results),
            "summary.md": summary_md({"origin": origin, "target": target, **run.summary}, results),
        }
        run.finish("completed", "Done", f"Minimum {minimum}")
    except AlmanacError as e:
        run.error = str(e)
        run.error_stage = e.stage
        run.finish("failed", "Error", f"{e.stage}: {e}")
    except Exception as e:
        logger.exception("search run %s failed", run.id)
        run.error = str(e)
        run.error_stage = "internal"
        run.finish("failed", "Error", str(e))


def start_run(almanac: str, part: int = 2, **options) -> str:
    run = REGISTRY.create(almanac, part=part, **options)
    _JOB_Q.put(run.id)
    return run.id
