from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class SearchConfig:
    workers: int
    chunk_size: int = 1_000_000
    progress_interval: float = 0.5  # seconds between progress lines per worker
    backend: str = "thread"  # thread|process
    timeout: Optional[float] = None
    origin: str = "seed"
    target: str = "location"


def get_search_config() -> SearchConfig:
    return SearchConfig(
        workers=max(1, _int_env("SEARCH_WORKERS", os.cpu_count() or 1)),
        chunk_size=max(1, _int_env("SEARCH_CHUNK_SIZE", 1_000_000)),
        progress_interval=_int_env("SEARCH_PROGRESS_MS", 500) / 1000.0,
        backend=os.getenv("SEARCH_BACKEND", "thread"),
        timeout=_float_env("SEARCH_TIMEOUT_SEC"),
        origin=os.getenv("SEARCH_ORIGIN", "seed"),
        target=os.getenv("SEARCH_TARGET", "location"),
    )


@dataclass(frozen=True)
class ApiConfig:
    artifacts_root: Path
    job_workers: int = 2
    api_key: str | None = None


def get_api_config() -> ApiConfig:
    return ApiConfig(
        artifacts_root=Path(os.environ.get("ARTIFACTS_ROOT", "./run_artifacts")).resolve(),
        job_workers=max(1, _int_env("JOB_WORKERS", 2)),
        api_key=os.environ.get("API_KEY"),
    )
