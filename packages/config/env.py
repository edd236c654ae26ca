# config environment
import os
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from .constants import (
    FETCH_TIMEOUT_SEC,
    MAX_RECORDS,
    REFRESH_INTERVAL_SEC,
    STALE_THRESHOLD_SEC,
)

StoreBackend = Literal["file", "sqlite", "memory"]


class SyncCfg(BaseModel):
    source_url: str
    store_backend: StoreBackend = "file"
    store_path: str = ".cache/leaderboard"
    refresh_interval_sec: float = REFRESH_INTERVAL_SEC
    stale_threshold_sec: float = STALE_THRESHOLD_SEC
    max_records: int = MAX_RECORDS
    fetch_timeout_sec: float = FETCH_TIMEOUT_SEC
    source_rps: float = 2.0


def load_cfg(env_file: str, yaml_file: Optional[str] = None) -> SyncCfg:
    load_dotenv(env_file)
    cfg = SyncCfg(
        source_url=os.environ["SOURCE_URL"],
        store_backend=os.environ.get("STORE_BACKEND", "file"),
        store_path=os.environ.get("STORE_PATH", ".cache/leaderboard"),
        refresh_interval_sec=float(os.environ.get("REFRESH_INTERVAL_SEC", str(REFRESH_INTERVAL_SEC))),
        stale_threshold_sec=float(os.environ.get("STALE_THRESHOLD_SEC", str(STALE_THRESHOLD_SEC))),
        max_records=int(os.environ.get("MAX_RECORDS", str(MAX_RECORDS))),
        fetch_timeout_sec=float(os.environ.get("FETCH_TIMEOUT_SEC", str(FETCH_TIMEOUT_SEC))),
        source_rps=float(os.environ.get("SOURCE_RPS", "2.0")),
    )
    if yaml_file:
        overrides = load_sync_yaml(yaml_file)
        if overrides:
            cfg = SyncCfg(**{**cfg.model_dump(), **overrides})
    return cfg


def load_sync_yaml(path: str) -> dict:
    """Tuning knobs from the ``sync:`` section of a YAML file; missing file means no overrides."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    sync = raw.get("sync") or {}
    known = set(SyncCfg.model_fields)
    return {k: v for k, v in sync.items() if k in known}
