import json
from typing import Optional

import structlog
from pydantic import ValidationError

from packages.config.constants import CACHE_KEY, CACHE_VERSION
from packages.leaderboard.errors import CacheCorruptError
from packages.leaderboard.models import CachedLeaderboardData
from .kv import KeyValueStore

log = structlog.get_logger()


class WinnerCacheStore:
    """
    Versioned persistence of CachedLeaderboardData in a key-value backend.

    Big integers (game_id, prize, timestamp, processed ids) are written as decimal
    strings. A blob whose version differs from ours, or that fails to decode, is
    deleted and reported as absent.
    """
    def __init__(self, kv: KeyValueStore, key: str = CACHE_KEY, version: str = CACHE_VERSION):
        self.kv = kv
        self.key = key
        self.version = version

    def empty(self, now: float = 0.0) -> CachedLeaderboardData:
        return CachedLeaderboardData(version=self.version, last_updated=now)

    def _decode(self, blob: str) -> CachedLeaderboardData:
        try:
            raw = json.loads(blob)
        except ValueError as e:
            raise CacheCorruptError(self.key, f"bad json: {e}") from e
        if not isinstance(raw, dict):
            raise CacheCorruptError(self.key, f"expected object, got {type(raw).__name__}")
        if raw.get("version") != self.version:
            raise CacheCorruptError(self.key, f"version {raw.get('version')!r} != {self.version!r}")
        try:
            return CachedLeaderboardData.model_validate(raw)
        except (ValidationError, ValueError, TypeError) as e:
            raise CacheCorruptError(self.key, str(e)) from e

    def load(self) -> Optional[CachedLeaderboardData]:
        blob = self.kv.get(self.key)
        if blob is None:
            return None
        try:
            return self._decode(blob)
        except CacheCorruptError as e:
            log.warning("cache_discarded", key=self.key, error=str(e))
            self.kv.delete(self.key)
            return None

    def load_or_empty(self, now: float = 0.0) -> CachedLeaderboardData:
        data = self.load()
        return data if data is not None else self.empty(now)

    def save(self, data: CachedLeaderboardData) -> None:
        self.kv.set(self.key, data.model_dump_json())
        log.debug("cache_saved", key=self.key, records=len(data.cached_results),
                  processed=len(data.processed_game_ids))

    def clear(self) -> None:
        self.kv.delete(self.key)
        log.info("cache_cleared", key=self.key)
