import asyncio, time
from typing import Callable, List, Optional

import structlog

from packages.cache.kv import make_kv
from packages.cache.store import WinnerCacheStore
from packages.config.constants import FETCH_TIMEOUT_SEC, MAX_RECORDS, REFRESH_INTERVAL_SEC, STALE_THRESHOLD_SEC
from packages.config.env import SyncCfg
from packages.leaderboard.errors import SourceFetchError
from packages.leaderboard.fetchers import GameHTTPSource, GameSource
from packages.leaderboard.merge import apply_fetch
from packages.leaderboard.models import (
    CachedLeaderboardData, GameRecord, LeaderboardEntry, LeaderboardStats, Page, UserPosition, WinnerRecord,
)
from packages.leaderboard.ranker import (
    aggregate, filter_entries, find_position, leaderboard_stats, paginate, recent_winners,
)
from .models import CacheState, FetchOutcome, RefreshOutcome

log = structlog.get_logger()


class RefreshController:
    """
    Owns the winner cache and keeps it in step with the game source.

    State is FRESH, STALE or REFRESHING. Staleness is evaluated on every read:
    no cache, a failed last refresh, or ``now >= last_updated + stale_threshold``
    all read as STALE. Only one refresh runs at a time; concurrent callers share
    its result. Views are always served from the last good cache.
    """
    def __init__(self, source: GameSource, store: WinnerCacheStore, *,
                 stale_threshold_sec: float = STALE_THRESHOLD_SEC,
                 refresh_interval_sec: float = REFRESH_INTERVAL_SEC,
                 fetch_timeout_sec: Optional[float] = FETCH_TIMEOUT_SEC,
                 max_records: int = MAX_RECORDS,
                 clock: Callable[[], float] = time.time):
        self.source = source
        self.store = store
        self.stale_threshold_sec = stale_threshold_sec
        self.refresh_interval_sec = refresh_interval_sec
        self.fetch_timeout_sec = fetch_timeout_sec
        self.max_records = max_records
        self._clock = clock

        self._data: Optional[CachedLeaderboardData] = store.load()
        self._games: Optional[List[GameRecord]] = None
        self._inflight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None
        self.last_error: Optional[str] = None
        log.info("cache_loaded", present=self._data is not None,
                 records=len(self._data.cached_results) if self._data else 0, state=self.state.value)

    # ---- state ----
    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def last_updated(self) -> Optional[float]:
        return self._data.last_updated if self._data is not None else None

    @property
    def state(self) -> CacheState:
        if self.refreshing:
            return CacheState.REFRESHING
        if self._data is None or self.last_error is not None:
            return CacheState.STALE
        if self._clock() >= self._data.last_updated + self.stale_threshold_sec:
            return CacheState.STALE
        return CacheState.FRESH

    @property
    def is_stale(self) -> bool:
        return self.state is CacheState.STALE

    # ---- refresh ----
    async def _fetch(self) -> FetchOutcome:
        try:
            if self.fetch_timeout_sec is None:
                games = await self.source.fetch_all_games()
            else:
                games = await asyncio.wait_for(self.source.fetch_all_games(), timeout=self.fetch_timeout_sec)
        except asyncio.TimeoutError:
            return FetchOutcome(kind="timeout", error=f"no response within {self.fetch_timeout_sec}s")
        except SourceFetchError as e:
            return FetchOutcome(kind="timeout" if e.timed_out else "error", error=str(e))
        except Exception as e:
            # any source failure is a fetch failure, never "zero games"
            return FetchOutcome(kind="error", error=str(SourceFetchError(f"{type(e).__name__}: {e}")))
        return FetchOutcome(kind="ok", games=games)

    def _failed(self, error: str) -> RefreshOutcome:
        self.last_error = error
        return RefreshOutcome(
            ok=False, state=CacheState.STALE, error=error,
            total_records=len(self._records()), last_updated=self.last_updated,
        )

    async def _do_refresh(self) -> RefreshOutcome:
        outcome = await self._fetch()
        if not outcome.ok:
            log.warning("refresh_failed", kind=outcome.kind, error=outcome.error)
            return self._failed(outcome.error or outcome.kind)

        now = self._clock()
        # rebase on whatever is current now, so a clear during the fetch is respected
        base = self._data if self._data is not None else self.store.empty(now)
        nxt = apply_fetch(base, outcome.games, now, self.max_records)
        try:
            self.store.save(nxt)
        except Exception as e:
            log.error("cache_save_failed", error=str(e), exc_info=True)
            return self._failed(f"cache save failed: {e}")

        known = {r.game_id for r in base.cached_results}
        added = sum(1 for r in nxt.cached_results if r.game_id not in known)
        self._data = nxt
        self._games = outcome.games
        self.last_error = None
        log.info("refresh_ok", games=len(outcome.games), new_records=added, total_records=len(nxt.cached_results))
        return RefreshOutcome(ok=True, state=CacheState.FRESH, new_records=added,
                              total_records=len(nxt.cached_results), last_updated=now)

    async def refresh(self) -> RefreshOutcome:
        """Start a refresh, or join the one already running. Cancelling the caller does not abort it."""
        if not self.refreshing:
            self._inflight = asyncio.ensure_future(self._do_refresh())
        else:
            log.debug("refresh_joined_inflight")
        return await asyncio.shield(self._inflight)

    async def ensure_fresh(self) -> Optional[RefreshOutcome]:
        if self.refreshing or self.is_stale:
            return await self.refresh()
        return None

    def clear_cache(self) -> None:
        self.store.clear()
        self._data = None
        self._games = None
        self.last_error = None

    # ---- background loop ----
    async def _run(self):
        while True:
            if self.refreshing:
                log.debug("refresh_tick_skipped", reason="inflight")
            else:
                try:
                    await self.refresh()
                except Exception as e:
                    log.error("refresh_loop_error", error=str(e), exc_info=True)
            await asyncio.sleep(self.refresh_interval_sec)

    def start(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        """Stop the loop, wait out an in-flight refresh, then close the store backend."""
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        # let a refresh that already started finish its save
        if self.refreshing:
            await asyncio.shield(self._inflight)
        close = getattr(self.store.kv, "close", None)
        if close is not None:
            close()
            log.debug("store_closed", backend=type(self.store.kv).__name__)

    async def __aenter__(self) -> "RefreshController":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    # ---- views ----
    def _records(self) -> List[WinnerRecord]:
        return list(self._data.cached_results) if self._data is not None else []

    def get_leaderboard(self) -> List[LeaderboardEntry]:
        return aggregate(self._records())

    def get_recent_winners(self, n: int = 10) -> List[WinnerRecord]:
        return recent_winners(self._records(), n)

    def get_user_position(self, identity: Optional[str]) -> Optional[UserPosition]:
        return find_position(self.get_leaderboard(), identity)

    def get_stats(self) -> LeaderboardStats:
        records = self._records()
        return leaderboard_stats(records, aggregate(records), self._games)

    def search(self, query: Optional[str] = None, page: int = 1, per_page: int = 10) -> Page:
        return paginate(filter_entries(self.get_leaderboard(), query), page, per_page)


def build_controller(cfg: SyncCfg, clock: Callable[[], float] = time.time) -> RefreshController:
    source = GameHTTPSource(cfg.source_url, timeout=cfg.fetch_timeout_sec, rps=cfg.source_rps)
    store = WinnerCacheStore(make_kv(cfg.store_backend, cfg.store_path))
    return RefreshController(
        source, store,
        stale_threshold_sec=cfg.stale_threshold_sec,
        refresh_interval_sec=cfg.refresh_interval_sec,
        fetch_timeout_sec=cfg.fetch_timeout_sec,
        max_records=cfg.max_records,
        clock=clock,
    )
