import asyncio, time, random
from typing import Any, List, Optional, Protocol, Sequence

import httpx
import structlog
from pydantic import ValidationError

from .errors import SourceFetchError
from .models import GameRecord

log = structlog.get_logger()


class GameSource(Protocol):
    async def fetch_all_games(self) -> List[GameRecord]: ...


def _games_payload(raw: Any) -> list:
    # expect {"games":[{...},...]}; a bare list is accepted too
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for k in ("games", "data", "items"):
            v = raw.get(k)
            if isinstance(v, list):
                return v
    raise SourceFetchError(f"unexpected payload shape: {type(raw).__name__}")


class GameHTTPSource:
    """
    Reads the full game list from an indexer/gateway endpoint.

    Requests are spaced to at most ``rps`` per second; 429s are retried with
    exponential backoff and jitter, everything else surfaces as SourceFetchError.
    """
    def __init__(self, url: str, timeout: float = 10.0, rps: float = 2.0, max_tries: int = 5,
                 base_delay: float = 0.5, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self.max_tries = max(1, max_tries)
        self.base_delay = base_delay
        self.transport = transport
        # Simple rate limiter: at most rps requests/second
        self._min_interval = 1.0 / max(0.1, rps)
        self._last_req_ts = 0.0

    async def _rate_limit(self):
        now = time.monotonic()
        wait = self._min_interval - (now - self._last_req_ts)
        if wait > 0:
            await asyncio.sleep(wait)
        self._last_req_ts = time.monotonic()

    @staticmethod
    def _is_rate_limited(e: Exception) -> bool:
        if isinstance(e, httpx.HTTPStatusError):
            return e.response.status_code == 429
        msg = str(e)
        return "429" in msg or "Too Many Requests" in msg

    async def _get_json(self, h: httpx.AsyncClient) -> Any:
        attempt = 0
        while True:
            try:
                await self._rate_limit()
                r = await h.get(self.url)
                r.raise_for_status()
                return r.json()
            except httpx.HTTPError as e:
                if not self._is_rate_limited(e) or attempt >= self.max_tries - 1:
                    raise
                # backoff with jitter
                delay = self.base_delay * (2 ** attempt) + random.uniform(0, 0.25 * self.base_delay)
                log.info("source_rate_limited", url=self.url, attempt=attempt + 1, delay=round(delay, 3))
                await asyncio.sleep(delay)
                attempt += 1

    async def fetch_all_games(self) -> List[GameRecord]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as h:
                raw = await self._get_json(h)
        except httpx.HTTPError as e:
            raise SourceFetchError(f"{type(e).__name__}: {e}",
                                   timed_out=isinstance(e, httpx.TimeoutException)) from e
        except ValueError as e:
            raise SourceFetchError(f"bad json: {e}") from e

        rows = _games_payload(raw)
        try:
            return [GameRecord.model_validate(g) for g in rows]
        except ValidationError as e:
            raise SourceFetchError(f"malformed game entry: {e.error_count()} error(s)") from e


class StaticGameSource:
    """In-memory source; ``fail_with`` makes the next fetches raise."""
    def __init__(self, games: Sequence[GameRecord] = (), fail_with: Optional[Exception] = None):
        self.games = list(games)
        self.fail_with = fail_with
        self.calls = 0

    async def fetch_all_games(self) -> List[GameRecord]:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.games)
