from typing import Dict, Iterable, List, Set

from packages.config.constants import MAX_RECORDS
from .extract import extract_winner_records
from .models import CachedLeaderboardData, GameRecord, WinnerRecord


def merge_records(new_records: Iterable[WinnerRecord], cache: CachedLeaderboardData,
                  max_records: int = MAX_RECORDS) -> List[WinnerRecord]:
    """Canonical record set: cached + unseen new records, one per game_id, newest first, capped.

    Later occurrences of a game_id replace earlier ones. Beyond ``max_records`` the oldest
    records fall off. Inputs are left untouched.
    """
    combined = list(cache.cached_results)
    for rec in new_records:
        if rec.game_id not in cache.processed_game_ids:
            combined.append(rec)

    by_id: Dict[int, WinnerRecord] = {}
    for rec in combined:
        by_id.pop(rec.game_id, None)
        by_id[rec.game_id] = rec

    # sorted() is stable, so equal timestamps keep insertion order
    ordered = sorted(by_id.values(), key=lambda r: r.timestamp, reverse=True)
    return ordered[:max(0, max_records)]


def merge_processed_ids(cache: CachedLeaderboardData, game_ids: Iterable[int]) -> Set[int]:
    # every fetched id counts, including games that produced no record
    return set(cache.processed_game_ids) | set(game_ids)


def apply_fetch(cache: CachedLeaderboardData, games: List[GameRecord], now: float,
                max_records: int = MAX_RECORDS) -> CachedLeaderboardData:
    """Next cache value for a successful fetch, computed off to the side."""
    fresh = extract_winner_records(games, cache.processed_game_ids)
    return CachedLeaderboardData(
        cached_results=merge_records(fresh, cache, max_records),
        processed_game_ids=merge_processed_ids(cache, (g.game_id for g in games)),
        last_updated=now,
        version=cache.version,
    )
