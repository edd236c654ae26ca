import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import AggregationInputError
from .extract import is_sentinel_winner
from .models import GameRecord, LeaderboardEntry, LeaderboardStats, Page, UserPosition, WinnerRecord

WEI_PER_ETH = Decimal(10) ** 18


def _by_recency(records: Iterable[WinnerRecord]) -> List[WinnerRecord]:
    # stable: equal timestamps keep input order
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


def _check(r: WinnerRecord) -> None:
    if is_sentinel_winner(r.winner):
        raise AggregationInputError(r.game_id, "no winner")
    if r.winning_number <= 0:
        raise AggregationInputError(r.game_id, f"winning_number={r.winning_number}")
    if r.prize < 0:
        raise AggregationInputError(r.game_id, f"negative prize {r.prize}")


def aggregate(records: Iterable[WinnerRecord]) -> List[LeaderboardEntry]:
    """Fold winner records into per-address entries, best earners first.

    Ranking is total_earnings desc, then games_won desc. Anything still tied keeps the
    order in which the addresses first appear among the records sorted newest first;
    that order is incidental and callers should not build on it.

    average_winnings is total_earnings // games_won (truncating; operands are never negative).
    """
    groups: Dict[str, dict] = {}
    for r in _by_recency(records):
        _check(r)
        addr = r.winner.strip().lower()
        g = groups.get(addr)
        if g is None:
            groups[addr] = {"games_won": 1, "total_earnings": r.prize, "latest_win": r}
            continue
        g["games_won"] += 1
        g["total_earnings"] += r.prize
        # strictly greater: on a tie the record seen first (newest-first order) stays
        if r.timestamp > g["latest_win"].timestamp:
            g["latest_win"] = r

    entries: List[LeaderboardEntry] = []
    for addr, g in groups.items():
        if g["games_won"] <= 0:
            raise AggregationInputError(g["latest_win"].game_id, "empty group")
        entries.append(LeaderboardEntry(
            address=addr,
            games_won=g["games_won"],
            total_earnings=g["total_earnings"],
            latest_win=g["latest_win"],
            average_winnings=g["total_earnings"] // g["games_won"],
        ))
    entries.sort(key=lambda e: (e.total_earnings, e.games_won), reverse=True)
    return entries


def recent_winners(records: Iterable[WinnerRecord], n: int = 10) -> List[WinnerRecord]:
    return _by_recency(records)[:max(0, n)]


def find_position(entries: Sequence[LeaderboardEntry], identity: Optional[str]) -> Optional[UserPosition]:
    if not identity:
        return None
    needle = identity.strip().lower()
    for i, e in enumerate(entries, 1):
        if e.address.lower() == needle:
            return UserPosition(rank=i, entry=e)
    return None


def filter_entries(entries: Sequence[LeaderboardEntry], query: Optional[str]) -> List[LeaderboardEntry]:
    if not query:
        return list(entries)
    q = query.strip().lower()
    return [e for e in entries if q in e.address.lower()]


def paginate(entries: Sequence[LeaderboardEntry], page: int = 1, per_page: int = 10) -> Page:
    if page < 1 or per_page < 1:
        raise ValueError(f"page and per_page must be >= 1 (got page={page}, per_page={per_page})")
    start = (page - 1) * per_page
    return Page(
        items=list(entries[start:start + per_page]),
        page=page,
        per_page=per_page,
        total=len(entries),
        total_pages=math.ceil(len(entries) / per_page),
    )


def leaderboard_stats(records: Sequence[WinnerRecord], entries: Sequence[LeaderboardEntry],
                      games: Optional[Sequence[GameRecord]] = None) -> LeaderboardStats:
    if games is not None:
        players = sum(g.player_count for g in games)
    else:
        # no game list this session: distinct winners undercounts, but it's what we have
        players = len(entries)
    return LeaderboardStats(
        total_games=len(records),
        total_players=players,
        total_prize_pool=sum(r.prize for r in records),
    )


def format_address(address: str) -> str:
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return address[:6] + "..." + address[-4:]


def format_eth(wei: int, places: int = 4) -> str:
    q = Decimal(1).scaleb(-places)
    return format((Decimal(wei) / WEI_PER_ETH).quantize(q, rounding=ROUND_HALF_UP), "f")
