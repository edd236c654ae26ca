from typing import AbstractSet, Iterable, List, Optional

import structlog

from packages.config.constants import ZERO_ADDRESS
from .models import FINISHED_STATES, GameRecord, WinnerRecord

log = structlog.get_logger()


def is_sentinel_winner(winner: Optional[str]) -> bool:
    return not winner or winner.strip().lower() == ZERO_ADDRESS


def is_finished_with_winner(game: GameRecord) -> bool:
    return (
        game.status in FINISHED_STATES
        and not is_sentinel_winner(game.winner)
        and game.winning_number > 0
    )


def to_winner_record(game: GameRecord) -> Optional[WinnerRecord]:
    if not is_finished_with_winner(game):
        if game.status in FINISHED_STATES and not is_sentinel_winner(game.winner) and game.winning_number <= 0:
            # refund-or-bug: a named winner without a winning number
            log.warning("ambiguous_no_winner", game_id=game.game_id, winner=game.winner,
                        winning_number=game.winning_number)
        return None

    prize = game.prize_pool if game.prize_pool is not None else game.player_count * game.entry_fee
    return WinnerRecord(
        game_id=game.game_id,
        room_name=game.room_name or f"Game {game.game_id}",
        winner=game.winner.strip(),
        winning_number=game.winning_number,
        prize=prize,
        timestamp=game.deadline,
        status=game.status,
    )


def extract_winner_records(games: Iterable[GameRecord],
                           processed_game_ids: Optional[AbstractSet[int]] = None) -> List[WinnerRecord]:
    """Winner records for finished games, in input order.

    ``processed_game_ids`` only skips work; merge_records dedups on its own.
    """
    out: List[WinnerRecord] = []
    for g in games:
        if processed_game_ids and g.game_id in processed_game_ids:
            continue
        rec = to_winner_record(g)
        if rec is not None:
            out.append(rec)
    return out
