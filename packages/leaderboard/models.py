from enum import IntEnum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator


class GameStatus(IntEnum):
    OPEN = 0
    CALCULATING = 1
    FINISHED = 2
    PRIZE_CLAIMED = 3


FINISHED_STATES = frozenset({GameStatus.FINISHED, GameStatus.PRIZE_CLAIMED})


def _as_int(v: Any) -> Any:
    # Big integers travel as decimal strings; int() keeps full precision.
    if isinstance(v, str):
        return int(v.strip())
    return v


class GameRecord(BaseModel):
    """Raw game-state entry as observed on the source. Accepts contract-style camelCase keys."""
    game_id: int = Field(validation_alias=AliasChoices("game_id", "gameId"))
    status: int
    winner: Optional[str] = Field(default=None, validation_alias=AliasChoices("winner", "encryptedWinner"))
    winning_number: int = Field(default=0, validation_alias=AliasChoices("winning_number", "winningNumber", "decryptedWinner"))
    player_count: int = Field(default=0, ge=0, validation_alias=AliasChoices("player_count", "playerCount"))
    entry_fee: int = Field(default=0, ge=0, validation_alias=AliasChoices("entry_fee", "entryFee"))
    deadline: int = 0
    room_name: str = Field(default="", validation_alias=AliasChoices("room_name", "roomName"))
    prize_pool: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("prize_pool", "prizePool"))

    _ints = field_validator(
        "game_id", "winning_number", "player_count", "entry_fee", "deadline", "prize_pool", mode="before"
    )(_as_int)


class WinnerRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_id: int
    room_name: str
    winner: str
    winning_number: int
    prize: int = Field(ge=0)
    timestamp: int
    status: int

    _ints = field_validator("game_id", "prize", "timestamp", mode="before")(_as_int)

    @field_serializer("game_id", "prize", "timestamp", when_used="json")
    def _int_text(self, v: int) -> str:
        return str(v)


class LeaderboardEntry(BaseModel):
    address: str
    games_won: int
    total_earnings: int
    latest_win: WinnerRecord
    average_winnings: int


class UserPosition(BaseModel):
    rank: int  # 1-indexed
    entry: LeaderboardEntry


class LeaderboardStats(BaseModel):
    total_games: int
    total_players: int
    total_prize_pool: int


class Page(BaseModel):
    items: list[LeaderboardEntry]
    page: int
    per_page: int
    total: int
    total_pages: int


class CachedLeaderboardData(BaseModel):
    cached_results: list[WinnerRecord] = Field(default_factory=list)
    processed_game_ids: set[int] = Field(default_factory=set)
    last_updated: float = 0.0
    version: str

    @field_validator("processed_game_ids", mode="before")
    @classmethod
    def _ids_from_text(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return {_as_int(x) for x in v}
        return v

    @field_serializer("processed_game_ids", when_used="json")
    def _ids_to_text(self, v: set[int]) -> list[str]:
        return [str(x) for x in sorted(v)]
