import pytest

from packages.cache.kv import MemoryKV
from packages.cache.store import WinnerCacheStore
from packages.leaderboard.models import GameRecord, GameStatus, WinnerRecord


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, sec: float) -> None:
        self.now += sec


def game(game_id, status=GameStatus.FINISHED, winner="0xA", winning_number=7, player_count=2,
         entry_fee=5, deadline=None, room_name="", **kw) -> GameRecord:
    return GameRecord(
        game_id=game_id, status=int(status), winner=winner, winning_number=winning_number,
        player_count=player_count, entry_fee=entry_fee,
        deadline=deadline if deadline is not None else game_id * 10, room_name=room_name, **kw,
    )


def record(game_id, winner="0xA", prize=10, timestamp=None, winning_number=7,
           status=GameStatus.FINISHED) -> WinnerRecord:
    return WinnerRecord(
        game_id=game_id, room_name=f"Game {game_id}", winner=winner, winning_number=winning_number,
        prize=prize, timestamp=timestamp if timestamp is not None else game_id * 10, status=int(status),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return MemoryKV()


@pytest.fixture
def store(kv):
    return WinnerCacheStore(kv)
