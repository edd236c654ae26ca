from packages.leaderboard.merge import apply_fetch, merge_processed_ids, merge_records
from packages.leaderboard.models import CachedLeaderboardData, GameStatus

from conftest import game, record


def _cache(records=(), ids=()):
    return CachedLeaderboardData(cached_results=list(records), processed_game_ids=set(ids),
                                 last_updated=0.0, version="v1")


def test_new_records_are_added_and_sorted_newest_first():
    cache = _cache([record(1, timestamp=100)], ids={1})
    out = merge_records([record(2, timestamp=300), record(3, timestamp=200)], cache)
    assert [r.game_id for r in out] == [2, 3, 1]


def test_already_processed_ids_are_not_reappended():
    cache = _cache([record(1, prize=10)], ids={1})
    out = merge_records([record(1, prize=999)], cache)
    assert len(out) == 1 and out[0].prize == 10


def test_duplicates_within_one_pass_keep_last_seen():
    out = merge_records([record(5, prize=1), record(5, prize=2)], _cache())
    assert len(out) == 1
    assert out[0].prize == 2


def test_truncates_to_max_records_dropping_oldest():
    news = [record(i, timestamp=i) for i in range(1, 11)]
    out = merge_records(news, _cache(), max_records=3)
    assert [r.game_id for r in out] == [10, 9, 8]


def test_merge_is_pure():
    cache = _cache([record(1)], ids={1})
    news = [record(2)]
    merge_records(news, cache)
    assert [r.game_id for r in cache.cached_results] == [1]
    assert cache.processed_game_ids == {1}
    assert [r.game_id for r in news] == [2]


def test_idempotent_merge():
    games = [game(1), game(2, status=GameStatus.OPEN), game(3)]
    once = apply_fetch(_cache(), games, now=10.0)
    twice = apply_fetch(once, games, now=20.0)
    assert twice.cached_results == once.cached_results
    assert twice.processed_game_ids == once.processed_game_ids


def test_no_two_records_share_a_game_id():
    cache = _cache([record(1), record(2)], ids=set())
    out = merge_records([record(1), record(2), record(3), record(3)], cache)
    ids = [r.game_id for r in out]
    assert len(ids) == len(set(ids)) == 3


def test_processed_ids_include_games_without_winner():
    cache = _cache(ids={1})
    assert merge_processed_ids(cache, [2, 3]) == {1, 2, 3}
    assert cache.processed_game_ids == {1}


def test_apply_fetch_scenario():
    games = [
        game(5, winner="0xA", winning_number=7, prize_pool=10),
        game(6, status=GameStatus.OPEN, winner=None, winning_number=0),
    ]
    nxt = apply_fetch(_cache(), games, now=42.0)
    assert [r.game_id for r in nxt.cached_results] == [5]
    assert nxt.cached_results[0].prize == 10
    assert nxt.processed_game_ids == {5, 6}
    assert nxt.last_updated == 42.0
    assert nxt.version == "v1"


def test_game_first_seen_open_is_not_recorded_once_finished():
    seen_open = apply_fetch(_cache(), [game(6, status=GameStatus.OPEN, winner=None, winning_number=0)], now=1.0)
    assert seen_open.processed_game_ids == {6}
    later = apply_fetch(seen_open, [game(6, winner="0xB", winning_number=4)], now=2.0)
    assert later.cached_results == []
    assert later.processed_game_ids == {6}
    # a cleared cache picks it up again
    assert [r.game_id for r in apply_fetch(_cache(), [game(6, winner="0xB")], now=3.0).cached_results] == [6]
