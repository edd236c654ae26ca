import pytest

from packages.config.constants import ZERO_ADDRESS
from packages.leaderboard.errors import AggregationInputError
from packages.leaderboard.models import WinnerRecord
from packages.leaderboard.ranker import (
    aggregate, filter_entries, find_position, format_address, format_eth, leaderboard_stats, paginate,
    recent_winners,
)

from conftest import game, record


def test_groups_case_insensitively_and_sums():
    entries = aggregate([
        record(1, winner="0xAbC", prize=10, timestamp=1),
        record(2, winner="0xabc", prize=30, timestamp=2),
        record(3, winner="0xDEF", prize=5, timestamp=3),
    ])
    assert [e.address for e in entries] == ["0xabc", "0xdef"]
    top = entries[0]
    assert top.games_won == 2
    assert top.total_earnings == 40
    assert top.latest_win.game_id == 2
    assert top.average_winnings == 20


def test_average_truncates():
    [e] = aggregate([record(1, prize=100), record(2, prize=101)])
    assert e.average_winnings == 100


def test_totals_match_record_prizes():
    records = [record(i, winner=f"0x{i % 3}", prize=i * 7 + 2 ** 70) for i in range(1, 20)]
    assert sum(e.total_earnings for e in aggregate(records)) == sum(r.prize for r in records)


def test_ranking_earnings_then_wins():
    entries = aggregate([
        record(1, winner="0xsolo", prize=50),
        record(2, winner="0xpair", prize=25),
        record(3, winner="0xpair", prize=25),
        record(4, winner="0xrich", prize=80),
    ])
    assert [e.address for e in entries] == ["0xrich", "0xpair", "0xsolo"]


def test_latest_win_tie_keeps_first_in_input_order():
    a = record(1, winner="0xa", timestamp=100)
    b = record(2, winner="0xa", timestamp=100)
    [e] = aggregate([a, b])
    assert e.latest_win.game_id == 1


def test_invariant_violations_raise():
    bad = WinnerRecord(game_id=9, room_name="x", winner=ZERO_ADDRESS, winning_number=3, prize=1,
                       timestamp=1, status=2)
    with pytest.raises(AggregationInputError):
        aggregate([record(1), bad])
    with pytest.raises(AggregationInputError):
        aggregate([record(2, winning_number=0)])
    with pytest.raises(AggregationInputError):
        aggregate([record(3).model_copy(update={"prize": -1})])


def test_empty_input():
    assert aggregate([]) == []
    assert recent_winners([], 5) == []


def test_recent_winners_takes_greatest_timestamps():
    records = [record(i, timestamp=t) for i, t in enumerate([5, 50, 20, 40, 10], 1)]
    out = recent_winners(records, 3)
    assert [r.timestamp for r in out] == [50, 40, 20]
    assert recent_winners(records, 3) == out
    assert len(recent_winners(records, 10)) == 5


def test_recent_winners_ties_are_reproducible():
    records = [record(1, timestamp=7), record(2, timestamp=7), record(3, timestamp=7)]
    assert [r.game_id for r in recent_winners(records, 2)] == [1, 2]


def test_find_position():
    entries = aggregate([record(1, winner="0xAAA", prize=5), record(2, winner="0xBBB", prize=9)])
    pos = find_position(entries, "0xaaa")
    assert pos.rank == 2
    assert pos.entry.address == "0xaaa"
    assert find_position(entries, "0xBBB").rank == 1
    assert find_position(entries, "0xnobody") is None
    assert find_position(entries, "") is None
    assert find_position([], None) is None


def test_filter_and_paginate():
    entries = aggregate([record(i, winner=f"0xuser{i:02d}", prize=100 - i) for i in range(1, 24)])
    assert [e.address for e in filter_entries(entries, "USER0")][:2] == ["0xuser01", "0xuser02"]
    assert len(filter_entries(entries, "")) == 23

    p = paginate(entries, page=3, per_page=10)
    assert p.total == 23 and p.total_pages == 3
    assert [e.address for e in p.items] == ["0xuser21", "0xuser22", "0xuser23"]
    assert paginate(entries, page=9).items == []
    with pytest.raises(ValueError):
        paginate(entries, page=0)


def test_stats_prefers_game_player_counts():
    records = [record(1, winner="0xa", prize=10), record(2, winner="0xb", prize=15)]
    entries = aggregate(records)
    s = leaderboard_stats(records, entries, [game(1, player_count=4), game(2, player_count=3), game(3)])
    assert (s.total_games, s.total_players, s.total_prize_pool) == (2, 9, 25)
    assert leaderboard_stats(records, entries).total_players == 2


def test_formatting():
    assert format_address("0x1234567890abcdef1234") == "0x1234...1234"
    assert format_address("") == ""
    assert format_eth(15 * 10 ** 17) == "1.5000"
    assert format_eth(0) == "0.0000"


def test_padded_winner_groups_with_plain_address():
    entries = aggregate([record(1, winner=" 0xAbC "), record(2, winner="0xabc")])
    assert [(e.address, e.games_won) for e in entries] == [("0xabc", 2)]
    assert find_position(entries, "0xABC").rank == 1
