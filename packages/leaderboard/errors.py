"""
Exceptions for the leaderboard sync pipeline.

SourceFetchError and CacheCorruptError are recovered inside the pipeline and
only ever reach consumers as a flag; AggregationInputError is an invariant
violation and propagates.
"""
from typing import Optional


class LeaderboardError(Exception):
    """Base exception for leaderboard sync errors."""
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class SourceFetchError(LeaderboardError):
    """The game-data source failed, returned garbage, or timed out."""
    def __init__(self, details: str, timed_out: bool = False):
        super().__init__(
            f"Game source fetch failed: {details}",
            "Could not reach the game data source; showing the last known leaderboard.",
        )
        self.timed_out = timed_out


class CacheCorruptError(LeaderboardError):
    """The persisted blob could not be decoded or failed the version check."""
    def __init__(self, key: str, details: str):
        super().__init__(f"Cached blob {key!r} is unusable: {details}")
        self.key = key


class AggregationInputError(LeaderboardError):
    """A record reached the aggregator in a state extraction should have ruled out."""
    def __init__(self, game_id: int, reason: str):
        super().__init__(f"Invalid winner record for game {game_id}: {reason}")
        self.game_id = game_id
