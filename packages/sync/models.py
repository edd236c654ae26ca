from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from packages.leaderboard.models import GameRecord


class CacheState(str, Enum):
    FRESH = "FRESH"
    STALE = "STALE"
    REFRESHING = "REFRESHING"


FetchKind = Literal["ok", "timeout", "error"]


class FetchOutcome(BaseModel):
    kind: FetchKind
    games: List[GameRecord] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind == "ok"


class RefreshOutcome(BaseModel):
    ok: bool
    state: CacheState
    new_records: int = 0
    total_records: int = 0
    error: Optional[str] = None
    last_updated: Optional[float] = None
