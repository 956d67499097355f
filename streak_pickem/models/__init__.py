from streak_pickem import db  # noqa: F401 - imported for model imports

from .leaderboard import LeaderboardEntry
from .matchup import GameResult, Matchup, Team
from .outcome_check import OutcomeCheck
from .storage_item import StorageItem
from .user_state import Pick, ResultRecord, ShareStats, UserState, WeeklyStats

__all__ = [
    "Team",
    "Matchup",
    "GameResult",
    "Pick",
    "WeeklyStats",
    "UserState",
    "ShareStats",
    "ResultRecord",
    "LeaderboardEntry",
    "StorageItem",
    "OutcomeCheck",
]
