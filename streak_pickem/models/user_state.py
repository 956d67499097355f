from dataclasses import dataclass, field, replace
from typing import Dict, Optional

DEFAULT_DISPLAY_NAME = "AnonymousPicker"
MAX_RESULT_HISTORY = 10


@dataclass(frozen=True)
class Pick:
    """A user's choice of side for the day's matchup"""

    matchup_id: str
    selected_team: str  # "home" or "away"
    timestamp: str
    date: str  # calendar-day key, e.g. "Tue Jan 02 2024"

    def to_dict(self):
        return {
            "matchup_id": self.matchup_id,
            "selected_team": self.selected_team,
            "timestamp": self.timestamp,
            "date": self.date,
        }

    @classmethod
    def from_dict(cls, data):
        if not data:
            return None
        return cls(
            matchup_id=str(data["matchup_id"]),
            selected_team=data["selected_team"],
            timestamp=data.get("timestamp", ""),
            date=data.get("date", ""),
        )


@dataclass(frozen=True)
class WeeklyStats:
    picks: int = 0
    correct: int = 0
    week_start: Optional[str] = None

    def to_dict(self):
        return {"picks": self.picks, "correct": self.correct, "week_start": self.week_start}

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            picks=int(data.get("picks", 0)),
            correct=int(data.get("correct", 0)),
            week_start=data.get("week_start"),
        )


@dataclass(frozen=True)
class UserState:
    """Per-user streak record, owned by the local state store"""

    current_streak: int = 0
    best_streak: int = 0
    total_picks: int = 0
    correct_picks: int = 0
    todays_pick: Optional[Pick] = None
    last_pick_date: Optional[str] = None
    theme: str = "dark"
    sound_enabled: bool = True
    display_name: str = DEFAULT_DISPLAY_NAME
    is_public: bool = True
    weekly_stats: WeeklyStats = field(default_factory=WeeklyStats)

    def update(self, **changes):
        return replace(self, **changes)

    @property
    def accuracy(self):
        if self.total_picks <= 0:
            return 0
        return round(self.correct_picks / self.total_picks * 100)

    def to_dict(self):
        return {
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "total_picks": self.total_picks,
            "correct_picks": self.correct_picks,
            "todays_pick": self.todays_pick.to_dict() if self.todays_pick else None,
            "last_pick_date": self.last_pick_date,
            "theme": self.theme,
            "sound_enabled": self.sound_enabled,
            "display_name": self.display_name,
            "is_public": self.is_public,
            "weekly_stats": self.weekly_stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            current_streak=int(data.get("current_streak", 0)),
            best_streak=int(data.get("best_streak", 0)),
            total_picks=int(data.get("total_picks", 0)),
            correct_picks=int(data.get("correct_picks", 0)),
            todays_pick=Pick.from_dict(data.get("todays_pick")),
            last_pick_date=data.get("last_pick_date"),
            theme=data.get("theme", "dark"),
            sound_enabled=bool(data.get("sound_enabled", True)),
            display_name=data.get("display_name") or DEFAULT_DISPLAY_NAME,
            is_public=bool(data.get("is_public", True)),
            weekly_stats=WeeklyStats.from_dict(data.get("weekly_stats")),
        )


@dataclass(frozen=True)
class ShareStats:
    total_shares: int = 0
    shares_by_type: Dict[str, int] = field(default_factory=dict)
    shares_by_platform: Dict[str, int] = field(default_factory=dict)
    last_shared: Optional[str] = None
    milestones_prompted: tuple = ()

    def to_dict(self):
        return {
            "total_shares": self.total_shares,
            "shares_by_type": dict(self.shares_by_type),
            "shares_by_platform": dict(self.shares_by_platform),
            "last_shared": self.last_shared,
            "milestones_prompted": list(self.milestones_prompted),
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            total_shares=int(data.get("total_shares", 0)),
            shares_by_type=dict(data.get("shares_by_type") or {}),
            shares_by_platform=dict(data.get("shares_by_platform") or {}),
            last_shared=data.get("last_shared"),
            milestones_prompted=tuple(data.get("milestones_prompted") or ()),
        )


@dataclass(frozen=True)
class ResultRecord:
    """One entry of the rolling game-result history"""

    game_id: str
    user_pick: str
    actual_winner: str
    is_correct: bool
    final_score: str
    checked_at: str
    game_date: Optional[str] = None

    def to_dict(self):
        return {
            "game_id": self.game_id,
            "user_pick": self.user_pick,
            "actual_winner": self.actual_winner,
            "is_correct": self.is_correct,
            "final_score": self.final_score,
            "checked_at": self.checked_at,
            "game_date": self.game_date,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            game_id=str(data.get("game_id", "")),
            user_pick=data.get("user_pick", ""),
            actual_winner=data.get("actual_winner", ""),
            is_correct=bool(data.get("is_correct")),
            final_score=data.get("final_score", ""),
            checked_at=data.get("checked_at", ""),
            game_date=data.get("game_date"),
        )


def append_result(history, record, limit=MAX_RESULT_HISTORY):
    """Append to the rolling result history, keeping the most recent `limit`"""
    return list(history)[-(limit - 1):] + [record] if limit > 1 else [record]
