from dataclasses import dataclass, fields
from typing import Optional

from streak_pickem.utils.calendar import format_timestamp, parse_timestamp
from streak_pickem.utils.naming import hashed_user_id


@dataclass(frozen=True)
class LeaderboardEntry:
    """One user's published stats on the shared leaderboard"""

    id: str
    display_name: str
    current_streak: int = 0
    best_streak: int = 0
    total_picks: int = 0
    correct_picks: int = 0
    accuracy: int = 0
    weekly_wins: int = 0
    last_active: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def last_active_at(self):
        try:
            return parse_timestamp(self.last_active)
        except ValueError:
            return None

    @classmethod
    def from_user_state(cls, user_id, state, now):
        """Build the entry a user publishes for their current state"""
        stamp = format_timestamp(now)
        return cls(
            id=hashed_user_id(user_id),
            display_name=state.display_name,
            current_streak=state.current_streak,
            best_streak=state.best_streak,
            total_picks=state.total_picks,
            correct_picks=state.correct_picks,
            accuracy=state.accuracy,
            weekly_wins=state.weekly_stats.correct,
            last_active=stamp,
            last_updated=stamp,
        )

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["id"] = str(values.get("id", ""))
        values.setdefault("display_name", "")
        return cls(**values)
