from dataclasses import dataclass, replace
from typing import Optional, Tuple

from streak_pickem.utils.calendar import format_timestamp, parse_timestamp

SOURCE_LIVE = "live"
SOURCE_SIMULATED = "simulated"
SOURCE_PLACEHOLDER = "placeholder"

SIMULATED_ID_PREFIX = "sim-"
PLACEHOLDER_ID = "fallback-game"

WINNER_HOME = "home"
WINNER_AWAY = "away"
WINNER_TIE = "tie"


@dataclass(frozen=True)
class Team:
    """Descriptive team record shown on a matchup card"""

    name: str
    abbreviation: str
    logo: str
    colors: Tuple[str, str] = ("505050", "808080")

    def with_logo(self, logo):
        return replace(self, logo=logo)

    def to_dict(self):
        return {
            "name": self.name,
            "abbreviation": self.abbreviation,
            "logo": self.logo,
            "colors": list(self.colors),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get("name", ""),
            abbreviation=data.get("abbreviation") or data.get("abbr", ""),
            logo=data.get("logo", "❓"),
            colors=tuple(data.get("colors") or ("505050", "808080")),
        )


@dataclass(frozen=True)
class Matchup:
    """One game a user predicts; never mutated after creation"""

    id: str
    home_team: Team
    away_team: Team
    sport: str
    venue: str
    start_time: object  # aware datetime
    status: str = "upcoming"
    source: str = SOURCE_LIVE

    def __repr__(self):
        return f"<Matchup {self.id} {self.away_team.abbreviation} @ {self.home_team.abbreviation}>"

    @property
    def is_live(self):
        """True only for games sourced from the scoreboard feed"""
        return (
            self.source == SOURCE_LIVE
            and not self.id.startswith(SIMULATED_ID_PREFIX)
            and self.id != PLACEHOLDER_ID
        )

    def team_for(self, side):
        return self.home_team if side == WINNER_HOME else self.away_team

    def has_started(self, now):
        return now >= self.start_time

    def to_dict(self):
        return {
            "id": self.id,
            "home_team": self.home_team.to_dict(),
            "away_team": self.away_team.to_dict(),
            "sport": self.sport,
            "venue": self.venue,
            "start_time": format_timestamp(self.start_time),
            "status": self.status,
            "source": self.source,
            "is_live": self.is_live,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data["id"]),
            home_team=Team.from_dict(data["home_team"]),
            away_team=Team.from_dict(data["away_team"]),
            sport=data.get("sport", "Unknown"),
            venue=data.get("venue", ""),
            start_time=parse_timestamp(data.get("start_time")),
            status=data.get("status", "upcoming"),
            source=data.get("source", SOURCE_LIVE),
        )


@dataclass(frozen=True)
class GameResult:
    """Final outcome of a completed game"""

    game_id: str
    home_score: int
    away_score: int
    winner: str
    completed_at: object = None
    home_team: Optional[Team] = None
    away_team: Optional[Team] = None

    @staticmethod
    def decide_winner(home_score, away_score):
        if home_score > away_score:
            return WINNER_HOME
        if away_score > home_score:
            return WINNER_AWAY
        return WINNER_TIE

    @property
    def final_score(self):
        return f"{self.home_score}-{self.away_score}"

    @property
    def winning_team(self):
        """Winning team (None for ties)"""
        if self.winner == WINNER_HOME:
            return self.home_team
        if self.winner == WINNER_AWAY:
            return self.away_team
        return None

    def score_text(self):
        home = self.home_team.abbreviation if self.home_team else "HOME"
        away = self.away_team.abbreviation if self.away_team else "AWAY"
        return f"{home} {self.home_score} - {away} {self.away_score}"

    def to_dict(self):
        return {
            "game_id": self.game_id,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "winner": self.winner,
            "completed_at": format_timestamp(self.completed_at),
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
        }
