"""
Seeded matchup simulation

Used when no live game can be sourced. The generated matchup depends only
on the calendar day, so the same day always yields the same game and time.
"""

import logging
from datetime import timedelta

from streak_pickem.models.matchup import (
    PLACEHOLDER_ID,
    SIMULATED_ID_PREFIX,
    SOURCE_PLACEHOLDER,
    SOURCE_SIMULATED,
    Matchup,
    Team,
)
from streak_pickem.utils.calendar import utc_now

logger = logging.getLogger(__name__)

DEFAULT_SPORT = "MLB"

SPORT_EMOJIS = {
    "MLB": "⚾",
    "NBA": "🏀",
    "NFL": "🏈",
    "NHL": "🏒",
    "Soccer": "⚽",
    "NCAAB": "🏀",
}

# Checked in order; the first season containing the month wins
SEASONS = [
    ("MLB", range(4, 10)),
    ("NBA", (10, 11, 12, 1, 2, 3)),
    ("NFL", (9, 10, 11, 12, 1, 2)),
]


def _team(name, abbreviation, colors, sport):
    return Team(name=name, abbreviation=abbreviation, logo=SPORT_EMOJIS[sport], colors=colors)


def _entry(pool_id, sport, venue, home, away):
    return {
        "id": pool_id,
        "sport": sport,
        "venue": venue,
        "home_team": _team(*home, sport),
        "away_team": _team(*away, sport),
    }


MATCHUP_POOL = [
    _entry("lal-vs-bos", "NBA", "Crypto.com Arena",
           ("Lakers", "LAL", ("552583", "FDB927")), ("Celtics", "BOS", ("007A33", "BA9653"))),
    _entry("gsw-vs-chi", "NBA", "Chase Center",
           ("Warriors", "GSW", ("1D428A", "FFC72C")), ("Bulls", "CHI", ("CE1141", "000000"))),
    _entry("kc-vs-buf", "NFL", "Arrowhead Stadium",
           ("Chiefs", "KC", ("E31837", "FFB81C")), ("Bills", "BUF", ("00338D", "C60C30"))),
    _entry("dal-vs-gb", "NFL", "AT&T Stadium",
           ("Cowboys", "DAL", ("003594", "869397")), ("Packers", "GB", ("203731", "FFB612"))),
    _entry("nyy-vs-bos-mlb", "MLB", "Yankee Stadium",
           ("Yankees", "NYY", ("132448", "C4CED4")), ("Red Sox", "BOS", ("BD3039", "0C2340"))),
    _entry("lad-vs-sf", "MLB", "Dodger Stadium",
           ("Dodgers", "LAD", ("005A9C", "EF3E42")), ("Giants", "SF", ("FD5A1E", "27251F"))),
    _entry("hou-vs-phi", "MLB", "Minute Maid Park",
           ("Astros", "HOU", ("002D62", "EB6E1F")), ("Phillies", "PHI", ("E81828", "2D2D2D"))),
    _entry("tor-vs-mtl", "NHL", "Scotiabank Arena",
           ("Maple Leafs", "TOR", ("00205B", "A2AAAD")), ("Canadiens", "MTL", ("BF2133", "192852"))),
    _entry("bos-vs-chi-nhl", "NHL", "TD Garden",
           ("Bruins", "BOS", ("FFB81C", "000000")), ("Blackhawks", "CHI", ("E32637", "000000"))),
    _entry("rm-vs-fcb", "Soccer", "Santiago Bernabéu",
           ("Real Madrid", "RMA", ("FFFFFF", "0056B9")), ("FC Barcelona", "FCB", ("A50044", "004D98"))),
    _entry("man-utd-vs-liv", "Soccer", "Old Trafford",
           ("Man Utd", "MUN", ("DA291C", "000000")), ("Liverpool", "LIV", ("C8102E", "F6EB1C"))),
    _entry("duke-vs-unc", "NCAAB", "Cameron Indoor Stadium",
           ("Duke", "DUKE", ("001A57", "C8C8C8")), ("UNC", "UNC", ("4B9CD3", "FFFFFF"))),
    _entry("vill-vs-gtown", "NCAAB", "Finneran Pavilion",
           ("Villanova", "VILL", ("00205B", "FFFFFF")), ("Georgetown", "GTOWN", ("00205B", "63666A"))),
    _entry("golden-state-vs-lakers", "NBA", "Chase Center",
           ("Golden State", "GSW", ("1D428A", "FFC72C")), ("Lakers", "LAL", ("552583", "FDB927"))),
    _entry("dallas-vs-miami", "NBA", "American Airlines Center",
           ("Dallas", "DAL", ("0078AE", "00285E")), ("Miami", "MIA", ("98002E", "F9A01B"))),
    _entry("seattle-vs-la-rams", "NFL", "Lumen Field",
           ("Seahawks", "SEA", ("002244", "69BE28")), ("Rams", "LAR", ("002244", "85714D"))),
    _entry("green-bay-vs-minnesota", "NFL", "Lambeau Field",
           ("Packers", "GB", ("203731", "FFB612")), ("Vikings", "MIN", ("4F2683", "FFC62F"))),
    _entry("boston-vs-la-angels", "MLB", "Fenway Park",
           ("Red Sox", "BOS", ("BD3039", "0C2340")), ("Angels", "LAA", ("BA0021", "862633"))),
    _entry("chicago-cubs-vs-st-louis", "MLB", "Wrigley Field",
           ("Cubs", "CHC", ("0E3386", "CC3333")), ("Cardinals", "STL", ("C41E3A", "0C2340"))),
    _entry("pittsburgh-vs-philadelphia-nhl", "NHL", "PPG Paints Arena",
           ("Penguins", "PIT", ("000000", "FCB514")), ("Flyers", "PHI", ("F74902", "000000"))),
    _entry("colorado-vs-vegas", "NHL", "Ball Arena",
           ("Avalanche", "COL", ("6F263D", "236192")), ("Golden Knights", "VGK", ("B4975A", "333333"))),
    _entry("paris-sg-vs-bayern", "Soccer", "Parc des Princes",
           ("Paris SG", "PSG", ("004170", "DA291C")), ("Bayern Munich", "BAY", ("DC052D", "0066B2"))),
]


def sport_emoji(sport):
    return SPORT_EMOJIS.get(sport, "❓")


def current_sport(day):
    """Sport in season for a calendar day"""
    month = day.value.month
    for sport, months in SEASONS:
        if month in months:
            return sport
    return DEFAULT_SPORT


def generate_simulated_matchup(day, sport=None, pool=None, tz=None):
    """
    Deterministic matchup for a calendar day.

    Args:
        day: CalendarDay to generate for
        sport: Sport to filter the pool by, default the season's sport
        pool: Matchup pool, default MATCHUP_POOL
        tz: Timezone for the start time, default the app's TIMEZONE

    Returns:
        Matchup: Same value for every call with the same day
    """
    sport = sport or current_sport(day)
    pool = MATCHUP_POOL if pool is None else pool

    seasonal = [m for m in pool if m["sport"] == sport]
    available = seasonal or pool
    if not available:
        raise ValueError("Matchup pool is empty")

    seed = day.seed
    selected = available[seed % len(available)]

    # Anchored past the end of the day so no same-day visit sees it started
    hours_ahead = 2 + (seed % 4)
    start_time = day.next().at(0, tz) + timedelta(hours=hours_ahead)
    emoji = sport_emoji(sport)

    return Matchup(
        id=f"{SIMULATED_ID_PREFIX}{selected['id']}-{day.value.strftime('%Y%m%d')}",
        home_team=selected["home_team"].with_logo(emoji),
        away_team=selected["away_team"].with_logo(emoji),
        sport=sport,
        venue=selected["venue"],
        start_time=start_time,
        status="upcoming",
        source=SOURCE_SIMULATED,
    )


def placeholder_matchup(now=None):
    """Last-resort matchup when even simulation fails"""
    now = now or utc_now()
    return Matchup(
        id=PLACEHOLDER_ID,
        home_team=Team(name="Home Team", abbreviation="HME", logo="❓"),
        away_team=Team(name="Away Team", abbreviation="AWY", logo="❓"),
        sport="Unknown",
        venue="Generic Arena",
        start_time=now + timedelta(hours=2),
        status="upcoming",
        source=SOURCE_PLACEHOLDER,
    )
