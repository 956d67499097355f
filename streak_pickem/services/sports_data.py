import logging
import random
import time
from datetime import timedelta
from functools import wraps

import requests

from streak_pickem.models.matchup import SOURCE_LIVE, GameResult, Matchup, Team
from streak_pickem.services.simulation import sport_emoji
from streak_pickem.utils.calendar import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports"

SCOREBOARD_PATHS = {
    "MLB": "baseball/mlb",
    "NBA": "basketball/nba",
    "NFL": "football/nfl",
    "NHL": "hockey/nhl",
}

SUMMARY_PATHS = {
    "MLB": "baseball/mlb",
    "NBA": "basketball/nba",
    "NFL": "football/nfl",
    "NHL": "hockey/nhl",
    "Soccer": "soccer/fifa.world",
    "NCAAB": "basketball/mens-college-basketball",
}

HOME_DEFAULT_COLORS = ("1D428A", "FFC72C")
AWAY_DEFAULT_COLORS = ("CE1141", "000000")

START_BUFFER = timedelta(minutes=5)
MAX_PAST_SKEW = timedelta(hours=1)
FAR_FUTURE = timedelta(days=7)

STATE_FINAL = "post"


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                try:
                    response = func(self, *args, **kwargs)

                    # Check for rate limiting
                    if hasattr(response, "status_code"):
                        if response.status_code == 429:  # Too Many Requests
                            retry_after = int(
                                response.headers.get(
                                    "Retry-After",
                                    base_delay * (backoff_factor**attempt),
                                )
                            )
                            logger.warning(
                                f"Rate limited. Waiting {retry_after}s before retry {attempt + 1}/{max_retries}"
                            )
                            time.sleep(retry_after)
                            continue
                        elif response.status_code >= 500:  # Server errors
                            delay = base_delay * (backoff_factor**attempt)
                            logger.warning(
                                f"Server error {response.status_code}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                            )
                            time.sleep(delay)
                            continue

                    return response

                except requests.exceptions.RequestException as e:
                    delay = base_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    if attempt < max_retries - 1:
                        time.sleep(delay)
                    else:
                        raise

            raise requests.exceptions.RetryError(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


def _parse_score(value):
    if isinstance(value, dict):
        value = value.get("value", value.get("displayValue"))
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def _find_competitors(competition):
    competitors = competition.get("competitors") or []
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    return home, away


class SportsDataClient:
    """
    Read-only client for the public scoreboard feed, with rate limiting and
    bounded retries. Every public method degrades to None instead of raising.
    """

    def __init__(self, api_base_url=None, session=None, timeout=10, min_request_interval=0.5):
        self.api_base_url = (api_base_url or DEFAULT_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "Streak-Pickem/1.0"})
        self.timeout = timeout

        # Rate limiting configuration
        self.request_count = 0
        self.last_request_time = 0
        self.min_request_interval = min_request_interval
        self.max_requests_per_minute = 60
        self.request_timestamps = []

    def scoreboard_url(self, sport):
        return f"{self.api_base_url}/{SCOREBOARD_PATHS.get(sport, SCOREBOARD_PATHS['MLB'])}/scoreboard"

    def summary_url(self, sport):
        path = SUMMARY_PATHS.get(sport)
        return f"{self.api_base_url}/{path}/summary" if path else None

    def _enforce_rate_limit(self):
        """Enforce rate limiting before making requests"""
        current_time = time.time()

        # Remove timestamps older than 1 minute
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        if len(self.request_timestamps) >= self.max_requests_per_minute:
            sleep_time = 60 - (current_time - self.request_timestamps[0])
            if sleep_time > 0:
                logger.info(f"Rate limit reached. Sleeping for {sleep_time:.1f}s")
                time.sleep(sleep_time)
                self.request_timestamps = []

        time_since_last = current_time - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        self.last_request_time = time.time()
        self.request_timestamps.append(self.last_request_time)
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, url, params=None):
        """Make API request with rate limiting and retry logic"""
        self._enforce_rate_limit()

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response

        except requests.exceptions.Timeout:
            logger.warning(f"Request timeout for {url}")
            raise
        except requests.exceptions.ConnectionError:
            logger.warning(f"Connection error for {url}")
            raise
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 429:
                logger.warning(f"Rate limited: {url}")
            elif e.response is not None and e.response.status_code >= 500:
                logger.warning(f"Server error {e.response.status_code}: {url}")
            else:
                logger.error(f"HTTP error: {url}")
            raise

    def _get_json(self, url, params=None):
        return self._make_api_request(url, params=params).json()

    def get_rate_limit_status(self):
        """Get current rate limit status"""
        current_time = time.time()
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        return {
            "total_requests": self.request_count,
            "requests_last_minute": len(self.request_timestamps),
            "max_requests_per_minute": self.max_requests_per_minute,
            "min_request_interval": self.min_request_interval,
        }

    def fetch_upcoming(self, sport, now=None):
        """
        Pick a random game starting more than 5 minutes from now.

        Returns:
            Matchup|None: None on any fetch or parse failure, or when every
            listed game has already started
        """
        now = now or utc_now()

        try:
            logger.info(f"Fetching {sport} data from scoreboard feed")
            data = self._get_json(self.scoreboard_url(sport))
            events = data.get("events") or []
        except Exception as e:
            logger.error(f"Failed to fetch {sport} data: {e}")
            return None

        if not events:
            logger.info(f"No {sport} games found in scoreboard feed")
            return None

        cutoff = now + START_BUFFER
        upcoming = []
        for event in events:
            try:
                start = parse_timestamp(event.get("date"))
            except (TypeError, ValueError):
                continue
            if start is not None and start > cutoff:
                upcoming.append(event)

        if not upcoming:
            logger.info(
                f"No upcoming {sport} games found. Available games: {len(events)}, but all have started"
            )
            return None

        matchups = []
        for event in upcoming:
            try:
                matchups.append(self.parse_event(event, sport, now=now))
            except Exception as e:
                logger.error(f"Skipping scoreboard game {event.get('id')}: {e}")

        if not matchups:
            logger.info(f"No usable upcoming {sport} games in scoreboard feed")
            return None

        selected = random.choice(matchups)
        logger.info(f"Selected upcoming game: {selected.id}")
        return selected

    def _validate_game_time(self, raw_date, now):
        try:
            start = parse_timestamp(raw_date)
        except (TypeError, ValueError):
            start = None
        if start is None:
            raise ValueError(f"Invalid game time: {raw_date}")

        if start > now + FAR_FUTURE:
            logger.warning(f"Game time seems too far in future: {start.isoformat()}")
        if start < now - MAX_PAST_SKEW:
            raise ValueError(f"Game time is in the past: {start.isoformat()}")
        return start

    def _parse_team(self, competitor, sport, default_colors):
        team = competitor["team"]
        return Team(
            name=team.get("displayName") or team.get("name") or "",
            abbreviation=team.get("abbreviation") or "",
            logo=sport_emoji(sport),
            colors=(
                team.get("color") or default_colors[0],
                team.get("alternateColor") or default_colors[1],
            ),
        )

    def parse_event(self, event, sport, now=None):
        """
        Map one scoreboard event into a Matchup.

        Raises:
            ValueError: Unparseable or stale start time, or incomplete teams
        """
        now = now or utc_now()
        start = self._validate_game_time(event.get("date"), now)

        competitions = event.get("competitions") or []
        if not competitions:
            raise ValueError("No competition data found")
        competition = competitions[0]

        home, away = _find_competitors(competition)
        if not home or not away or not home.get("team") or not away.get("team"):
            raise ValueError("Could not find complete home/away team data")

        venue = (competition.get("venue") or {}).get("fullName") or f"{sport} Stadium"
        status = ((event.get("status") or {}).get("type") or {}).get("detail") or "upcoming"

        return Matchup(
            id=str(event["id"]),
            home_team=self._parse_team(home, sport, HOME_DEFAULT_COLORS),
            away_team=self._parse_team(away, sport, AWAY_DEFAULT_COLORS),
            sport=sport,
            venue=venue,
            start_time=start,
            status=status,
            source=SOURCE_LIVE,
        )

    def _parse_result(self, game_id, competition, completed_at):
        home, away = _find_competitors(competition)
        if not home or not away or not home.get("team") or not away.get("team"):
            raise ValueError("Could not find complete home/away team data")

        home_score = _parse_score(home.get("score"))
        away_score = _parse_score(away.get("score"))

        return GameResult(
            game_id=str(game_id),
            home_score=home_score,
            away_score=away_score,
            winner=GameResult.decide_winner(home_score, away_score),
            completed_at=completed_at,
            home_team=Team(
                name=home["team"].get("displayName") or home["team"].get("name") or "",
                abbreviation=home["team"].get("abbreviation") or "",
                logo="",
            ),
            away_team=Team(
                name=away["team"].get("displayName") or away["team"].get("name") or "",
                abbreviation=away["team"].get("abbreviation") or "",
                logo="",
            ),
        )

    def fetch_result_direct(self, game_id, sport):
        """Final result from the per-event summary endpoint"""
        url = self.summary_url(sport)
        if not url:
            logger.warning(f"Unsupported sport for direct game result: {sport}")
            return None

        try:
            data = self._get_json(url, params={"event": game_id})
            header = data.get("header") or {}
            competitions = header.get("competitions") or []
            if not competitions:
                raise ValueError("No competition data found in summary")
            competition = competitions[0]

            state = ((competition.get("status") or {}).get("type") or {}).get("state")
            if state != STATE_FINAL:
                logger.info(f"Game {game_id} not finished yet. Status: {state}")
                return None

            try:
                completed_at = parse_timestamp(header.get("lastModified")) or utc_now()
            except ValueError:
                completed_at = utc_now()

            return self._parse_result(game_id, competition, completed_at)

        except Exception as e:
            logger.error(f"Error fetching direct game result for {game_id}: {e}")
            return None

    def fetch_result_from_scoreboard(self, game_id, sport):
        """Final result found by scanning the sport's scoreboard"""
        try:
            data = self._get_json(self.scoreboard_url(sport))
            game = next(
                (e for e in data.get("events") or [] if str(e.get("id")) == str(game_id)),
                None,
            )
            if game is None:
                logger.info(f"Game {game_id} not found in current scoreboard")
                return None

            state = ((game.get("status") or {}).get("type") or {}).get("state")
            if state != STATE_FINAL:
                logger.info(f"Game {game_id} not finished yet. Status: {state}")
                return None

            competitions = game.get("competitions") or []
            if not competitions:
                raise ValueError("No competition data found in scoreboard")

            return self._parse_result(game_id, competitions[0], utc_now())

        except Exception as e:
            logger.error(f"Error fetching result for game {game_id} (scoreboard): {e}")
            return None

    def fetch_result(self, game_id, sport):
        """Direct summary lookup first, then the scoreboard scan"""
        result = self.fetch_result_direct(game_id, sport)
        if result is None:
            logger.info(f"Direct lookup failed for {game_id}, trying scoreboard")
            result = self.fetch_result_from_scoreboard(game_id, sport)
        return result

    def check_connectivity(self, sports=("MLB", "NBA", "NFL", "NHL")):
        """Per-sport event counts (or the error) for diagnostics"""
        report = {}
        for sport in sports:
            try:
                data = self._get_json(self.scoreboard_url(sport))
                report[sport] = {"ok": True, "events": len(data.get("events") or [])}
            except Exception as e:
                logger.warning(f"{sport} feed check failed: {e}")
                report[sport] = {"ok": False, "error": str(e)}
        return report
