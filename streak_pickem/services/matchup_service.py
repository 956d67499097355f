"""
Daily matchup resolution

Live feed first, then the seeded simulation, then the hardcoded placeholder.
Nothing raised by a lower tier reaches the caller.
"""

import logging

from streak_pickem.models import Matchup
from streak_pickem.services.simulation import (
    current_sport,
    generate_simulated_matchup,
    placeholder_matchup,
)
from streak_pickem.utils.cache_utils import get_cached, set_cached
from streak_pickem.utils.calendar import CalendarDay, ensure_aware, normalize, utc_now

logger = logging.getLogger(__name__)

LIVE_CACHE_TIMEOUT = 6 * 60 * 60


class MatchupService:
    """Decides which matchup a user sees for a calendar day"""

    def __init__(self, sports_client, tz=None, live_enabled=True):
        self.sports_client = sports_client
        self.tz = tz
        self.live_enabled = live_enabled

    def resolve_todays_matchup(self, reference=None, last_pick_date=None):
        """
        Resolve the matchup to show.

        When last_pick_date is today's key the matchup is regenerated for that
        stored day so a reload shows the same game; otherwise it is generated
        for today.

        Args:
            reference: Reference instant (aware datetime), default now
            last_pick_date: Stored calendar-day key, e.g. "Tue Jan 02 2024"

        Returns:
            Matchup: Always a usable matchup
        """
        now = ensure_aware(reference) if reference is not None else utc_now()

        try:
            today, _ = normalize(now, self.tz)
            day = today
            if last_pick_date and last_pick_date == today.key:
                logger.debug("Regenerating today's matchup")
                day = CalendarDay.parse(last_pick_date)
            else:
                logger.debug("Loading new daily matchup")

            return self._generate_for_day(day, now)
        except Exception as e:
            logger.error(f"Error loading matchup, using placeholder: {e}")
            return placeholder_matchup(now)

    def _generate_for_day(self, day, now):
        sport = current_sport(day)

        live = self._live_matchup(sport, day, now)
        if live is not None:
            logger.info(f"Using live sports data: {live.id}")
            return live

        logger.info(f"Using simulated {sport} data for {day.key}")
        return generate_simulated_matchup(day, tz=self.tz)

    def _live_matchup(self, sport, day, now):
        if not self.live_enabled or self.sports_client is None:
            return None

        cache_key = f"live_matchup_{sport}_{day.seed}"
        cached = get_cached(cache_key)
        if cached:
            try:
                matchup = Matchup.from_dict(cached)
                if not matchup.has_started(now):
                    return matchup
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Discarding cached live matchup {cache_key}: {e}")

        try:
            matchup = self.sports_client.fetch_upcoming(sport, now=now)
        except Exception as e:
            logger.warning(f"Live sports data failed, using simulation: {e}")
            return None

        if matchup is not None:
            set_cached(cache_key, matchup.to_dict(), timeout=LIVE_CACHE_TIMEOUT)
        return matchup
