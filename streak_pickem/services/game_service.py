"""
Session bootstrap, pick handling, preferences and sharing
"""

import logging
from dataclasses import replace

from streak_pickem.models import OutcomeCheck, Pick
from streak_pickem.models.matchup import WINNER_AWAY, WINNER_HOME
from streak_pickem.services.leaderboard_store import publish_user_state
from streak_pickem.utils.calendar import format_timestamp, normalize, utc_now
from streak_pickem.utils.naming import display_name_for

logger = logging.getLogger(__name__)

SHARE_TYPES = ("streak", "pick", "achievement", "challenge")
MILESTONES = (5, 10, 15, 20, 25, 30)

MILESTONE_HEADLINES = {
    5: "🎉 5-DAY STREAK UNLOCKED! 🎉",
    10: "🔥 DOUBLE DIGITS! 10-DAY STREAK! 🔥",
    15: "⚡ 15 DAYS OF PURE FIRE! ⚡",
    20: "🚨 20-DAY STREAK ALERT! 🚨",
    25: "👑 QUARTER CENTURY! 25 DAYS! 👑",
    30: "🏆 30 DAYS OF DOMINATION! 🏆",
}


class PickRejected(Exception):
    """A pick that cannot be accepted; carries the HTTP status for the API"""

    def __init__(self, message, status_code=409, notification_type="warning"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.notification_type = notification_type


def has_picked_today(state, matchup, today):
    pick = state.todays_pick
    return bool(
        matchup is not None
        and pick is not None
        and pick.matchup_id == matchup.id
        and pick.date == today.key
    )


def _streak_emoji(streak):
    if streak >= 10:
        return "🔥"
    if streak >= 5:
        return "⚡"
    return "🎯"


def generate_share_text(state, matchup=None, share_type="streak", app_url=""):
    """Share text for a user's streak, today's pick, a milestone or a challenge"""
    streak = state.current_streak
    emoji = _streak_emoji(streak)

    if share_type == "pick":
        if matchup is None or state.todays_pick is None:
            return generate_share_text(state, None, "streak", app_url)
        picked = matchup.team_for(state.todays_pick.selected_team).name
        return (
            f"Today's pick: {matchup.home_team.name} vs {matchup.away_team.name} {matchup.home_team.logo}\n\n"
            f"I'm going with {picked}! 🤔\n\n"
            f"Current streak: {streak} {emoji}\n\n"
            f"Join me: {app_url}"
        )

    if share_type == "achievement":
        headline = MILESTONE_HEADLINES.get(streak, f"🔥 {streak}-DAY STREAK! 🔥")
        return (
            f"{headline}\n\n"
            f"I'm absolutely crushing it on Streak Pick'em! 💪\n\n"
            f"Who wants to challenge the champion? 😎\n\n"
            f"{app_url}"
        )

    if share_type == "challenge":
        return (
            f"🏆 I just hit {streak} days on Streak Pick'em!\n\n"
            f"Bet you can't beat my streak 😏\n\n"
            f"Prove me wrong: {app_url}"
        )

    if streak == 0:
        return f"Just started my streak on Streak Pick'em! 🎯\n\nWho can predict sports better than me? 💪\n\nTry it: {app_url}"
    if streak < 5:
        return f"{streak}-day streak and counting! {emoji}\n\nThink you can do better? Prove it 👀\n\nStreak Pick'em: {app_url}"
    if streak < 10:
        return (
            f"🔥 {streak}-day streak! I'm on fire! {emoji}\n\n"
            f"Can anyone beat this? Challenge accepted? 😏\n\n"
            f"Streak Pick'em: {app_url}"
        )
    return (
        f"🚨 INSANE {streak}-DAY STREAK! 🚨\n\n"
        f"I'm basically a sports oracle at this point 🔮\n\n"
        f"Think you can match this? Good luck 😤\n\n"
        f"Streak Pick'em: {app_url}"
    )


class GameService:
    """User-facing game actions over the stores, matchup engine and outcome workflow"""

    def __init__(
        self,
        user_store,
        share_store,
        results_store,
        leaderboard,
        matchup_service,
        outcome_service,
        tz=None,
    ):
        self.user_store = user_store
        self.share_store = share_store
        self.results_store = results_store
        self.leaderboard = leaderboard
        self.matchup_service = matchup_service
        self.outcome_service = outcome_service
        self.tz = tz

    def get_state(self, user_id, now=None):
        return self.user_store.get(user_id, now=now)

    def get_results(self, user_id):
        return self.results_store.get(user_id)

    def sync_session(self, user_id, user, now=None):
        """Apply the identity's display name and publish the user's entry"""
        now = now or utc_now()
        display_name = display_name_for(user)

        def apply_identity(state):
            if state.display_name == display_name:
                return state
            return state.update(display_name=display_name)

        state = self.user_store.set(user_id, apply_identity, now=now)
        publish_user_state(self.leaderboard, user_id, state, now)
        return state

    def current_matchup(self, user_id, state, now=None):
        """
        The matchup to show. Once a pick is made today the picked matchup
        stays on screen, even if the live tier would now choose another game.
        """
        now = now or utc_now()

        if state.todays_pick is not None:
            check = (
                OutcomeCheck.query.filter_by(
                    user_id=user_id, matchup_id=state.todays_pick.matchup_id
                )
                .order_by(OutcomeCheck.created_at.desc())
                .first()
            )
            if check is not None:
                return check.matchup

        return self.matchup_service.resolve_todays_matchup(now, state.last_pick_date)

    def make_pick(self, user_id, team_choice, now=None):
        """
        Record today's pick and schedule its outcome check.

        Args:
            user_id: Storage key of the acting user
            team_choice: "home" or "away"
            now: Reference instant, default now

        Returns:
            dict: pick, state, matchup and the confirmation message

        Raises:
            PickRejected: Invalid side, no matchup, already picked, or game started
        """
        now = now or utc_now()
        today, _ = normalize(now, self.tz)

        if team_choice not in (WINNER_HOME, WINNER_AWAY):
            raise PickRejected("Pick must be 'home' or 'away'.", status_code=400, notification_type="error")

        state = self.user_store.get(user_id, now=now)
        matchup = self.current_matchup(user_id, state, now)

        if matchup is None:
            raise PickRejected("Matchup not loaded yet. Please wait.", notification_type="error")
        if has_picked_today(state, matchup, today) or matchup.has_started(now):
            raise PickRejected("You have already picked for today or the game has started!")

        pick = Pick(
            matchup_id=matchup.id,
            selected_team=team_choice,
            timestamp=format_timestamp(now),
            date=today.key,
        )

        def record_pick(current):
            # Re-checked against the latest stored state
            if current.todays_pick is not None and current.todays_pick.date == today.key:
                raise PickRejected("You have already picked for today or the game has started!")
            weekly = current.weekly_stats
            return current.update(
                todays_pick=pick,
                last_pick_date=today.key,
                total_picks=current.total_picks + 1,
                weekly_stats=replace(weekly, picks=weekly.picks + 1),
            )

        state = self.user_store.set(user_id, record_pick, now=now)
        publish_user_state(self.leaderboard, user_id, state, now)
        self.outcome_service.schedule_for_pick(user_id, matchup, pick, now=now)

        picked_name = matchup.team_for(team_choice).name
        if matchup.is_live:
            message = f"You picked: {picked_name}. 📡 Real result will be checked after the game!"
        else:
            message = f"You picked: {picked_name}. 🎮 Simulated result in 30 seconds."

        logger.info(f"User {user_id} picked {team_choice} for {matchup.id}")
        return {"pick": pick, "state": state, "matchup": matchup, "message": message}

    def toggle_theme(self, user_id, now=None):
        return self.user_store.set(
            user_id,
            lambda state: state.update(theme="light" if state.theme == "dark" else "dark"),
            now=now,
        )

    def toggle_sound(self, user_id, now=None):
        return self.user_store.set(
            user_id,
            lambda state: state.update(sound_enabled=not state.sound_enabled),
            now=now,
        )

    def record_share(self, user_id, share_type, platform, now=None):
        """Count a completed share by type and platform"""
        stamp = format_timestamp(now or utc_now())

        def count(stats):
            by_type = dict(stats.shares_by_type)
            by_type[share_type] = by_type.get(share_type, 0) + 1
            by_platform = dict(stats.shares_by_platform)
            by_platform[platform] = by_platform.get(platform, 0) + 1
            return replace(
                stats,
                total_shares=stats.total_shares + 1,
                shares_by_type=by_type,
                shares_by_platform=by_platform,
                last_shared=stamp,
            )

        stats = self.share_store.set(user_id, count)
        return stats, f"🎉 Shared your {share_type}! Friends incoming..."

    def milestone_prompt(self, user_id, state):
        """
        Streak milestone to prompt a share for, at most once per milestone.

        Returns:
            int|None: The milestone reached, or None
        """
        streak = state.current_streak
        if streak not in MILESTONES:
            return None

        stats = self.share_store.get(user_id)
        if streak in stats.milestones_prompted:
            return None

        self.share_store.set(
            user_id,
            lambda current: replace(
                current, milestones_prompted=tuple(current.milestones_prompted) + (streak,)
            ),
        )
        return streak
