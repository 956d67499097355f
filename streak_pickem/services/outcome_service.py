"""
Outcome resolution for picks

Each pick gets one OutcomeCheck row that moves through
scheduled -> checking -> resolved | exhausted. Live matchups are checked
against the scoreboard feed after the game should have ended, retrying
hourly up to three attempts. Simulated and placeholder matchups resolve
after 30 seconds with a random outcome and never touch the network.
"""

import logging
import random
from datetime import timedelta

from streak_pickem import db
from streak_pickem.models import OutcomeCheck, ResultRecord, WeeklyStats
from streak_pickem.models.matchup import WINNER_AWAY, WINNER_HOME, WINNER_TIE
from streak_pickem.models.outcome_check import (
    KIND_LIVE,
    KIND_SIMULATED,
    STATE_CHECKING,
    STATE_EXHAUSTED,
    STATE_RESOLVED,
    STATE_SCHEDULED,
)
from streak_pickem.models.user_state import append_result
from streak_pickem.services.leaderboard_store import publish_user_state
from streak_pickem.utils.calendar import format_timestamp, utc_now

logger = logging.getLogger(__name__)

SPORT_DURATIONS = {
    "MLB": timedelta(hours=3),
    "NBA": timedelta(hours=2, minutes=30),
    "NFL": timedelta(hours=3, minutes=30),
    "NHL": timedelta(hours=2, minutes=30),
    "Soccer": timedelta(hours=2),
    "NCAAB": timedelta(hours=2),
}
DEFAULT_DURATION = timedelta(hours=3)

CHECK_AFTER_END = timedelta(minutes=30)
MIN_DELAY = timedelta(seconds=5)
RETRY_INTERVAL = timedelta(hours=1)
MAX_ATTEMPTS = 3
SIMULATED_DELAY = timedelta(seconds=30)

SIMULATED_SCORE = "Simulated"


def estimated_end(matchup):
    return matchup.start_time + SPORT_DURATIONS.get(matchup.sport, DEFAULT_DURATION)


def compute_first_check_time(matchup, now=None):
    """30 minutes after the estimated end, but never sooner than 5 seconds from now"""
    now = now or utc_now()
    return max(estimated_end(matchup) + CHECK_AFTER_END, now + MIN_DELAY)


def is_pick_correct(selected_team, winner):
    """Ties count as correct"""
    return winner == WINNER_TIE or selected_team == winner


def apply_outcome(state, is_correct):
    """Score one resolved pick onto a UserState"""
    current_streak = state.current_streak + 1 if is_correct else 0
    correct_picks = state.correct_picks + (1 if is_correct else 0)
    weekly = state.weekly_stats

    return state.update(
        current_streak=current_streak,
        best_streak=max(state.best_streak, current_streak),
        correct_picks=correct_picks,
        total_picks=max(state.total_picks, correct_picks),
        weekly_stats=WeeklyStats(
            picks=max(weekly.picks, weekly.correct + (1 if is_correct else 0)),
            correct=weekly.correct + (1 if is_correct else 0),
            week_start=weekly.week_start,
        ),
    )


def result_message(result, pick, matchup, is_correct, new_streak):
    if result.winner == WINNER_TIE:
        return f"🤝 Tie Game! {result.score_text()}. Streak continues!"

    winning_team = result.winning_team or matchup.team_for(result.winner)
    if is_correct:
        return f"🎉 Correct! {winning_team.name} won {result.final_score}. Streak: {new_streak}!"

    picked = matchup.team_for(pick.selected_team).abbreviation
    return f"😞 Wrong! You picked {picked}, but {winning_team.name} won {result.final_score}. Streak reset."


class OutcomeService:
    """Schedules, runs and resumes outcome checks"""

    def __init__(
        self,
        sports_client,
        user_store,
        results_store,
        leaderboard,
        scheduler,
        notifier,
        job_func=None,
        rng=None,
    ):
        self.sports_client = sports_client
        self.user_store = user_store
        self.results_store = results_store
        self.leaderboard = leaderboard
        self.scheduler = scheduler
        self.notifier = notifier
        # Callable run by the scheduler with the check id
        self.job_func = job_func or self.run_check
        self.rng = rng or random.Random()

    def _notify(self, user_id, notification_type, message):
        try:
            self.notifier(user_id, notification_type, message)
        except Exception as e:
            logger.error(f"Failed to notify user {user_id}: {e}")

    def _schedule(self, check):
        self.scheduler.schedule_once(check.job_id, check.run_at, self.job_func, args=[check.id])
        logger.info(
            f"Will check result for {check.matchup_id} (attempt {check.attempt}) at {check.run_at.isoformat()}"
        )

    def schedule_for_pick(self, user_id, matchup, pick, now=None):
        """
        Persist and schedule the outcome check for a new pick.

        Returns:
            OutcomeCheck: The scheduled check
        """
        now = now or utc_now()

        if matchup.is_live:
            kind = KIND_LIVE
            run_at = compute_first_check_time(matchup, now)
        else:
            kind = KIND_SIMULATED
            run_at = now + SIMULATED_DELAY

        check = OutcomeCheck.create(user_id, matchup, pick, run_at, kind)
        self._schedule(check)
        return check

    def run_check(self, check_id, now=None):
        """Scheduler entry point for one attempt of an outcome check"""
        now = now or utc_now()
        check = db.session.get(OutcomeCheck, check_id)

        if check is None:
            logger.warning(f"Outcome check {check_id} no longer exists")
            return None
        if not check.is_pending:
            logger.info(f"Outcome check {check_id} already {check.state}, skipping")
            return check

        check.transition(STATE_CHECKING)
        matchup = check.matchup

        try:
            if check.kind == KIND_SIMULATED:
                self.resolve_simulated(check, now=now)
                return check

            logger.info(f"Checking result for game {check.matchup_id} (attempt {check.attempt})")
            result = self.sports_client.fetch_result(check.matchup_id, matchup.sport)

            if result is None:
                self._retry_or_exhaust(check, now)
                return check

            self.resolve(check, result, now=now)

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error processing game result for check {check_id}: {e}")
            check.transition(STATE_EXHAUSTED, error=str(e))
            self._notify(
                check.user_id,
                "warning",
                f"Error verifying result for {matchup.home_team.abbreviation} vs "
                f"{matchup.away_team.abbreviation}. Your streak is unchanged.",
            )

        return check

    def _retry_or_exhaust(self, check, now):
        matchup = check.matchup

        if check.attempt < MAX_ATTEMPTS:
            logger.warning(
                f"Could not fetch game result on attempt {check.attempt}, retrying in "
                f"{int(RETRY_INTERVAL.total_seconds() // 60)} minutes"
            )
            check.attempt += 1
            check.transition(STATE_SCHEDULED, not_before=now + RETRY_INTERVAL)
            self._schedule(check)
            return

        logger.warning(
            f"Max retry attempts ({MAX_ATTEMPTS}) reached for game {check.matchup_id}. Result unavailable"
        )
        check.transition(STATE_EXHAUSTED, error="Result unavailable")
        self._notify(
            check.user_id,
            "warning",
            f"Could not get result for {matchup.home_team.abbreviation} vs "
            f"{matchup.away_team.abbreviation}. Your streak is unchanged.",
        )

    def _record(self, check, is_correct, actual_winner, final_score, now):
        pick = check.pick
        matchup = check.matchup

        new_state = self.user_store.set(
            check.user_id, lambda state: apply_outcome(state, is_correct), now=now
        )

        record = ResultRecord(
            game_id=pick.matchup_id,
            user_pick=pick.selected_team,
            actual_winner=actual_winner,
            is_correct=is_correct,
            final_score=final_score,
            checked_at=format_timestamp(now),
            game_date=format_timestamp(matchup.start_time),
        )
        self.results_store.set(check.user_id, lambda history: append_result(history, record), now=now)

        publish_user_state(self.leaderboard, check.user_id, new_state, now)
        check.transition(STATE_RESOLVED)
        return new_state

    def resolve(self, check, result, now=None):
        """Score a live pick against its final result"""
        now = now or utc_now()
        pick = check.pick
        matchup = check.matchup

        is_correct = is_pick_correct(pick.selected_team, result.winner)
        new_state = self._record(check, is_correct, result.winner, result.final_score, now)

        logger.info(f"Result processed for {check.matchup_id}: {'CORRECT' if is_correct else 'WRONG'}")
        self._notify(
            check.user_id,
            "success" if is_correct else "error",
            result_message(result, pick, matchup, is_correct, new_state.current_streak),
        )
        return new_state

    def resolve_simulated(self, check, now=None):
        """Random outcome for a pick on a simulated or placeholder matchup"""
        now = now or utc_now()
        pick = check.pick

        is_correct = self.rng.random() > 0.5
        if is_correct:
            actual_winner = pick.selected_team
        else:
            actual_winner = WINNER_AWAY if pick.selected_team == WINNER_HOME else WINNER_HOME

        new_state = self._record(check, is_correct, actual_winner, SIMULATED_SCORE, now)

        self._notify(
            check.user_id,
            "success" if is_correct else "error",
            f"🎉 Correct! Streak: {new_state.current_streak}" if is_correct else "😞 Wrong! Streak reset.",
        )
        return new_state

    def resume_pending(self, now=None):
        """
        Reschedule checks left pending by a previous process.

        Returns:
            int: Number of checks rescheduled
        """
        now = now or utc_now()
        pending = OutcomeCheck.get_pending()

        for check in pending:
            run_at = max(check.run_at, now + MIN_DELAY)
            check.transition(STATE_SCHEDULED, not_before=run_at)
            self._schedule(check)

        if pending:
            logger.info(f"Resumed {len(pending)} pending outcome checks")
        return len(pending)
