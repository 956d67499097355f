"""
Service wiring from the current app's configuration
"""

from flask import current_app

from streak_pickem.services.broadcast import get_channel
from streak_pickem.services.game_service import GameService
from streak_pickem.services.leaderboard_store import SharedLeaderboardStore
from streak_pickem.services.matchup_service import MatchupService
from streak_pickem.services.outcome_service import OutcomeService
from streak_pickem.services.sports_data import SportsDataClient
from streak_pickem.services.state_store import (
    game_results_store,
    share_stats_store,
    user_state_store,
)
from streak_pickem.services.storage import DatabaseStorage

EXTENSION_KEY = "streak_pickem"


def _extension_state():
    return current_app.extensions.setdefault(EXTENSION_KEY, {})


def get_sports_client():
    """One feed client per app, so rate limiting spans requests"""
    state = _extension_state()
    client = state.get("sports_client")
    if client is None:
        client = SportsDataClient(
            api_base_url=current_app.config.get("SPORTS_API_BASE_URL"),
            timeout=current_app.config.get("SPORTS_API_TIMEOUT", 10),
        )
        state["sports_client"] = client
    return client


def get_scheduler():
    state = _extension_state()
    if "scheduler" in state:
        return state["scheduler"]

    from streak_pickem.services.scheduler_service import scheduler_service

    return scheduler_service


def get_notifier():
    state = _extension_state()
    if "notifier" in state:
        return state["notifier"]

    from streak_pickem.socketio_handlers import notify_user

    return notify_user


def build_leaderboard():
    return SharedLeaderboardStore(
        DatabaseStorage(), get_channel(current_app.config.get("LEADERBOARD_CHANNEL", "streak-leaderboard-sync"))
    )


def build_matchup_service():
    return MatchupService(get_sports_client(), live_enabled=current_app.config.get("LIVE_DATA_ENABLED", True))


def build_outcome_service(scheduler=None):
    storage = DatabaseStorage()
    return OutcomeService(
        sports_client=get_sports_client(),
        user_store=user_state_store(storage),
        results_store=game_results_store(storage),
        leaderboard=build_leaderboard(),
        scheduler=scheduler or get_scheduler(),
        notifier=get_notifier(),
        job_func=run_outcome_check,
    )


def build_game_service():
    storage = DatabaseStorage()
    return GameService(
        user_store=user_state_store(storage),
        share_store=share_stats_store(storage),
        results_store=game_results_store(storage),
        leaderboard=build_leaderboard(),
        matchup_service=build_matchup_service(),
        outcome_service=build_outcome_service(),
    )


def run_outcome_check(check_id):
    """Scheduler job body; runs inside the app context set up by the scheduler"""
    return build_outcome_service().run_check(check_id)
