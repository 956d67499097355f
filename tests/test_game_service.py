from datetime import timedelta

import pytest
from conftest import NOW, make_matchup

from streak_pickem.models import OutcomeCheck, UserState
from streak_pickem.models.outcome_check import KIND_SIMULATED
from streak_pickem.services.factory import build_game_service, build_leaderboard, run_outcome_check
from streak_pickem.services.game_service import PickRejected, generate_share_text
from streak_pickem.services.matchup_service import MatchupService
from streak_pickem.utils.naming import hashed_user_id


@pytest.fixture
def game(app):
    return build_game_service()


# ---------------------------------------------------------------------------
# Picks
# ---------------------------------------------------------------------------


def test_make_pick_records_and_schedules(game, fakes):
    outcome = game.make_pick("user-1", "home", now=NOW)

    state = outcome["state"]
    assert outcome["matchup"].id == "sim-golden-state-vs-lakers-20240102"
    assert outcome["pick"].date == "Tue Jan 02 2024"
    assert state.todays_pick == outcome["pick"]
    assert state.last_pick_date == "Tue Jan 02 2024"
    assert state.total_picks == 1
    assert state.weekly_stats.picks == 1
    assert outcome["message"] == "You picked: Golden State. 🎮 Simulated result in 30 seconds."

    check = OutcomeCheck.query.one()
    assert check.kind == KIND_SIMULATED
    job_id, run_at, args = fakes["scheduler"].calls[0]
    assert (job_id, run_at, args) == (check.job_id, NOW + timedelta(seconds=30), [check.id])
    assert fakes["scheduler"].jobs[job_id][1] is run_outcome_check


def test_second_pick_same_day_rejected(game):
    game.make_pick("user-1", "home", now=NOW)

    with pytest.raises(PickRejected) as excinfo:
        game.make_pick("user-1", "away", now=NOW + timedelta(minutes=5))

    assert excinfo.value.status_code == 409
    assert game.get_state("user-1", now=NOW).todays_pick.selected_team == "home"
    assert OutcomeCheck.query.count() == 1


def test_pick_after_start_rejected(game, fakes):
    fakes["sports_client"].upcoming = make_matchup(start_time=NOW + timedelta(hours=1))
    game.matchup_service = MatchupService(fakes["sports_client"], live_enabled=True)

    with pytest.raises(PickRejected) as excinfo:
        game.make_pick("user-1", "home", now=NOW + timedelta(hours=2))

    assert excinfo.value.message == "You have already picked for today or the game has started!"


def test_late_evening_pick_on_simulated_game_accepted(game):
    late = NOW.replace(hour=23)

    outcome = game.make_pick("user-1", "home", now=late)

    assert not outcome["matchup"].has_started(late)
    assert outcome["pick"].date == "Tue Jan 02 2024"


def test_invalid_side_rejected(game):
    with pytest.raises(PickRejected) as excinfo:
        game.make_pick("user-1", "draw", now=NOW)

    assert excinfo.value.status_code == 400


def test_next_day_allows_new_pick(game):
    game.make_pick("user-1", "home", now=NOW)
    outcome = game.make_pick("user-1", "away", now=NOW + timedelta(days=1))

    assert outcome["pick"].date == "Wed Jan 03 2024"
    assert outcome["state"].total_picks == 2


def test_picked_matchup_stays_after_live_game_appears(game, fakes):
    picked = game.make_pick("user-1", "home", now=NOW)["matchup"]

    fakes["sports_client"].upcoming = make_matchup(start_time=NOW + timedelta(hours=3))
    game.matchup_service = MatchupService(fakes["sports_client"], live_enabled=True)
    state = game.get_state("user-1", now=NOW)

    assert game.current_matchup("user-1", state, NOW) == picked
    assert game.current_matchup("user-2", game.get_state("user-2", now=NOW), NOW).id == "401585"


def test_live_pick_message(game, fakes):
    fakes["sports_client"].upcoming = make_matchup(start_time=NOW + timedelta(hours=3))
    game.matchup_service = MatchupService(fakes["sports_client"], live_enabled=True)

    outcome = game.make_pick("user-1", "away", now=NOW)

    assert outcome["message"] == "You picked: Celtics. 📡 Real result will be checked after the game!"


# ---------------------------------------------------------------------------
# Session and preferences
# ---------------------------------------------------------------------------


def test_sync_session_applies_name_and_publishes(game):
    state = game.sync_session("user-1", {"id": "user-1", "username": "alice"}, now=NOW)

    assert state.display_name == "alice"
    entries = build_leaderboard().load()
    assert [e.id for e in entries] == [hashed_user_id("user-1")]
    assert entries[0].display_name == "alice"


def test_anonymous_session_is_not_published(game):
    state = game.sync_session("anonymous", None, now=NOW)

    assert state.display_name == "AnonymousPicker"
    assert build_leaderboard().load() == []


def test_toggle_preferences(game):
    assert game.toggle_theme("user-1").theme == "light"
    assert game.toggle_theme("user-1").theme == "dark"
    assert game.toggle_sound("user-1").sound_enabled is False


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


def test_record_share_counts(game):
    game.record_share("user-1", "streak", "twitter", now=NOW)
    stats, message = game.record_share("user-1", "challenge", "twitter", now=NOW)

    assert stats.total_shares == 2
    assert stats.shares_by_type == {"streak": 1, "challenge": 1}
    assert stats.shares_by_platform == {"twitter": 2}
    assert message == "🎉 Shared your challenge! Friends incoming..."


def test_milestone_prompt_once(game):
    assert game.milestone_prompt("user-1", UserState(current_streak=4)) is None
    assert game.milestone_prompt("user-1", UserState(current_streak=5)) == 5
    assert game.milestone_prompt("user-1", UserState(current_streak=5)) is None
    assert game.milestone_prompt("user-1", UserState(current_streak=10)) == 10


@pytest.mark.parametrize(
    "streak, share_type, expected",
    [
        (0, "streak", "Just started my streak"),
        (3, "streak", "3-day streak and counting! 🎯"),
        (7, "streak", "🔥 7-day streak! I'm on fire! ⚡"),
        (12, "streak", "🚨 INSANE 12-DAY STREAK! 🚨"),
        (10, "achievement", "🔥 DOUBLE DIGITS! 10-DAY STREAK! 🔥"),
        (4, "challenge", "🏆 I just hit 4 days on Streak Pick'em!"),
    ],
)
def test_share_text(streak, share_type, expected):
    text = generate_share_text(UserState(current_streak=streak), share_type=share_type, app_url="https://x.test")

    assert text.startswith(expected)
    assert "https://x.test" in text


def test_pick_share_text_names_the_pick(game):
    outcome = game.make_pick("user-1", "away", now=NOW)

    text = generate_share_text(outcome["state"], outcome["matchup"], "pick", "https://x.test")

    assert "I'm going with Lakers!" in text
    assert generate_share_text(UserState(), None, "pick").startswith("Just started my streak")
