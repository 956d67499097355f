import random
from datetime import timedelta

import pytest
from conftest import NOW, FakeNotifier, FakeScheduler, FakeSportsClient, RecordingChannel, make_matchup

from streak_pickem import db
from streak_pickem.models import GameResult, OutcomeCheck, Pick, UserState, WeeklyStats
from streak_pickem.models.matchup import SOURCE_SIMULATED
from streak_pickem.models.outcome_check import (
    KIND_LIVE,
    KIND_SIMULATED,
    STATE_EXHAUSTED,
    STATE_RESOLVED,
    STATE_SCHEDULED,
)
from streak_pickem.services.leaderboard_store import SharedLeaderboardStore
from streak_pickem.services.outcome_service import (
    OutcomeService,
    apply_outcome,
    compute_first_check_time,
    is_pick_correct,
)
from streak_pickem.services.state_store import game_results_store, user_state_store
from streak_pickem.services.storage import DatabaseStorage
from streak_pickem.utils.naming import hashed_user_id


class FixedRandom(random.Random):
    def __init__(self, value):
        super().__init__()
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def service(app):
    storage = DatabaseStorage()
    return OutcomeService(
        sports_client=FakeSportsClient(),
        user_store=user_state_store(storage),
        results_store=game_results_store(storage),
        leaderboard=SharedLeaderboardStore(storage, RecordingChannel()),
        scheduler=FakeScheduler(),
        notifier=FakeNotifier(),
    )


def _pick(matchup, side="home"):
    return Pick(matchup.id, side, NOW.isoformat(), "Tue Jan 02 2024")


def _final(home_score, away_score):
    return GameResult(
        game_id="401585",
        home_score=home_score,
        away_score=away_score,
        winner=GameResult.decide_winner(home_score, away_score),
    )


def _seed_state(service, user_id="user-1", **fields):
    service.user_store.set(user_id, lambda state: state.update(**fields), now=NOW)


# ---------------------------------------------------------------------------
# Scoring rules
# ---------------------------------------------------------------------------


def test_tie_counts_as_correct():
    assert is_pick_correct("home", "tie")
    assert is_pick_correct("away", "tie")
    assert is_pick_correct("away", "away")
    assert not is_pick_correct("home", "away")


def test_streak_invariants_hold_for_any_sequence():
    rng = random.Random(7)
    state = UserState()

    for _ in range(200):
        state = state.update(total_picks=state.total_picks + rng.choice([0, 1]))
        state = apply_outcome(state, rng.random() > 0.4)

        assert state.best_streak >= state.current_streak
        assert state.correct_picks <= state.total_picks
        assert state.weekly_stats.correct <= state.weekly_stats.picks


def test_apply_outcome():
    state = UserState(current_streak=4, best_streak=4, total_picks=5, correct_picks=4,
                      weekly_stats=WeeklyStats(picks=2, correct=1, week_start="w"))

    won = apply_outcome(state, True)
    lost = apply_outcome(won, False)

    assert (won.current_streak, won.best_streak, won.correct_picks) == (5, 5, 5)
    assert won.weekly_stats == WeeklyStats(picks=2, correct=2, week_start="w")
    assert (lost.current_streak, lost.best_streak, lost.correct_picks) == (0, 5, 5)


def test_first_check_time():
    matchup = make_matchup(start_time=NOW + timedelta(hours=4))

    # NBA runs 2h30, checked 30 minutes after the estimated end
    assert compute_first_check_time(matchup, NOW) == NOW + timedelta(hours=7)

    old = make_matchup(start_time=NOW - timedelta(days=1))
    assert compute_first_check_time(old, NOW) == NOW + timedelta(seconds=5)


# ---------------------------------------------------------------------------
# Live checks
# ---------------------------------------------------------------------------


def test_schedule_for_live_pick(service):
    matchup = make_matchup()

    check = service.schedule_for_pick("user-1", matchup, _pick(matchup), now=NOW)

    assert check.kind == KIND_LIVE
    assert check.state == STATE_SCHEDULED
    assert check.run_at == NOW + timedelta(hours=7)
    assert service.scheduler.calls == [(check.job_id, check.run_at, [check.id])]


def test_correct_live_pick_extends_streak(service):
    _seed_state(service, display_name="alice", current_streak=2, best_streak=2, total_picks=3, correct_picks=2)
    matchup = make_matchup()
    check = service.schedule_for_pick("user-1", matchup, _pick(matchup, "home"), now=NOW)
    service.sports_client.results["401585"] = _final(110, 104)

    service.run_check(check.id, now=NOW + timedelta(hours=7))

    state = service.user_store.get("user-1", now=NOW)
    assert db.session.get(OutcomeCheck, check.id).state == STATE_RESOLVED
    assert (state.current_streak, state.best_streak, state.correct_picks) == (3, 3, 3)
    assert service.notifier.sent == [("user-1", "success", "🎉 Correct! Lakers won 110-104. Streak: 3!")]

    history = service.results_store.get("user-1")
    assert history[-1].final_score == "110-104"
    assert history[-1].is_correct

    assert service.leaderboard.load()[0].id == hashed_user_id("user-1")


def test_wrong_live_pick_resets_streak(service):
    _seed_state(service, current_streak=5, best_streak=6, total_picks=6, correct_picks=5)
    matchup = make_matchup()
    check = service.schedule_for_pick("user-1", matchup, _pick(matchup, "home"), now=NOW)
    service.sports_client.results["401585"] = _final(99, 101)

    service.run_check(check.id, now=NOW)

    state = service.user_store.get("user-1", now=NOW)
    assert (state.current_streak, state.best_streak) == (0, 6)
    assert service.notifier.sent[0][1] == "error"
    assert "You picked LAL, but Celtics won 99-101" in service.notifier.sent[0][2]


def test_tie_extends_streak_for_either_side(service):
    _seed_state(service, current_streak=1, best_streak=1, total_picks=1, correct_picks=1)
    matchup = make_matchup()
    check = service.schedule_for_pick("user-1", matchup, _pick(matchup, "away"), now=NOW)
    service.sports_client.results["401585"] = _final(3, 3)

    service.run_check(check.id, now=NOW)

    assert service.user_store.get("user-1", now=NOW).current_streak == 2
    assert service.notifier.sent[0][2].startswith("🤝 Tie Game!")


def test_retries_stop_after_three_attempts(service):
    _seed_state(service, current_streak=4, best_streak=4, total_picks=4, correct_picks=4)
    matchup = make_matchup()
    check = service.schedule_for_pick("user-1", matchup, _pick(matchup), now=NOW)

    for attempt in range(3):
        service.run_check(check.id, now=NOW + timedelta(hours=attempt))

    check = db.session.get(OutcomeCheck, check.id)
    assert check.state == STATE_EXHAUSTED
    assert check.attempt == 3
    assert len(service.scheduler.calls) == 3
    assert service.scheduler.calls[1][1] == NOW + timedelta(hours=1)
    assert service.user_store.get("user-1", now=NOW).current_streak == 4
    assert service.notifier.sent == [
        ("user-1", "warning", "Could not get result for LAL vs BOS. Your streak is unchanged.")
    ]

    # A late timer firing for an exhausted check does nothing
    service.run_check(check.id, now=NOW + timedelta(hours=5))
    assert len(service.notifier.sent) == 1
    assert len(service.sports_client.result_calls) == 3


def test_feed_error_exhausts_with_notice(service):
    matchup = make_matchup()
    check = service.schedule_for_pick("user-1", matchup, _pick(matchup), now=NOW)
    service.sports_client.results["401585"] = RuntimeError("boom")

    service.run_check(check.id, now=NOW)

    check = db.session.get(OutcomeCheck, check.id)
    assert check.state == STATE_EXHAUSTED
    assert check.last_error == "boom"
    assert service.notifier.sent == [
        ("user-1", "warning", "Error verifying result for LAL vs BOS. Your streak is unchanged.")
    ]


def test_missing_check_is_ignored(service):
    assert service.run_check(12345, now=NOW) is None


# ---------------------------------------------------------------------------
# Simulated checks
# ---------------------------------------------------------------------------


def test_simulated_pick_resolves_without_network(service):
    service.rng = FixedRandom(0.9)
    matchup = make_matchup(matchup_id="sim-lal-vs-bos-20240102", source=SOURCE_SIMULATED)

    check = service.schedule_for_pick("user-1", matchup, _pick(matchup, "away"), now=NOW)
    assert check.kind == KIND_SIMULATED
    assert check.run_at == NOW + timedelta(seconds=30)

    service.run_check(check.id, now=NOW + timedelta(seconds=30))

    assert service.sports_client.result_calls == []
    assert service.user_store.get("user-1", now=NOW).current_streak == 1
    record = service.results_store.get("user-1")[-1]
    assert (record.actual_winner, record.final_score) == ("away", "Simulated")
    assert service.notifier.sent == [("user-1", "success", "🎉 Correct! Streak: 1")]


def test_simulated_loss(service):
    service.rng = FixedRandom(0.2)
    _seed_state(service, current_streak=3, best_streak=3, total_picks=3, correct_picks=3)
    matchup = make_matchup(matchup_id="sim-lal-vs-bos-20240102", source=SOURCE_SIMULATED)
    check = service.schedule_for_pick("user-1", matchup, _pick(matchup, "home"), now=NOW)

    service.run_check(check.id, now=NOW)

    assert service.user_store.get("user-1", now=NOW).current_streak == 0
    assert service.results_store.get("user-1")[-1].actual_winner == "away"
    assert service.notifier.sent == [("user-1", "error", "😞 Wrong! Streak reset.")]


# ---------------------------------------------------------------------------
# Restart recovery
# ---------------------------------------------------------------------------


def test_resume_pending_reschedules_unfinished_checks(service):
    matchup = make_matchup(start_time=NOW - timedelta(hours=6))
    pending = service.schedule_for_pick("user-1", matchup, _pick(matchup), now=NOW - timedelta(hours=6))
    done = service.schedule_for_pick("user-2", matchup, _pick(matchup), now=NOW - timedelta(hours=6))
    done.transition(STATE_RESOLVED)

    scheduler = FakeScheduler()
    service.scheduler = scheduler
    resumed = service.resume_pending(now=NOW)

    assert resumed == 1
    assert [call[0] for call in scheduler.calls] == [pending.job_id]
    assert scheduler.calls[0][1] == NOW + timedelta(seconds=5)
