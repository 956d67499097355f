"""Shared fixtures: an in-memory app plus stand-ins for the scheduler, notifier and feed."""

from datetime import datetime, timedelta, timezone

import pytest

from streak_pickem import create_app, db
from streak_pickem.models import Matchup, Team
from streak_pickem.models.matchup import SOURCE_LIVE
from streak_pickem.services.factory import EXTENSION_KEY

NOW = datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)


class FakeScheduler:
    def __init__(self):
        self.jobs = {}
        self.calls = []

    def schedule_once(self, job_id, run_at, func, args=None):
        self.calls.append((job_id, run_at, list(args or [])))
        self.jobs[job_id] = (run_at, func, list(args or []))

    def run(self, job_id):
        run_at, func, args = self.jobs.pop(job_id)
        return func(*args)


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def __call__(self, user_id, notification_type, message):
        self.sent.append((user_id, notification_type, message))


class FakeSportsClient:
    def __init__(self):
        self.upcoming = None
        self.results = {}
        self.result_calls = []
        self.upcoming_calls = []

    def fetch_upcoming(self, sport, now=None):
        self.upcoming_calls.append(sport)
        if isinstance(self.upcoming, Exception):
            raise self.upcoming
        return self.upcoming

    def fetch_result(self, game_id, sport):
        self.result_calls.append((game_id, sport))
        result = self.results.get(game_id)
        if isinstance(result, Exception):
            raise result
        return result

    def check_connectivity(self, sports=("MLB",)):
        return {sport: {"ok": True, "events": 0} for sport in sports}

    def get_rate_limit_status(self):
        return {"total_requests": 0}


class MemoryStorage:
    def __init__(self):
        self.items = {}

    def get_item(self, key):
        return self.items.get(key)

    def set_item(self, key, value):
        self.items[key] = value


class RecordingChannel:
    def __init__(self):
        self.posted = []
        self.handlers = []

    def post_message(self, event):
        self.posted.append(event)
        for handler in list(self.handlers):
            handler(event)

    def on_message(self, handler):
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)


def make_matchup(matchup_id="401585", sport="NBA", start_time=None, source=SOURCE_LIVE):
    return Matchup(
        id=matchup_id,
        home_team=Team(name="Lakers", abbreviation="LAL", logo="🏀", colors=("552583", "FDB927")),
        away_team=Team(name="Celtics", abbreviation="BOS", logo="🏀", colors=("007A33", "BA9653")),
        sport=sport,
        venue="Crypto.com Arena",
        start_time=start_time or NOW + timedelta(hours=4),
        source=source,
    )


@pytest.fixture
def app():
    app = create_app("testing")
    app.extensions[EXTENSION_KEY] = {
        "scheduler": FakeScheduler(),
        "notifier": FakeNotifier(),
        "sports_client": FakeSportsClient(),
    }

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def fakes(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user_id="user-1", username="alice", **extra):
        with client.session_transaction() as sess:
            sess["user"] = {"id": user_id, "username": username, **extra}
        return user_id

    return _login
