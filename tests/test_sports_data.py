"""Scoreboard feed client against canned feed payloads."""

from datetime import datetime, timedelta, timezone

import pytest
import requests

from streak_pickem.services import sports_data
from streak_pickem.services.sports_data import SportsDataClient

NOW = datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload or {}
        self.status_code = status_code
        self.headers = {}

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    def __init__(self, routes):
        self.routes = routes
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        response = self.routes.get(url)
        if response is None:
            return FakeResponse(status_code=404)
        return response


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(sports_data.time, "sleep", lambda seconds: None)


def _competitor(side, name, abbr, score=None, color=None):
    team = {"displayName": name, "abbreviation": abbr}
    if color:
        team["color"] = color
    data = {"homeAway": side, "team": team}
    if score is not None:
        data["score"] = score
    return data


def _event(event_id, start, state="pre", home_score=None, away_score=None):
    return {
        "id": event_id,
        "name": "Boston Celtics at Los Angeles Lakers",
        "date": start.strftime("%Y-%m-%dT%H:%MZ"),
        "status": {"type": {"state": state, "detail": "Tue, January 2nd at 7:30 PM EST"}},
        "competitions": [
            {
                "venue": {"fullName": "Crypto.com Arena"},
                "status": {"type": {"state": state}},
                "competitors": [
                    _competitor("home", "Los Angeles Lakers", "LAL", home_score, color="552583"),
                    _competitor("away", "Boston Celtics", "BOS", away_score),
                ],
            }
        ],
    }


def _client(routes):
    session = FakeSession(routes)
    return SportsDataClient(api_base_url="https://feed.test/sports", session=session, min_request_interval=0), session


SCOREBOARD = "https://feed.test/sports/basketball/nba/scoreboard"
SUMMARY = "https://feed.test/sports/basketball/nba/summary"


# ---------------------------------------------------------------------------
# Upcoming games
# ---------------------------------------------------------------------------


def test_fetch_upcoming_skips_started_games():
    events = [
        _event("1", NOW - timedelta(minutes=30), state="in"),
        _event("2", NOW + timedelta(minutes=3)),
        _event("3", NOW + timedelta(hours=4)),
    ]
    client, _ = _client({SCOREBOARD: FakeResponse({"events": events})})

    matchup = client.fetch_upcoming("NBA", now=NOW)

    assert matchup.id == "3"
    assert matchup.is_live
    assert matchup.home_team.name == "Los Angeles Lakers"
    assert matchup.home_team.colors == ("552583", "FFC72C")
    assert matchup.away_team.colors == ("CE1141", "000000")
    assert matchup.home_team.logo == "🏀"
    assert matchup.venue == "Crypto.com Arena"
    assert matchup.status == "Tue, January 2nd at 7:30 PM EST"


def test_fetch_upcoming_none_when_all_started():
    events = [_event("1", NOW - timedelta(hours=1), state="in")]
    client, _ = _client({SCOREBOARD: FakeResponse({"events": events})})

    assert client.fetch_upcoming("NBA", now=NOW) is None


def test_fetch_upcoming_skips_games_with_bad_data(monkeypatch):
    broken = _event("1", NOW + timedelta(hours=2))
    del broken["competitions"]
    events = [broken, _event("2", NOW + timedelta(hours=3))]
    client, _ = _client({SCOREBOARD: FakeResponse({"events": events})})
    monkeypatch.setattr(sports_data.random, "choice", lambda items: items[0])

    matchup = client.fetch_upcoming("NBA", now=NOW)

    assert matchup.id == "2"


def test_fetch_upcoming_none_when_no_game_parses():
    broken = _event("1", NOW + timedelta(hours=2))
    del broken["competitions"]
    client, _ = _client({SCOREBOARD: FakeResponse({"events": [broken]})})

    assert client.fetch_upcoming("NBA", now=NOW) is None


def test_fetch_upcoming_none_on_empty_or_failing_feed():
    client, _ = _client({SCOREBOARD: FakeResponse({"events": []})})
    assert client.fetch_upcoming("NBA", now=NOW) is None

    client, session = _client({SCOREBOARD: FakeResponse(status_code=503)})
    assert client.fetch_upcoming("NBA", now=NOW) is None
    assert len(session.calls) == 3


def test_parse_event_rejects_bad_data():
    client, _ = _client({})

    with pytest.raises(ValueError):
        client.parse_event(_event("1", NOW - timedelta(hours=2)), "NBA", now=NOW)

    broken = _event("2", NOW + timedelta(hours=2))
    broken["competitions"][0]["competitors"] = broken["competitions"][0]["competitors"][:1]
    with pytest.raises(ValueError):
        client.parse_event(broken, "NBA", now=NOW)


def test_parse_event_defaults():
    event = _event("7", NOW + timedelta(hours=2))
    del event["competitions"][0]["venue"]
    del event["status"]
    client, _ = _client({})

    matchup = client.parse_event(event, "NBA", now=NOW)

    assert matchup.venue == "NBA Stadium"
    assert matchup.status == "upcoming"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def _summary(state, home_score, away_score):
    event = _event("401", NOW - timedelta(hours=3), state=state, home_score=home_score, away_score=away_score)
    return {"header": {"competitions": event["competitions"], "lastModified": "2024-01-02T18:05Z"}}


def test_fetch_result_direct_final():
    client, session = _client({SUMMARY: FakeResponse(_summary("post", "110", "104"))})

    result = client.fetch_result("401", "NBA")

    assert result.winner == "home"
    assert result.final_score == "110-104"
    assert result.completed_at == datetime(2024, 1, 2, 18, 5, tzinfo=timezone.utc)
    assert session.calls == [(SUMMARY, {"event": "401"})]


def test_fetch_result_falls_back_to_scoreboard():
    finished = _event("401", NOW - timedelta(hours=3), state="post", home_score="99", away_score="101")
    client, _ = _client({
        SUMMARY: FakeResponse(_summary("in", "80", "81")),
        SCOREBOARD: FakeResponse({"events": [finished]}),
    })

    result = client.fetch_result("401", "NBA")

    assert result.winner == "away"
    assert result.away_team.abbreviation == "BOS"


def test_fetch_result_none_while_in_progress():
    in_progress = _event("401", NOW - timedelta(hours=1), state="in", home_score="50", away_score="48")
    client, _ = _client({
        SUMMARY: FakeResponse(_summary("in", "50", "48")),
        SCOREBOARD: FakeResponse({"events": [in_progress]}),
    })

    assert client.fetch_result("401", "NBA") is None


def test_fetch_result_tie():
    client, _ = _client({SUMMARY: FakeResponse(_summary("post", {"value": 2}, {"value": 2}))})

    assert client.fetch_result("401", "NBA").winner == "tie"


def test_unsupported_sport_skips_direct_lookup():
    client, session = _client({})

    assert client.fetch_result_direct("401", "Cricket") is None
    assert session.calls == []


def test_connectivity_report():
    client, _ = _client({SCOREBOARD: FakeResponse({"events": [{}, {}]})})

    report = client.check_connectivity(sports=("NBA", "NFL"))

    assert report["NBA"] == {"ok": True, "events": 2}
    assert report["NFL"]["ok"] is False
    assert client.get_rate_limit_status()["total_requests"] >= 2
