from functools import wraps

from flask import current_app, jsonify, request

from streak_pickem import limiter
from streak_pickem.routes.api import bp
from streak_pickem.services.factory import (
    build_game_service,
    build_leaderboard,
    get_scheduler,
    get_sports_client,
)
from streak_pickem.services.game_service import SHARE_TYPES, generate_share_text, has_picked_today
from streak_pickem.socketio_handlers import build_notification, get_connection_stats
from streak_pickem.utils.cache_utils import cached_route, get_cache_stats
from streak_pickem.utils.calendar import format_time_left, normalize, utc_now
from streak_pickem.utils.identity import get_current_user, user_key


def no_store(f):
    """Per-user responses must never be cached by clients or proxies"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = current_app.make_response(f(*args, **kwargs))
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return response

    return decorated_function


def _matchup_payload(game, user_id, state, now):
    matchup = game.current_matchup(user_id, state, now)
    today, _ = normalize(now)
    return {
        "matchup": matchup.to_dict(),
        "has_picked_today": has_picked_today(state, matchup, today),
        "game_started": matchup.has_started(now),
        "time_left": format_time_left(matchup.start_time, now),
        "data_source": "📡 Live" if matchup.is_live else "🎮 Sim",
        "today": today.key,
    }


@bp.route("/auth/check")
@no_store
def auth_check():
    """Identity record of the session, without anything sensitive"""
    user = get_current_user()
    if not user:
        return jsonify({"error": "Not authenticated"}), 401
    return jsonify(user)


@bp.route("/state")
@no_store
def state():
    """Bootstrap a session: apply the display name, publish, return state"""
    user = get_current_user()
    user_id = user_key(user)
    game = build_game_service()

    state = game.sync_session(user_id, user)

    return jsonify(
        {
            "user_id": user_id,
            "state": state.to_dict(),
            "accuracy": state.accuracy,
            "share_prompt": game.milestone_prompt(user_id, state),
        }
    )


@bp.route("/matchup/today")
@no_store
def matchup_today():
    user_id = user_key(get_current_user())
    game = build_game_service()
    now = utc_now()

    return jsonify(_matchup_payload(game, user_id, game.get_state(user_id, now=now), now))


@bp.route("/picks", methods=["POST"])
@limiter.limit("30 per minute")
@no_store
def make_pick():
    """Record today's pick; the result arrives later as a notification"""
    data = request.get_json(silent=True) or {}
    user_id = user_key(get_current_user())

    outcome = build_game_service().make_pick(user_id, data.get("team"))

    return (
        jsonify(
            {
                "pick": outcome["pick"].to_dict(),
                "state": outcome["state"].to_dict(),
                "matchup": outcome["matchup"].to_dict(),
                "notification": build_notification("info", outcome["message"]),
            }
        ),
        201,
    )


@bp.route("/preferences/theme", methods=["POST"])
@no_store
def toggle_theme():
    state = build_game_service().toggle_theme(user_key(get_current_user()))
    return jsonify({"theme": state.theme})


@bp.route("/preferences/sound", methods=["POST"])
@no_store
def toggle_sound():
    state = build_game_service().toggle_sound(user_key(get_current_user()))
    return jsonify({"sound_enabled": state.sound_enabled})


@bp.route("/leaderboard")
@no_store
def leaderboard():
    """Top 50 for a tab (current, best, weekly) with optional name search"""
    user_id = user_key(get_current_user())
    tab = request.args.get("tab", "current")
    search = request.args.get("search") or None

    return jsonify(build_leaderboard().view(user_id, tab=tab, search=search))


@bp.route("/results")
@no_store
def results():
    """Rolling history of the last 10 resolved picks"""
    history = build_game_service().get_results(user_key(get_current_user()))
    return jsonify({"results": [record.to_dict() for record in history]})


@bp.route("/share")
@no_store
def share_text():
    share_type = request.args.get("type", "streak")
    if share_type not in SHARE_TYPES:
        return jsonify({"error": f"Unknown share type: {share_type}"}), 400

    user_id = user_key(get_current_user())
    game = build_game_service()
    now = utc_now()
    state = game.get_state(user_id, now=now)
    matchup = game.current_matchup(user_id, state, now) if share_type == "pick" else None
    app_url = current_app.config.get("APP_URL", request.host_url.rstrip("/"))

    return jsonify(
        {
            "type": share_type,
            "text": generate_share_text(state, matchup, share_type, app_url),
            "url": app_url,
        }
    )


@bp.route("/share", methods=["POST"])
@no_store
def record_share():
    data = request.get_json(silent=True) or {}
    share_type = data.get("type", "streak")
    platform = data.get("platform", "copy")

    if share_type not in SHARE_TYPES:
        return jsonify({"error": f"Unknown share type: {share_type}"}), 400

    stats, message = build_game_service().record_share(user_key(get_current_user()), share_type, platform)
    return jsonify({"share_stats": stats.to_dict(), "notification": build_notification("success", message)})


@cached_route(timeout=300, key_prefix="feed_status")
def _feed_status():
    if not current_app.config.get("LIVE_DATA_ENABLED", True):
        return {"enabled": False}
    client = get_sports_client()
    return {
        "enabled": True,
        "sports": client.check_connectivity(),
        "rate_limit": client.get_rate_limit_status(),
    }


@bp.route("/status")
@no_store
def status():
    """Diagnostics: scheduler, scoreboard feed, cache and socket connections"""
    scheduler = get_scheduler()
    return jsonify(
        {
            "scheduler": scheduler.get_status() if hasattr(scheduler, "get_status") else None,
            "feed": _feed_status(),
            "cache": get_cache_stats(),
            "connections": get_connection_stats(),
            "timezone": current_app.config.get("TIMEZONE", "UTC"),
        }
    )
