"""
SocketIO Event Handlers for Real-time Updates

Two namespaces: /notifications carries per-user toasts (pick results,
retry exhaustion), /leaderboard carries change hints from the shared
leaderboard store so open clients can reload.
"""

import logging
from datetime import datetime, timezone

from flask import request
from flask_socketio import emit, join_room, leave_room

from streak_pickem import socketio
from streak_pickem.utils.identity import get_current_user, user_key

logger = logging.getLogger(__name__)

AUTO_DISMISS_TYPES = ("info", "success")
AUTO_DISMISS_MS = 5000

# Track connected clients and their rooms
connected_users = {}


@socketio.on("connect", namespace="/notifications")
def on_notifications_connect():
    """Join the user's personal notification room"""
    try:
        user_id = user_key(get_current_user())
        client_id = request.sid

        join_room(f"user_{user_id}")
        connected_users[client_id] = {"user_id": user_id, "namespace": "/notifications"}

        logger.info(f"User {user_id} connected to notifications")

    except Exception as e:
        logger.error(f"Error in notifications connect: {e}")


@socketio.on("disconnect", namespace="/notifications")
def on_notifications_disconnect(*args):
    """Handle disconnection from notifications namespace"""
    try:
        client = connected_users.pop(request.sid, None)
        if client:
            leave_room(f"user_{client['user_id']}")
            logger.info(f"User {client['user_id']} disconnected from notifications")
    except Exception as e:
        logger.error(f"Error in notifications disconnect: {e}")


@socketio.on("connect", namespace="/leaderboard")
def on_leaderboard_connect():
    """Send the current leaderboard view on connect"""
    try:
        from streak_pickem.services.factory import build_leaderboard

        user_id = user_key(get_current_user())
        connected_users[request.sid] = {"user_id": user_id, "namespace": "/leaderboard"}

        emit("leaderboard_snapshot", build_leaderboard().view(user_id))

    except Exception as e:
        logger.error(f"Error in leaderboard connect: {e}")


@socketio.on("disconnect", namespace="/leaderboard")
def on_leaderboard_disconnect(*args):
    connected_users.pop(request.sid, None)


@socketio.on("refresh", namespace="/leaderboard")
def on_leaderboard_refresh(data=None):
    """Explicit reload; recovers from any missed change events"""
    try:
        from streak_pickem.services.factory import build_leaderboard

        data = data or {}
        user_id = user_key(get_current_user())
        emit(
            "leaderboard_snapshot",
            build_leaderboard().view(user_id, tab=data.get("tab", "current"), search=data.get("search")),
        )
    except Exception as e:
        logger.error(f"Error in leaderboard refresh: {e}")


def build_notification(notification_type, message):
    return {
        "type": notification_type,
        "message": message,
        "auto_dismiss_ms": AUTO_DISMISS_MS if notification_type in AUTO_DISMISS_TYPES else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def notify_user(user_id, notification_type, message):
    """Send notification to a specific user"""
    try:
        socketio.emit(
            "notification",
            build_notification(notification_type, message),
            room=f"user_{user_id}",
            namespace="/notifications",
        )

        logger.debug(f"Sent {notification_type} notification to user {user_id}")

    except Exception as e:
        logger.error(f"Error sending notification to user {user_id}: {e}")


def get_connection_stats():
    """Get connection statistics"""
    return {
        "total_connections": len(connected_users),
        "notifications": len([u for u in connected_users.values() if u["namespace"] == "/notifications"]),
        "leaderboard": len([u for u in connected_users.values() if u["namespace"] == "/leaderboard"]),
    }
