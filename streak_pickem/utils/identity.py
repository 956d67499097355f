"""
Identity boundary

The login flow lives outside this app; it leaves the user record
{id, email, name, username} in the Flask session under "user".
"""

from flask import session

from streak_pickem.utils.naming import ANONYMOUS_USER_ID

SESSION_USER_KEY = "user"


def get_current_user():
    """The session's user record, or None for anonymous sessions"""
    user = session.get(SESSION_USER_KEY)
    if not isinstance(user, dict) or not user.get("id"):
        return None
    return {
        "id": str(user["id"]),
        "email": user.get("email"),
        "name": user.get("name"),
        "username": user.get("username"),
    }


def user_key(user):
    """Partition key for per-user storage"""
    return user["id"] if user else ANONYMOUS_USER_ID
