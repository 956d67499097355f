"""
Shared leaderboard store

A multi-writer ranked collection kept as one JSON document in durable
storage. Each session only ever upserts its own entry (keyed by the hashed
user id), so concurrent writers can only race on the same entry, where the
later write wins.
"""

import json
import logging
from datetime import timedelta

from streak_pickem.models import LeaderboardEntry
from streak_pickem.utils.calendar import format_timestamp, utc_now
from streak_pickem.utils.naming import (
    ANONYMOUS_DISPLAY_NAME,
    ANONYMOUS_USER_ID,
    hashed_user_id,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "streak_pickem_global_leaderboard"
UPDATE_EVENT = "LEADERBOARD_UPDATE"

INACTIVE_AFTER = timedelta(days=30)
MAX_ENTRIES = 200
DISPLAY_LIMIT = 50

TAB_CURRENT = "current"
TAB_BEST = "best"
TAB_WEEKLY = "weekly"

_SORT_KEYS = {
    TAB_CURRENT: lambda e: (e.current_streak, e.best_streak),
    TAB_BEST: lambda e: (e.best_streak, e.current_streak),
    TAB_WEEKLY: lambda e: (e.weekly_wins, e.accuracy),
}


def sort_entries(entries, tab=TAB_CURRENT):
    """Sort entries descending by the tab's (primary, secondary) criterion"""
    key = _SORT_KEYS.get(tab, _SORT_KEYS[TAB_CURRENT])
    return sorted(entries, key=key, reverse=True)


def build_entry(user_id, state, now=None):
    return LeaderboardEntry.from_user_state(user_id, state, now or utc_now())


def publish_user_state(store, user_id, state, now=None):
    """Upsert a user's entry; anonymous sessions and private users are never published"""
    if not user_id or user_id == ANONYMOUS_USER_ID:
        return None
    if not state.display_name or state.display_name == ANONYMOUS_DISPLAY_NAME:
        return None
    if not state.is_public:
        return None
    return store.upsert(build_entry(user_id, state, now), now=now)


class SharedLeaderboardStore:
    """load/upsert/subscribe over the shared leaderboard document"""

    def __init__(self, storage, channel):
        self.storage = storage
        self.channel = channel

    def _read_raw(self):
        stored = self.storage.get_item(STORAGE_KEY)
        return json.loads(stored) if stored else []

    def load(self):
        """All entries sorted by current streak, then best streak"""
        try:
            entries = [LeaderboardEntry.from_dict(item) for item in self._read_raw()]
        except Exception as e:
            logger.error(f"Error loading leaderboard from storage: {e}")
            return []
        return sort_entries(entries)

    def upsert(self, entry, now=None):
        """
        Merge an entry into the shared collection and notify observers.

        The new entry's fields replace the old ones; fields only present in
        the stored entry are kept. Entries inactive for 30 days are pruned,
        except the one being written.

        Returns:
            int|None: The writer's rank after the upsert, None on failure
        """
        now = now or utc_now()
        cutoff = now - INACTIVE_AFTER
        incoming = entry.to_dict()

        try:
            raw = self._read_raw()

            merged = False
            for index, item in enumerate(raw):
                if str(item.get("id")) == entry.id:
                    raw[index] = {**item, **incoming}
                    merged = True
                    break
            if not merged:
                raw.append(incoming)

            entries = []
            for item in raw:
                candidate = LeaderboardEntry.from_dict(item)
                if candidate.id == entry.id:
                    entries.append(candidate)
                    continue
                last_active = candidate.last_active_at
                if last_active is not None and last_active > cutoff:
                    entries.append(candidate)

            entries = sort_entries(entries)[:MAX_ENTRIES]

            self.storage.set_item(STORAGE_KEY, json.dumps([e.to_dict() for e in entries]))
        except Exception as e:
            logger.error(f"Error updating shared leaderboard: {e}")
            return None

        rank = next((i + 1 for i, e in enumerate(entries) if e.id == entry.id), None)
        logger.info(f"Updated leaderboard: {entry.display_name} rank {rank} with {entry.current_streak} streak")

        self.channel.post_message({
            "type": UPDATE_EVENT,
            "timestamp": format_timestamp(now),
            "user_id": entry.id,
        })
        return rank

    def subscribe(self, on_change):
        """Call on_change with each update event; returns an unsubscribe callable"""

        def handler(event):
            if event.get("type") == UPDATE_EVENT:
                on_change(event)

        return self.channel.on_message(handler)

    def view(self, user_id, tab=TAB_CURRENT, search=None):
        """
        Display view of the leaderboard.

        Returns:
            dict: users (top 50 for the tab after the search filter),
                  user_rank (rank in the full global order), total, last_updated
        """
        entries = self.load()
        user_hash = hashed_user_id(user_id)
        user_rank = next((i + 1 for i, e in enumerate(entries) if e.id == user_hash), None)

        shown = entries
        if search:
            needle = search.lower()
            shown = [e for e in shown if needle in (e.display_name or "").lower()]
        shown = sort_entries(shown, tab)[:DISPLAY_LIMIT]

        return {
            "users": [e.to_dict() for e in shown],
            "user_rank": user_rank,
            "total": len(entries),
            "tab": tab if tab in _SORT_KEYS else TAB_CURRENT,
            "last_updated": format_timestamp(utc_now()),
        }
