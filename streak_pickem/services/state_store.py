"""
Per-user local state stores

Each store keeps one JSON document per user in durable storage under
"<prefix>_<user_id>" (the bare prefix for anonymous sessions). Reads apply
day and week boundary normalization without writing anything back; writes
re-read the latest stored value and apply a functional update to it.
"""

import json
import logging

from streak_pickem.models import ResultRecord, ShareStats, UserState, WeeklyStats
from streak_pickem.utils.calendar import normalize
from streak_pickem.utils.naming import ANONYMOUS_USER_ID

logger = logging.getLogger(__name__)

USER_STATE_PREFIX = "streakPickemUser"
SHARE_STATS_PREFIX = "shareStats"
GAME_RESULTS_PREFIX = "gameResults"


def normalize_user_state(state, today, week):
    """
    Apply day and week boundary resets to a UserState.

    A stale last_pick_date clears todays_pick and moves last_pick_date to
    today; a stale week_start resets the weekly counters. Returns a new
    value and is idempotent.
    """
    changes = {}

    if state.last_pick_date != today.key:
        changes["todays_pick"] = None
        changes["last_pick_date"] = today.key

    if state.weekly_stats.week_start != week.week_start:
        changes["weekly_stats"] = WeeklyStats(picks=0, correct=0, week_start=week.week_start)

    return state.update(**changes) if changes else state


class LocalStateStore:
    """User-scoped JSON document store over a get_item/set_item storage"""

    def __init__(self, storage, key_prefix, default_factory, loader, dumper, normalizer=None):
        self.storage = storage
        self.key_prefix = key_prefix
        self.default_factory = default_factory
        self.loader = loader
        self.dumper = dumper
        self.normalizer = normalizer

    def storage_key(self, user_id):
        if not user_id or user_id == ANONYMOUS_USER_ID:
            return self.key_prefix
        return f"{self.key_prefix}_{user_id}"

    def _read(self, key):
        """
        Load the stored value for key.

        Returns:
            tuple: (value, readable). Missing or corrupt values give the
            default with readable True; a storage failure gives the default
            with readable False.
        """
        try:
            raw = self.storage.get_item(key)
        except Exception as e:
            logger.error(f"Storage unavailable reading key {key}: {e}")
            return self.default_factory(), False

        if raw is None:
            return self.default_factory(), True
        try:
            return self.loader(json.loads(raw)), True
        except Exception as e:
            logger.error(f"Error reading stored value for key {key}: {e}")
            return self.default_factory(), True

    def _normalize(self, value, now):
        if self.normalizer is None:
            return value
        today, week = normalize(now)
        return self.normalizer(value, today, week)

    def get(self, user_id, now=None):
        """Return the user's value, normalized for the current day and week"""
        value, _ = self._read(self.storage_key(user_id))
        return self._normalize(value, now)

    def set(self, user_id, updater, now=None):
        """
        Apply updater to the latest stored value and persist the result.

        Nothing is written when the latest value could not be read, so a
        storage outage never overwrites saved progress with defaults.

        Args:
            user_id: Opaque user id (None or "anonymous" for the shared key)
            updater: Callable taking the current value and returning the new one
            now: Reference instant for normalization, default now

        Returns:
            The new value (also returned when the write fails or is skipped)
        """
        key = self.storage_key(user_id)
        current, readable = self._read(key)
        new_value = updater(self._normalize(current, now))

        if not readable:
            logger.warning(f"Skipping save for key {key}: stored value could not be read")
            return new_value

        try:
            self.storage.set_item(key, json.dumps(self.dumper(new_value)))
        except Exception as e:
            logger.error(f"Error saving stored value for key {key}: {e}")

        return new_value


def user_state_store(storage):
    return LocalStateStore(
        storage,
        USER_STATE_PREFIX,
        default_factory=UserState,
        loader=UserState.from_dict,
        dumper=lambda state: state.to_dict(),
        normalizer=normalize_user_state,
    )


def share_stats_store(storage):
    return LocalStateStore(
        storage,
        SHARE_STATS_PREFIX,
        default_factory=ShareStats,
        loader=ShareStats.from_dict,
        dumper=lambda stats: stats.to_dict(),
    )


def game_results_store(storage):
    return LocalStateStore(
        storage,
        GAME_RESULTS_PREFIX,
        default_factory=list,
        loader=lambda data: [ResultRecord.from_dict(item) for item in data or []],
        dumper=lambda records: [record.to_dict() for record in records],
    )
