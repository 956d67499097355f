"""
Calendar-day and ISO-week values for the daily game

Every "is it a new day / new week" decision goes through normalize(), which
resolves "now" against the configured TIMEZONE.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

import pytz
from flask import current_app, has_app_context

DAY_KEY_FORMAT = "%a %b %d %Y"  # e.g. "Tue Jan 02 2024"


def get_app_timezone(name=None):
    """Resolve a timezone name, defaulting to the app's TIMEZONE setting"""
    if name is None:
        name = current_app.config.get("TIMEZONE", "UTC") if has_app_context() else "UTC"
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def _resolve_tz(tz):
    if tz is None or isinstance(tz, str):
        return get_app_timezone(tz)
    return tz


def utc_now():
    return datetime.now(timezone.utc)


def ensure_aware(dt):
    """Treat naive datetimes as UTC"""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp(value):
    """Parse an ISO-8601 timestamp (trailing 'Z' allowed) into an aware datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    return ensure_aware(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def format_timestamp(dt):
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(timezone.utc).isoformat()


@dataclass(frozen=True)
class CalendarDay:
    """One local calendar day"""

    value: date

    @classmethod
    def parse(cls, key):
        return cls(datetime.strptime(key, DAY_KEY_FORMAT).date())

    @classmethod
    def from_datetime(cls, dt, tz=None):
        return cls(ensure_aware(dt).astimezone(_resolve_tz(tz)).date())

    @property
    def key(self):
        return self.value.strftime(DAY_KEY_FORMAT)

    @property
    def seed(self):
        return self.value.year * 10000 + self.value.month * 100 + self.value.day

    def next(self):
        return CalendarDay(self.value + timedelta(days=1))

    def at(self, hour, tz=None):
        """Aware datetime for a local wall-clock hour on this day"""
        local_tz = _resolve_tz(tz)
        return local_tz.localize(datetime.combine(self.value, time(hour=hour)))

    def __str__(self):
        return self.key


@dataclass(frozen=True)
class IsoWeek:
    """The Monday-based week holding a calendar day"""

    monday: date
    week_start: str

    @classmethod
    def containing(cls, day, tz=None):
        local_tz = _resolve_tz(tz)
        monday = day.value - timedelta(days=day.value.weekday())
        local_midnight = local_tz.localize(datetime.combine(monday, time()))
        week_start = local_midnight.astimezone(timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%S.000Z"
        )
        return cls(monday, week_start)


def normalize(now=None, tz=None):
    """
    Resolve an instant into the (CalendarDay, IsoWeek) used for resets.

    Args:
        now: Aware datetime (naive values are treated as UTC), default now
        tz: Timezone name or tzinfo, default the app's TIMEZONE

    Returns:
        tuple: (CalendarDay, IsoWeek)
    """
    local_tz = _resolve_tz(tz)
    now = ensure_aware(now) if now is not None else utc_now()
    day = CalendarDay(now.astimezone(local_tz).date())
    return day, IsoWeek.containing(day, local_tz)


def format_time_left(start_time, now=None):
    """Countdown text until a game starts"""
    now = ensure_aware(now) if now is not None else utc_now()
    remaining = int((ensure_aware(start_time) - now).total_seconds())

    if remaining <= 0:
        return "Game started"

    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, seconds = divmod(remaining, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m {seconds}s"
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    return f"{minutes}m {seconds}s"


def naive_utc(dt):
    """UTC wall-clock value for naive DateTime columns"""
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(timezone.utc).replace(tzinfo=None)
