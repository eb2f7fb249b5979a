"""
Pure notification timing and rendering.

No database, no I/O. Time-of-day matching works on local wall-clock minutes,
and the motivational slot is a stable function of (user, local date).
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple

from ..core.defaults_loader import get_template
from ..utils.timezone import LocalTime, local_time

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
DEFAULT_WINDOW_MINUTES = 5
DEFAULT_MOTIVATIONAL_WINDOW = (LocalTime(8, 0), LocalTime(21, 0))

# Used when config/defaults.yaml is not shipped alongside the package
FALLBACK_TEMPLATES: Dict[str, Dict[str, str]] = {
    "cycle_started": {
        "title": "Your Will has started!",
        "body": 'Time to begin your commitment: "{title}"',
    },
    "review_required": {
        "title": "Time to review your Will",
        "body": '"{title}" has ended. Share your review to close it out.',
    },
    "cycle_completed": {
        "title": "Ready for a new Will!",
        "body": 'Everyone has reviewed "{title}". You can start a new Will.',
    },
    "session_warning_1440": {
        "title": "Session tomorrow",
        "body": "Your circle session is scheduled for {session_time} tomorrow.",
    },
    "session_warning_15": {
        "title": "Session starting soon",
        "body": "Your circle session starts in 15 minutes.",
    },
    "session_live": {
        "title": "Session is live!",
        "body": "Join now for your circle's reflection session.",
    },
    "midpoint": {
        "title": "Halfway there",
        "body": 'You\'re at the midpoint of "{title}". Keep going!',
    },
    "uncommitted_reminder": {
        "title": "Your circle is waiting",
        "body": "A Will has been proposed. Add your commitment to join in.",
    },
    "review_reminder": {
        "title": "Your review is still missing",
        "body": '"{title}" can\'t close until everyone has submitted a review.',
    },
    "daily_reminder": {
        "title": "Daily check-in",
        "body": "How did your commitment go today?",
    },
    "motivational": {
        "title": "Keep it up",
        "body": 'Remember why you committed to "{title}".',
    },
}


def parse_hhmm(value: Optional[str]) -> Optional[LocalTime]:
    """Parse "HH:MM" (seconds tolerated). Returns None for empty or malformed input."""
    if not value:
        return None
    try:
        parts = value.strip().split(":")
        hours, minutes = int(parts[0]), int(parts[1])
    except (ValueError, IndexError):
        logger.warning(f"Ignoring malformed time of day: {value!r}")
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        logger.warning(f"Ignoring out-of-range time of day: {value!r}")
        return None
    return LocalTime(hours, minutes)


def minutes_apart(a: LocalTime, b: LocalTime) -> int:
    """Distance between two times of day, going the short way round midnight."""
    diff = abs(a.total_minutes - b.total_minutes)
    if diff > MINUTES_PER_DAY // 2:
        diff = MINUTES_PER_DAY - diff
    return diff


def within_window(
    current: LocalTime, target: LocalTime, window_minutes: int = DEFAULT_WINDOW_MINUTES
) -> bool:
    """True if *current* is within +/- *window_minutes* of *target*."""
    return minutes_apart(current, target) <= window_minutes


def stable_hash(text: str) -> int:
    """32-bit multiply-and-add string hash; identical input, identical output.

    Python's built-in hash() is salted per process, so it cannot be used.
    The closing bit mix spreads inputs that differ only in their last
    character, such as consecutive dates.
    """
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    h ^= h >> 16
    h = (h * 0x45D9F3B) & 0xFFFFFFFF
    h ^= h >> 16
    return h


def motivational_time(
    user_id: int,
    day: date,
    window: Tuple[LocalTime, LocalTime] = DEFAULT_MOTIVATIONAL_WINDOW,
) -> LocalTime:
    """Pick a reproducible time of day for *user_id* on *day*, inside *window*.

    The window may cross midnight (start later than end). A zero-length
    window means the whole day.
    """
    start, end = window
    span = (end.total_minutes - start.total_minutes) % MINUTES_PER_DAY
    if span == 0:
        span = MINUTES_PER_DAY
    offset = stable_hash(f"{user_id}:{day.isoformat()}") % span
    minute_of_day = (start.total_minutes + offset) % MINUTES_PER_DAY
    return LocalTime(minute_of_day // 60, minute_of_day % 60)


def short_cycle_window(
    start_at: datetime, end_at: Optional[datetime], tz_name: Optional[str]
) -> Optional[Tuple[LocalTime, LocalTime]]:
    """Local start/end window for cycles that run under 24 hours, else None."""
    if end_at is None or end_at - start_at >= timedelta(hours=24):
        return None
    return local_time(start_at, tz_name), local_time(end_at, tz_name)


def pre_session_bucket(now: datetime, offset_minutes: int) -> Tuple[datetime, datetime]:
    """Session starts whose *offset_minutes* warning falls in the minute at *now*.

    Returns (after, at_or_before): a session scheduled in that half-open range
    has its warning bucket [start - offset, start - offset + 1 min) around
    *now*. With one tick per minute exactly one tick lands in the bucket.
    """
    at_or_before = now + timedelta(minutes=offset_minutes)
    return at_or_before - timedelta(minutes=1), at_or_before


class _Blank(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render(category: str, **values) -> Tuple[str, str]:
    """Render the (title, body) for *category* from config, falling back to built-ins.

    Unknown placeholders render empty rather than raising.
    """
    template = get_template(category) or FALLBACK_TEMPLATES.get(category, {})
    fields = _Blank(values)
    title = template.get("title", category.replace("_", " ").capitalize())
    body = template.get("body", "")
    return title.format_map(fields), body.format_map(fields)
