"""Clock-time and interval helpers."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from commitment_engine.errors import InvalidBlockError, InvalidTimeError

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def time_to_minutes(value: str) -> int:
    """Convert "HH:MM" into minutes after midnight.

    "24:00" is accepted as the end of the day; every other hour must be 0-23.
    """

    match = _TIME_PATTERN.match(str(value).strip()) if value is not None else None
    if not match:
        raise InvalidTimeError(f"malformed time {value!r}, expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        raise InvalidTimeError(f"minute out of range in {value!r}")
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23:
        raise InvalidTimeError(f"hour out of range in {value!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Format minutes after midnight as "HH:MM"."""

    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise InvalidTimeError(f"minute offset {minutes} is outside the day")
    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"


def duration(start: str, end: str) -> int:
    return time_to_minutes(end) - time_to_minutes(start)


def overlap_minutes(start1: int, end1: int, start2: int, end2: int) -> int:
    """Length of the intersection of two half-open intervals."""

    return max(0, min(end1, end2) - max(start1, start2))


def span_overlap(a, b) -> int:
    """Overlap in minutes between two records carrying start/end strings."""

    return overlap_minutes(
        time_to_minutes(a.start),
        time_to_minutes(a.end),
        time_to_minutes(b.start),
        time_to_minutes(b.end),
    )


def validate_block(block) -> None:
    """Reject a block whose times are malformed or not strictly increasing."""

    try:
        start = time_to_minutes(block.start)
        end = time_to_minutes(block.end)
    except InvalidTimeError as exc:
        raise InvalidBlockError(f"block {block.id!r}: {exc}") from exc
    if start >= end:
        raise InvalidBlockError(f"block {block.id!r}: start {block.start} must be before end {block.end}")
    if not str(block.identity or "").strip():
        raise InvalidBlockError(f"block {block.id!r}: identity is empty")


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"malformed date {value!r}, expected YYYY-MM-DD") from exc


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""

    return day - timedelta(days=day.weekday())


def resolve_now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now()


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def block_has_ended(block, commit_date: date, now: datetime) -> bool:
    """Whether the block's end-time has passed as of ``now``."""

    today = now.date()
    if commit_date < today:
        return True
    if commit_date > today:
        return False
    return time_to_minutes(block.end) <= minute_of_day(now)
