"""
Minute arithmetic on time-of-day labels ("HH:MM" or "HH:MM:SS").

Every comparison is done on minutes since midnight.
"""

import re

from errors import EndTimeOverflowError

MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r"^\s*([01]?\d|2[0-3])[:hH]([0-5]\d)(?::([0-5]\d))?\s*$")


def to_minutes(value: str) -> int:
    """Convert 'HH:MM' / 'HH:MM:SS' to minutes since midnight (seconds are dropped)."""
    match = TIME_PATTERN.match(str(value or ""))
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_time(minutes: int, seconds: bool = True) -> str:
    hours, mins = divmod(minutes, 60)
    label = f"{hours:02d}:{mins:02d}"
    return f"{label}:00" if seconds else label


def normalize_time(value):
    """Return the 'HH:MM' form of a time label, or None if it is not one."""
    try:
        return format_time(to_minutes(value), seconds=False)
    except ValueError:
        return None


def end_time(start: str, duration_min: int, allow_rollover: bool = False) -> str:
    """
    Compute the end of an appointment as 'HH:MM:SS'.

    Crossing midnight raises EndTimeOverflowError unless allow_rollover is set,
    in which case the result wraps around (23:30 + 45 -> 00:15:00).
    """
    if int(duration_min) <= 0:
        raise ValueError("Duration must be a positive number of minutes")
    total = to_minutes(start) + int(duration_min)
    if total > MINUTES_PER_DAY:
        if not allow_rollover:
            raise EndTimeOverflowError(
                f"Horário {normalize_time(start)} com duração de {duration_min} min ultrapassa a meia-noite."
            )
        total %= MINUTES_PER_DAY
    elif total == MINUTES_PER_DAY and allow_rollover:
        total = 0
    return format_time(total)


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap: [a_start, a_end) and [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def parse_duration(value):
    """Positive whole minutes from a stored duration, or None when it is missing or not a number."""
    try:
        minutes = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return minutes if minutes > 0 else None
