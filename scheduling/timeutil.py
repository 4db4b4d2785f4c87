"""Date, time and timezone helpers shared by the engine.

Event timestamps are naive wall-clock values; the zone belongs to the
owning calendar. These helpers attach zones only long enough to move a
wall-clock value between zones through its absolute instant.
"""

from datetime import date, datetime, time
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def validate_timezone(value: str) -> str:
    """Validate timezone is a recognized IANA timezone identifier.

    Args:
        value: Timezone identifier to validate.

    Returns:
        The validated timezone identifier.

    Raises:
        ValueError: If timezone is not recognized.
    """
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ValueError(f"Invalid timezone '{value}': {e}") from e
    return value


def convert_wall_time(local: datetime, from_zone: str, to_zone: str) -> datetime:
    """Re-express a wall-clock time from one zone in another zone.

    The absolute instant is preserved; the result is naive again.

    Args:
        local: Naive wall-clock time in from_zone.
        from_zone: IANA zone the value is expressed in.
        to_zone: IANA zone to express it in.

    Returns:
        Naive wall-clock time in to_zone.
    """
    aware = local.replace(tzinfo=ZoneInfo(from_zone))
    return aware.astimezone(ZoneInfo(to_zone)).replace(tzinfo=None)


def as_date(value: Union[date, datetime]) -> date:
    """Return the calendar date of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def as_datetime(value: Union[date, datetime], end_of_day: bool = False) -> datetime:
    """Return a datetime; bare dates become midnight, or 23:59:59.999999 if end_of_day."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max if end_of_day else time.min)


def parse_datetime(text: str) -> datetime:
    """Parse YYYY-MM-DDTHH:MM or YYYY-MM-DD into a naive datetime.

    A bare date means midnight.

    Raises:
        ValueError: If the text is not a date or date-time, or carries an offset.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError(f"Invalid date-time: {text!r}")
    parsed = datetime.fromisoformat(text.strip())
    if parsed.tzinfo is not None:
        raise ValueError(f"Expected a local date-time without offset: {text!r}")
    return parsed


def parse_time(text: str) -> time:
    """Parse HH:MM into a time of day."""
    return time.fromisoformat(text.strip())


def parse_bool(text: str) -> bool:
    """Parse 'true'/'false' in any case.

    Raises:
        ValueError: For anything else.
    """
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"Expected true or false, got {text!r}")
