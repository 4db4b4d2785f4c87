"""Domain exceptions for the scheduling engine.

These are raised by internal helpers and caught at the boundary of each
public Calendar/CalendarManager operation, which logs the reason and reports
the failure through its return value instead.
"""

from datetime import datetime
from typing import Optional


class SchedulingError(Exception):
    """Base class for expected scheduling failures.

    Args:
        message: Description of what went wrong.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EventValidationError(SchedulingError):
    """Raised when an event's fields are missing or inconsistent.

    Covers an empty subject, a missing start, an end that is not after the
    start, and recurring timed events spanning more than one day.
    """


class EventConflictError(SchedulingError):
    """Raised when a placement overlaps an existing occurrence.

    Args:
        subject: Subject of the event being placed.
        conflicting_subject: Subject of the stored event it collides with.
        at: Start of the stored occurrence that collides.
    """

    def __init__(self, subject: str, conflicting_subject: str, at: datetime):
        self.subject = subject
        self.conflicting_subject = conflicting_subject
        self.at = at
        super().__init__(
            f"'{subject}' conflicts with '{conflicting_subject}' at {at.isoformat()}"
        )


class EventNotFoundError(SchedulingError):
    """Raised when no stored event matches a name and start.

    Args:
        name: Event name that was searched for.
        start: Start timestamp that was searched for, if any.
    """

    def __init__(self, name: str, start: Optional[datetime] = None):
        self.name = name
        self.start = start
        where = f" at {start.isoformat()}" if start else ""
        super().__init__(f"Event '{name}'{where} not found")


class CalendarNotFoundError(SchedulingError):
    """Raised when a calendar name is not registered.

    Args:
        name: The calendar name that wasn't found.
        available_calendars: Names that are registered.
    """

    def __init__(self, name: str, available_calendars: list[str]):
        self.name = name
        self.available_calendars = available_calendars
        super().__init__(f"Calendar '{name}' not found")


class DuplicateCalendarError(SchedulingError):
    """Raised when a calendar name is already taken.

    Args:
        name: The name that is already registered.
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Calendar '{name}' already exists")


class InvalidPropertyError(SchedulingError):
    """Raised for an unknown property name or an unusable property value.

    Args:
        property_name: The property that was being edited.
        value: The rejected value.
        reason: Why the edit was rejected.
    """

    def __init__(self, property_name: str, value: object, reason: str):
        self.property_name = property_name
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot set {property_name}={value!r}: {reason}")
