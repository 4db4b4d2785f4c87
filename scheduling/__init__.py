"""Multi-calendar scheduling engine.

This package contains the in-memory scheduling engine: weekly recurrence
patterns, events with conflict detection, timezone-bound calendars, the
calendar registry with cross-calendar copying, typed front-end requests,
and the CSV record layout.
"""

from scheduling.recurrence import RecurrencePattern, Weekday
from scheduling.event import Event
from scheduling.calendar import Calendar
from scheduling.manager import CalendarManager
from scheduling.config import EngineSettings, get_settings
from scheduling.requests import (
    CalendarRequest,
    CopyRequest,
    EngineRequest,
    EventCreateRequest,
    EventEditRequest,
    ImportRequest,
)
from scheduling.exceptions import (
    CalendarNotFoundError,
    DuplicateCalendarError,
    EventConflictError,
    EventNotFoundError,
    EventValidationError,
    InvalidPropertyError,
    SchedulingError,
)

__all__ = [
    "Weekday",
    "RecurrencePattern",
    "Event",
    "Calendar",
    "CalendarManager",
    "EngineSettings",
    "get_settings",
    "EngineRequest",
    "CalendarRequest",
    "EventCreateRequest",
    "EventEditRequest",
    "CopyRequest",
    "ImportRequest",
    "SchedulingError",
    "EventValidationError",
    "EventConflictError",
    "EventNotFoundError",
    "CalendarNotFoundError",
    "DuplicateCalendarError",
    "InvalidPropertyError",
]
