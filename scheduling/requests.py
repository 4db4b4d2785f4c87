"""Typed requests handed to CalendarManager.apply_request.

Front ends (command parsers, GUIs) translate user input into these models;
the engine never sees raw command text.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from scheduling.event import PROPERTY_FIELDS
from scheduling.recurrence import Weekday


CalendarOperation = Literal["create", "use", "edit", "delete"]
EditScope = Literal["single", "from", "all"]
CopyMode = Literal["event", "day", "range"]


class EngineRequest(BaseModel):
    """Base class for all engine requests.

    Args:
        request_id: Unique identifier for this request.
    """

    request_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this request",
    )

    @abstractmethod
    def validate_request(self) -> None:
        """Check cross-field requirements pydantic field validation can't express.

        Raises:
            ValueError: If validation fails with descriptive message.
        """
        pass

    @abstractmethod
    def get_summary(self) -> str:
        """Return human-readable one-line summary of this request."""
        pass


class CalendarRequest(EngineRequest):
    """Create, select, edit or delete a calendar.

    Args:
        operation: What to do with the calendar.
        name: Calendar the operation applies to.
        timezone: Zone for a new calendar (create only; optional).
        property_name: "name" or "timezone" (edit only).
        new_value: New name or zone (edit only).
    """

    operation: CalendarOperation = Field(description="Calendar operation type")
    name: str = Field(description="Calendar name")
    timezone: Optional[str] = Field(default=None, description="Zone for a new calendar")
    property_name: Optional[str] = Field(default=None, description="Property to edit")
    new_value: Optional[str] = Field(default=None, description="New property value")

    def validate_request(self) -> None:
        if not self.name.strip():
            raise ValueError("calendar name is required")
        if self.operation == "edit":
            if self.property_name is None or self.property_name.lower() not in (
                "name",
                "timezone",
            ):
                raise ValueError("edit requires property_name of 'name' or 'timezone'")
            if not self.new_value:
                raise ValueError("edit requires new_value")

    def get_summary(self) -> str:
        if self.operation == "edit":
            return f"Edit calendar '{self.name}': {self.property_name}={self.new_value}"
        if self.operation == "create" and self.timezone:
            return f"Create calendar '{self.name}' ({self.timezone})"
        return f"{self.operation.title()} calendar '{self.name}'"


class EventCreateRequest(EngineRequest):
    """Create a single, all-day or recurring event.

    A request with weekdays creates a recurring series; occurrences and until
    only apply to recurring requests.

    Args:
        calendar_name: Target calendar; defaults to the current calendar.
        subject: Event subject.
        start: Start date-time (the date for all-day events).
        end: End date-time for timed events.
        all_day: Create an all-day event.
        weekdays: Weekday codes such as "MWF" for a recurring series.
        occurrences: Number of occurrences of a recurring series.
        until: Last date of a recurring series.
        auto_decline: Reject on conflict; defaults to the configured mode.
        description: Event description.
        location: Event location.
        is_public: Whether the event is public.
    """

    calendar_name: Optional[str] = Field(default=None, description="Target calendar")
    subject: str = Field(description="Event subject")
    start: datetime = Field(description="Start date-time")
    end: Optional[datetime] = Field(default=None, description="End date-time")
    all_day: bool = Field(default=False, description="All-day event flag")
    weekdays: Optional[str] = Field(default=None, description="Weekday codes, e.g. MWF")
    occurrences: Optional[int] = Field(default=None, ge=1, description="Occurrence count")
    until: Optional[datetime] = Field(default=None, description="Last date of the series")
    auto_decline: Optional[bool] = Field(default=None, description="Reject on conflict")
    description: str = Field(default="", description="Event description")
    location: str = Field(default="", description="Event location")
    is_public: bool = Field(default=True, description="Whether the event is public")

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, weekdays: Optional[str]) -> Optional[str]:
        """Validate weekday codes.

        Raises:
            ValueError: If a code is not one of M T W R F S U.
        """
        if weekdays is None:
            return None
        Weekday.parse_codes(weekdays)
        return weekdays

    def validate_request(self) -> None:
        if not self.subject.strip():
            raise ValueError("subject is required")
        if self.all_day:
            if self.end is not None:
                raise ValueError("all-day events cannot have an end")
        elif self.end is None:
            raise ValueError("end is required for timed events")
        if not self.weekdays and (self.occurrences is not None or self.until is not None):
            raise ValueError("occurrences and until require weekdays")

    def get_summary(self) -> str:
        when = (
            f"on {self.start.date().isoformat()}"
            if self.all_day
            else f"from {self.start.isoformat()} to {self.end.isoformat() if self.end else '?'}"
        )
        summary = f"Create event '{self.subject}' {when}"
        if self.weekdays:
            summary += f" repeating {self.weekdays}"
        return summary


class EventEditRequest(EngineRequest):
    """Edit one property of one, some, or all same-named events.

    Args:
        calendar_name: Target calendar; defaults to the current calendar.
        scope: "single" (the event at start), "from" (every matching event
            from start on, splitting series) or "all".
        property_name: Property to change.
        event_name: Subject of the events to edit.
        start: Event start (single) or cutoff (from).
        new_value: New value as text.
    """

    calendar_name: Optional[str] = Field(default=None, description="Target calendar")
    scope: EditScope = Field(default="single", description="Which events to edit")
    property_name: str = Field(description="Property to change")
    event_name: str = Field(description="Subject of the events to edit")
    start: Optional[datetime] = Field(default=None, description="Event start or cutoff")
    new_value: str = Field(description="New value")

    @field_validator("property_name")
    @classmethod
    def validate_property_name(cls, property_name: str) -> str:
        """Ensure the property is one events support."""
        if property_name.lower() not in PROPERTY_FIELDS:
            raise ValueError(f"Unknown event property: {property_name}")
        return property_name

    def validate_request(self) -> None:
        if self.scope in ("single", "from") and self.start is None:
            raise ValueError(f"start is required for {self.scope} edits")

    def get_summary(self) -> str:
        target = f"'{self.event_name}'"
        if self.scope == "single":
            target += f" at {self.start}"
        elif self.scope == "from":
            target += f" from {self.start}"
        else:
            target = f"all {target}"
        return f"Edit {target}: {self.property_name}={self.new_value}"


class CopyRequest(EngineRequest):
    """Copy an event, a day or a date range into another calendar.

    Args:
        mode: "event", "day" or "range".
        source_calendar_name: Calendar to copy from; defaults to the current one.
        target_calendar_name: Calendar to copy into.
        event_name: Event to copy (event mode).
        source_start: Event start (event), day (day) or range start (range).
        source_end: Range end (range mode).
        target_start: Copy start (event), target day (day) or target range
            start (range).
    """

    mode: CopyMode = Field(description="What to copy")
    source_calendar_name: Optional[str] = Field(default=None, description="Source calendar")
    target_calendar_name: str = Field(description="Target calendar")
    event_name: Optional[str] = Field(default=None, description="Event to copy")
    source_start: datetime = Field(description="Source event start, day or range start")
    source_end: Optional[datetime] = Field(default=None, description="Source range end")
    target_start: datetime = Field(description="Target start or day")

    def validate_request(self) -> None:
        if self.mode == "event" and not self.event_name:
            raise ValueError("event_name is required to copy an event")
        if self.mode == "range":
            if self.source_end is None:
                raise ValueError("source_end is required to copy a range")
            if self.source_end < self.source_start:
                raise ValueError("source_end must not be before source_start")

    def get_summary(self) -> str:
        if self.mode == "event":
            what = f"'{self.event_name}' at {self.source_start.isoformat()}"
        elif self.mode == "day":
            what = f"events on {self.source_start.date().isoformat()}"
        else:
            what = (
                f"events between {self.source_start.date().isoformat()} and "
                f"{self.source_end.date().isoformat() if self.source_end else '?'}"
            )
        return f"Copy {what} to '{self.target_calendar_name}'"


class ImportRequest(EngineRequest):
    """Import CSV text in the export layout.

    Args:
        calendar_name: Target calendar; defaults to the current calendar.
        csv_text: CSV content, header row first.
    """

    calendar_name: Optional[str] = Field(default=None, description="Target calendar")
    csv_text: str = Field(description="CSV content")

    def validate_request(self) -> None:
        if not self.csv_text.strip():
            raise ValueError("csv_text is empty")

    def get_summary(self) -> str:
        rows = max(len(self.csv_text.strip().splitlines()) - 1, 0)
        return f"Import {rows} CSV row(s) into '{self.calendar_name or 'current calendar'}'"
