"""Calendar event model."""

from datetime import date, datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from scheduling.exceptions import InvalidPropertyError
from scheduling.recurrence import RecurrencePattern
from scheduling.timeutil import as_date, parse_bool, parse_datetime, parse_time


# Editable property name -> Event field
PROPERTY_FIELDS = {
    "name": "subject",
    "subject": "subject",
    "description": "description",
    "location": "location",
    "public": "is_public",
    "starttime": "start",
    "startdate": "start",
    "endtime": "end",
    "enddate": "end",
}
TIME_PROPERTIES = frozenset({"starttime", "startdate", "endtime", "enddate"})


def unquote(text: str) -> str:
    """Strip one pair of surrounding double quotes, if present."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def names_match(stored: str, search: str) -> bool:
    """Compare an event subject with a searched name, tolerating quoting.

    Either side may carry one pair of surrounding double quotes that the
    other lacks.

    Args:
        stored: Subject as stored on the event.
        search: Name supplied by the caller.

    Returns:
        True if the names refer to the same subject.
    """
    return stored == search or unquote(stored) == unquote(search)


class Event(BaseModel):
    """A single schedulable item, possibly the template of a recurring series.

    Timestamps are naive wall-clock values in the owning calendar's zone.
    All-day events carry no end. A recurring event is stored once, as a
    template carrying its RecurrencePattern; its occurrences are synthesized
    on demand and point back at it through series_id.

    Args:
        event_id: Stable surrogate handle.
        subject: Event subject (non-empty).
        start: Start date-time (for all-day events only the date matters).
        end: End date-time; None for all-day events.
        description: Free-text description.
        location: Free-text location.
        is_public: Whether the event is public.
        is_all_day: All-day event flag.
        recurrence: Weekly recurrence rule for series templates.
        series_id: For a synthesized occurrence, the template's event_id.
    """

    model_config = ConfigDict(validate_assignment=True)

    event_id: str = Field(
        default_factory=lambda: str(uuid4()), description="Stable surrogate handle"
    )
    subject: str = Field(description="Event subject")
    start: datetime = Field(description="Start date-time (calendar-local)")
    end: Optional[datetime] = Field(
        default=None, description="End date-time (calendar-local), None if all-day"
    )
    description: str = Field(default="", description="Event description")
    location: str = Field(default="", description="Event location")
    is_public: bool = Field(default=True, description="Whether the event is public")
    is_all_day: bool = Field(default=False, description="All-day event flag")
    recurrence: Optional[RecurrencePattern] = Field(
        default=None, description="Recurrence rule for series templates"
    )
    series_id: Optional[str] = Field(
        default=None, description="Template event_id for a synthesized occurrence"
    )

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, subject: str) -> str:
        """Ensure subject is not blank.

        Raises:
            ValueError: If subject is empty or whitespace.
        """
        if not subject or not subject.strip():
            raise ValueError("subject cannot be empty")
        return subject

    @model_validator(mode="after")
    def validate_time_range(self) -> "Event":
        """Ensure the end matches the event kind.

        Raises:
            ValueError: If an all-day event has an end, or a timed event's end
                is missing or not after its start.
        """
        if self.is_all_day:
            if self.end is not None:
                raise ValueError("all-day events cannot have an end time")
        elif self.end is None:
            raise ValueError("timed events need an end time")
        elif self.end <= self.start:
            raise ValueError("end time must be after start time")
        return self

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return dt.isoformat() if dt else None

    def is_recurring(self) -> bool:
        """Check if this event is a recurring series template."""
        return self.recurrence is not None

    @property
    def duration(self) -> Optional[timedelta]:
        """Length of a timed event, None for all-day events."""
        if self.end is None:
            return None
        return self.end - self.start

    def occurrence_starts(self, horizon_years: Optional[int] = None) -> list[datetime]:
        """Start times of every occurrence; just the start for single events."""
        if self.recurrence is None:
            return [self.start]
        return self.recurrence.calculate_recurrences(self.start, horizon_years)

    def occurrence_at(self, start: datetime) -> "Event":
        """Synthesize the occurrence of this series starting at start.

        The occurrence keeps the template's duration and descriptive fields,
        carries no recurrence, and refers back to the template via series_id.
        """
        end = None if self.end is None else start + (self.end - self.start)
        return self.model_copy(
            update={
                "event_id": str(uuid4()),
                "start": start,
                "end": end,
                "recurrence": None,
                "series_id": self.event_id,
            }
        )

    def occurrences(self, horizon_years: Optional[int] = None) -> list["Event"]:
        """Materialize the event: synthesized occurrences, or itself if single."""
        if self.recurrence is None:
            return [self]
        return [self.occurrence_at(s) for s in self.occurrence_starts(horizon_years)]

    def dates_touched(self) -> list[date]:
        """Calendar dates this (non-recurring) event occupies."""
        first = self.start.date()
        last = first if self.end is None else self.end.date()
        return [first + timedelta(days=n) for n in range((last - first).days + 1)]

    def occurs_on(self, day: date) -> bool:
        """Whether this single event falls on the given date."""
        day = as_date(day)
        if self.end is None:
            return self.start.date() == day
        return self.start.date() <= day <= self.end.date()

    def is_active_at(self, moment: datetime) -> bool:
        """Whether this single event occupies the instant.

        All-day events occupy their whole date; timed events occupy the
        half-open interval [start, end).
        """
        if self.is_all_day:
            return moment.date() == self.start.date()
        return self.start <= moment < self.end

    def conflicts_with(self, other: "Event") -> bool:
        """Check whether two single placements overlap.

        If either event is all-day they conflict when they start on the same
        date. Otherwise their half-open [start, end) intervals must overlap,
        so back-to-back events never conflict.

        Args:
            other: Event to test against.

        Returns:
            True if the events conflict.
        """
        if self.is_all_day or other.is_all_day:
            return self.start.date() == other.start.date()
        return not (self.end <= other.start or self.start >= other.end)

    def matches(self, name: str, start: datetime) -> bool:
        """Whether name and start identify this event.

        Starts are compared by date, hour and minute.
        """
        return (
            names_match(self.subject, name)
            and self.start.date() == start.date()
            and self.start.hour == start.hour
            and self.start.minute == start.minute
        )

    def set_property(self, property_name: str, value: Any) -> tuple[str, Any]:
        """Set an editable property from a typed or textual value.

        Recognized properties are name/subject, description, location, public,
        starttime/startdate and endtime/enddate. Time values may be datetimes,
        ISO date-times, ISO dates (midnight) or, for starttime/endtime, a bare
        HH:MM applied to the current date.

        Args:
            property_name: Property to edit (case-insensitive).
            value: New value.

        Returns:
            The (field name, parsed value) pair that was assigned.

        Raises:
            InvalidPropertyError: If the property is unknown, the value cannot
                be parsed, or the result violates the event's invariants.
        """
        prop = property_name.lower()
        field = PROPERTY_FIELDS.get(prop)
        if field is None:
            raise InvalidPropertyError(property_name, value, "unknown property")
        if field == "end" and self.is_all_day:
            raise InvalidPropertyError(
                property_name, value, "all-day events have no end time"
            )

        try:
            parsed = self._parse_property_value(prop, field, value)
            # Assignment writes the field before the model validator runs
            type(self).model_validate({**self.model_dump(), field: parsed})
        except (ValidationError, ValueError, TypeError) as e:
            raise InvalidPropertyError(property_name, value, str(e)) from e
        setattr(self, field, parsed)
        return field, parsed

    def _parse_property_value(self, prop: str, field: str, value: Any) -> Any:
        if field == "is_public":
            return value if isinstance(value, bool) else parse_bool(str(value))
        if field in ("start", "end"):
            if isinstance(value, datetime):
                return value
            text = str(value)
            try:
                return parse_datetime(text)
            except ValueError:
                if prop not in ("starttime", "endtime"):
                    raise
            current = getattr(self, field) or self.start
            return datetime.combine(current.date(), parse_time(text))
        return str(value)

    def get_summary(self) -> str:
        """One-line description for listings and logs.

        Example: "Sync - 2024-01-01 09:00 to 10:00 at Room 4 (Repeats on: Mon,Wed for 3 times)"
        """
        day = self.start.strftime("%Y-%m-%d")
        if self.is_all_day or self.end is None:
            text = f"{self.subject} - {day} All Day"
        elif self.end.date() == self.start.date():
            text = (
                f"{self.subject} - {day} {self.start:%H:%M} to {self.end:%H:%M}"
            )
        else:
            text = (
                f"{self.subject} - {day} {self.start:%H:%M} to "
                f"{self.end:%Y-%m-%d} {self.end:%H:%M}"
            )

        if self.location:
            text += f" at {self.location}"
        if self.recurrence is not None:
            text += f" (Repeats on: {self.recurrence.describe()})"
        return text
