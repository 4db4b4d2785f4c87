"""Calendar model: event storage, conflict detection, editing and queries."""

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, ValidationError, field_validator

from scheduling.config import get_settings
from scheduling.event import TIME_PROPERTIES, Event, names_match
from scheduling.exceptions import (
    EventConflictError,
    EventNotFoundError,
    EventValidationError,
    SchedulingError,
)
from scheduling.recurrence import RecurrencePattern, Weekday
from scheduling.timeutil import as_date, as_datetime, convert_wall_time, validate_timezone

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]
WeekdaySpec = Union[str, frozenset[Weekday], set[Weekday], list[str]]


def _occurrence_index(events: list[Event]) -> dict[date, list[Event]]:
    """Materialize every occurrence and index it under each date it touches."""
    index: dict[date, list[Event]] = defaultdict(list)
    for event in events:
        for occurrence in event.occurrences():
            for day in occurrence.dates_touched():
                index[day].append(occurrence)
    return index


class Calendar(BaseModel):
    """A named collection of events bound to one timezone.

    Event timestamps are wall-clock values in this calendar's zone. Public
    operations never raise for expected failures: they return False (or None)
    and log the reason. Malformed weekday codes are programmer errors and do
    raise ValueError.

    Args:
        name: Calendar name, unique within a CalendarManager.
        timezone: IANA timezone identifier.
        events: Stored events; recurring series are stored once as templates.
    """

    name: str = Field(description="Calendar name")
    timezone: str = Field(default="UTC", description="IANA timezone identifier")
    events: list[Event] = Field(default_factory=list, description="Stored events")

    @field_validator("name")
    @classmethod
    def validate_name(cls, name: str) -> str:
        """Ensure the calendar name is not blank."""
        if not name or not name.strip():
            raise ValueError("calendar name cannot be empty")
        return name

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        """Reject zone identifiers zoneinfo does not know."""
        return validate_timezone(value)

    @property
    def zone(self) -> ZoneInfo:
        """The calendar's timezone as a ZoneInfo."""
        return ZoneInfo(self.timezone)

    def to_zoned(self, local: datetime) -> datetime:
        """Attach this calendar's zone to a wall-clock time."""
        return local.replace(tzinfo=self.zone)

    def to_local(self, moment: datetime) -> datetime:
        """Express an aware instant as wall-clock time in this calendar."""
        return moment.astimezone(self.zone).replace(tzinfo=None)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_event(
        self,
        subject: str,
        start: datetime,
        end: datetime,
        auto_decline: Optional[bool] = None,
        description: str = "",
        location: str = "",
        is_public: bool = True,
    ) -> bool:
        """Create a single timed event.

        Args:
            subject: Event subject.
            start: Start date-time.
            end: End date-time, strictly after start.
            auto_decline: Reject the event if it conflicts with a stored
                occurrence. Defaults to the configured creation mode.
            description: Event description.
            location: Event location.
            is_public: Whether the event is public.

        Returns:
            True if the event was stored.
        """
        return self._add_event(
            auto_decline,
            subject=subject,
            start=start,
            end=end,
            description=description,
            location=location,
            is_public=is_public,
        )

    def create_all_day_event(
        self,
        subject: str,
        day: DateLike,
        auto_decline: Optional[bool] = None,
        description: str = "",
        location: str = "",
        is_public: bool = True,
    ) -> bool:
        """Create a single all-day event on day.

        Returns:
            True if the event was stored.
        """
        return self._add_event(
            auto_decline,
            subject=subject,
            start=as_datetime(as_date(day)) if day is not None else None,
            is_all_day=True,
            description=description,
            location=location,
            is_public=is_public,
        )

    def create_recurring_event(
        self,
        subject: str,
        start: datetime,
        end: datetime,
        weekdays: WeekdaySpec,
        occurrences: Optional[int] = None,
        until: Optional[DateLike] = None,
        auto_decline: Optional[bool] = None,
        description: str = "",
        location: str = "",
        is_public: bool = True,
    ) -> bool:
        """Create a weekly recurring timed series.

        Start and end must fall on the same date. The series is stored as one
        template; every occurrence is conflict-checked and any conflict
        rejects the whole series.

        Args:
            subject: Event subject.
            start: Start of the first occurrence.
            end: End of the first occurrence (same date as start).
            weekdays: Weekday codes such as "MWF".
            occurrences: Number of occurrences, or None.
            until: Last date an occurrence may fall on, or None.
            auto_decline: Reject the series on any conflict.
            description: Event description.
            location: Event location.
            is_public: Whether the event is public.

        Returns:
            True if the series was stored.

        Raises:
            ValueError: If weekdays contains an unknown code.
        """
        pattern = self._build_pattern(weekdays, occurrences, until)
        return self._add_event(
            auto_decline,
            subject=subject,
            start=start,
            end=end,
            recurrence=pattern,
            description=description,
            location=location,
            is_public=is_public,
        )

    def create_recurring_all_day_event(
        self,
        subject: str,
        day: DateLike,
        weekdays: WeekdaySpec,
        occurrences: Optional[int] = None,
        until: Optional[DateLike] = None,
        auto_decline: Optional[bool] = None,
        description: str = "",
        location: str = "",
        is_public: bool = True,
    ) -> bool:
        """Create a weekly recurring all-day series starting on day.

        Returns:
            True if the series was stored.

        Raises:
            ValueError: If weekdays contains an unknown code.
        """
        pattern = self._build_pattern(weekdays, occurrences, until)
        return self._add_event(
            auto_decline,
            subject=subject,
            start=as_datetime(as_date(day)) if day is not None else None,
            is_all_day=True,
            recurrence=pattern,
            description=description,
            location=location,
            is_public=is_public,
        )

    @staticmethod
    def _build_pattern(
        weekdays: WeekdaySpec, occurrences: Optional[int], until: Optional[DateLike]
    ) -> RecurrencePattern:
        return RecurrencePattern(
            weekdays=weekdays,
            occurrences=occurrences,
            until=as_datetime(until) if until is not None else None,
        )

    def _add_event(self, auto_decline: Optional[bool], **fields: Any) -> bool:
        if auto_decline is None:
            auto_decline = get_settings().default_auto_decline

        try:
            event = self._build_event(**fields)
            if auto_decline:
                self._ensure_no_conflicts([event], self.events)
        except (SchedulingError, ValidationError) as e:
            logger.debug(
                f"Calendar '{self.name}' rejected event '{fields.get('subject')}': {e}"
            )
            return False

        self.events.append(event)
        logger.info(f"Calendar '{self.name}' created {event.get_summary()}")
        return True

    def _build_event(self, **fields: Any) -> Event:
        subject = fields.get("subject")
        start = fields.get("start")
        end = fields.get("end")

        if not subject or not subject.strip():
            raise EventValidationError("subject is required")
        if start is None:
            raise EventValidationError("start is required")
        if not fields.get("is_all_day"):
            if end is None:
                raise EventValidationError("end is required for timed events")
            if end <= start:
                raise EventValidationError("end must be after start")

        event = Event(**fields)
        self._check_shape(event)
        return event

    @staticmethod
    def _check_shape(event: Event) -> None:
        if (
            event.is_recurring()
            and not event.is_all_day
            and event.end.date() != event.start.date()
        ):
            raise EventValidationError(
                "recurring events must start and end on the same day"
            )

    # ------------------------------------------------------------------
    # Conflict detection
    # ------------------------------------------------------------------

    def _ensure_no_conflicts(self, candidates: list[Event], collection: list[Event]) -> None:
        """Check each candidate's occurrences against a collection's occurrences.

        Occurrences belonging to the candidate itself (same event_id, or a
        series_id pointing at it) are ignored, so the collection may already
        contain the candidate.

        Raises:
            EventConflictError: On the first conflicting pair.
        """
        index = _occurrence_index(collection)
        for candidate in candidates:
            for occurrence in candidate.occurrences():
                for day in occurrence.dates_touched():
                    for existing in index.get(day, ()):
                        owner = existing.series_id or existing.event_id
                        if owner == candidate.event_id:
                            continue
                        if occurrence.conflicts_with(existing):
                            raise EventConflictError(
                                candidate.subject, existing.subject, existing.start
                            )

    def has_conflict(self, event: Event) -> bool:
        """Whether event would conflict with any stored occurrence."""
        try:
            self._ensure_no_conflicts([event], self.events)
        except EventConflictError:
            return True
        return False

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_all_events(self) -> list[Event]:
        """Stored events (series as templates), as a new list."""
        return list(self.events)

    def get_event(self, event_id: str) -> Optional[Event]:
        """Get a stored event by its handle."""
        for event in self.events:
            if event.event_id == event_id:
                return event
        return None

    def find_event(self, name: str, start: datetime) -> Optional[Event]:
        """Find a stored event by name and start date, hour and minute.

        Recurring series match on their template start only.
        """
        for event in self.events:
            if event.matches(name, start):
                return event
        return None

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def edit_event(
        self, property_name: str, event_name: str, start: datetime, new_value: Any
    ) -> bool:
        """Edit one property of a single stored event.

        The edit is tried on a copy first. Time edits (starttime, startdate,
        endtime, enddate) are conflict-checked against every other stored
        event; the stored event is only changed if everything passes.

        Args:
            property_name: Property to change.
            event_name: Subject of the event (quote-tolerant).
            start: Start of the event (template start for a series).
            new_value: New value, typed or textual.

        Returns:
            True if the event was changed.
        """
        target = self.find_event(event_name, start)
        if target is None:
            logger.debug(f"Calendar '{self.name}': {EventNotFoundError(event_name, start)}")
            return False

        try:
            candidate = target.model_copy(deep=True)
            field, value = candidate.set_property(property_name, new_value)
            self._check_shape(candidate)
            if property_name.lower() in TIME_PROPERTIES:
                updated = [candidate if e is target else e for e in self.events]
                self._ensure_no_conflicts([candidate], updated)
        except SchedulingError as e:
            logger.debug(f"Calendar '{self.name}' rejected edit of '{event_name}': {e}")
            return False

        setattr(target, field, value)
        logger.info(
            f"Calendar '{self.name}' set {property_name}={value!r} on '{event_name}'"
        )
        return True

    def edit_events_from(
        self, property_name: str, event_name: str, cutoff: DateLike, new_value: Any
    ) -> bool:
        """Edit every matching event from cutoff onwards.

        A recurring series with occurrences on or after cutoff is split: the
        part before cutoff keeps its values and ends at its last earlier
        occurrence, the rest becomes a new series starting at the first
        occurrence on or after cutoff and takes the edit. Single events
        starting on or after cutoff are edited directly.

        All-or-nothing: every candidate is built, validated and (for time
        edits) conflict-checked before anything is committed.

        Returns:
            True if at least one event or series was changed.
        """
        cutoff = as_datetime(cutoff)
        replacements: dict[int, list[Event]] = {}
        assignments: list[tuple[Event, str, Any]] = []
        swapped: dict[int, Event] = {}
        edited: list[Event] = []

        try:
            for event in self.events:
                if not names_match(event.subject, event_name):
                    continue
                if event.is_recurring():
                    split = self._split_series(event, cutoff)
                    if split is None:
                        continue
                    head, tail = split
                    tail.set_property(property_name, new_value)
                    self._check_shape(tail)
                    replacements[id(event)] = [e for e in (head, tail) if e is not None]
                    edited.append(tail)
                elif event.start >= cutoff:
                    candidate = event.model_copy(deep=True)
                    field, value = candidate.set_property(property_name, new_value)
                    self._check_shape(candidate)
                    assignments.append((event, field, value))
                    swapped[id(event)] = candidate
                    edited.append(candidate)

            if not edited:
                raise EventNotFoundError(event_name, cutoff)

            if property_name.lower() in TIME_PROPERTIES:
                updated = []
                for event in self.events:
                    if id(event) in replacements:
                        updated.extend(replacements[id(event)])
                    else:
                        updated.append(swapped.get(id(event), event))
                self._ensure_no_conflicts(edited, updated)
        except SchedulingError as e:
            logger.debug(f"Calendar '{self.name}' rejected edit of '{event_name}': {e}")
            return False

        for event, field, value in assignments:
            setattr(event, field, value)
        committed = []
        for event in self.events:
            committed.extend(replacements.get(id(event), [event]))
        self.events[:] = committed

        logger.info(
            f"Calendar '{self.name}' set {property_name}={new_value!r} on "
            f"{len(edited)} '{event_name}' event(s) from {cutoff.isoformat()}"
        )
        return True

    def _split_series(
        self, event: Event, cutoff: datetime
    ) -> Optional[tuple[Optional[Event], Event]]:
        """Split a series at cutoff into (earlier part or None, later part).

        Returns None when no occurrence falls on or after cutoff.
        """
        starts = event.occurrence_starts()
        before = [s for s in starts if s < cutoff]
        after = [s for s in starts if s >= cutoff]
        if not after:
            return None

        pattern = event.recurrence
        counted = pattern.occurrences is not None

        head = None
        if before:
            head = self._reanchor(
                event,
                event.start,
                pattern.model_copy(
                    update={
                        "until": before[-1],
                        "occurrences": len(before) if counted else None,
                    }
                ),
            )
        tail = self._reanchor(
            event,
            after[0],
            pattern.model_copy(update={"occurrences": len(after) if counted else None}),
        )
        return head, tail

    @staticmethod
    def _reanchor(event: Event, start: datetime, pattern: RecurrencePattern) -> Event:
        """New series with event's fields, starting at start with pattern."""
        fields = event.model_dump(exclude={"event_id", "start", "end", "recurrence"})
        end = None if event.is_all_day else start + event.duration
        return Event(**fields, start=start, end=end, recurrence=pattern)

    def edit_all_events(self, property_name: str, event_name: str, new_value: Any) -> bool:
        """Apply one edit to every stored event (single or series) with the name.

        All-or-nothing: every copy is edited and, for time edits,
        conflict-checked before any stored event changes.

        Returns:
            True if the matching events were changed.
        """
        matching = [e for e in self.events if names_match(e.subject, event_name)]
        if not matching:
            logger.debug(f"Calendar '{self.name}': {EventNotFoundError(event_name)}")
            return False

        staged: list[tuple[Event, Event, str, Any]] = []
        try:
            for event in matching:
                candidate = event.model_copy(deep=True)
                field, value = candidate.set_property(property_name, new_value)
                self._check_shape(candidate)
                staged.append((event, candidate, field, value))

            if property_name.lower() in TIME_PROPERTIES:
                swap = {id(event): candidate for event, candidate, _, _ in staged}
                updated = [swap.get(id(e), e) for e in self.events]
                self._ensure_no_conflicts([c for _, c, _, _ in staged], updated)
        except SchedulingError as e:
            logger.debug(f"Calendar '{self.name}' rejected edit of '{event_name}': {e}")
            return False

        for event, _, field, value in staged:
            setattr(event, field, value)
        logger.info(
            f"Calendar '{self.name}' set {property_name}={new_value!r} on "
            f"all {len(staged)} '{event_name}' event(s)"
        )
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_events_on(self, day: DateLike) -> list[Event]:
        """Events falling on a date, with series expanded to occurrences.

        Single events appear on every date from their start to their end.

        Returns:
            Events sorted by start.
        """
        day = as_date(day)
        result = []
        for event in self.events:
            if event.is_recurring():
                result.extend(
                    event.occurrence_at(s)
                    for s in event.occurrence_starts()
                    if s.date() == day
                )
            elif event.occurs_on(day):
                result.append(event)
        return sorted(result, key=lambda e: e.start)

    def get_events_from(self, start: DateLike, end: DateLike) -> list[Event]:
        """Events within a range, with series expanded to occurrences.

        Timed single events are included when they overlap [start, end];
        all-day events and series occurrences when their date lies between
        the range's first and last dates.

        Returns:
            Events sorted by start.
        """
        range_start = as_datetime(start)
        range_end = as_datetime(end, end_of_day=True)
        first, last = range_start.date(), range_end.date()

        result = []
        for event in self.events:
            if event.is_recurring():
                result.extend(
                    event.occurrence_at(s)
                    for s in event.occurrence_starts()
                    if first <= s.date() <= last
                )
            elif event.is_all_day:
                if first <= event.start.date() <= last:
                    result.append(event)
            elif event.start <= range_end and event.end >= range_start:
                result.append(event)
        return sorted(result, key=lambda e: e.start)

    def is_busy(self, moment: datetime) -> bool:
        """Whether any occurrence occupies the instant.

        All-day occurrences occupy their whole date; timed ones the half-open
        interval [start, end).
        """
        for event in self.events:
            duration = event.duration
            for start in event.occurrence_starts():
                if event.is_all_day:
                    if start.date() == moment.date():
                        return True
                elif start <= moment < start + duration:
                    return True
        return False

    def get_status(self, moment: datetime) -> str:
        """'busy' or 'available' at the instant."""
        return "busy" if self.is_busy(moment) else "available"

    # ------------------------------------------------------------------
    # Timezone
    # ------------------------------------------------------------------

    def change_timezone(self, new_timezone: str) -> None:
        """Move the calendar to another zone, keeping timed events' instants.

        Timed starts, ends and until dates are rewritten to the wall-clock
        times of the same instants in the new zone. All-day events stay on
        their dates.

        Raises:
            ValueError: If new_timezone is not a known zone.
        """
        validate_timezone(new_timezone)
        old_timezone = self.timezone

        converted = []
        for event in self.events:
            if event.is_all_day:
                converted.append(event)
                continue
            update = {
                "start": convert_wall_time(event.start, old_timezone, new_timezone),
                "end": convert_wall_time(event.end, old_timezone, new_timezone),
            }
            if event.recurrence is not None and event.recurrence.until is not None:
                update["recurrence"] = event.recurrence.model_copy(
                    update={
                        "until": convert_wall_time(
                            event.recurrence.until, old_timezone, new_timezone
                        )
                    }
                )
            converted.append(event.model_copy(update=update))

        self.events[:] = converted
        self.timezone = new_timezone
        logger.info(
            f"Calendar '{self.name}' moved from {old_timezone} to {new_timezone}"
        )

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    def validate_state(self) -> list[str]:
        """Validate calendar consistency.

        Returns:
            List of validation error messages (empty list if valid).
        """
        errors = []
        seen: set[str] = set()

        for event in self.events:
            if event.event_id in seen:
                errors.append(f"Duplicate event id {event.event_id}")
            seen.add(event.event_id)

            if event.series_id is not None:
                errors.append(
                    f"Event {event.event_id} is a synthesized occurrence stored as an event"
                )

            if (
                event.is_recurring()
                and not event.is_all_day
                and event.end.date() != event.start.date()
            ):
                errors.append(
                    f"Recurring event {event.event_id} spans {event.start} to {event.end}"
                )

        return errors

    def get_snapshot(self) -> dict[str, Any]:
        """Get complete calendar snapshot.

        Returns:
            JSON-serializable dictionary of the calendar and its events.
        """
        return {
            "name": self.name,
            "timezone": self.timezone,
            "event_count": len(self.events),
            "events": [event.model_dump(mode="json") for event in self.events],
        }
