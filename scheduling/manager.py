"""Calendar registry and cross-calendar operations."""

import io
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from scheduling.calendar import Calendar
from scheduling.config import get_settings
from scheduling.csv_format import import_csv
from scheduling.event import Event, names_match
from scheduling.exceptions import (
    CalendarNotFoundError,
    DuplicateCalendarError,
    EventNotFoundError,
    InvalidPropertyError,
    SchedulingError,
)
from scheduling.requests import (
    CalendarRequest,
    CopyRequest,
    EngineRequest,
    EventCreateRequest,
    EventEditRequest,
    ImportRequest,
)
from scheduling.timeutil import as_date, convert_wall_time

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


class CalendarManager(BaseModel):
    """Registry of named calendars plus a current-calendar selection.

    The current calendar is only a default: every operation that reads from a
    calendar also accepts that calendar's name explicitly.

    Args:
        calendars: Calendars keyed by their (case-sensitive) names.
        current_calendar_name: Name of the selected calendar, if any.
    """

    calendars: dict[str, Calendar] = Field(
        default_factory=dict, description="Calendars by name"
    )
    current_calendar_name: Optional[str] = Field(
        default=None, description="Name of the selected calendar"
    )

    # ------------------------------------------------------------------
    # Calendar lifecycle
    # ------------------------------------------------------------------

    def create_calendar(self, name: str, timezone: Optional[str] = None) -> bool:
        """Register a new, empty calendar.

        Args:
            name: Unique calendar name.
            timezone: IANA zone; defaults to the configured default zone.

        Returns:
            True if the calendar was created, False if the name is taken or
            the zone is unknown.
        """
        if timezone is None:
            timezone = get_settings().default_timezone

        try:
            if name in self.calendars:
                raise DuplicateCalendarError(name)
            calendar = Calendar(name=name, timezone=timezone)
        except (SchedulingError, ValidationError) as e:
            logger.debug(f"Cannot create calendar '{name}': {e}")
            return False

        self.calendars[name] = calendar
        logger.info(f"Created calendar '{name}' ({timezone})")
        return True

    def use_calendar(self, name: str) -> bool:
        """Select the calendar used when no calendar name is given."""
        if name not in self.calendars:
            logger.debug(f"Cannot use calendar: {self._not_found(name)}")
            return False
        self.current_calendar_name = name
        return True

    @property
    def current_calendar(self) -> Optional[Calendar]:
        """The selected calendar, or None."""
        if self.current_calendar_name is None:
            return None
        return self.calendars.get(self.current_calendar_name)

    def calendar_exists(self, name: str) -> bool:
        return name in self.calendars

    def get_calendar(self, name: str) -> Optional[Calendar]:
        return self.calendars.get(name)

    def calendar_names(self) -> list[str]:
        return list(self.calendars)

    def delete_calendar(self, name: str) -> bool:
        """Remove a calendar and its events.

        Clears the current selection if it pointed at the removed calendar.
        """
        if name not in self.calendars:
            logger.debug(f"Cannot delete calendar: {self._not_found(name)}")
            return False

        del self.calendars[name]
        if self.current_calendar_name == name:
            self.current_calendar_name = None
        logger.info(f"Deleted calendar '{name}'")
        return True

    def edit_calendar(self, name: str, property_name: str, new_value: str) -> bool:
        """Rename a calendar or move it to another timezone.

        Retimezoning rewrites every timed event's wall-clock start, end and
        until date so that each keeps its absolute instant; all-day events
        stay on their dates.

        Args:
            name: Calendar to edit.
            property_name: "name" or "timezone".
            new_value: New name or IANA zone.

        Returns:
            True if the calendar was changed.
        """
        calendar = self.calendars.get(name)
        if calendar is None:
            logger.debug(f"Cannot edit calendar: {self._not_found(name)}")
            return False

        prop = property_name.lower()
        try:
            if prop == "name":
                self._rename(calendar, new_value)
            elif prop == "timezone":
                calendar.change_timezone(new_value)
            else:
                raise InvalidPropertyError(
                    property_name, new_value, "calendars only support name and timezone"
                )
        except (SchedulingError, ValueError) as e:
            logger.debug(f"Cannot edit calendar '{name}': {e}")
            return False
        return True

    def _rename(self, calendar: Calendar, new_name: str) -> None:
        if not new_name or not new_name.strip():
            raise InvalidPropertyError("name", new_name, "calendar name cannot be empty")
        if new_name in self.calendars:
            raise DuplicateCalendarError(new_name)

        old_name = calendar.name
        self.calendars = {
            (new_name if key == old_name else key): value
            for key, value in self.calendars.items()
        }
        calendar.name = new_name
        if self.current_calendar_name == old_name:
            self.current_calendar_name = new_name
        logger.info(f"Renamed calendar '{old_name}' to '{new_name}'")

    def _not_found(self, name: Optional[str]) -> CalendarNotFoundError:
        return CalendarNotFoundError(str(name), self.calendar_names())

    def _require_calendar(self, name: Optional[str]) -> Calendar:
        """Resolve a calendar name, falling back to the current calendar.

        Raises:
            CalendarNotFoundError: If the name (or the current selection) is
                not registered.
        """
        resolved = name if name is not None else self.current_calendar_name
        calendar = self.calendars.get(resolved) if resolved is not None else None
        if calendar is None:
            raise self._not_found(resolved)
        return calendar

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def copy_event(
        self,
        event_name: str,
        source_start: datetime,
        target_calendar_name: str,
        target_start: datetime,
        source_calendar_name: Optional[str] = None,
    ) -> bool:
        """Copy one event (a whole series for recurring events) to another calendar.

        The source is located by name and by the start of the template or of
        any of its occurrences. The copy is created through the target's
        conflict-checked creation path with auto-decline on, so it fails if
        it would overlap something already there.

        Args:
            event_name: Subject of the event (quote-tolerant).
            source_start: Start of the event or of one of its occurrences.
            target_calendar_name: Calendar to copy into.
            target_start: Start of the copy in the target's wall-clock time.
            source_calendar_name: Calendar to copy from; defaults to the
                current calendar.

        Returns:
            True if the copy was created.
        """
        try:
            source = self._require_calendar(source_calendar_name)
            target = self._require_calendar(target_calendar_name)
            event = self._find_event_to_copy(source, event_name, source_start)
        except SchedulingError as e:
            logger.debug(f"Cannot copy '{event_name}': {e}")
            return False

        copied = self._copy_into(event, target, target_start)
        if copied:
            logger.info(
                f"Copied '{event_name}' from '{source.name}' to '{target.name}' "
                f"at {target_start.isoformat()}"
            )
        return copied

    def copy_events_on_day(
        self,
        source_day: DateLike,
        target_calendar_name: str,
        target_day: DateLike,
        source_calendar_name: Optional[str] = None,
    ) -> bool:
        """Copy every event on a date to a date in another calendar.

        Timed events keep their absolute instant: their start is converted
        from the source zone to the target zone, and a conversion that rolls
        over midnight moves the copy to the neighbouring target date.
        Failures of individual copies are tolerated.

        Returns:
            True if at least one event was copied.
        """
        try:
            source = self._require_calendar(source_calendar_name)
            target = self._require_calendar(target_calendar_name)
        except SchedulingError as e:
            logger.debug(f"Cannot copy events: {e}")
            return False

        target_date = as_date(target_day)
        copied = 0
        for event in source.get_events_on(source_day):
            new_start = self._shifted_start(event, source, target, target_date)
            if self._copy_into(self._template_of(source, event), target, new_start):
                copied += 1

        logger.info(
            f"Copied {copied} event(s) on {as_date(source_day)} from "
            f"'{source.name}' to '{target.name}'"
        )
        return copied > 0

    def copy_events_in_range(
        self,
        start: DateLike,
        end: DateLike,
        target_calendar_name: str,
        target_start: DateLike,
        source_calendar_name: Optional[str] = None,
    ) -> bool:
        """Copy every event in a date range, keeping their relative positions.

        Each event lands the same number of days after target_start as it was
        after start, adjusted for midnight rollover as in copy_events_on_day.
        A recurring series is copied once, anchored at its first occurrence in
        the range. Failures of individual copies are tolerated.

        Returns:
            True if at least one event or series was copied.
        """
        try:
            source = self._require_calendar(source_calendar_name)
            target = self._require_calendar(target_calendar_name)
        except SchedulingError as e:
            logger.debug(f"Cannot copy events: {e}")
            return False

        first_date = as_date(start)
        target_first = as_date(target_start)
        seen_series: set[str] = set()
        copied = 0

        for event in source.get_events_from(start, end):
            if event.series_id is not None:
                if event.series_id in seen_series:
                    continue
                seen_series.add(event.series_id)

            offset = event.start.date() - first_date
            new_start = self._shifted_start(event, source, target, target_first + offset)
            if self._copy_into(self._template_of(source, event), target, new_start):
                copied += 1

        logger.info(
            f"Copied {copied} event(s) between {first_date} and {as_date(end)} "
            f"from '{source.name}' to '{target.name}'"
        )
        return copied > 0

    @staticmethod
    def _find_event_to_copy(calendar: Calendar, name: str, start: datetime) -> Event:
        """Find a series with an occurrence at start, else a single event at start.

        Raises:
            EventNotFoundError: If nothing matches.
        """
        for event in calendar.events:
            if event.is_recurring() and names_match(event.subject, name):
                for occurrence in event.occurrence_starts():
                    if (
                        occurrence.date() == start.date()
                        and occurrence.hour == start.hour
                        and occurrence.minute == start.minute
                    ):
                        return event

        for event in calendar.get_events_on(start):
            if event.series_id is None and event.matches(name, start):
                return event

        raise EventNotFoundError(name, start)

    @staticmethod
    def _template_of(calendar: Calendar, event: Event) -> Event:
        if event.series_id is None:
            return event
        return calendar.get_event(event.series_id) or event

    @staticmethod
    def _shifted_start(
        event: Event, source: Calendar, target: Calendar, target_date: date
    ) -> datetime:
        """Start of event's copy on target_date, in the target's wall-clock time."""
        if event.is_all_day:
            return datetime.combine(target_date, time.min)
        converted = convert_wall_time(event.start, source.timezone, target.timezone)
        rollover = converted.date() - event.start.date()
        return datetime.combine(target_date + rollover, converted.time())

    @staticmethod
    def _copy_into(event: Event, target: Calendar, target_start: datetime) -> bool:
        """Recreate event in target starting at target_start.

        All-day copies start at midnight of the target date. Timed copies keep
        their duration in whole minutes. Recurring copies keep their weekdays
        and occurrence count; an until date keeps its distance in days from
        the series start (at the copy's time of day for timed series).
        """
        common: dict[str, Any] = {
            "auto_decline": True,
            "description": event.description,
            "location": event.location,
            "is_public": event.is_public,
        }
        pattern = event.recurrence
        until = None
        if pattern is not None and pattern.until is not None:
            span = pattern.until.date() - event.start.date()
            until_date = target_start.date() + span
            until = (
                datetime.combine(until_date, time.min)
                if event.is_all_day
                else datetime.combine(until_date, target_start.time())
            )

        if event.is_all_day:
            day = datetime.combine(target_start.date(), time.min)
            if pattern is None:
                return target.create_all_day_event(event.subject, day, **common)
            return target.create_recurring_all_day_event(
                event.subject,
                day,
                pattern.codes,
                occurrences=pattern.occurrences,
                until=until,
                **common,
            )

        minutes = int(event.duration.total_seconds() // 60)
        end = target_start + timedelta(minutes=minutes)
        if pattern is None:
            return target.create_event(event.subject, target_start, end, **common)
        return target.create_recurring_event(
            event.subject,
            target_start,
            end,
            pattern.codes,
            occurrences=pattern.occurrences,
            until=until,
            **common,
        )

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    def apply_request(self, request: EngineRequest) -> bool:
        """Validate and execute a typed request from a front end.

        Args:
            request: Any of the request models in scheduling.requests.

        Returns:
            True if the request's operation succeeded.

        Raises:
            TypeError: If the request type is not supported.
        """
        try:
            request.validate_request()
        except ValueError as e:
            logger.debug(f"Rejected request '{request.get_summary()}': {e}")
            return False

        logger.debug(f"Applying request: {request.get_summary()}")
        if isinstance(request, CalendarRequest):
            return self._apply_calendar_request(request)
        if isinstance(request, EventCreateRequest):
            return self._apply_create_request(request)
        if isinstance(request, EventEditRequest):
            return self._apply_edit_request(request)
        if isinstance(request, CopyRequest):
            return self._apply_copy_request(request)
        if isinstance(request, ImportRequest):
            return self._apply_import_request(request)
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    def _apply_calendar_request(self, request: CalendarRequest) -> bool:
        if request.operation == "create":
            return self.create_calendar(request.name, request.timezone)
        if request.operation == "use":
            return self.use_calendar(request.name)
        if request.operation == "edit":
            return self.edit_calendar(request.name, request.property_name, request.new_value)
        return self.delete_calendar(request.name)

    def _resolve_for(self, request: EngineRequest, name: Optional[str]) -> Optional[Calendar]:
        try:
            return self._require_calendar(name)
        except CalendarNotFoundError as e:
            logger.debug(f"Cannot apply '{request.get_summary()}': {e}")
            return None

    def _apply_create_request(self, request: EventCreateRequest) -> bool:
        calendar = self._resolve_for(request, request.calendar_name)
        if calendar is None:
            return False

        common: dict[str, Any] = {
            "auto_decline": request.auto_decline,
            "description": request.description,
            "location": request.location,
            "is_public": request.is_public,
        }
        recurring = {
            "occurrences": request.occurrences,
            "until": request.until,
        }
        if request.all_day:
            if request.weekdays:
                return calendar.create_recurring_all_day_event(
                    request.subject, request.start, request.weekdays, **recurring, **common
                )
            return calendar.create_all_day_event(request.subject, request.start, **common)
        if request.weekdays:
            return calendar.create_recurring_event(
                request.subject,
                request.start,
                request.end,
                request.weekdays,
                **recurring,
                **common,
            )
        return calendar.create_event(request.subject, request.start, request.end, **common)

    def _apply_edit_request(self, request: EventEditRequest) -> bool:
        calendar = self._resolve_for(request, request.calendar_name)
        if calendar is None:
            return False

        if request.scope == "single":
            return calendar.edit_event(
                request.property_name, request.event_name, request.start, request.new_value
            )
        if request.scope == "from":
            return calendar.edit_events_from(
                request.property_name, request.event_name, request.start, request.new_value
            )
        return calendar.edit_all_events(
            request.property_name, request.event_name, request.new_value
        )

    def _apply_copy_request(self, request: CopyRequest) -> bool:
        if request.mode == "event":
            return self.copy_event(
                request.event_name,
                request.source_start,
                request.target_calendar_name,
                request.target_start,
                source_calendar_name=request.source_calendar_name,
            )
        if request.mode == "day":
            return self.copy_events_on_day(
                request.source_start,
                request.target_calendar_name,
                request.target_start,
                source_calendar_name=request.source_calendar_name,
            )
        return self.copy_events_in_range(
            request.source_start,
            request.source_end,
            request.target_calendar_name,
            request.target_start,
            source_calendar_name=request.source_calendar_name,
        )

    def _apply_import_request(self, request: ImportRequest) -> bool:
        calendar = self._resolve_for(request, request.calendar_name)
        if calendar is None:
            return False
        return import_csv(calendar, io.StringIO(request.csv_text)) > 0

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    def validate_state(self) -> list[str]:
        """Validate registry consistency, including every calendar's state.

        Returns:
            List of validation error messages (empty list if valid).
        """
        errors = []
        if (
            self.current_calendar_name is not None
            and self.current_calendar_name not in self.calendars
        ):
            errors.append(
                f"Current calendar '{self.current_calendar_name}' is not registered"
            )
        for key, calendar in self.calendars.items():
            if calendar.name != key:
                errors.append(f"Calendar '{calendar.name}' is registered as '{key}'")
            errors.extend(f"{key}: {error}" for error in calendar.validate_state())
        return errors

    def get_snapshot(self) -> dict[str, Any]:
        """Get complete registry snapshot.

        Returns:
            JSON-serializable dictionary of every calendar.
        """
        return {
            "current_calendar": self.current_calendar_name,
            "calendars": {
                name: calendar.get_snapshot() for name, calendar in self.calendars.items()
            },
        }
