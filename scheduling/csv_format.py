"""CSV export and import of calendar events.

Record layout (one row per occurrence; recurring series are expanded):

    Subject,Start Date,Start Time,End Date,End Time,All Day Event,
    Description,Location,Private[,Calendar,Timezone]

Dates are MM/DD/YYYY, times hh:mm AM/PM, booleans True/False. Private is the
inverse of the event's public flag. Fields containing a comma, a double
quote or a newline are quoted with inner quotes doubled.
"""

import csv
import io
import logging
from datetime import datetime
from typing import Iterable, Optional, TextIO

from scheduling.calendar import Calendar
from scheduling.config import get_settings
from scheduling.event import Event

logger = logging.getLogger(__name__)

HEADER = [
    "Subject",
    "Start Date",
    "Start Time",
    "End Date",
    "End Time",
    "All Day Event",
    "Description",
    "Location",
    "Private",
]
CALENDAR_COLUMNS = ["Calendar", "Timezone"]
MIN_FIELDS = len(HEADER)

DATE_FORMAT = "%m/%d/%Y"
TIME_FORMAT = "%I:%M %p"


def escape_field(text: str) -> str:
    """Quote a single field if it contains a comma, double quote or newline."""
    if any(c in text for c in (",", '"', "\n")):
        return '"' + text.replace('"', '""') + '"'
    return text


def _format_bool(value: bool) -> str:
    return "True" if value else "False"


def _occurrence_row(event: Event, start: datetime, end: Optional[datetime]) -> list[str]:
    timed = not event.is_all_day and end is not None
    return [
        event.subject,
        start.strftime(DATE_FORMAT),
        start.strftime(TIME_FORMAT) if not event.is_all_day else "",
        (end or start).strftime(DATE_FORMAT),
        end.strftime(TIME_FORMAT) if timed else "",
        _format_bool(event.is_all_day),
        event.description,
        event.location,
        _format_bool(not event.is_public),
    ]


def export_rows(
    calendar: Calendar, include_calendar_columns: Optional[bool] = None
) -> list[list[str]]:
    """Build the CSV records for a calendar, header first.

    Args:
        calendar: Calendar to export.
        include_calendar_columns: Append the Calendar and Timezone columns.
            Defaults to the configured setting.

    Returns:
        Header row followed by one row per event occurrence.
    """
    if include_calendar_columns is None:
        include_calendar_columns = get_settings().csv_include_calendar_columns

    header = HEADER + CALENDAR_COLUMNS if include_calendar_columns else list(HEADER)
    rows = [header]
    for event in calendar.get_all_events():
        for occurrence in event.occurrences():
            row = _occurrence_row(event, occurrence.start, occurrence.end)
            if include_calendar_columns:
                row += [calendar.name, calendar.timezone]
            rows.append(row)
    return rows


def write_csv(
    calendar: Calendar, stream: TextIO, include_calendar_columns: Optional[bool] = None
) -> int:
    """Write a calendar's CSV export to an open text stream.

    Returns:
        Number of event rows written (header excluded).
    """
    rows = export_rows(calendar, include_calendar_columns)
    for row in rows:
        stream.write(",".join(escape_field(field) for field in row) + "\n")
    logger.info(f"Exported {len(rows) - 1} row(s) from calendar '{calendar.name}'")
    return len(rows) - 1


def export_csv(calendar: Calendar, include_calendar_columns: Optional[bool] = None) -> str:
    """Render a calendar's CSV export as a string."""
    buffer = io.StringIO()
    write_csv(calendar, buffer, include_calendar_columns)
    return buffer.getvalue()


def _import_record(calendar: Calendar, record: list[str]) -> bool:
    subject, start_date, start_time, end_date, end_time, all_day = (
        field.strip() for field in record[:6]
    )
    description, location, private = (field.strip() for field in record[6:9])
    is_public = private.lower() != "true"

    day = datetime.strptime(start_date, DATE_FORMAT)
    if all_day.lower() == "true":
        return calendar.create_all_day_event(
            subject,
            day,
            auto_decline=True,
            description=description,
            location=location,
            is_public=is_public,
        )

    start = datetime.combine(
        day.date(), datetime.strptime(start_time, TIME_FORMAT).time()
    )
    end = datetime.combine(
        datetime.strptime(end_date, DATE_FORMAT).date(),
        datetime.strptime(end_time, TIME_FORMAT).time(),
    )
    return calendar.create_event(
        subject,
        start,
        end,
        auto_decline=True,
        description=description,
        location=location,
        is_public=is_public,
    )


def import_csv(calendar: Calendar, lines: Iterable[str]) -> int:
    """Import records in the export layout into a calendar.

    The first line is treated as a header. Rows with fewer than nine fields
    or unparsable dates are skipped. Events are created with auto-decline,
    so rows conflicting with existing events are not imported.

    Args:
        calendar: Calendar to import into.
        lines: CSV text lines, such as an open file or an io.StringIO.

    Returns:
        Number of events imported.
    """
    reader = csv.reader(lines)
    next(reader, None)

    imported = 0
    for row_number, record in enumerate(reader, start=2):
        if len(record) < MIN_FIELDS:
            logger.warning(
                f"Skipping CSV row {row_number}: expected {MIN_FIELDS} fields, "
                f"got {len(record)}"
            )
            continue
        try:
            if _import_record(calendar, record):
                imported += 1
        except ValueError as e:
            logger.warning(f"Skipping CSV row {row_number}: {e}")

    logger.info(f"Imported {imported} event(s) into calendar '{calendar.name}'")
    return imported
