"""Weekly recurrence patterns."""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from scheduling.config import get_settings


class Weekday(str, Enum):
    """Day of the week, valued by its single-letter command code.

    R is Thursday and U is Sunday so that every day has a distinct letter.
    Definition order matches date.weekday() (Monday is 0).
    """

    MONDAY = "M"
    TUESDAY = "T"
    WEDNESDAY = "W"
    THURSDAY = "R"
    FRIDAY = "F"
    SATURDAY = "S"
    SUNDAY = "U"

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        """Weekday a date falls on."""
        return list(cls)[day.weekday()]

    @classmethod
    def parse_codes(cls, codes: str) -> frozenset["Weekday"]:
        """Parse a code string such as "MWF".

        Args:
            codes: Concatenated weekday codes.

        Returns:
            Set of weekdays named by the string.

        Raises:
            ValueError: If the string is empty or has an unknown character.
        """
        if not codes:
            raise ValueError("At least one weekday code is required")
        days = set()
        for code in codes:
            try:
                days.add(cls(code))
            except ValueError:
                raise ValueError(f"Invalid weekday character: {code!r}") from None
        return frozenset(days)

    @property
    def short_name(self) -> str:
        """Three-letter English abbreviation, e.g. "Mon"."""
        return self.name[:3].title()


def _add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return moment.replace(year=moment.year + years, day=28)


class RecurrencePattern(BaseModel):
    """A weekly recurrence rule.

    Occurrences fall on the selected weekdays at the time of day of the series
    start. Expansion stops at whichever comes first: the occurrence count, the
    until date (inclusive, compared by calendar date) or the safety horizon.
    A pattern with neither count nor until date runs to the horizon.

    Patterns are immutable; edits to a series build new patterns.

    Args:
        weekdays: Days the event repeats on. Accepts a code string ("MWF"),
            an iterable of codes, or Weekday members.
        occurrences: Number of occurrences, or None when not bounded by count.
        until: Last date an occurrence may fall on, or None.
    """

    model_config = ConfigDict(frozen=True)

    weekdays: frozenset[Weekday] = Field(description="Days the event repeats on")
    occurrences: Optional[int] = Field(
        default=None, ge=1, description="Occurrence count, None if unbounded by count"
    )
    until: Optional[datetime] = Field(
        default=None, description="Last date an occurrence may fall on"
    )

    @field_validator("weekdays", mode="before")
    @classmethod
    def parse_weekdays(cls, value: Any) -> frozenset[Weekday]:
        """Accept code strings as well as collections of weekdays.

        Raises:
            ValueError: If no weekday is given or a code is unknown.
        """
        if isinstance(value, str):
            return Weekday.parse_codes(value)
        days = frozenset(Weekday(day) for day in value)
        if not days:
            raise ValueError("At least one weekday code is required")
        return days

    @field_serializer("weekdays")
    def serialize_weekdays(self, weekdays: frozenset[Weekday]) -> str:
        """Serialize weekdays to their canonical code string."""
        return self.codes

    @property
    def codes(self) -> str:
        """Weekday codes in Monday-to-Sunday order, e.g. "MWF"."""
        return "".join(day.value for day in Weekday if day in self.weekdays)

    def iter_recurrences(
        self, base: datetime, horizon_years: Optional[int] = None
    ) -> Iterator[datetime]:
        """Lazily generate occurrence start times for a series starting at base.

        The base itself is produced first when its weekday is selected. Each
        call starts a fresh walk, so the sequence can be restarted at will.

        Args:
            base: Start of the series.
            horizon_years: Safety bound; defaults to the configured horizon.

        Yields:
            Occurrence start times in ascending order.
        """
        if horizon_years is None:
            horizon_years = get_settings().recurrence_horizon_years
        limit = _add_years(base, horizon_years)

        emitted = 0
        if Weekday.from_date(base) in self.weekdays:
            yield base
            emitted += 1

        current = base + timedelta(days=1)
        while True:
            if self.occurrences is not None and emitted >= self.occurrences:
                return
            if self.until is not None and current.date() > self.until.date():
                return
            if current > limit:
                return
            if Weekday.from_date(current) in self.weekdays:
                yield current
                emitted += 1
            current += timedelta(days=1)

    def calculate_recurrences(
        self, base: datetime, horizon_years: Optional[int] = None
    ) -> list[datetime]:
        """Expand the pattern into the full, finite list of occurrence starts.

        Args:
            base: Start of the series.
            horizon_years: Safety bound; defaults to the configured horizon.

        Returns:
            Occurrence start times in ascending order.
        """
        return list(self.iter_recurrences(base, horizon_years))

    def describe(self) -> str:
        """Human-readable rule, e.g. "Mon,Wed,Fri for 3 times"."""
        days = ",".join(day.short_name for day in Weekday if day in self.weekdays)
        if self.occurrences is not None:
            return f"{days} for {self.occurrences} times"
        if self.until is not None:
            return f"{days} until {self.until.date().isoformat()}"
        return days
