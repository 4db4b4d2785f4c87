"""Unit tests for copying events between calendars."""

from datetime import date, datetime, timedelta

import pytest

from tests.fixtures.scheduling.calendars import MONDAY, create_manager


@pytest.fixture
def work(manager):
    """Provide the Work calendar (America/New_York) of the manager fixture."""
    return manager.get_calendar("Work")


@pytest.fixture
def home(manager):
    """Provide the Home calendar (America/Los_Angeles) of the manager fixture."""
    return manager.get_calendar("Home")


class TestCopyEvent:
    """Test copying a single event or series."""

    def test_copy_timed_event(self, manager, work, home):
        """Verify a copy starts at the target time and keeps its duration and fields."""
        work.create_event(
            "Sync",
            MONDAY,
            MONDAY.replace(hour=10, minute=45),
            location="Room 4",
            is_public=False,
        )

        assert manager.copy_event("Sync", MONDAY, "Home", datetime(2024, 1, 8, 14, 0))

        copy = home.events[0]
        assert copy.start == datetime(2024, 1, 8, 14, 0)
        assert copy.duration == timedelta(minutes=105)
        assert copy.location == "Room 4"
        assert copy.is_public is False
        assert copy.event_id != work.events[0].event_id

    def test_copy_all_day_event_starts_at_midnight(self, manager, home, work):
        """Verify all-day copies land at midnight of the target date."""
        work.create_all_day_event("Holiday", date(2024, 1, 1))

        assert manager.copy_event(
            "Holiday", datetime(2024, 1, 1), "Home", datetime(2024, 1, 8, 15, 30)
        )

        assert home.events[0].start == datetime(2024, 1, 8)
        assert home.events[0].is_all_day

    def test_copy_series_from_any_occurrence(self, manager, work, home):
        """Verify a series is found by any occurrence and keeps its count across zones."""
        work.create_recurring_event(
            "Standup", MONDAY, MONDAY.replace(minute=30), "MWF", occurrences=9
        )

        assert manager.copy_event(
            "Standup", datetime(2024, 1, 10, 9, 0), "Home", datetime(2024, 2, 5, 6, 0)
        )

        copy = home.events[0]
        assert copy.recurrence.codes == "MWF"
        assert copy.recurrence.occurrences == 9
        assert copy.duration == timedelta(minutes=30)
        assert len(copy.occurrence_starts()) == 9
        assert copy.occurrence_starts()[0] == datetime(2024, 2, 5, 6, 0)

    def test_copy_series_shifts_until(self, manager, work, home):
        """Verify the until date keeps its day offset from the series start."""
        work.create_recurring_event(
            "Gym", MONDAY, MONDAY.replace(hour=10), "MW", until=datetime(2024, 1, 19)
        )

        assert manager.copy_event("Gym", MONDAY, "Home", datetime(2024, 2, 5, 7, 0))

        assert home.events[0].recurrence.until == datetime(2024, 2, 23, 7, 0)

    def test_copy_all_day_series_shifts_until(self, manager, work, home):
        """Verify all-day series until dates stay at midnight."""
        work.create_recurring_all_day_event("Gym", date(2024, 1, 1), "M", until=date(2024, 1, 15))

        assert manager.copy_event("Gym", datetime(2024, 1, 8), "Home", datetime(2024, 3, 4, 9, 0))

        series = home.events[0]
        assert series.start == datetime(2024, 3, 4)
        assert series.recurrence.until == datetime(2024, 3, 18)
        assert len(series.occurrence_starts()) == 3

    def test_copy_with_quoted_name(self, manager, work, home):
        """Verify quoted names find the source event."""
        work.create_event("Team Sync", MONDAY, MONDAY.replace(hour=10))

        assert manager.copy_event('"Team Sync"', MONDAY, "Home", MONDAY)

    def test_copy_rejected_on_conflict(self, manager, work, home):
        """Verify copies go through the target's conflict check."""
        work.create_event("Sync", MONDAY, MONDAY.replace(hour=10))
        home.create_event("Busy", MONDAY, MONDAY.replace(hour=12))

        assert not manager.copy_event("Sync", MONDAY, "Home", MONDAY.replace(hour=11))
        assert len(home.events) == 1

    def test_copy_missing_event_or_calendar(self, manager, work):
        """Verify missing sources and targets fail."""
        work.create_event("Sync", MONDAY, MONDAY.replace(hour=10))

        assert not manager.copy_event("Missing", MONDAY, "Home", MONDAY)
        assert not manager.copy_event("Sync", MONDAY.replace(hour=11), "Home", MONDAY)
        assert not manager.copy_event("Sync", MONDAY, "Nowhere", MONDAY)

    def test_copy_needs_a_source(self):
        """Verify copying without a current or named source calendar fails."""
        manager = create_manager(("Work", "UTC"), ("Home", "UTC"))
        manager.current_calendar_name = None

        assert not manager.copy_event("Sync", MONDAY, "Home", MONDAY)

    def test_explicit_source_calendar(self, manager, work, home):
        """Verify an explicit source overrides the current calendar."""
        home.create_event("Yoga", MONDAY, MONDAY.replace(hour=10))

        assert manager.copy_event(
            "Yoga", MONDAY, "Work", MONDAY.replace(hour=12), source_calendar_name="Home"
        )
        assert work.events[0].start == MONDAY.replace(hour=12)

    def test_copy_within_same_calendar(self, manager, work):
        """Verify an event can be copied to another time in its own calendar."""
        work.create_event("Sync", MONDAY, MONDAY.replace(hour=10))

        assert manager.copy_event("Sync", MONDAY, "Work", MONDAY + timedelta(days=7))
        assert len(work.events) == 2


class TestCopyEventsOnDay:
    """Test copying a whole day."""

    def test_timed_events_converted_between_zones(self, manager, work, home):
        """Verify timed copies keep their instant, moved to the target date."""
        work.create_event("Sync", MONDAY, MONDAY.replace(hour=10))
        work.create_event("Review", MONDAY.replace(hour=13), MONDAY.replace(hour=14))

        assert manager.copy_events_on_day(date(2024, 1, 1), "Home", date(2024, 1, 10))

        assert [(e.subject, e.start) for e in home.events] == [
            ("Sync", datetime(2024, 1, 10, 6, 0)),
            ("Review", datetime(2024, 1, 10, 10, 0)),
        ]
        assert all(e.duration == timedelta(hours=1) for e in home.events)

    def test_rollover_moves_to_previous_target_date(self, manager, work, home):
        """Verify conversions crossing midnight land on the neighbouring date."""
        work.create_event("Early", datetime(2024, 1, 1, 1, 0), datetime(2024, 1, 1, 2, 0))

        assert manager.copy_events_on_day(date(2024, 1, 1), "Home", date(2024, 1, 10))

        assert home.events[0].start == datetime(2024, 1, 9, 22, 0)

    def test_all_day_copied_to_target_date(self, manager, work, home):
        """Verify all-day events move to the target date unchanged by zones."""
        work.create_all_day_event("Holiday", date(2024, 1, 1))

        assert manager.copy_events_on_day(date(2024, 1, 1), "Home", date(2024, 1, 10))

        assert home.events[0].start == datetime(2024, 1, 10)

    def test_partial_success_is_success(self, manager, work, home):
        """Verify one failed copy does not undo the others."""
        work.create_event("Sync", MONDAY, MONDAY.replace(hour=10))
        work.create_event("Review", MONDAY.replace(hour=13), MONDAY.replace(hour=14))
        home.create_event("Busy", datetime(2024, 1, 10, 5, 30), datetime(2024, 1, 10, 6, 30))

        assert manager.copy_events_on_day(date(2024, 1, 1), "Home", date(2024, 1, 10))

        assert [e.subject for e in home.events] == ["Busy", "Review"]

    def test_empty_day_is_failure(self, manager):
        """Verify copying a day without events fails."""
        assert not manager.copy_events_on_day(date(2024, 1, 1), "Home", date(2024, 1, 10))

    def test_missing_target_is_failure(self, manager, work):
        """Verify copying to an unknown calendar fails."""
        work.create_event("Sync", MONDAY, MONDAY.replace(hour=10))

        assert not manager.copy_events_on_day(date(2024, 1, 1), "Nowhere", date(2024, 1, 10))


class TestCopyEventsInRange:
    """Test copying a date range."""

    def test_range_keeps_relative_positions(self, manager, work, home):
        """Verify each event lands at the same offset from the target start."""
        work.create_recurring_event(
            "Standup", MONDAY, MONDAY.replace(minute=30), "MWF", occurrences=9
        )
        work.create_event("Review", datetime(2024, 1, 2, 13, 0), datetime(2024, 1, 2, 14, 0))

        assert manager.copy_events_in_range(
            date(2024, 1, 1), date(2024, 1, 7), "Home", date(2024, 2, 5)
        )

        assert len(home.events) == 2
        standup, review = home.events
        assert standup.start == datetime(2024, 2, 5, 6, 0)
        assert standup.recurrence.occurrences == 9
        assert review.start == datetime(2024, 2, 6, 10, 0)

    def test_series_copied_once(self, manager, work, home):
        """Verify a series with several occurrences in range is copied once."""
        work.create_recurring_event(
            "Standup", MONDAY, MONDAY.replace(minute=30), "MWF", occurrences=3
        )

        assert manager.copy_events_in_range(
            date(2024, 1, 1), date(2024, 1, 5), "Home", date(2024, 3, 4)
        )
        assert len(home.events) == 1

    def test_empty_range_is_failure(self, manager):
        """Verify copying an empty range fails."""
        assert not manager.copy_events_in_range(
            date(2024, 1, 1), date(2024, 1, 5), "Home", date(2024, 3, 4)
        )
