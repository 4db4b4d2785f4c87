"""Unit tests for the CalendarManager registry and calendar edits."""

from datetime import date, datetime

from scheduling.config import get_settings
from scheduling.manager import CalendarManager
from tests.fixtures.scheduling.calendars import create_manager


class TestCalendarLifecycle:
    """Test creating, selecting and deleting calendars."""

    def test_create_calendar(self):
        """Verify a calendar is registered with its zone."""
        manager = CalendarManager()

        assert manager.create_calendar("Work", "America/New_York")

        assert manager.calendar_exists("Work")
        assert manager.get_calendar("Work").timezone == "America/New_York"
        assert manager.calendar_names() == ["Work"]
        assert manager.current_calendar is None

    def test_duplicate_name_rejected(self, manager):
        """Verify calendar names are unique."""
        assert not manager.create_calendar("Work", "UTC")
        assert manager.get_calendar("Work").timezone == "America/New_York"

    def test_names_are_case_sensitive(self, manager):
        """Verify names differing only in case are distinct."""
        assert manager.create_calendar("work", "UTC")
        assert manager.calendar_names() == ["Work", "Home", "work"]

    def test_unknown_timezone_rejected(self):
        """Verify unknown zones fail without registering anything."""
        manager = CalendarManager()

        assert not manager.create_calendar("Work", "Nowhere/Special")
        assert manager.calendar_names() == []

    def test_default_timezone_from_settings(self, monkeypatch):
        """Verify the configured default zone applies when none is given."""
        monkeypatch.setenv("SCHEDULING_DEFAULT_TIMEZONE", "Europe/Berlin")
        get_settings.cache_clear()
        manager = CalendarManager()

        assert manager.create_calendar("Work")
        assert manager.get_calendar("Work").timezone == "Europe/Berlin"

    def test_use_calendar(self, manager):
        """Verify selecting calendars."""
        assert manager.current_calendar.name == "Work"
        assert manager.use_calendar("Home")
        assert manager.current_calendar.name == "Home"
        assert not manager.use_calendar("Missing")
        assert manager.current_calendar_name == "Home"

    def test_delete_calendar(self, manager):
        """Verify deleting the current calendar clears the selection."""
        assert manager.delete_calendar("Work")

        assert manager.calendar_names() == ["Home"]
        assert manager.current_calendar is None
        assert not manager.delete_calendar("Work")


class TestEditCalendar:
    """Test renaming and retimezoning calendars."""

    def test_rename_keeps_current_selection(self, manager):
        """Verify renaming the current calendar keeps it selected."""
        assert manager.edit_calendar("Work", "name", "Office")

        assert manager.calendar_names() == ["Office", "Home"]
        assert manager.current_calendar_name == "Office"
        assert manager.current_calendar.name == "Office"
        assert manager.validate_state() == []

    def test_rename_to_taken_name_rejected(self, manager):
        """Verify renaming onto an existing name fails."""
        assert not manager.edit_calendar("Work", "name", "Home")
        assert manager.calendar_names() == ["Work", "Home"]

    def test_rename_blank_rejected(self, manager):
        """Verify blank names are rejected."""
        assert not manager.edit_calendar("Work", "name", " ")

    def test_edit_missing_calendar(self, manager):
        """Verify editing an unknown calendar fails."""
        assert not manager.edit_calendar("Missing", "name", "Other")

    def test_unknown_property_rejected(self, manager):
        """Verify only name and timezone are editable."""
        assert not manager.edit_calendar("Work", "colour", "blue")

    def test_retimezone_scenario(self):
        """A UTC 12:00 event becomes 05:00 in Los Angeles; all-day events keep their date."""
        manager = create_manager(("Personal", "UTC"))
        calendar = manager.get_calendar("Personal")
        calendar.create_event("Call", datetime(2024, 6, 1, 12, 0), datetime(2024, 6, 1, 13, 0))
        calendar.create_all_day_event("Holiday", date(2024, 6, 2))

        assert manager.edit_calendar("Personal", "timezone", "America/Los_Angeles")

        call, holiday = calendar.events
        assert calendar.timezone == "America/Los_Angeles"
        assert call.start == datetime(2024, 6, 1, 5, 0)
        assert call.end == datetime(2024, 6, 1, 6, 0)
        assert holiday.start == datetime(2024, 6, 2)
        assert holiday.is_all_day

    def test_retimezone_converts_until(self):
        """Verify a series' until date moves with its instants."""
        manager = create_manager(("Personal", "UTC"))
        calendar = manager.get_calendar("Personal")
        calendar.create_recurring_event(
            "Night call",
            datetime(2024, 1, 1, 20, 0),
            datetime(2024, 1, 1, 21, 0),
            "MTWRF",
            until=datetime(2024, 1, 5, 20, 0),
        )

        assert manager.edit_calendar("Personal", "timezone", "Asia/Tokyo")

        series = calendar.events[0]
        assert series.start == datetime(2024, 1, 2, 5, 0)
        assert series.end == datetime(2024, 1, 2, 6, 0)
        assert series.recurrence.until == datetime(2024, 1, 6, 5, 0)

    def test_retimezone_keeps_instants(self, manager):
        """Verify the absolute instant of timed events is preserved."""
        calendar = manager.get_calendar("Work")
        calendar.create_event("Sync", datetime(2024, 3, 12, 9, 0), datetime(2024, 3, 12, 10, 0))
        before = calendar.to_zoned(calendar.events[0].start)

        assert manager.edit_calendar("Work", "timezone", "Europe/London")

        assert calendar.to_zoned(calendar.events[0].start) == before

    def test_invalid_timezone_leaves_calendar_untouched(self, manager):
        """Verify unknown zones fail without changing events."""
        calendar = manager.get_calendar("Work")
        calendar.create_event("Sync", datetime(2024, 3, 12, 9, 0), datetime(2024, 3, 12, 10, 0))

        assert not manager.edit_calendar("Work", "timezone", "Moon/Base")

        assert calendar.timezone == "America/New_York"
        assert calendar.events[0].start == datetime(2024, 3, 12, 9, 0)


class TestManagerState:
    """Test registry validation and snapshots."""

    def test_validate_state(self, manager):
        """Verify a registry built through its operations is consistent."""
        assert manager.validate_state() == []

    def test_validate_state_reports_dangling_selection(self, manager):
        """Verify a current name that is not registered is reported."""
        manager.current_calendar_name = "Ghost"

        assert manager.validate_state() == ["Current calendar 'Ghost' is not registered"]

    def test_snapshot(self, manager):
        """Verify the snapshot lists every calendar."""
        snapshot = manager.get_snapshot()

        assert snapshot["current_calendar"] == "Work"
        assert set(snapshot["calendars"]) == {"Work", "Home"}
        assert snapshot["calendars"]["Home"]["timezone"] == "America/Los_Angeles"
