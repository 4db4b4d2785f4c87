"""Scheduling engine fixtures."""

from tests.fixtures.scheduling import calendars

__all__ = ["calendars"]
