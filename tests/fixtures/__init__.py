"""Test fixtures for the scheduling engine.

- scheduling: Calendar, event and manager factories plus shared calendars
"""
