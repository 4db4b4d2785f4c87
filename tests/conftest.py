"""Pytest configuration and shared fixtures."""

# Load environment variables from .env file at test startup
# so settings read during collection see the same configuration as at runtime
from dotenv import load_dotenv
load_dotenv()

# Import all fixtures from the scheduling fixture modules
pytest_plugins = [
    "tests.fixtures.scheduling.calendars",
]
