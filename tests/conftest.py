"""Shared test fixtures and configuration.

Sets up fake environment variables so schedulebot.config doesn't sys.exit(),
and provides common fixtures like a temp DB and a populated Directory.
"""

import os

# Patch env vars BEFORE any schedulebot imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("COMMAND_PREFIX", "?")
os.environ.setdefault("ALLOWED_USER_IDS", "")
os.environ.setdefault("DATABASE_PATH", ":memory:")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_schedules.db")


@pytest.fixture
def directory_db(tmp_db_path):
    """Return a DirectoryDB instance backed by a temp file."""
    from schedulebot.data.db import DirectoryDB
    return DirectoryDB(db_path=tmp_db_path)


@pytest.fixture
def directory():
    """Return a Directory with two registered users: bob (UTC-5) and ann (UTC)."""
    from schedulebot.core.directory import Directory
    from schedulebot.core.schedule import User

    d = Directory()
    d.insert(1, User(display_name="bob", timezone=-5))
    d.register("bob", 1)
    d.insert(2, User(display_name="ann"))
    d.register("ann", 2)
    return d
