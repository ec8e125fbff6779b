"""
Schedule Bot — Directory database.

Users and their name bindings persist in SQLite across restarts. Schedules
are stored as the raw 7-integer UTC mask (JSON encoded), never as rendered
text, so a save/load cycle reproduces every field exactly.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from schedulebot.core.directory import Directory
from schedulebot.core.schedule import User

logger = logging.getLogger(__name__)


class DirectoryDB:
    """SQLite-backed storage for the user Directory."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from schedulebot.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the users and names tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    identity     INTEGER PRIMARY KEY,
                    display_name TEXT    NOT NULL,
                    timezone     INTEGER NOT NULL DEFAULT 0,
                    schedule     TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS names (
                    name     TEXT    PRIMARY KEY,
                    identity INTEGER NOT NULL REFERENCES users(identity)
                )
            """)
        logger.debug("Directory tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            display_name=row["display_name"],
            timezone=row["timezone"],
            schedule=json.loads(row["schedule"]),
        )

    @staticmethod
    def _upsert_user(conn: sqlite3.Connection, identity: int, user: User) -> None:
        conn.execute(
            """
            INSERT INTO users (identity, display_name, timezone, schedule)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(identity) DO UPDATE SET
                display_name = excluded.display_name,
                timezone     = excluded.timezone,
                schedule     = excluded.schedule
            """,
            (identity, user.display_name, user.timezone, json.dumps(user.raw_schedule)),
        )

    def save_user(self, identity: int, user: User) -> None:
        """Insert or update a single user."""
        with self._connect() as conn:
            self._upsert_user(conn, identity, user)
        logger.debug("User %s saved", identity)

    def save_directory(self, directory: Directory) -> None:
        """Write every user and name binding in one transaction."""
        with self._connect() as conn:
            for identity, user in directory:
                self._upsert_user(conn, identity, user)
            conn.execute("DELETE FROM names")
            conn.executemany(
                "INSERT INTO names (name, identity) VALUES (?, ?)",
                list(directory.names().items()),
            )
        logger.info("Directory saved: %d users", len(directory))

    def load_directory(self) -> Directory:
        """Rebuild a Directory from the stored users and name bindings."""
        directory = Directory()
        with self._connect() as conn:
            user_rows = conn.execute("SELECT * FROM users ORDER BY identity").fetchall()
            name_rows = conn.execute("SELECT * FROM names ORDER BY name").fetchall()

        for row in user_rows:
            directory.insert(row["identity"], self._row_to_user(row))
        for row in name_rows:
            directory.register(row["name"], row["identity"])

        logger.info("Directory loaded: %d users, %d names", len(user_rows), len(name_rows))
        return directory
