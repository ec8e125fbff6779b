"""
Schedule Bot — User directory.

Owns every User keyed by a stable identity (the gateway's user id), plus a
secondary index from display name to identity. The first identity to claim a
name keeps it. Every name in the index resolves to a stored identity.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from schedulebot.core.day import Day
from schedulebot.core.errors import NameAlreadyBound, UserNotFound
from schedulebot.core.schedule import HOURS_PER_DAY, User

logger = logging.getLogger(__name__)


class Directory:
    """In-memory collection of users and their name bindings."""

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._name_ids: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._users)

    def __iter__(self) -> Iterator[tuple[int, User]]:
        return iter(self._users.items())

    # -- Identity / name bindings ------------------------------------------

    def contains(self, identity: int) -> bool:
        return identity in self._users

    def insert(self, identity: int, user: User) -> None:
        """Store a user under ``identity``, replacing any existing one."""
        self._users[identity] = user

    def resolve_name(self, name: str) -> int | None:
        return self._name_ids.get(name)

    def register(self, name: str, identity: int) -> None:
        """Bind ``name`` to ``identity``.

        Raises:
            UserNotFound: ``identity`` has no stored user.
            NameAlreadyBound: ``name`` belongs to a different identity.
        """
        if identity not in self._users:
            raise UserNotFound(f"No user with id {identity}")

        bound = self._name_ids.get(name)
        if bound is not None and bound != identity:
            raise NameAlreadyBound(f"Name '{name}' is already taken")

        self._name_ids[name] = identity

    def names(self) -> dict[str, int]:
        return dict(self._name_ids)

    def first_contact(self, identity: int, display_name: str) -> User:
        """Make sure an incoming caller is stored and reachable by name."""
        user = self._users.get(identity)
        if user is None:
            user = User(display_name=display_name)
            self.insert(identity, user)
            logger.info("New user %s registered as '%s'", identity, display_name)

        if self.resolve_name(display_name) is None:
            try:
                self.register(display_name, identity)
            except NameAlreadyBound as exc:
                logger.warning("Could not bind name for user %s: %s", identity, exc)
        return user

    # -- Lookups ------------------------------------------------------------

    def user_by_id(self, identity: int) -> User | None:
        return self._users.get(identity)

    def get_user(self, name: str) -> User | None:
        identity = self.resolve_name(name)
        if identity is None:
            return None
        return self._users.get(identity)

    # -- Aggregation --------------------------------------------------------

    def available_at(self, day: Day, hour: int, timezone: int) -> list[str]:
        """Display names of everyone free at a (day, hour) in ``timezone``."""
        return [
            user.display_name
            for user in self._users.values()
            if user.is_available(day, hour, timezone)
        ]

    def available_line(self, day: Day, hour: int, timezone: int) -> str:
        names = self.available_at(day, hour, timezone)
        if not names:
            return ""
        return f"{day} at {hour}: " + "".join(f"{name}, " for name in names) + "\n"

    def available_report(self, day: Day, timezone: int) -> str:
        return "".join(
            self.available_line(day, hour, timezone) for hour in range(HOURS_PER_DAY)
        )

    # -- Structured record --------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "users": {str(identity): user.to_dict() for identity, user in self._users.items()},
            "names": dict(self._name_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Directory:
        directory = cls()
        for identity, user_data in data.get("users", {}).items():
            directory.insert(int(identity), User.from_dict(user_data))
        for name, identity in data.get("names", {}).items():
            directory.register(name, int(identity))
        return directory
