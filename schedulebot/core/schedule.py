"""
Schedule Bot — Calendar engine.

A user's weekly availability is a list of 7 integers, one per day, where bit
``t`` of day ``d`` means "available at hour t of day d". The mask is always
stored in UTC. A user's timezone is only a lens: every write converts the
local (day, hour) to UTC through ``global_daytime`` and every read rotates
the UTC mask into the viewer's offset through ``shift_schedule``.

e.g. 0b010000000000000000000001 represents availability at 0:00 and 22:00.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from schedulebot.core.day import DAYS_PER_WEEK, Day, day_span

HOURS_PER_DAY = 24
DAY_MASK = (1 << HOURS_PER_DAY) - 1

AVAILABLE_CELL = "█"
UNAVAILABLE_CELL = "░"


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------


def validate_timezone(timezone: int) -> int:
    if not -HOURS_PER_DAY < timezone < HOURS_PER_DAY:
        raise ValueError(f"Timezone offset out of range: {timezone}")
    return timezone


def global_daytime(day: Day, hour: int, timezone: int) -> tuple[Day, int]:
    """Convert a local (day, hour) under ``timezone`` to the UTC (day, hour)."""
    raw = hour - timezone
    if raw < 0:
        day = day.previous()
    elif raw >= HOURS_PER_DAY:
        day = day.next()
    return day, raw % HOURS_PER_DAY


def shift_schedule(schedule: Sequence[int], timezone: int) -> list[int]:
    """Rotate a UTC mask into the local time of ``timezone``.

    Hours that roll past midnight carry bits across neighbouring days:
    a positive offset pulls the late hours of the previous UTC day into the
    start of the local day, a negative offset pulls the early hours of the
    following UTC day into the end of the local day.
    """
    validate_timezone(timezone)
    local = list(schedule)

    if timezone > 0:
        for day in range(DAYS_PER_WEEK):
            previous = schedule[(day + DAYS_PER_WEEK - 1) % DAYS_PER_WEEK]
            local[day] = ((schedule[day] << timezone) & DAY_MASK) | (
                previous >> (HOURS_PER_DAY - timezone)
            )
    elif timezone < 0:
        shift = -timezone
        for day in range(DAYS_PER_WEEK):
            following = schedule[(day + 1) % DAYS_PER_WEEK]
            local[day] = (schedule[day] >> shift) | (
                (following << (HOURS_PER_DAY - shift)) & DAY_MASK
            )

    return local


def unshift_schedule(schedule: Sequence[int], timezone: int) -> list[int]:
    """Rotate a mask expressed in ``timezone`` local time back to UTC."""
    return shift_schedule(schedule, -timezone)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


@dataclass
class User:
    """A single user's name, timezone and UTC availability mask."""

    display_name: str
    timezone: int = 0
    schedule: list[int] = field(default_factory=lambda: [0] * DAYS_PER_WEEK)

    def __post_init__(self) -> None:
        validate_timezone(self.timezone)
        if len(self.schedule) != DAYS_PER_WEEK:
            raise ValueError(f"Schedule must have {DAYS_PER_WEEK} days, got {len(self.schedule)}")
        self.schedule = [int(bits) & DAY_MASK for bits in self.schedule]

    # -- Name / timezone ----------------------------------------------------

    def set_name(self, name: str) -> None:
        self.display_name = name

    def set_timezone(self, timezone: int) -> None:
        """Change the display timezone. The stored UTC mask is left untouched."""
        self.timezone = validate_timezone(timezone)

    # -- Writes -------------------------------------------------------------

    def set_time(
        self, day: Day, hour: int, available: bool, timezone: int | None = None,
    ) -> None:
        """Mark one local hour available or unavailable.

        ``timezone`` defaults to the user's own offset.
        """
        if not 0 <= hour < HOURS_PER_DAY:
            raise ValueError(f"Hour out of range: {hour}")
        if timezone is None:
            timezone = self.timezone
        validate_timezone(timezone)

        utc_day, utc_hour = global_daytime(day, hour, timezone)
        if available:
            self.schedule[utc_day] |= 1 << utc_hour
        else:
            self.schedule[utc_day] &= DAY_MASK ^ (1 << utc_hour)

    def set_time_range(
        self,
        day: Day,
        start_hour: int,
        end_hour: int,
        available: bool,
        timezone: int | None = None,
    ) -> None:
        """Inclusive hour range on one day. An end before the start sets nothing."""
        for hour in range(start_hour, end_hour + 1):
            self.set_time(day, hour, available, timezone)

    def set_day_range(
        self,
        start_day: Day,
        end_day: Day,
        hour: int,
        available: bool,
        timezone: int | None = None,
    ) -> None:
        """One hour across an inclusive day range, wrapping e.g. Fri to Tue."""
        for day in day_span(start_day, end_day):
            self.set_time(day, hour, available, timezone)

    def set_day_time_range(
        self,
        start_day: Day,
        end_day: Day,
        start_hour: int,
        end_hour: int,
        available: bool,
        timezone: int | None = None,
    ) -> None:
        for day in day_span(start_day, end_day):
            self.set_time_range(day, start_hour, end_hour, available, timezone)

    # -- Reads --------------------------------------------------------------

    def is_available(self, day: Day, hour: int, timezone: int) -> bool:
        """Check availability at a (day, hour) given in the asker's timezone."""
        utc_day, utc_hour = global_daytime(day, hour, timezone)
        return bool(self.schedule[utc_day] & (1 << utc_hour))

    def local_schedule(self, timezone: int | None = None) -> list[int]:
        if timezone is None:
            timezone = self.timezone
        return shift_schedule(self.schedule, timezone)

    def render(self, as_grid: bool = True, timezone: int | None = None) -> str:
        """Render the schedule as text, rotated into ``timezone``.

        With ``as_grid`` the hours are rows and the days are columns,
        otherwise the days are rows and the hours are columns.
        """
        local = self.local_schedule(timezone)

        def cell(bits: int, hour: int) -> str:
            return AVAILABLE_CELL if bits & (1 << hour) else UNAVAILABLE_CELL

        if as_grid:
            return "".join(
                f"{hour:02d}: " + "".join(cell(bits, hour) + " " for bits in local) + "\n"
                for hour in range(HOURS_PER_DAY)
            )

        header = "     " + "".join(str(hour % 10) for hour in range(HOURS_PER_DAY)) + "\n"
        return header + "".join(
            f"{Day(index).short}: "
            + "".join(cell(bits, hour) for hour in range(HOURS_PER_DAY))
            + "\n"
            for index, bits in enumerate(local)
        )

    # -- Raw access / serialization ----------------------------------------

    @property
    def raw_schedule(self) -> list[int]:
        return list(self.schedule)

    def set_raw_schedule(self, schedule: Sequence[int]) -> None:
        if len(schedule) != DAYS_PER_WEEK:
            raise ValueError(f"Schedule must have {DAYS_PER_WEEK} days, got {len(schedule)}")
        self.schedule = [int(bits) & DAY_MASK for bits in schedule]

    def to_dict(self) -> dict[str, Any]:
        return {
            "display_name": self.display_name,
            "timezone": self.timezone,
            "schedule": list(self.schedule),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            display_name=data["display_name"],
            timezone=int(data.get("timezone", 0)),
            schedule=list(data.get("schedule", [0] * DAYS_PER_WEEK)),
        )
