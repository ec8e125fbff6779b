"""
Schedule Bot — Days of the week.

Days are a fixed cyclic enumeration starting on Sunday. Every consumer only
needs "the next day" and "the days between two days", so both are plain
index arithmetic modulo 7.
"""

from __future__ import annotations

from enum import IntEnum

DAYS_PER_WEEK = 7


class Day(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_index(cls, index: int) -> Day:
        """Convert a 0-6 index to a Day. Raises ValueError outside that range."""
        if not 0 <= index < DAYS_PER_WEEK:
            raise ValueError(f"Day index out of range: {index}")
        return cls(index)

    def next(self) -> Day:
        return Day((self + 1) % DAYS_PER_WEEK)

    def previous(self) -> Day:
        return Day((self + DAYS_PER_WEEK - 1) % DAYS_PER_WEEK)

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def short(self) -> str:
        return self.label[:3]

    def __str__(self) -> str:
        return self.label


def day_span(start: Day, end: Day) -> list[Day]:
    """Inclusive list of days from start to end, wrapping past Saturday.

    e.g. day_span(FRIDAY, TUESDAY) -> [Fri, Sat, Sun, Mon, Tue]
    """
    end_index = int(end)
    if end < start:
        end_index += DAYS_PER_WEEK
    return [Day(i % DAYS_PER_WEEK) for i in range(int(start), end_index + 1)]
