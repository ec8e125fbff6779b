"""
Schedule Bot — Command parser.

Turns a loosely formatted text line such as ``add mon wed from 9 to 17`` into
a typed ``Command``: a ``ParamType`` plus a tuple of immutable argument
values. Parsing never raises; an unrecognised or malformed line yields None
and the gateway replies "Failed to parse message".
"""

from __future__ import annotations

import logging
import math
import re
from enum import Enum
from functools import partial
from typing import Annotated, Callable, Sequence, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from schedulebot.core.day import Day

logger = logging.getLogger(__name__)

Hour = Annotated[int, Field(ge=0, lt=24)]
Offset = Annotated[int, Field(gt=-24, lt=24)]

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Command model
# ---------------------------------------------------------------------------


class ParamType(str, Enum):
    """The kind of command a text line asks for."""

    TIMEZONE = "timezone"
    NAME = "name"
    ADD_SCHEDULE = "add"
    REMOVE_SCHEDULE = "remove"
    VIEW_SCHEDULE = "view"
    AVAILABLE = "available"
    MEME = "showtime"
    HELP = "help"


class _ParamVal(BaseModel):
    model_config = ConfigDict(frozen=True)


class TimeCollection(_ParamVal):
    times: tuple[Hour, ...] = Field(min_length=1)


class DayCollection(_ParamVal):
    days: tuple[Day, ...] = Field(min_length=1)


class TimeRange(_ParamVal):
    start: Hour
    end: Hour


class DayRange(_ParamVal):
    start: Day
    end: Day


class Name(_ParamVal):
    value: str


class TimeZone(_ParamVal):
    offset: Offset


class ViewId(_ParamVal):
    value: str


ParamVal = Union[TimeCollection, DayCollection, TimeRange, DayRange, Name, TimeZone, ViewId]
DayVals = Union[DayCollection, DayRange]
TimeVals = Union[TimeCollection, TimeRange]


class Command(BaseModel):
    """A parsed command, ready for the dispatcher."""

    model_config = ConfigDict(frozen=True)

    kind: ParamType
    args: tuple[ParamVal, ...] = ()


WHOLE_WEEK = DayRange(start=Day.SUNDAY, end=Day.SATURDAY)
WEEKDAYS = DayRange(start=Day.MONDAY, end=Day.FRIDAY)
WEEKENDS = DayRange(start=Day.SATURDAY, end=Day.SUNDAY)

_DAY_PREFIXES = {day.short.lower(): day for day in Day}
# Common spellings that do not continue the full day name.
_DAY_ALIASES = {"weds": Day.WEDNESDAY}


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def _is_token_char(char: str) -> bool:
    # "-" survives so negative timezones such as "-7" can be parsed.
    return (char.isascii() and char.isalnum()) or char == "-"


def filter_query(raw_text: str) -> list[str]:
    """Split raw text on spaces and commas into cleaned, lowercase tokens."""
    words = re.split(r"[ ,]", raw_text)
    cleaned = ("".join(char for char in word if _is_token_char(char)) for word in words)
    return [word.lower() for word in cleaned if word]


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------


def parse_day(token: str) -> Day | None:
    """Recognise a day by its first three letters.

    Any further letters must continue the day's full name, with an optional
    plural "s". ``weds`` is also accepted. ``mon``, ``tues``, ``thursday`` and
    ``fridays`` are days, ``mondi`` is not.
    """
    if token in _DAY_ALIASES:
        return _DAY_ALIASES[token]
    day = _DAY_PREFIXES.get(token[:3])
    if day is None:
        return None
    full = day.name.lower()
    if full.startswith(token) or token == full + "s":
        return day
    return None


def _parse_number(token: str) -> int | None:
    if token.isascii() and token.isdigit():
        return int(token)
    return None


def _parse_hour(token: str) -> int | None:
    number = _parse_number(token)
    if number is None or number >= 24:
        return None
    return number


def _parse_span(
    tokens: Sequence[str], pos: int, convert: Callable[[str], T | None],
) -> tuple[T, T] | None:
    """Parse ``<first> to <second>`` starting at ``tokens[pos]``."""
    if len(tokens) < pos + 3 or tokens[pos + 1] != "to":
        return None
    first = convert(tokens[pos])
    second = convert(tokens[pos + 2])
    if first is None or second is None:
        return None
    return first, second


def _leading_digit(value: float) -> int:
    """Keep only the most significant digit of ``value``, with its sign.

    e.g. -7 -> -7, 23 -> 2, 0.5 -> 0
    """
    whole = int(value)
    magnitude = abs(value)
    exponent = int(math.log10(magnitude)) if magnitude >= 1 else 0
    sign = -1 if whole < 0 else 1
    return sign * (abs(whole) // 10 ** exponent)


# ---------------------------------------------------------------------------
# Sub-parsers
# ---------------------------------------------------------------------------


def _parse_days(tokens: Sequence[str]) -> tuple[DayVals, int] | None:
    """Parse an optional day selector. Returns the value and tokens consumed."""
    head = tokens[0]

    if head.startswith("weekday"):
        return WEEKDAYS, 1
    if head.startswith("weekend"):
        return WEEKENDS, 1
    if head.startswith("from") and len(tokens) > 1 and parse_day(tokens[1]) is not None:
        span = _parse_span(tokens, 1, parse_day)
        if span is None:
            return None
        return DayRange(start=span[0], end=span[1]), 4

    days: list[Day] = []
    for token in tokens:
        day = parse_day(token)
        if day is None:
            break
        days.append(day)
    if days:
        return DayCollection(days=tuple(days)), len(days)

    return WHOLE_WEEK, 0


def _parse_times(tokens: Sequence[str]) -> TimeVals | None:
    head = tokens[0]

    if head.startswith("from"):
        span = _parse_span(tokens, 1, _parse_hour)
        if span is None:
            return None
        return TimeRange(start=span[0], end=span[1])

    times: list[int] = []
    for token in tokens:
        number = _parse_number(token)
        if number is None:
            break
        if number >= 24:
            return None
        times.append(number)
    if not times:
        return None
    return TimeCollection(times=tuple(times))


def _parse_schedule(tokens: Sequence[str], require_time: bool) -> list[ParamVal] | None:
    """Parse ``[day selector] [time selector]`` for add, remove and available."""
    if not tokens:
        return None

    parsed_days = _parse_days(tokens)
    if parsed_days is None:
        return None
    days, consumed = parsed_days

    remaining = tokens[consumed:]
    if not remaining:
        return None if require_time else [days]

    times = _parse_times(remaining)
    if times is None:
        return None
    return [days, times]


def _parse_name(tokens: Sequence[str]) -> list[ParamVal] | None:
    if not tokens:
        return []
    return [Name(value="".join(tokens))]


def _parse_timezone(tokens: Sequence[str]) -> list[ParamVal] | None:
    if not tokens:
        return []
    try:
        value = float(tokens[0])
    except ValueError:
        return None
    if not math.isfinite(value):
        return None

    offset = _leading_digit(value)
    if not -24 < offset < 24:
        return None
    return [TimeZone(offset=offset)]


def _parse_view_id(tokens: Sequence[str]) -> list[ParamVal] | None:
    # The last four tokens are the tag: "view bob 1 2 3 4" -> "bob#1234".
    if len(tokens) <= 4:
        return []
    return [ViewId(value="".join(tokens[:-4]) + "#" + "".join(tokens[-4:]))]


def _no_args(tokens: Sequence[str]) -> list[ParamVal] | None:
    return []


_SUB_PARSERS: dict[ParamType, Callable[[Sequence[str]], list[ParamVal] | None]] = {
    ParamType.ADD_SCHEDULE: partial(_parse_schedule, require_time=True),
    ParamType.REMOVE_SCHEDULE: partial(_parse_schedule, require_time=True),
    ParamType.NAME: _parse_name,
    ParamType.TIMEZONE: _parse_timezone,
    ParamType.VIEW_SCHEDULE: _parse_view_id,
    ParamType.AVAILABLE: partial(_parse_schedule, require_time=False),
    ParamType.MEME: _no_args,
    ParamType.HELP: _no_args,
}

# Checked in order; the first matching prefix wins.
_COMMAND_PREFIXES: tuple[tuple[str, ParamType], ...] = (
    ("add", ParamType.ADD_SCHEDULE),
    ("remove", ParamType.REMOVE_SCHEDULE),
    ("name", ParamType.NAME),
    ("timezone", ParamType.TIMEZONE),
    ("view", ParamType.VIEW_SCHEDULE),
    ("available", ParamType.AVAILABLE),
    ("showtime", ParamType.MEME),
    ("help", ParamType.HELP),
)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def parse_query(tokens: Sequence[str]) -> Command | None:
    """Route a token list to the sub-parser selected by its first token."""
    if not tokens:
        return None

    head, rest = tokens[0], list(tokens[1:])
    for prefix, kind in _COMMAND_PREFIXES:
        if not head.startswith(prefix):
            continue
        args = _SUB_PARSERS[kind](rest)
        if args is None:
            logger.debug("Malformed arguments for %s: %s", kind.value, rest)
            return None
        command = Command(kind=kind, args=tuple(args))
        logger.debug("Parsed command: %s", command)
        return command

    logger.debug("Unknown command word: '%s'", head)
    return None


def parse_command(raw_text: str) -> Command | None:
    """Tokenize and parse a raw text line."""
    return parse_query(filter_query(raw_text))
