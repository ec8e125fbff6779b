"""
Schedule Bot — Command dispatcher.

Applies a parsed ``Command`` to the Directory on behalf of a caller. Handlers
are looked up by (command kind, number of arguments). A handler returns the
reply text, or None when the command succeeded silently, and raises a
``DispatchError`` on failure. Arguments are validated before anything is
mutated, so a failed command leaves every user untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, TypeVar

from schedulebot.core.directory import Directory
from schedulebot.core.errors import (
    ArgumentShapeMismatch,
    TooManyValuesForReport,
    UserNotFound,
)
from schedulebot.core.parser import (
    DayCollection,
    DayRange,
    Name,
    ParamType,
    ParamVal,
    TimeCollection,
    TimeRange,
    TimeZone,
    ViewId,
)
from schedulebot.core.schedule import User

logger = logging.getLogger(__name__)

MEME_URL = "https://i.postimg.cc/hvJh0k40/showtime.png"

T = TypeVar("T")


@dataclass(frozen=True)
class Caller:
    """Who sent a command: the display name, plus the gateway id when known.

    Display names are not unique, so the id wins whenever it is present.
    """

    name: str
    identity: Optional[int] = None


Handler = Callable[[Directory, Caller, ParamType, Sequence[ParamVal], str], Optional[str]]


def _caller(directory: Directory, caller: Caller) -> User:
    if caller.identity is not None:
        user = directory.user_by_id(caller.identity)
    else:
        user = directory.get_user(caller.name)
    if user is None:
        raise UserNotFound(f"Could not find user '{caller.name}'")
    return user


def _schedule_block(user: User, timezone: int) -> str:
    return f"```\nTimezone:{user.timezone}\n{user.render(True, timezone)}```"


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def _set_timezone(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    (value,) = args
    if not isinstance(value, TimeZone):
        raise ArgumentShapeMismatch("Incorrect timezone params")
    user = _caller(directory, caller)
    user.set_timezone(value.offset)
    logger.info("User '%s' set timezone to %d", caller.name, value.offset)
    return None


def _set_name(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    (value,) = args
    if not isinstance(value, Name):
        raise ArgumentShapeMismatch("Incorrect name params")
    user = _caller(directory, caller)
    user.set_name(value.value)
    logger.info("User '%s' renamed to '%s'", caller.name, value.value)
    return None


def _set_schedule(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    """Fan an add/remove out over whichever day and time shapes were given."""
    days, times = args
    available = kind == ParamType.ADD_SCHEDULE

    if isinstance(days, DayCollection) and isinstance(times, TimeCollection):
        def apply(user: User) -> None:
            for day in days.days:
                for hour in times.times:
                    user.set_time(day, hour, available)
    elif isinstance(days, DayCollection) and isinstance(times, TimeRange):
        def apply(user: User) -> None:
            for day in days.days:
                user.set_time_range(day, times.start, times.end, available)
    elif isinstance(days, DayRange) and isinstance(times, TimeCollection):
        def apply(user: User) -> None:
            for hour in times.times:
                user.set_day_range(days.start, days.end, hour, available)
    elif isinstance(days, DayRange) and isinstance(times, TimeRange):
        def apply(user: User) -> None:
            user.set_day_time_range(days.start, days.end, times.start, times.end, available)
    else:
        raise ArgumentShapeMismatch("Incorrect schedule params")

    user = _caller(directory, caller)
    apply(user)
    logger.info("User '%s' %s %s %s", caller.name, kind.value, days, times)
    return None


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def _view_user_schedule(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    (value,) = args
    if not isinstance(value, ViewId):
        raise ArgumentShapeMismatch("Incorrect view params")
    user = _caller(directory, caller)
    target = directory.get_user(value.value)
    if target is None:
        raise UserNotFound(f"Could not look up user '{value.value}'")
    return _schedule_block(target, user.timezone)


def _single(values: tuple[T, ...], what: str) -> T:
    if len(values) != 1:
        raise TooManyValuesForReport(f"Too many {what}")
    return values[0]


def _available_day_time(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    days, times = args
    if not (isinstance(days, DayCollection) and isinstance(times, TimeCollection)):
        raise ArgumentShapeMismatch("Availability needs a single day and time")
    day = _single(days.days, "dates")
    hour = _single(times.times, "times")
    user = _caller(directory, caller)
    line = directory.available_line(day, hour, user.timezone) or "Nobody is available.\n"
    return f"Timezone:{user.timezone}\n{line}"


def _available_day(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    (days,) = args
    if not isinstance(days, DayCollection):
        raise ArgumentShapeMismatch("Availability needs a single day")
    day = _single(days.days, "dates")
    user = _caller(directory, caller)
    report = directory.available_report(day, user.timezone) or "Nobody is available.\n"
    return f"Timezone:{user.timezone}\n{report}"


def _view_timezone(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    return str(_caller(directory, caller).timezone)


def _view_name(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    return _caller(directory, caller).display_name


def _view_schedule(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    user = _caller(directory, caller)
    return _schedule_block(user, user.timezone)


def _post_meme(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    return f"{MEME_URL}\nIt's showtime"


def _view_help(
    directory: Directory, caller: Caller, kind: ParamType, args: Sequence[ParamVal], prefix: str,
) -> str | None:
    return help_text(prefix)


_HANDLERS: dict[tuple[ParamType, int], Handler] = {
    (ParamType.TIMEZONE, 1): _set_timezone,
    (ParamType.NAME, 1): _set_name,
    (ParamType.ADD_SCHEDULE, 2): _set_schedule,
    (ParamType.REMOVE_SCHEDULE, 2): _set_schedule,
    (ParamType.VIEW_SCHEDULE, 1): _view_user_schedule,
    (ParamType.AVAILABLE, 2): _available_day_time,
    (ParamType.AVAILABLE, 1): _available_day,
    (ParamType.TIMEZONE, 0): _view_timezone,
    (ParamType.NAME, 0): _view_name,
    (ParamType.VIEW_SCHEDULE, 0): _view_schedule,
    (ParamType.MEME, 0): _post_meme,
    (ParamType.HELP, 0): _view_help,
}

_MUTATIONS = frozenset({
    (ParamType.TIMEZONE, 1),
    (ParamType.NAME, 1),
    (ParamType.ADD_SCHEDULE, 2),
    (ParamType.REMOVE_SCHEDULE, 2),
})


def process(
    directory: Directory,
    user_name: str,
    kind: ParamType,
    args: Sequence[ParamVal],
    *,
    prefix: str = "?",
    identity: int | None = None,
) -> str | None:
    """Apply a parsed command for ``user_name``.

    Args:
        identity: The caller's gateway id. When given, the caller is looked
            up by id instead of by name.

    Returns:
        The reply text, or None when a mutation succeeded without a reply.

    Raises:
        DispatchError: the command could not be applied.
    """
    logger.debug("Processing %s %s for '%s'", kind.value, list(args), user_name)
    handler = _HANDLERS.get((kind, len(args)))
    if handler is None:
        raise ArgumentShapeMismatch("Incorrect param type and/or param value")
    return handler(directory, Caller(user_name, identity), kind, args, prefix)


def is_mutation(kind: ParamType, args: Sequence[ParamVal]) -> bool:
    """True for commands that change the caller's record when they succeed."""
    return (kind, len(args)) in _MUTATIONS


# ---------------------------------------------------------------------------
# Help
# ---------------------------------------------------------------------------


_HELP_TEMPLATE = """\
Help:

Types of inputs to commands:
- time can be any from 0 to 23 (inclusive)
- Day can be any from sun to sat (inclusive)
- you can also use 'weekends' or 'weekdays' where Day(s) applies.
- timezone can be from -9 to 9 (only the first digit is used)
- user is a name and a 4 digit tag, eg. bob#1234, typed as: bob 1 2 3 4
- name is anything, although it will be converted to alphanumeric lowercase

Notation:
- <...> represents values (eg. <time> can be 0, 2, 18...)
- <add or remove> means you can use either add or remove.

{pref}<add or remove>
- add marks days and times as available
- remove marks days and times as unavailable
    {pref}<add or remove> from <Day> to <Day> from <time> to <time>
    {pref}<add or remove> <Day(s)> from <time> to <time>
    {pref}<add or remove> from <Day> to <Day> <time(s)>
    {pref}<add or remove> <Day(s)> <time(s)>
    - eg. {pref}add from mon to thu from 1 to 5
    - eg. {pref}remove mon wed fri from 4 to 7
    - eg. {pref}add weekdays 1 5 18

{pref}name <name>
- set your name, eg. {pref}name philio
{pref}name
- view your name

{pref}timezone <timezone>
- set your timezone, eg. {pref}timezone -7
{pref}timezone
- view your timezone

{pref}view <user>
- view the user's schedule, eg. {pref}view bob 1 2 3 4
{pref}view
- view your own schedule

{pref}available <Day> <time>
- see who is available on that day and time, eg. {pref}available mon 15
{pref}available <Day>
- see who is available on that day, eg. {pref}available fri

{pref}showtime
- try it yourself!
{pref}help
- this message
"""


def help_text(prefix: str = "?") -> str:
    return _HELP_TEMPLATE.format(pref=prefix)
