"""Errors raised while dispatching a parsed command.

Every error here is recoverable: the gateway logs it and replies with the
message, and the Directory is left exactly as it was before the command.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Raised when a parsed command cannot be applied."""


class UserNotFound(DispatchError):
    """Raised when a name or identity does not resolve to a stored user."""


class NameAlreadyBound(DispatchError):
    """Raised when a display name is already registered to another identity."""


class ArgumentShapeMismatch(DispatchError):
    """Raised when a command kind is paired with arguments it does not accept."""


class TooManyValuesForReport(DispatchError):
    """Raised when an availability report is asked for more than one slot."""
