"""
Schedule Bot — Telegram Bot.

Telegram is the gateway to the schedule core. Every message that starts with
the command prefix (``?`` by default) or a slash is parsed into a command and
dispatched against the shared Directory, one command at a time, and the reply
is posted back to the chat. State is written to SQLite after each command.
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from schedulebot.config import settings
from schedulebot.core.dispatcher import help_text, is_mutation, process
from schedulebot.core.errors import DispatchError
from schedulebot.core.parser import parse_command

if TYPE_CHECKING:
    from telegram import User as TelegramUser

    from schedulebot.core.directory import Directory
    from schedulebot.data.db import DirectoryDB

logger = logging.getLogger(__name__)

PARSE_FAILURE_REPLY = "Failed to parse message"


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores users outside ALLOWED_USER_IDS.

    An empty allow-list lets everyone through.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        allowed = settings.ALLOWED_USER_IDS
        if user is None or (allowed and user.id not in allowed):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def display_name_for(user: TelegramUser) -> str:
    """Build the name a Telegram user is registered under, e.g. ``bob#1234``.

    The tag is the last four digits of the Telegram id.
    """
    base = user.username or user.first_name or ""
    cleaned = "".join(ch for ch in base if ch.isascii() and ch.isalnum()).lower()
    return f"{cleaned or 'user'}#{user.id % 10000:04d}"


def strip_prefix(text: str, prefix: str, bot_username: str | None = None) -> str | None:
    """Return the command part of a message, or None if it isn't a command.

    Accepts ``?add mon 9`` as well as ``/add mon 9`` and ``/add@SomeBot mon 9``.
    A slash command addressed to a bot other than ``bot_username`` is ignored.
    """
    text = text.strip()
    if text.startswith(prefix):
        return text[len(prefix):]
    if text.startswith("/"):
        head, _, rest = text[1:].partition(" ")
        head, _, target = head.partition("@")
        if target and (bot_username is None or target.lower() != bot_username.lower()):
            return None
        return f"{head} {rest}".strip()
    return None


async def _reply(update: Update, text: str) -> None:
    # Schedules are sent as code blocks so the grid stays aligned.
    parse_mode = "Markdown" if "```" in text else None
    await update.message.reply_text(text, parse_mode=parse_mode)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — welcome message plus the command list."""
    await update.message.reply_text(
        "Welcome to Schedule Bot!\n"
        "Tell me when you're free and ask who else is.\n\n"
        + help_text(settings.COMMAND_PREFIX)
    )


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


@authorized_only
async def handle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Parse a prefixed message and apply it to the Directory."""
    if update.message is None or not update.message.text:
        return

    raw = strip_prefix(update.message.text, settings.COMMAND_PREFIX, context.bot.username)
    if raw is None:
        return

    command = parse_command(raw)
    if command is None:
        logger.info("Failed to parse message: '%s'", raw[:80])
        await update.message.reply_text(PARSE_FAILURE_REPLY)
        return

    directory: Directory = context.bot_data["directory"]
    db: DirectoryDB = context.bot_data["db"]
    lock: asyncio.Lock = context.bot_data["lock"]

    user = update.effective_user
    name = display_name_for(user)

    async with lock:
        is_new = not directory.contains(user.id) or directory.resolve_name(name) is None
        caller = directory.first_contact(user.id, name)
        changed = False
        try:
            reply = process(
                directory, name, command.kind, command.args,
                prefix=settings.COMMAND_PREFIX,
                identity=user.id,
            )
            changed = is_mutation(command.kind, command.args)
        except DispatchError as exc:
            logger.warning("Command '%s' from %s rejected: %s", command.kind.value, name, exc)
            reply = str(exc)

        # Read-only commands from known users leave the database alone
        if is_new:
            db.save_directory(directory)
        elif changed:
            db.save_user(user.id, caller)

    if reply:
        await _reply(update, reply)


async def _on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log exceptions raised inside handlers."""
    logger.error("Error while handling update %s", update, exc_info=context.error)


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------


def build_app(
    directory: Directory | None = None,
    db: DirectoryDB | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        directory: Directory to serve. Defaults to the one stored in ``db``.
        db: Persistence backend. Defaults to a DirectoryDB at DATABASE_PATH.
    """
    if db is None:
        from schedulebot.data.db import DirectoryDB
        db = DirectoryDB()
    if directory is None:
        directory = db.load_directory()

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    # One command runs at a time against the shared Directory
    app.bot_data["directory"] = directory
    app.bot_data["db"] = db
    app.bot_data["lock"] = asyncio.Lock()

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(MessageHandler(filters.TEXT, handle_command))
    app.add_error_handler(_on_error)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Schedule Bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
