"""Tests for schedulebot.bot.telegram_bot — Telegram gateway handlers.

The Directory is real; the database and Telegram objects are mocked.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from schedulebot.bot.telegram_bot import (
    PARSE_FAILURE_REPLY,
    display_name_for,
    handle_command,
    strip_prefix,
)
from schedulebot.config import settings
from schedulebot.core.day import Day
from schedulebot.core.directory import Directory
from schedulebot.core.errors import UserNotFound


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_update(text, user_id=12345, username="amit", first_name="Amit"):
    """Create a mock Update with a text message."""
    update = MagicMock()
    update.message.text = text
    update.message.reply_text = AsyncMock()
    update.effective_user.id = user_id
    update.effective_user.username = username
    update.effective_user.first_name = first_name
    return update


def _make_context(directory=None):
    """Create a mock context with the directory, db and lock in bot_data."""
    context = MagicMock()
    context.bot.username = "ScheduleBot"
    context.bot_data = {
        "directory": directory if directory is not None else Directory(),
        "db": MagicMock(),
        "lock": asyncio.Lock(),
    }
    return context


# ---------------------------------------------------------------------------
# Tests for display_name_for / strip_prefix
# ---------------------------------------------------------------------------


class TestDisplayName:
    def test_username_with_tag(self):
        user = MagicMock(id=123456789, username="Bob_Smith", first_name="Bob")
        assert display_name_for(user) == "bobsmith#6789"

    def test_falls_back_to_first_name(self):
        user = MagicMock(id=42, username=None, first_name="Ann")
        assert display_name_for(user) == "ann#0042"

    def test_no_usable_name(self):
        user = MagicMock(id=7, username=None, first_name="Ωμέγα")
        assert display_name_for(user) == "user#0007"


class TestStripPrefix:
    def test_prefixed(self):
        assert strip_prefix("?add mon 9", "?") == "add mon 9"

    def test_slash_command(self):
        assert strip_prefix("/add mon 9", "?") == "add mon 9"

    def test_slash_command_with_bot_name(self):
        assert strip_prefix("/help@ScheduleBot", "?", "ScheduleBot") == "help"

    def test_bot_name_compared_case_insensitively(self):
        assert strip_prefix("/add@schedulebot mon 9", "?", "ScheduleBot") == "add mon 9"

    def test_command_for_other_bot_ignored(self):
        assert strip_prefix("/add@SomeOtherBot mon 9", "?", "ScheduleBot") is None

    def test_addressed_command_without_own_name_ignored(self):
        assert strip_prefix("/help@ScheduleBot", "?") is None

    def test_plain_text_ignored(self):
        assert strip_prefix("hello there", "?") is None


# ---------------------------------------------------------------------------
# Tests for handle_command
# ---------------------------------------------------------------------------


class TestHandleCommand:
    @pytest.mark.asyncio
    async def test_add_registers_caller_and_mutates(self):
        update = _make_update("?add mon 9")
        context = _make_context()
        await handle_command(update, context)

        directory = context.bot_data["directory"]
        user = directory.user_by_id(12345)
        assert directory.resolve_name("amit#2345") == 12345
        assert user.raw_schedule[Day.MONDAY] == 1 << 9
        update.message.reply_text.assert_not_called()
        context.bot_data["db"].save_directory.assert_called_once_with(directory)

    @pytest.mark.asyncio
    async def test_view_replies_with_markdown_block(self):
        update = _make_update("?view")
        context = _make_context()
        await handle_command(update, context)

        args, kwargs = update.message.reply_text.call_args
        assert args[0].startswith("```\nTimezone:0\n")
        assert kwargs["parse_mode"] == "Markdown"

    @pytest.mark.asyncio
    async def test_timezone_then_view_timezone(self):
        context = _make_context()
        await handle_command(_make_update("?timezone -7"), context)
        update = _make_update("?timezone")
        await handle_command(update, context)
        update.message.reply_text.assert_called_once_with("-7", parse_mode=None)

    @pytest.mark.asyncio
    async def test_parse_failure(self):
        update = _make_update("?dance all night")
        context = _make_context()
        await handle_command(update, context)

        update.message.reply_text.assert_called_once_with(PARSE_FAILURE_REPLY)
        assert len(context.bot_data["directory"]) == 0

    @pytest.mark.asyncio
    async def test_dispatch_error_is_reported(self):
        update = _make_update("?available mon tue 9")
        context = _make_context()
        await handle_command(update, context)

        update.message.reply_text.assert_called_once_with("Too many dates", parse_mode=None)

    @pytest.mark.asyncio
    async def test_non_command_ignored(self):
        update = _make_update("just chatting")
        context = _make_context()
        await handle_command(update, context)

        update.message.reply_text.assert_not_called()
        assert len(context.bot_data["directory"]) == 0

    @pytest.mark.asyncio
    async def test_unauthorized_user_ignored(self):
        update = _make_update("?help", user_id=666)
        context = _make_context()
        with patch.object(settings, "ALLOWED_USER_IDS", [12345]):
            await handle_command(update, context)

        update.message.reply_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_two_users_see_each_other(self):
        context = _make_context()
        await handle_command(_make_update("?add fri 20", user_id=1001, username="bob"), context)
        await handle_command(_make_update("?add fri 20", user_id=1002, username="ann"), context)

        update = _make_update("?available fri 20", user_id=1002, username="ann")
        await handle_command(update, context)

        reply = update.message.reply_text.call_args[0][0]
        assert reply.startswith("Timezone:0\nFriday at 20: ")
        assert "bob#1001" in reply
        assert "ann#1002" in reply

    @pytest.mark.asyncio
    async def test_command_for_other_bot_ignored(self):
        update = _make_update("/add@SomeOtherBot mon 9")
        context = _make_context()
        await handle_command(update, context)

        update.message.reply_text.assert_not_called()
        assert len(context.bot_data["directory"]) == 0
        context.bot_data["db"].save_directory.assert_not_called()

    @pytest.mark.asyncio
    async def test_command_for_this_bot_applied(self):
        context = _make_context()
        await handle_command(_make_update("/add@schedulebot mon 9"), context)

        user = context.bot_data["directory"].user_by_id(12345)
        assert user.raw_schedule[Day.MONDAY] == 1 << 9

    @pytest.mark.asyncio
    async def test_read_only_command_not_saved(self):
        context = _make_context()
        await handle_command(_make_update("?help"), context)
        db = context.bot_data["db"]
        db.reset_mock()

        await handle_command(_make_update("?view"), context)
        await handle_command(_make_update("?available mon"), context)

        db.save_directory.assert_not_called()
        db.save_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_mutation_saves_only_caller(self):
        context = _make_context()
        await handle_command(_make_update("?help"), context)
        db = context.bot_data["db"]
        db.reset_mock()

        await handle_command(_make_update("?timezone 3"), context)

        user = context.bot_data["directory"].user_by_id(12345)
        db.save_user.assert_called_once_with(12345, user)
        db.save_directory.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_mutation_not_saved(self):
        context = _make_context()
        await handle_command(_make_update("?help"), context)
        db = context.bot_data["db"]
        db.reset_mock()

        with patch(
            "schedulebot.bot.telegram_bot.process",
            side_effect=UserNotFound("Could not find user 'amit#2345'"),
        ):
            await handle_command(_make_update("?add mon 9"), context)

        db.save_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_display_name_keeps_records_apart(self):
        context = _make_context()
        await handle_command(_make_update("?timezone 2", user_id=10001, username="bob"), context)
        await handle_command(_make_update("?timezone 5", user_id=20001, username="bob"), context)

        directory = context.bot_data["directory"]
        assert directory.resolve_name("bob#0001") == 10001
        assert directory.user_by_id(10001).timezone == 2
        assert directory.user_by_id(20001).timezone == 5
