"""Tests for Bot message handling and reply rendering."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from guildbot.runtime.errors import (
    ExecutionError,
    GuildOnly,
    InvalidArguments,
    PermissionDenied,
    UnknownCommand,
)
from guildbot.runtime.hooks import EventKind, HookBus, MessageReceivedEvent
from guildbot.runtime.messaging import Bot, InboundMessage, render_outcome
from guildbot.runtime.messaging.commands import (
    CommandDispatcher,
    CommandRegistry,
    DispatchOutcome,
    InvocationContext,
)
from guildbot.runtime.permissions import MemoryPermissionStore, PermissionResolver


def _outcome(result=None, error=None) -> DispatchOutcome:
    ctx = InvocationContext(author="42", guild="1", channel="10", tokens=[])
    return DispatchOutcome(ctx, result=result, error=error)


@pytest.fixture()
def hooks() -> MagicMock:
    return MagicMock(spec=HookBus)


@pytest.fixture()
def bot(hooks: MagicMock) -> Bot:
    registry = CommandRegistry()
    registry.add(None, "ping", lambda ctx, args: "pong")
    registry.add(None, "quiet", lambda ctx, args: None)
    registry.add(None, "kick", lambda ctx, args: "kicked", permissions=["admin.kick"])
    registry.seal()
    dispatcher = CommandDispatcher(registry, PermissionResolver(MemoryPermissionStore()), hooks)
    return Bot(dispatcher, hooks, prefix="!")


def _msg(content: str, **kwargs) -> InboundMessage:
    fields = {"content": content, "guild": "1", "channel": "10", "author": "42"}
    fields.update(kwargs)
    return InboundMessage(**fields)


class TestInboundMessage:
    def test_numeric_ids_become_strings(self) -> None:
        msg = InboundMessage.model_validate(
            {"content": "!ping", "guild": 1, "channel": 10, "author": 42}
        )
        assert (msg.guild, msg.channel, msg.author) == ("1", "10", "42")
        assert msg.author_is_bot is False

    def test_guild_defaults_to_direct_message(self) -> None:
        assert InboundMessage(content="!ping", channel="dm", author="42").guild is None

    def test_requires_author(self) -> None:
        with pytest.raises(ValidationError):
            InboundMessage.model_validate({"content": "!ping", "channel": "10"})


class TestHandleMessage:
    async def test_dispatches_and_replies(self, bot: Bot) -> None:
        reply = AsyncMock()
        outcome = await bot.handle_message(_msg("!ping"), reply)
        assert outcome.result == "pong"
        reply.assert_awaited_once_with("pong")

    async def test_prefix_and_whitespace_are_stripped(self, bot: Bot) -> None:
        outcome = await bot.handle_message(_msg("   !PING  "))
        assert outcome.context.command == "ping"

    async def test_ignores_messages_without_prefix(self, bot: Bot, hooks: MagicMock) -> None:
        reply = AsyncMock()
        assert await bot.handle_message(_msg("ping"), reply) is None
        reply.assert_not_awaited()
        kind, payload = hooks.publish.call_args.args
        assert kind is EventKind.MESSAGE_RECEIVED
        assert payload == MessageReceivedEvent("ping", "1", "10", "42", False)

    async def test_ignores_bots(self, bot: Bot, hooks: MagicMock) -> None:
        assert await bot.handle_message(_msg("!ping", author_is_bot=True)) is None
        assert hooks.publish.call_args.args[0] is EventKind.MESSAGE_RECEIVED

    async def test_bots_allowed_when_configured(self, bot: Bot) -> None:
        lenient = Bot(bot._dispatcher, prefix="!", ignore_bots=False)
        outcome = await lenient.handle_message(_msg("!ping", author_is_bot=True))
        assert outcome.result == "pong"

    async def test_no_reply_for_empty_result(self, bot: Bot) -> None:
        reply = AsyncMock()
        outcome = await bot.handle_message(_msg("!quiet"), reply)
        assert outcome.ok
        reply.assert_not_awaited()

    async def test_errors_are_rendered(self, bot: Bot) -> None:
        reply = AsyncMock()
        outcome = await bot.handle_message(_msg("!kick bob"), reply)
        assert outcome.kind == "permission_denied"
        reply.assert_awaited_once_with("You are missing the `admin.kick` permission.")

    async def test_message_received_published_first(self, bot: Bot, hooks: MagicMock) -> None:
        await bot.handle_message(_msg("!ping"))
        kinds = [c.args[0] for c in hooks.publish.call_args_list]
        assert kinds == [EventKind.MESSAGE_RECEIVED, EventKind.COMMAND_EXECUTED]

    async def test_custom_prefix(self, bot: Bot) -> None:
        custom = Bot(bot._dispatcher, prefix="?")
        assert custom.prefix == "?"
        assert (await custom.handle_message(_msg("?ping"))).result == "pong"
        assert await custom.handle_message(_msg("!ping")) is None


class TestRenderOutcome:
    def test_result(self) -> None:
        assert render_outcome(_outcome(result=3)) == "3"
        assert render_outcome(_outcome()) == ""

    def test_unknown_command(self) -> None:
        assert render_outcome(_outcome(error=UnknownCommand("dance")), "?") == (
            "Unknown command `dance`. Use `?help` to list commands."
        )
        assert render_outcome(_outcome(error=UnknownCommand())) == (
            "Unknown command. Use `!help` to list commands."
        )

    def test_invalid_arguments(self) -> None:
        error = InvalidArguments("Who should I kick?", usage="admin kick <user>")
        assert render_outcome(_outcome(error=error)) == (
            "Who should I kick?\nUsage: `!admin kick <user>`"
        )
        assert render_outcome(_outcome(error=InvalidArguments("Bad"))) == "Bad"

    def test_execution_error_hides_cause(self) -> None:
        error = ExecutionError("admin kick", RuntimeError("db password is hunter2"))
        assert render_outcome(_outcome(error=error)) == (
            "Something went wrong while running `admin kick`."
        )

    def test_other_errors(self) -> None:
        assert render_outcome(_outcome(error=PermissionDenied("a.b"))) == (
            "You are missing the `a.b` permission."
        )
        assert render_outcome(_outcome(error=GuildOnly("setup"))) == (
            "Command 'setup' can only be used in guilds"
        )
