"""Transport-facing message handler.

Chat connectors hand every inbound message to ``Bot.handle_message`` with a
reply callback.  The bot filters it, strips the command prefix, dispatches it
and sends the rendered outcome back.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ExecutionError, InvalidArguments, PermissionDenied, UnknownCommand
from ..hooks import EventKind, HookBus, MessageReceivedEvent
from .commands import CommandDispatcher, DispatchOutcome, ReplyFn

logger = logging.getLogger(__name__)


class InboundMessage(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    content: str = Field(description="Raw message text as typed by the user")
    guild: str | None = Field(default=None, description="Guild id, or null for direct messages")
    channel: str = Field(description="Channel id the message was posted in")
    author: str = Field(description="User id of the author")
    author_is_bot: bool = Field(default=False, description="Whether the author is a bot account")


def render_outcome(outcome: DispatchOutcome, prefix: str = "!") -> str:
    """User-facing text for *outcome*; empty when there is nothing to say."""
    error = outcome.error
    if error is None:
        return "" if outcome.result is None else str(outcome.result)
    if isinstance(error, UnknownCommand):
        name = f" `{error.name}`" if error.name else ""
        return f"Unknown command{name}. Use `{prefix}help` to list commands."
    if isinstance(error, InvalidArguments):
        if error.usage:
            return f"{error}\nUsage: `{prefix}{error.usage}`"
        return str(error)
    if isinstance(error, PermissionDenied):
        return f"You are missing the `{error.identifier}` permission."
    if isinstance(error, ExecutionError):
        return f"Something went wrong while running `{error.command}`."
    return str(error)


class Bot:
    def __init__(
        self,
        dispatcher: CommandDispatcher,
        hooks: HookBus | None = None,
        *,
        prefix: str = "!",
        ignore_bots: bool = True,
    ) -> None:
        self._dispatcher = dispatcher
        self._hooks = hooks
        self._prefix = prefix
        self._ignore_bots = ignore_bots

    @property
    def prefix(self) -> str:
        return self._prefix

    async def handle_message(
        self, msg: InboundMessage, reply: ReplyFn | None = None
    ) -> DispatchOutcome | None:
        """Dispatch *msg*; ``None`` when the message is not a command for us."""
        if self._hooks is not None:
            self._hooks.publish(
                EventKind.MESSAGE_RECEIVED,
                MessageReceivedEvent(
                    content=msg.content,
                    guild=msg.guild,
                    channel=msg.channel,
                    author=msg.author,
                    author_is_bot=msg.author_is_bot,
                ),
            )

        if msg.author_is_bot and self._ignore_bots:
            return None
        text = msg.content.strip()
        if not text.startswith(self._prefix):
            return None

        outcome = await self._dispatcher.dispatch(
            text[len(self._prefix):], msg.guild, msg.channel, msg.author
        )
        if not outcome.ok:
            logger.info(
                "[bot] %s from %s in %s/%s: %s",
                outcome.kind, msg.author, msg.guild or "dm", msg.channel, outcome.error,
            )
        answer = render_outcome(outcome, self._prefix)
        if answer and reply is not None:
            await reply(answer)
        return outcome
