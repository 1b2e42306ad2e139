"""Command dispatcher.

Turns a raw chat message into a command invocation: tokenize, walk the
registry, check permissions, run the executor and publish the result on the
hook bus.  Every failure comes back as a ``DispatchOutcome`` so transports
only have to render it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ...errors import (
    DispatchError,
    ExecutionError,
    GuildOnly,
    InvalidArguments,
    PermissionDenied,
    PermissionLookupFailed,
    UnknownCommand,
)
from ...hooks import (
    CommandDeniedEvent,
    CommandExecutedEvent,
    CommandFailedEvent,
    EventKind,
    HookBus,
)
from ...permissions import PermissionResolver, PermissionSet
from ...util.async_helpers import invoke
from ..tokenizer import tokenize
from ._registry import CommandNode, CommandRegistry

logger = logging.getLogger(__name__)

ReplyFn = Callable[[str], Awaitable[None]]


@dataclass
class InvocationContext:
    author: str
    guild: str | None
    channel: str
    tokens: list[str]
    raw: str = ""
    node: CommandNode | None = None
    command: str = ""
    args: list[str] = field(default_factory=list)
    superuser: bool = False
    resolver: PermissionResolver | None = field(default=None, repr=False)
    _permissions: PermissionSet | None = field(default=None, init=False, repr=False)
    _permissions_lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False
    )

    async def permissions(self) -> PermissionSet:
        """Effective permissions of the author, resolved at most once."""
        if self._permissions is None:
            async with self._permissions_lock:
                if self._permissions is None:
                    if self.resolver is None:
                        self._permissions = PermissionSet()
                    else:
                        self._permissions = await self.resolver.resolve(self.guild, self.author)
        return self._permissions

    async def has_permission(self, required: str) -> bool:
        if self.superuser:
            return True
        if self.guild is None:
            return False
        return (await self.permissions()).has(required)


@dataclass(frozen=True)
class DispatchOutcome:
    context: InvocationContext
    result: Any = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str:
        return "ok" if self.error is None else self.error.kind


class CommandDispatcher:
    def __init__(
        self,
        registry: CommandRegistry,
        resolver: PermissionResolver,
        hooks: HookBus | None = None,
        *,
        superusers: Iterable[str] = (),
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._hooks = hooks
        self._superusers = frozenset(str(u) for u in superusers)

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    async def dispatch(
        self,
        raw_message: str,
        guild: str | int | None,
        channel: str | int,
        author: str | int,
    ) -> DispatchOutcome:
        ctx = InvocationContext(
            author=str(author),
            guild=None if guild is None else str(guild),
            channel=str(channel),
            tokens=[],
            raw=raw_message,
            superuser=str(author) in self._superusers,
            resolver=self._resolver,
        )
        try:
            ctx.tokens = tokenize(raw_message)
        except InvalidArguments as exc:
            logger.info("[dispatch] tokenize failed for %r: %s", raw_message, exc)
            return DispatchOutcome(ctx, error=exc)

        node, residual = self._registry.lookup(ctx.tokens)
        if node is None:
            name = ctx.tokens[0] if ctx.tokens else ""
            return DispatchOutcome(ctx, error=UnknownCommand(name))

        ctx.node = node
        ctx.args = residual
        ctx.command = self._registry.qualified_name(node)

        if node.guild_only and ctx.guild is None:
            return DispatchOutcome(ctx, error=GuildOnly(ctx.command))

        try:
            missing = await self._first_missing(ctx, node)
        except PermissionLookupFailed as exc:
            return DispatchOutcome(ctx, error=exc)
        if missing is not None:
            logger.info(
                "[dispatch] denied %s to %s in guild %s (missing %s)",
                ctx.command, ctx.author, ctx.guild, missing,
            )
            self._publish(EventKind.COMMAND_DENIED, CommandDeniedEvent(ctx, missing))
            return DispatchOutcome(ctx, error=PermissionDenied(missing))

        outcome = await self._execute(ctx, node, residual)
        if outcome.ok:
            self._publish(EventKind.COMMAND_EXECUTED, CommandExecutedEvent(ctx, outcome.result))
        else:
            self._publish(EventKind.COMMAND_FAILED, CommandFailedEvent(ctx, outcome.error))
        return outcome

    async def _first_missing(self, ctx: InvocationContext, node: CommandNode) -> str | None:
        if not node.permissions or ctx.superuser:
            return None
        if ctx.guild is None:
            # Roles and overrides are per guild, so nothing can be granted here.
            # Permissioned commands are refused in DMs rather than let through
            # for everyone; only superusers run them there.
            return node.permissions[0]
        return (await ctx.permissions()).first_missing(node.permissions)

    async def _execute(
        self, ctx: InvocationContext, node: CommandNode, residual: list[str]
    ) -> DispatchOutcome:
        if node.executor is None:
            return DispatchOutcome(ctx, error=InvalidArguments(
                f"'{ctx.command}' needs a subcommand",
                usage=self.subcommand_usage(node),
            ))
        try:
            result = await invoke(node.executor, ctx, residual)
        except InvalidArguments as exc:
            if not exc.usage:
                exc.usage = node.usage
            return DispatchOutcome(ctx, error=exc)
        except Exception as exc:
            logger.error("[dispatch] %s raised: %s", ctx.command, exc, exc_info=True)
            return DispatchOutcome(ctx, error=ExecutionError(ctx.command, exc))
        logger.debug("[dispatch] %s completed for %s", ctx.command, ctx.author)
        return DispatchOutcome(ctx, result=result)

    def subcommand_usage(self, node: CommandNode) -> str:
        names = "|".join(child.name for child in self._registry.children(node))
        return f"{self._registry.qualified_name(node)} <{names}>" if names else node.usage

    def _publish(self, kind: EventKind, payload: Any) -> None:
        if self._hooks is not None:
            self._hooks.publish(kind, payload)
