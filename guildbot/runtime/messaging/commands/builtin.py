"""Builtin informational commands: help, uptime, version."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from ._registry import CommandNode, CommandRegistry

if TYPE_CHECKING:
    from ._dispatcher import InvocationContext

BOOT_TIME = time.monotonic()


def format_uptime(seconds: float) -> str:
    secs = int(seconds)
    if secs >= 3600:
        return f"{secs // 3600} hrs, {(secs % 3600) // 60} min, {secs % 60} sec"
    if secs >= 60:
        return f"{secs // 60} min, {secs % 60} sec"
    return f"{secs} sec"


def global_help(registry: CommandRegistry, prefix: str) -> str:
    lines = ["__**Commands:**__"]
    lines.extend(f"- {node.name}" for node in registry.roots())
    lines.append("")
    lines.append(f"**Use `{prefix}help` *`command`* to get more details about a command.**")
    return "\n".join(lines)


def command_help(registry: CommandRegistry, node: CommandNode, prefix: str) -> str:
    path = registry.qualified_name(node)
    lines = [
        f"**Name**: {node.name}",
        f"**Description**: {node.description}",
    ]
    if node.aliases:
        lines.append(f"**Aliases**: {', '.join(node.aliases)}")
    if node.executor is not None:
        lines.append(f"**Usage**: {prefix}{path} {node.usage}".rstrip())
        lines.append(f"**Example**: {prefix}{path} {node.example}".rstrip())
    children = registry.children(node)
    if children:
        lines.append("**Sub-Commands**:")
        lines.extend(f"- {child.name}" for child in children)
    if node.permissions:
        lines.append(f"**Required Permissions**: `{'`,`'.join(node.permissions)}`")
    return "\n".join(lines)


def register_builtins(
    registry: CommandRegistry,
    *,
    prefix: str = "!",
    version: str = "",
    built: str = "",
    clock: Callable[[], float] = time.monotonic,
    started_at: float | None = None,
) -> None:
    started = BOOT_TIME if started_at is None else started_at

    async def cmd_help(ctx: InvocationContext, args: list[str]) -> str:
        if args:
            node, _ = registry.lookup(args)
            if node is not None:
                return command_help(registry, node, prefix)
        return global_help(registry, prefix)

    async def cmd_uptime(ctx: InvocationContext, args: list[str]) -> str:
        return format_uptime(clock() - started)

    async def cmd_version(ctx: InvocationContext, args: list[str]) -> str:
        return f"{version or 'None'}\nBuilt: {built or 'None'}"

    registry.add(
        None, "help", cmd_help,
        description="Show the global help message or a help message for a command.",
        usage="[Path to Command]",
        example="help",
        module="builtin",
    )
    registry.add(None, "uptime", cmd_uptime, description="Show the bot uptime.", module="builtin")
    registry.add(None, "version", cmd_version, description="Show the bot version.", module="builtin")
