"""Permission administration commands (``perms ...``).

Every subcommand works on the guild the message was sent in and requires
``permissions.manage``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from ..errors import InvalidArguments
from ..permissions import PermissionNode, PermissionSet, WritablePermissionStore

if TYPE_CHECKING:
    from ..messaging.commands import InvocationContext
    from ..wiring import BotRuntime

logger = logging.getLogger(__name__)

PERMISSION_MANAGE = "permissions.manage"

_USER_MENTION = re.compile(r"^<@!?(\w+)>$")
_ROLE_MENTION = re.compile(r"^<@&(\w+)>$")


def parse_user(token: str) -> str:
    match = _USER_MENTION.match(token)
    return match.group(1) if match else token


def parse_role(token: str) -> str:
    match = _ROLE_MENTION.match(token)
    return match.group(1) if match else token


def parse_nodes(tokens: list[str]) -> list[str]:
    if not tokens:
        raise InvalidArguments("Expected at least one permission node")
    nodes = []
    for token in tokens:
        try:
            nodes.append(str(PermissionNode.parse(token)))
        except ValueError as exc:
            raise InvalidArguments(str(exc)) from exc
    return nodes


class PermsModule:
    name = "perms"

    def __init__(self) -> None:
        self._store: WritablePermissionStore | None = None

    def setup(self, runtime: BotRuntime) -> None:
        store = runtime.store
        if not isinstance(store, WritablePermissionStore):
            logger.warning("[perms] permission store is read-only, perms commands disabled")
            return
        self._store = store

        common = {"permissions": [PERMISSION_MANAGE], "guild_only": True, "module": self.name}
        registry = runtime.registry
        registry.add(None, "perms", description="Manage member and role permissions.",
                     aliases=["permissions"], module=self.name)
        registry.add("perms", "show", self.show,
                     description="Show roles, overrides and effective permissions of a member.",
                     usage="[@User]", example="@Robbbbbbb", aliases=["list"], **common)
        registry.add("perms", "allow", self.allow,
                     description="Grant permissions to a member, overriding their roles.",
                     usage="<@User> <Permission...>", example="@Robbbbbbb music.*", **common)
        registry.add("perms", "deny", self.deny,
                     description="Revoke permissions from a member, even if a role grants them.",
                     usage="<@User> <Permission...>", example="@Robbbbbbb admin.ban", **common)
        registry.add("perms", "reset", self.reset,
                     description="Remove permission overrides of a member.",
                     usage="<@User> <Permission...>", example="@Robbbbbbb admin.ban", **common)
        registry.add("perms", "grant", self.grant,
                     description="Add permissions to a role.",
                     usage="<@Role> <Permission...>", example="moderator admin.kick", **common)
        registry.add("perms", "ungrant", self.ungrant,
                     description="Remove permissions from a role.",
                     usage="<@Role> <Permission...>", example="moderator admin.kick", **common)
        registry.add("perms", "roles", self.roles,
                     description="Replace the roles of a member; no roles clears them.",
                     usage="<@User> [Role...]", example="@Robbbbbbb moderator", **common)

    @property
    def store(self) -> WritablePermissionStore:
        if self._store is None:
            raise RuntimeError("PermsModule used before setup")
        return self._store

    async def show(self, ctx: InvocationContext, args: list[str]) -> str:
        user = parse_user(args[0]) if args else ctx.author
        guild = ctx.guild
        roles = await self.store.get_member_roles(guild, user)
        grants: set[str] = set()
        for role in roles:
            grants |= await self.store.get_role_permissions(guild, role)
        overrides = await self.store.get_overrides(guild, user)
        effective = PermissionSet.build(grants, overrides).effective()

        allow = sorted(str(o.node) for o in overrides if o.allow)
        deny = sorted(str(o.node) for o in overrides if not o.allow)
        lines = [
            f"**Permissions of {user}**",
            f"Roles: {', '.join(sorted(roles)) or '(none)'}",
            f"Allowed: {', '.join(allow) or '(none)'}",
            f"Denied: {', '.join(deny) or '(none)'}",
            f"Effective: {', '.join(effective) or '(none)'}",
        ]
        return "\n".join(lines)

    async def allow(self, ctx: InvocationContext, args: list[str]) -> str:
        return await self._override(ctx, args, allow=True)

    async def deny(self, ctx: InvocationContext, args: list[str]) -> str:
        return await self._override(ctx, args, allow=False)

    async def _override(self, ctx: InvocationContext, args: list[str], *, allow: bool) -> str:
        if not args:
            raise InvalidArguments("Expected a member")
        user, nodes = parse_user(args[0]), parse_nodes(args[1:])
        for node in nodes:
            await self.store.set_override(ctx.guild, user, node, allow)
        verb = "Allowed" if allow else "Denied"
        logger.info("[perms] %s %s %s for %s in %s", ctx.author, verb.lower(), nodes, user, ctx.guild)
        return f"{verb} `{'`,`'.join(nodes)}` for {user}."

    async def reset(self, ctx: InvocationContext, args: list[str]) -> str:
        if not args:
            raise InvalidArguments("Expected a member")
        user, nodes = parse_user(args[0]), parse_nodes(args[1:])
        removed = [n for n in nodes if await self.store.clear_override(ctx.guild, user, n)]
        if not removed:
            return f"{user} has no overrides for `{'`,`'.join(nodes)}`."
        logger.info("[perms] %s reset %s for %s in %s", ctx.author, removed, user, ctx.guild)
        return f"Removed overrides `{'`,`'.join(removed)}` from {user}."

    async def grant(self, ctx: InvocationContext, args: list[str]) -> str:
        if not args:
            raise InvalidArguments("Expected a role")
        role, nodes = parse_role(args[0]), parse_nodes(args[1:])
        for node in nodes:
            await self.store.grant_role(ctx.guild, role, node)
        logger.info("[perms] %s granted %s to role %s in %s", ctx.author, nodes, role, ctx.guild)
        return f"Added permissions `{'`,`'.join(nodes)}` to role {role}."

    async def ungrant(self, ctx: InvocationContext, args: list[str]) -> str:
        if not args:
            raise InvalidArguments("Expected a role")
        role, nodes = parse_role(args[0]), parse_nodes(args[1:])
        for node in nodes:
            await self.store.revoke_role(ctx.guild, role, node)
        logger.info("[perms] %s ungranted %s from role %s in %s", ctx.author, nodes, role, ctx.guild)
        return f"Removed permissions `{'`,`'.join(nodes)}` from role {role}."

    async def roles(self, ctx: InvocationContext, args: list[str]) -> str:
        if not args:
            raise InvalidArguments("Expected a member")
        user = parse_user(args[0])
        roles = {parse_role(r) for r in args[1:]}
        await self.store.set_member_roles(ctx.guild, user, roles)
        return f"Roles of {user}: {', '.join(sorted(roles)) or '(none)'}."
