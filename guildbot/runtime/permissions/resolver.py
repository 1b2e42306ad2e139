"""Resolves a member's effective permissions from roles and overrides."""

from __future__ import annotations

import asyncio
import logging

from ..errors import PermissionLookupFailed
from .model import PermissionSet
from .store import PermissionStore

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Read-only view over a ``PermissionStore``.

    ``resolve`` never mutates store data and keeps no state between calls,
    so concurrent dispatches can share one resolver.  Callers cache the
    result for the lifetime of a single invocation.
    """

    def __init__(self, store: PermissionStore) -> None:
        self._store = store

    @property
    def store(self) -> PermissionStore:
        return self._store

    async def resolve(self, guild: str | None, user: str) -> PermissionSet:
        if guild is None:
            # Roles and overrides only exist inside a guild.
            return PermissionSet()
        guild, user = str(guild), str(user)
        try:
            roles = await self._store.get_member_roles(guild, user)
            role_grants = await asyncio.gather(
                *(self._store.get_role_permissions(guild, role) for role in sorted(roles))
            )
            overrides = await self._store.get_overrides(guild, user)
            granted = [node for nodes in role_grants for node in nodes]
            return PermissionSet.build(granted, overrides)
        except Exception as exc:
            logger.error(
                "[permissions] lookup failed guild=%s user=%s: %s", guild, user, exc,
                exc_info=True,
            )
            raise PermissionLookupFailed(guild, user, str(exc)) from exc

    async def has_permission(self, guild: str | None, user: str, required: str) -> bool:
        return (await self.resolve(guild, user)).has(required)
