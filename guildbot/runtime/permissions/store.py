"""Role bindings and per-user overrides, as seen by the permission resolver.

The resolver only needs the read side (``PermissionStore``).  The ``perms``
command module and tests use the write side (``WritablePermissionStore``).

Two implementations ship with the bot:

- ``MemoryPermissionStore`` -- plain dicts, for tests and ephemeral bots
- ``YamlPermissionStore``   -- the same data persisted to a YAML file::

    guilds:
      "1":
        roles:
          moderator: [admin.kick, admin.ban]
        members:
          "42": [moderator]
        overrides:
          "42":
            allow: [music.*]
            deny: [admin.ban]
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from .model import PermissionNode, PermissionOverride

logger = logging.getLogger(__name__)


class PermissionStoreError(Exception):
    """The backing data could not be read or written."""


@runtime_checkable
class PermissionStore(Protocol):
    async def get_member_roles(self, guild: str, user: str) -> set[str]: ...

    async def get_role_permissions(self, guild: str, role: str) -> set[str]: ...

    async def get_overrides(self, guild: str, user: str) -> set[PermissionOverride]: ...


@runtime_checkable
class WritablePermissionStore(PermissionStore, Protocol):
    async def set_member_roles(self, guild: str, user: str, roles: set[str]) -> None: ...

    async def grant_role(self, guild: str, role: str, node: str) -> None: ...

    async def revoke_role(self, guild: str, role: str, node: str) -> None: ...

    async def set_override(self, guild: str, user: str, node: str, allow: bool) -> None: ...

    async def clear_override(self, guild: str, user: str, node: str) -> bool: ...


class _GuildData:
    __slots__ = ("roles", "members", "overrides")

    def __init__(self) -> None:
        self.roles: dict[str, set[str]] = {}
        self.members: dict[str, set[str]] = {}
        self.overrides: dict[str, dict[str, bool]] = {}


class MemoryPermissionStore:
    """In-process store.  Reads return copies so callers cannot mutate it."""

    def __init__(self) -> None:
        self._guilds: dict[str, _GuildData] = {}
        self._lock = threading.Lock()

    def _guild(self, guild: str) -> _GuildData:
        key = str(guild)
        data = self._guilds.get(key)
        if data is None:
            data = self._guilds[key] = _GuildData()
        return data

    # -- read side ---------------------------------------------------------

    async def get_member_roles(self, guild: str, user: str) -> set[str]:
        data = self._guilds.get(str(guild))
        return set(data.members.get(str(user), ())) if data else set()

    async def get_role_permissions(self, guild: str, role: str) -> set[str]:
        data = self._guilds.get(str(guild))
        return set(data.roles.get(str(role), ())) if data else set()

    async def get_overrides(self, guild: str, user: str) -> set[PermissionOverride]:
        data = self._guilds.get(str(guild))
        if not data:
            return set()
        return {
            PermissionOverride(PermissionNode.parse(node), allow)
            for node, allow in data.overrides.get(str(user), {}).items()
        }

    # -- write side --------------------------------------------------------

    async def set_member_roles(self, guild: str, user: str, roles: set[str]) -> None:
        self._pull()
        with self._lock:
            self._guild(guild).members[str(user)] = {str(r) for r in roles}
        self._changed()

    async def grant_role(self, guild: str, role: str, node: str) -> None:
        value = str(PermissionNode.parse(node))
        self._pull()
        with self._lock:
            self._guild(guild).roles.setdefault(str(role), set()).add(value)
        self._changed()

    async def revoke_role(self, guild: str, role: str, node: str) -> None:
        value = str(PermissionNode.parse(node))
        self._pull()
        with self._lock:
            self._guild(guild).roles.get(str(role), set()).discard(value)
        self._changed()

    async def set_override(self, guild: str, user: str, node: str, allow: bool) -> None:
        value = str(PermissionNode.parse(node))
        self._pull()
        with self._lock:
            self._guild(guild).overrides.setdefault(str(user), {})[value] = allow
        self._changed()

    async def clear_override(self, guild: str, user: str, node: str) -> bool:
        value = str(PermissionNode.parse(node))
        self._pull()
        with self._lock:
            entries = self._guild(guild).overrides.get(str(user), {})
            removed = entries.pop(value, None) is not None
        if removed:
            self._changed()
        return removed

    def _pull(self) -> None:
        """Called before every write; persistent subclasses reload here."""

    def _changed(self) -> None:
        """Called after every write; persistent subclasses save here."""

    # -- (de)serialisation -------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        guilds: dict[str, Any] = {}
        for gid, data in sorted(self._guilds.items()):
            guilds[gid] = {
                "roles": {r: sorted(n) for r, n in sorted(data.roles.items())},
                "members": {u: sorted(r) for u, r in sorted(data.members.items())},
                "overrides": {
                    u: {
                        "allow": sorted(n for n, a in o.items() if a),
                        "deny": sorted(n for n, a in o.items() if not a),
                    }
                    for u, o in sorted(data.overrides.items())
                    if o
                },
            }
        return {"guilds": guilds}

    def load_dict(self, raw: dict[str, Any]) -> None:
        guilds: dict[str, _GuildData] = {}
        for gid, section in (raw.get("guilds") or {}).items():
            data = _GuildData()
            section = section or {}
            for role, nodes in (section.get("roles") or {}).items():
                data.roles[str(role)] = {str(PermissionNode.parse(n)) for n in nodes or ()}
            for user, roles in (section.get("members") or {}).items():
                data.members[str(user)] = {str(r) for r in roles or ()}
            for user, entry in (section.get("overrides") or {}).items():
                entry = entry or {}
                merged = {str(PermissionNode.parse(n)): True for n in entry.get("allow") or ()}
                # Deny wins when a node appears on both lists.
                merged.update({str(PermissionNode.parse(n)): False for n in entry.get("deny") or ()})
                data.overrides[str(user)] = merged
            guilds[str(gid)] = data
        with self._lock:
            self._guilds = guilds


class YamlPermissionStore(MemoryPermissionStore):
    """``MemoryPermissionStore`` mirrored to a YAML file.

    The file is re-read on access when its mtime changes, so edits made by
    an operator show up without a restart.  Writes reload first, so they never
    clobber such edits.  Unreadable or malformed files raise
    ``PermissionStoreError``.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._file_lock = threading.Lock()
        self._mtime: float | None = None
        self._refresh()

    @property
    def path(self) -> Path:
        return self._path

    def _refresh(self) -> None:
        try:
            if not self._path.exists():
                return
            mtime = self._path.stat().st_mtime
            if mtime == self._mtime:
                return
            raw = yaml.safe_load(self._path.read_text()) or {}
            if not isinstance(raw, dict):
                raise PermissionStoreError(f"{self._path}: top level must be a mapping")
            self.load_dict(raw)
            self._mtime = mtime
            logger.info("[permissions] loaded %s", self._path)
        except (OSError, yaml.YAMLError, ValueError, AttributeError, TypeError) as exc:
            raise PermissionStoreError(f"Failed to load {self._path}: {exc}") from exc

    async def get_member_roles(self, guild: str, user: str) -> set[str]:
        self._refresh()
        return await super().get_member_roles(guild, user)

    async def get_role_permissions(self, guild: str, role: str) -> set[str]:
        self._refresh()
        return await super().get_role_permissions(guild, role)

    async def get_overrides(self, guild: str, user: str) -> set[PermissionOverride]:
        self._refresh()
        return await super().get_overrides(guild, user)

    def _pull(self) -> None:
        self._refresh()

    def _changed(self) -> None:
        self.save()

    def save(self) -> None:
        with self._file_lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=True)
            )
            self._mtime = self._path.stat().st_mtime
