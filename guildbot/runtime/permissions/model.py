"""Permission identifiers, overrides and resolved permission sets."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

WILDCARD = "*"


@dataclass(frozen=True, order=True)
class PermissionNode:
    """A dotted permission identifier such as ``admin.kick`` or ``admin.*``.

    A trailing ``*`` segment grants every identifier strictly below its
    prefix; the bare ``*`` grants everything.
    """

    value: str

    def __post_init__(self) -> None:
        parts = self.value.split(".")
        if not self.value or any(not p or any(ch.isspace() for ch in p) for p in parts):
            raise ValueError(f"Invalid permission identifier: {self.value!r}")
        if WILDCARD in parts[:-1] or any(WILDCARD in p and p != WILDCARD for p in parts):
            raise ValueError(f"Wildcard must be the last segment: {self.value!r}")

    @classmethod
    def parse(cls, value: str | PermissionNode) -> PermissionNode:
        if isinstance(value, PermissionNode):
            return value
        return cls(value.strip().lower())

    @property
    def parts(self) -> tuple[str, ...]:
        return tuple(self.value.split("."))

    @property
    def is_wildcard(self) -> bool:
        return self.parts[-1] == WILDCARD

    def covers(self, required: PermissionNode) -> bool:
        """Whether granting ``self`` satisfies ``required``."""
        if self == required:
            return True
        if not self.is_wildcard:
            return False
        prefix = self.parts[:-1]
        other = required.parts
        return len(other) > len(prefix) and other[: len(prefix)] == prefix

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PermissionOverride:
    """Per-user grant (``allow=True``) or revoke of a node in one guild."""

    node: PermissionNode
    allow: bool = True

    @classmethod
    def grant(cls, node: str | PermissionNode) -> PermissionOverride:
        return cls(PermissionNode.parse(node), True)

    @classmethod
    def revoke(cls, node: str | PermissionNode) -> PermissionOverride:
        return cls(PermissionNode.parse(node), False)


@dataclass(frozen=True)
class PermissionSet:
    """Effective permissions of one user in one guild."""

    granted: frozenset[PermissionNode] = field(default_factory=frozenset)
    revoked: frozenset[PermissionNode] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        role_grants: Iterable[str | PermissionNode],
        overrides: Iterable[PermissionOverride] = (),
    ) -> PermissionSet:
        granted = {PermissionNode.parse(n) for n in role_grants}
        revoked: set[PermissionNode] = set()
        for override in overrides:
            (granted if override.allow else revoked).add(override.node)
        return cls(frozenset(granted), frozenset(revoked))

    def has(self, required: str | PermissionNode) -> bool:
        node = PermissionNode.parse(required)
        if any(r.covers(node) for r in self.revoked):
            return False
        return any(g.covers(node) for g in self.granted)

    def first_missing(self, required: Iterable[str | PermissionNode]) -> str | None:
        for item in required:
            if not self.has(item):
                return str(item)
        return None

    def effective(self) -> list[str]:
        """Granted identifiers that no revoke fully removes, sorted."""
        return sorted(
            str(g) for g in self.granted if not any(r.covers(g) for r in self.revoked)
        )


def has(permissions: PermissionSet, required: str | PermissionNode) -> bool:
    return permissions.has(required)
