"""Command tree built by modules at startup.

Nodes live in an arena addressed by integer id.  A node keeps the ids of its
children in registration order and the id of its parent, so the tree can be
walked in both directions without reference cycles.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...errors import DuplicateCommand, RegistryLocked, UnknownParent
from ...permissions import PermissionNode

if TYPE_CHECKING:
    from ._dispatcher import InvocationContext

logger = logging.getLogger(__name__)

Executor = Callable[["InvocationContext", list[str]], Any]

_PATH_SEPARATORS = re.compile(r"[./\s]+")
_INVALID_NAME = re.compile(r"[./\s]")


def _check_name(value: str, what: str) -> str:
    if not value or _INVALID_NAME.search(value):
        raise ValueError(f"Invalid command {what}: {value!r}")
    return value


@dataclass(eq=False)
class CommandNode:
    name: str
    executor: Executor | None = None
    description: str = ""
    usage: str = ""
    example: str = ""
    aliases: Sequence[str] = ()
    permissions: Sequence[str] = ()
    guild_only: bool = False
    module: str = ""

    # Arena bookkeeping, assigned by ``CommandRegistry.register``.
    id: int = field(default=-1, init=False)
    parent_id: int | None = field(default=None, init=False)
    child_ids: list[int] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        _check_name(self.name, "name")
        self.aliases = tuple(_check_name(a, "alias") for a in self.aliases)
        self.permissions = tuple(str(PermissionNode.parse(p)) for p in self.permissions)

    @property
    def keys(self) -> tuple[str, ...]:
        """Lower-cased name followed by aliases."""
        return (self.name.lower(), *(a.lower() for a in self.aliases))

    @property
    def registered(self) -> bool:
        return self.id >= 0


def split_path(path: str | Sequence[str] | None) -> list[str]:
    if path is None:
        return []
    if isinstance(path, str):
        return [seg for seg in _PATH_SEPARATORS.split(path.strip()) if seg]
    return [seg for seg in path if seg]


class CommandRegistry:
    """Arena of ``CommandNode`` objects.

    Registration happens during startup only.  ``seal`` closes it; after that
    the registry is read without locking by any number of dispatches.
    """

    def __init__(self) -> None:
        self._nodes: list[CommandNode] = []
        self._roots: list[int] = []
        # parent id (None for the root level) -> lower-cased key -> child id
        self._index: dict[int | None, dict[str, int]] = {None: {}}
        self._lock = threading.Lock()
        self._sealed = False

    # -- registration ------------------------------------------------------

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True
        logger.info("[registry] sealed with %d command(s)", len(self._nodes))

    def register(self, path: str | Sequence[str] | None, node: CommandNode) -> CommandNode:
        """Insert *node* below the command at *path* (root when empty)."""
        if node.registered:
            raise ValueError(f"Command '{node.name}' is already part of a registry")
        with self._lock:
            if self._sealed:
                raise RegistryLocked()
            segments = split_path(path)
            parent = self._walk_exact(segments, path)
            siblings = self._index[parent.id if parent else None]
            for key in node.keys:
                if key in siblings:
                    raise DuplicateCommand(key, self._qualified(parent))
            if len(set(node.keys)) != len(node.keys):
                raise DuplicateCommand(node.name, self._qualified(parent))

            node.id = len(self._nodes)
            node.parent_id = parent.id if parent else None
            self._nodes.append(node)
            self._index[node.id] = {}
            for key in node.keys:
                siblings[key] = node.id
            if parent is None:
                self._roots.append(node.id)
            else:
                parent.child_ids.append(node.id)
        logger.debug("[registry] registered %s", self.qualified_name(node))
        return node

    def add(
        self,
        path: str | Sequence[str] | None,
        name: str,
        executor: Executor | None = None,
        **fields: Any,
    ) -> CommandNode:
        """Shorthand for ``register(path, CommandNode(name, executor, ...))``."""
        return self.register(path, CommandNode(name, executor, **fields))

    def _walk_exact(self, segments: list[str], path: Any) -> CommandNode | None:
        parent: CommandNode | None = None
        for segment in segments:
            child_id = self._index[parent.id if parent else None].get(segment.lower())
            if child_id is None:
                raise UnknownParent(" ".join(split_path(path)), segment)
            parent = self._nodes[child_id]
        return parent

    # -- lookup ------------------------------------------------------------

    def lookup(self, tokens: Sequence[str]) -> tuple[CommandNode | None, list[str]]:
        """Greedy longest-prefix match of *tokens* against the tree.

        Returns the deepest matched node and the unconsumed tokens, or
        ``(None, tokens)`` when the first token names no root command.
        """
        node: CommandNode | None = None
        consumed = 0
        for token in tokens:
            child_id = self._index[node.id if node else None].get(token.lower())
            if child_id is None:
                break
            node = self._nodes[child_id]
            consumed += 1
        return node, list(tokens[consumed:])

    def get(self, path: str | Sequence[str]) -> CommandNode | None:
        """Exact lookup; ``None`` unless every segment matches."""
        segments = split_path(path)
        if not segments:
            return None
        node, rest = self.lookup(segments)
        return node if not rest else None

    # -- traversal ---------------------------------------------------------

    def roots(self) -> list[CommandNode]:
        return [self._nodes[i] for i in self._roots]

    def children(self, node: CommandNode) -> list[CommandNode]:
        return [self._nodes[i] for i in node.child_ids]

    def parent(self, node: CommandNode) -> CommandNode | None:
        return None if node.parent_id is None else self._nodes[node.parent_id]

    def qualified_name(self, node: CommandNode) -> str:
        return self._qualified(node)

    def _qualified(self, node: CommandNode | None) -> str:
        names: list[str] = []
        while node is not None:
            names.append(node.name)
            node = self.parent(node)
        return " ".join(reversed(names))

    def walk(self) -> Iterator[tuple[int, CommandNode]]:
        """Depth-first ``(depth, node)`` pairs in registration order."""
        stack = [(0, i) for i in reversed(self._roots)]
        while stack:
            depth, node_id = stack.pop()
            node = self._nodes[node_id]
            yield depth, node
            stack.extend((depth + 1, i) for i in reversed(node.child_ids))

    def __len__(self) -> int:
        return len(self._nodes)

    def to_dict(self) -> list[dict[str, Any]]:
        """Serializable command tree for the admin API."""

        def _node(node: CommandNode) -> dict[str, Any]:
            return {
                "name": node.name,
                "path": self.qualified_name(node),
                "aliases": list(node.aliases),
                "description": node.description,
                "usage": node.usage,
                "permissions": list(node.permissions),
                "guild_only": node.guild_only,
                "module": node.module,
                "runnable": node.executor is not None,
                "children": [_node(c) for c in self.children(node)],
            }

        return [_node(n) for n in self.roots()]
