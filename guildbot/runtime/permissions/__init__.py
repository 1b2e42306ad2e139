"""Permission model -- identifiers, role bindings, overrides and resolution."""

from .model import PermissionNode, PermissionOverride, PermissionSet, has
from .resolver import PermissionResolver
from .store import (
    MemoryPermissionStore,
    PermissionStore,
    PermissionStoreError,
    WritablePermissionStore,
    YamlPermissionStore,
)

__all__ = [
    "MemoryPermissionStore",
    "PermissionNode",
    "PermissionOverride",
    "PermissionResolver",
    "PermissionSet",
    "PermissionStore",
    "PermissionStoreError",
    "WritablePermissionStore",
    "YamlPermissionStore",
    "has",
]
