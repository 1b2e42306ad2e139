"""Command registry, dispatcher and builtin commands.

- ``_registry``   -- the command tree
- ``_dispatcher`` -- message -> command invocation
- ``builtin``     -- help, version, uptime
"""

from ._dispatcher import CommandDispatcher, DispatchOutcome, InvocationContext, ReplyFn
from ._registry import CommandNode, CommandRegistry, Executor, split_path
from .builtin import BOOT_TIME, register_builtins

__all__ = [
    "BOOT_TIME",
    "CommandDispatcher",
    "CommandNode",
    "CommandRegistry",
    "DispatchOutcome",
    "Executor",
    "InvocationContext",
    "ReplyFn",
    "register_builtins",
    "split_path",
]
