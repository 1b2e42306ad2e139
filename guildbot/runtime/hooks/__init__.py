"""Hook bus -- typed publish/subscribe for lifecycle events."""

from .bus import HookBus, HookCallback, Subscription
from .events import (
    CommandDeniedEvent,
    CommandExecutedEvent,
    CommandFailedEvent,
    EventKind,
    MessageReceivedEvent,
    TaskCompletedEvent,
    TaskFailedEvent,
)

__all__ = [
    "CommandDeniedEvent",
    "CommandExecutedEvent",
    "CommandFailedEvent",
    "EventKind",
    "HookBus",
    "HookCallback",
    "MessageReceivedEvent",
    "Subscription",
    "TaskCompletedEvent",
    "TaskFailedEvent",
]
