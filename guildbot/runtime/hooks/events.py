"""Hook event kinds and their payloads."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..errors import BotError, DispatchError
    from ..messaging.commands._dispatcher import InvocationContext


class EventKind(str, enum.Enum):
    MESSAGE_RECEIVED = "message_received"
    COMMAND_EXECUTED = "command_executed"
    COMMAND_FAILED = "command_failed"
    COMMAND_DENIED = "command_denied"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"


@dataclass(frozen=True)
class MessageReceivedEvent:
    content: str
    guild: str | None
    channel: str
    author: str
    author_is_bot: bool = False


@dataclass(frozen=True)
class CommandExecutedEvent:
    context: InvocationContext
    result: Any


@dataclass(frozen=True)
class CommandFailedEvent:
    context: InvocationContext
    error: DispatchError


@dataclass(frozen=True)
class CommandDeniedEvent:
    context: InvocationContext
    identifier: str


@dataclass(frozen=True)
class TaskCompletedEvent:
    task: str
    scheduled_for: datetime
    duration: float
    result: Any = None


@dataclass(frozen=True)
class TaskFailedEvent:
    task: str
    scheduled_for: datetime
    duration: float
    error: BotError
