"""Error taxonomy shared by the dispatcher, registry, scheduler and hook bus.

Dispatch-time errors are returned inside a ``DispatchOutcome`` and rendered
to the user.  Registration errors are raised and abort startup.  Task and
hook-subscriber errors are recovered where they happen and only logged or
published.
"""

from __future__ import annotations


class BotError(Exception):
    """Base class for every error the bot core produces."""

    kind: str = "error"


# -- dispatch time ---------------------------------------------------------


class DispatchError(BotError):
    pass


class UnknownCommand(DispatchError):
    kind = "unknown_command"

    def __init__(self, name: str = "") -> None:
        super().__init__(f"Unknown command: {name}" if name else "Unknown command")
        self.name = name


class InvalidArguments(DispatchError):
    kind = "invalid_arguments"

    def __init__(self, message: str = "Invalid arguments", *, usage: str = "") -> None:
        super().__init__(message)
        self.usage = usage


class PermissionDenied(DispatchError):
    kind = "permission_denied"

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Missing permission: {identifier}")
        self.identifier = identifier


class PermissionLookupFailed(DispatchError):
    kind = "permission_lookup_failed"

    def __init__(self, guild: str | None, user: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"Could not load permissions of {user} in guild {guild}{detail}")
        self.guild = guild
        self.user = user


class ExecutionError(DispatchError):
    kind = "execution_error"

    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(f"Command '{command}' failed: {cause}")
        self.command = command
        self.cause = cause


class GuildOnly(DispatchError):
    kind = "guild_only"

    def __init__(self, command: str) -> None:
        super().__init__(f"Command '{command}' can only be used in guilds")
        self.command = command


# -- registration time -----------------------------------------------------


class RegistrationError(BotError):
    kind = "registration_error"


class DuplicateCommand(RegistrationError):
    def __init__(self, name: str, parent: str) -> None:
        where = f"under '{parent}'" if parent else "at the root"
        super().__init__(f"Command name or alias '{name}' already registered {where}")
        self.name = name
        self.parent = parent


class UnknownParent(RegistrationError):
    def __init__(self, path: str, segment: str) -> None:
        super().__init__(f"Cannot register under '{path}': no command named '{segment}'")
        self.path = path
        self.segment = segment


class RegistryLocked(RegistrationError):
    def __init__(self) -> None:
        super().__init__("Command registry is sealed; register commands during setup")


class DuplicateTask(RegistrationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Task '{name}' already registered")
        self.name = name


# -- recovered locally -----------------------------------------------------


class TaskFailed(BotError):
    kind = "task_failed"

    def __init__(self, task: str, cause: BaseException) -> None:
        super().__init__(f"Task '{task}' failed: {cause}")
        self.task = task
        self.cause = cause


class HookSubscriberFailed(BotError):
    kind = "hook_subscriber_failed"

    def __init__(self, subscriber: str, event_kind: str, cause: BaseException) -> None:
        super().__init__(f"Hook subscriber {subscriber} failed on {event_kind}: {cause}")
        self.subscriber = subscriber
        self.event_kind = event_kind
        self.cause = cause
