"""Bundled bot modules.

A module contributes commands, tasks and hook subscribers to a
``BotRuntime`` from its ``setup`` method.  ``setup`` runs once, before the
command registry is sealed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..wiring import BotRuntime


@runtime_checkable
class BotModule(Protocol):
    name: str

    def setup(self, runtime: BotRuntime) -> None: ...


def default_modules() -> list[BotModule]:
    from .perms import PermsModule
    from .tasks import TasksModule

    return [PermsModule(), TasksModule()]


__all__ = ["BotModule", "default_modules"]
