"""Runtime assembly -- builds and owns the bot's core components.

``BotRuntime`` is constructed once at startup.  Modules register their
commands, tasks and hook subscribers through ``load_modules``; afterwards the
command registry is sealed and the runtime can be started.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from .config import settings
from .config.settings import Settings
from .hooks import HookBus
from .messaging.bot import Bot
from .messaging.commands import CommandDispatcher, CommandRegistry, register_builtins
from .modules import BotModule
from .permissions import PermissionResolver, PermissionStore, YamlPermissionStore
from .scheduler import TaskScheduler

logger = logging.getLogger(__name__)


class BotRuntime:
    def __init__(
        self,
        store: PermissionStore,
        *,
        prefix: str = "!",
        superusers: Iterable[str] = (),
        ignore_bots: bool = True,
        workers: int = 4,
        shutdown_grace: float = 10.0,
        timezone: str = "UTC",
        version: str = "",
        built: str = "",
    ) -> None:
        self.store = store
        self.prefix = prefix
        self.timezone = timezone
        self.version = version
        self.built = built
        self.shutdown_grace = shutdown_grace
        self.started_at = time.monotonic()

        self.hooks = HookBus()
        self.registry = CommandRegistry()
        self.resolver = PermissionResolver(store)
        self.dispatcher = CommandDispatcher(
            self.registry, self.resolver, self.hooks, superusers=superusers,
        )
        self.scheduler = TaskScheduler(self.hooks, workers=workers, timezone=timezone)
        self.bot = Bot(self.dispatcher, self.hooks, prefix=prefix, ignore_bots=ignore_bots)
        self.modules: list[BotModule] = []

        register_builtins(
            self.registry, prefix=prefix, version=version, built=built,
            started_at=self.started_at,
        )

    @classmethod
    def from_settings(
        cls, config: Settings | None = None, store: PermissionStore | None = None
    ) -> BotRuntime:
        config = config or settings.cfg
        if store is None:
            config.ensure_dirs()
            store = YamlPermissionStore(config.permissions_path)
        return cls(
            store,
            prefix=config.command_prefix,
            superusers=config.superusers,
            ignore_bots=config.ignore_bots,
            workers=config.scheduler_workers,
            shutdown_grace=config.shutdown_grace_seconds,
            timezone=config.timezone,
            version=config.bot_version,
            built=config.bot_built,
        )

    def load_modules(self, modules: Iterable[BotModule]) -> None:
        """Run ``setup`` of every module, then seal the command registry.

        Registration errors propagate; a half-built command tree is a bug.
        """
        for module in modules:
            logger.info("[runtime] loading module %s", module.name)
            module.setup(self)
            self.modules.append(module)
        self.registry.seal()
        logger.info(
            "[runtime] %d module(s), %d command(s), %d task(s), %d hook subscription(s)",
            len(self.modules), len(self.registry), len(self.scheduler.list_tasks()),
            len(self.hooks.subscriptions()),
        )

    def start(self) -> None:
        if not self.registry.sealed:
            self.registry.seal()
        self.hooks.start()
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop(self.shutdown_grace)
        await self.hooks.close()
