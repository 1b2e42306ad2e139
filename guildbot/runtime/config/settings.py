"""Application settings -- reads from environment and ``.env`` file."""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import ClassVar

from ..util.env_file import EnvFile
from ..util.singletons import register_singleton

_TRUTHY = ("1", "true", "yes", "on")


def _package_version() -> str:
    try:
        return version("guildbot")
    except PackageNotFoundError:
        return "0.0.0+local"


def _split_ids(raw: str) -> frozenset[str]:
    return frozenset(uid.strip() for uid in raw.split(",") if uid.strip())


class Settings:

    _DATA_DIR_ENV: ClassVar[str] = "GUILDBOT_DATA_DIR"

    def __init__(self) -> None:
        dotenv = os.getenv("DOTENV_PATH")
        if not dotenv:
            data_dir = os.getenv(self._DATA_DIR_ENV)
            dotenv = str(Path(data_dir) / ".env") if data_dir else ".env"
        self.env = EnvFile(dotenv)
        self.reload()

    def reload(self) -> None:
        e = self._read

        self.command_prefix: str = e("COMMAND_PREFIX") or "!"
        self.superusers: frozenset[str] = _split_ids(e("SUPERUSERS"))
        raw_ignore = e("IGNORE_BOTS")
        self.ignore_bots: bool = raw_ignore.lower() in _TRUTHY if raw_ignore else True

        self.scheduler_workers: int = max(1, int(e("SCHEDULER_WORKERS") or "4"))
        self.shutdown_grace_seconds: float = float(e("SHUTDOWN_GRACE_SECONDS") or "10")
        self.timezone: str = e("BOT_TIMEZONE") or "UTC"

        self.bot_port: int = int(e("BOT_PORT") or "3978")
        self.admin_secret: str = e("ADMIN_SECRET")
        self.log_level: str = (e("LOG_LEVEL") or "INFO").upper()

        self.bot_version: str = e("BOT_VERSION") or _package_version()
        self.bot_built: str = e("BOT_BUILT") or "unknown"

        self._permissions_file: str = e("PERMISSIONS_FILE")

    @property
    def data_dir(self) -> Path:
        return Path(os.getenv(self._DATA_DIR_ENV, str(Path.home() / ".guildbot")))

    @property
    def permissions_path(self) -> Path:
        if self._permissions_file:
            return Path(self._permissions_file)
        return self.data_dir / "permissions.yaml"

    def _read(self, key: str) -> str:
        return self.env.read(key) or os.getenv(key, "")

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def write_env(self, **kwargs: str) -> None:
        self.env.write(**kwargs)
        self.reload()


cfg = Settings()


def _reset_cfg() -> None:
    global cfg
    cfg = Settings()


register_singleton(_reset_cfg)
