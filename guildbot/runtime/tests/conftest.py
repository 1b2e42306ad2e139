"""Shared pytest fixtures for guildbot.runtime tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from guildbot.runtime.hooks import HookBus
from guildbot.runtime.permissions import MemoryPermissionStore


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("GUILDBOT_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    for key in (
        "SUPERUSERS", "COMMAND_PREFIX", "ADMIN_SECRET", "PERMISSIONS_FILE",
        "IGNORE_BOTS", "BOT_VERSION", "BOT_BUILT", "SCHEDULER_WORKERS", "BOT_TIMEZONE",
    ):
        monkeypatch.delenv(key, raising=False)
    return data_dir


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_data_dir: Path):
    from guildbot.runtime.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


@pytest.fixture()
def store() -> MemoryPermissionStore:
    return MemoryPermissionStore()


@pytest.fixture()
async def bus():
    hooks = HookBus()
    hooks.start()
    yield hooks
    await hooks.close(timeout=1.0)
