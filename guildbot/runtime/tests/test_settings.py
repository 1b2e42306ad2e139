"""Tests for Settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from guildbot.runtime.config.settings import Settings


class TestSettings:
    def test_defaults(self, data_dir: Path) -> None:
        s = Settings()
        assert s.command_prefix == "!"
        assert s.superusers == frozenset()
        assert s.ignore_bots is True
        assert s.scheduler_workers == 4
        assert s.shutdown_grace_seconds == 10.0
        assert s.timezone == "UTC"
        assert s.bot_port == 3978
        assert s.admin_secret == ""
        assert s.bot_built == "unknown"
        assert s.bot_version

    def test_data_dir_from_env(self, data_dir: Path) -> None:
        s = Settings()
        assert s.data_dir == data_dir
        assert s.permissions_path == data_dir / "permissions.yaml"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMMAND_PREFIX", "?")
        monkeypatch.setenv("SUPERUSERS", " 1, 2 ,,3")
        monkeypatch.setenv("IGNORE_BOTS", "no")
        monkeypatch.setenv("SCHEDULER_WORKERS", "0")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        s = Settings()
        assert s.command_prefix == "?"
        assert s.superusers == frozenset({"1", "2", "3"})
        assert s.ignore_bots is False
        assert s.scheduler_workers == 1
        assert s.log_level == "DEBUG"

    def test_env_file_wins_over_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMMAND_PREFIX", "?")
        s = Settings()
        s.write_env(COMMAND_PREFIX="$")
        assert s.command_prefix == "$"
        assert Settings().command_prefix == "$"

    def test_write_env_empty_value_removes_key(self) -> None:
        s = Settings()
        s.write_env(BOT_VERSION="1.2.3", BOT_BUILT="yesterday")
        assert s.bot_version == "1.2.3"
        s.write_env(BOT_BUILT="")
        assert "BOT_BUILT" not in s.env.read_all()
        assert s.bot_built == "unknown"

    def test_permissions_file_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = tmp_path / "elsewhere" / "perms.yml"
        monkeypatch.setenv("PERMISSIONS_FILE", str(target))
        assert Settings().permissions_path == target

    def test_env_file_parsing(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text(
            "# comment\nexport SUPERUSERS='7'\nBOT_TIMEZONE=Europe/Berlin # local\n"
        )
        s = Settings()
        assert s.superusers == frozenset({"7"})
        assert s.timezone == "Europe/Berlin"

    def test_ensure_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = tmp_path / "fresh"
        monkeypatch.setenv("GUILDBOT_DATA_DIR", str(target))
        Settings().ensure_dirs()
        assert target.is_dir()

    def test_reset_singleton(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from guildbot.runtime.config import settings
        from guildbot.runtime.util.singletons import reset_all_singletons

        monkeypatch.setenv("COMMAND_PREFIX", "%")
        reset_all_singletons()
        assert settings.cfg.command_prefix == "%"
