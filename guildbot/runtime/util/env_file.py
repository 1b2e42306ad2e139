"""Thread-safe ``.env`` file reader/writer."""

from __future__ import annotations

import threading
from pathlib import Path


def _parse_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export "):]
    key, _, value = line.partition("=")
    value = value.strip()
    if value[:1] in ('"', "'") and value.endswith(value[0]) and len(value) > 1:
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key.strip(), value


class EnvFile:
    """``KEY=VALUE`` file shared by settings readers and ``write_env``."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def read(self, key: str) -> str:
        return self.read_all().get(key, "")

    def read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        entries: dict[str, str] = {}
        for raw in self.path.read_text().splitlines():
            parsed = _parse_line(raw)
            if parsed is not None:
                entries[parsed[0]] = parsed[1]
        return entries

    def write(self, **kwargs: str) -> None:
        """Merge *kwargs* into the file.

        An empty value removes the key.  Values are double-quoted so the file
        can still be sourced by a shell.
        """
        with self._lock:
            entries = self.read_all()
            entries.update(kwargs)
            body = "".join(f'{k}="{v}"\n' for k, v in sorted(entries.items()) if v)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(body)
