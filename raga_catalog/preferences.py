"""
Music source preference (remote vs local).

The catalog only reads this flag when it builds tracks; it never owns it.
``Preferences`` persists the flag in a small JSON file so the toggle survives
restarts. Set ``RAGA_PREFS_PATH`` to move the file.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger

_REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_PREFS_PATH = _REPO_ROOT / ".data" / "preferences.json"

PREF_MUSIC_SOURCE_REMOTE = "music_source_remote"


class SourceToggle(Protocol):
    """Anything that can answer whether tracks should stream from the remote source."""

    def is_music_source_remote(self) -> bool: ...


class StaticToggle:
    """A fixed toggle value, for tests and embedding."""

    def __init__(self, remote: bool = False) -> None:
        self.remote = remote

    def is_music_source_remote(self) -> bool:
        return self.remote


def _configured_prefs_path() -> Path:
    env_path = os.environ.get("RAGA_PREFS_PATH")
    return Path(env_path) if env_path else DEFAULT_PREFS_PATH


class Preferences:
    """File-backed user preferences. The source defaults to local."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or _configured_prefs_path()
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Could not read preferences from {self.path}: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def is_music_source_remote(self) -> bool:
        return bool(self._read().get(PREF_MUSIC_SOURCE_REMOTE, False))

    def is_music_source_local(self) -> bool:
        return not self.is_music_source_remote()

    def toggle_music_source(self) -> bool:
        """Flip the source flag and return the new "remote" value."""
        with self._lock:
            data = self._read()
            remote = not bool(data.get(PREF_MUSIC_SOURCE_REMOTE, False))
            data[PREF_MUSIC_SOURCE_REMOTE] = remote
            self._write(data)
        logger.info(f"Music source switched to {'remote' if remote else 'local'}")
        return remote
