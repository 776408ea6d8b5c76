"""Configuration and settings persistence."""

import json
import logging
from pathlib import Path
from typing import Any

from shellpipe.config.paths import get_paths

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_BIN_DIRS = ("./node_modules/.bin",)
DEFAULT_TERMINATE_GRACE_SECONDS = 5.0
DEFAULT_CHUNK_SIZE = 64 * 1024


def get_settings_path() -> Path:
    """Get the path to the settings file."""
    return get_paths().settings_file()


class Settings:
    """Persistent settings for shellpipe."""

    _defaults: dict[str, Any] = {
        "local_bin_dirs": list(DEFAULT_LOCAL_BIN_DIRS),
        "timeout_seconds": None,
        "terminate_grace_seconds": DEFAULT_TERMINATE_GRACE_SECONDS,
        "check_exit_status": True,
        "chunk_size": DEFAULT_CHUNK_SIZE,
    }

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load settings from disk."""
        path = get_settings_path()
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Ignoring unreadable settings file %s: %s", path, e)
                data = {}
            self._data = data if isinstance(data, dict) else {}
        else:
            self._data = {}

    def reload(self) -> None:
        """Re-read settings, e.g. after the workspace directory changed."""
        self._load()

    def _save(self) -> None:
        """Save settings to disk."""
        path = get_settings_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
            logger.info("Saved settings to %s: %s", path, self._data)
        except OSError as e:
            logger.error("Failed to save settings: %s", e)

    def get(self, key: str) -> Any:
        """Get a setting value, falling back to default."""
        return self._data.get(key, self._defaults.get(key))

    def set(self, key: str, value: Any) -> None:
        """Set a setting value and persist to disk."""
        self._data[key] = value
        self._save()

    @property
    def local_bin_dirs(self) -> tuple[str, ...]:
        """Directories prepended to PATH for child processes."""
        raw = self._data.get("local_bin_dirs")
        if isinstance(raw, list) and all(isinstance(item, str) for item in raw):
            return tuple(raw)
        return DEFAULT_LOCAL_BIN_DIRS

    @local_bin_dirs.setter
    def local_bin_dirs(self, value: list[str] | tuple[str, ...]) -> None:
        self.set("local_bin_dirs", [str(item) for item in value])

    @property
    def timeout_seconds(self) -> float | None:
        """Per-command timeout, or None for no timeout."""
        raw_value = self._data.get("timeout_seconds")
        if raw_value in (None, ""):
            return None
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            return None
        if value <= 0:
            return None
        return value

    @timeout_seconds.setter
    def timeout_seconds(self, value: float | None) -> None:
        """Set the timeout; None or a non-positive value disables it."""
        if value is None or value <= 0:
            self._data.pop("timeout_seconds", None)
            self._save()
        else:
            self.set("timeout_seconds", float(value))

    @property
    def terminate_grace_seconds(self) -> float:
        """Seconds between SIGTERM and SIGKILL for a timed-out command."""
        raw_value = self._data.get("terminate_grace_seconds")
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            return DEFAULT_TERMINATE_GRACE_SECONDS
        return max(0.0, value)

    @terminate_grace_seconds.setter
    def terminate_grace_seconds(self, value: float) -> None:
        self.set("terminate_grace_seconds", max(0.0, float(value)))

    @property
    def check_exit_status(self) -> bool:
        """Whether a non-zero exit status is an error."""
        raw_value = self._data.get("check_exit_status", True)
        if isinstance(raw_value, bool):
            return raw_value
        return True

    @check_exit_status.setter
    def check_exit_status(self, value: bool) -> None:
        self.set("check_exit_status", bool(value))

    @property
    def chunk_size(self) -> int:
        """Read size used when relaying process output."""
        raw_value = self._data.get("chunk_size")
        try:
            value = int(raw_value)
        except (TypeError, ValueError):
            return DEFAULT_CHUNK_SIZE
        if value <= 0:
            return DEFAULT_CHUNK_SIZE
        return value

    @chunk_size.setter
    def chunk_size(self, value: int) -> None:
        self.set("chunk_size", max(1, int(value)))


# Global settings instance
settings = Settings()
