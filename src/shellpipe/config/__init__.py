"""Configuration management for shellpipe."""
from __future__ import annotations

from shellpipe.config.paths import ShellpipePaths, get_paths, reset_paths
from shellpipe.config.settings import Settings, get_settings_path, settings

__all__ = [
    "Settings",
    "ShellpipePaths",
    "get_paths",
    "get_settings_path",
    "reset_paths",
    "settings",
]
