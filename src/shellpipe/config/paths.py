"""Centralized path management for shellpipe.

Follows XDG Base Directory Specification:
- Config: $XDG_CONFIG_HOME/shellpipe (default: ~/.config/shellpipe)
- State: $XDG_STATE_HOME/shellpipe (default: ~/.local/state/shellpipe)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _xdg_config_home() -> Path:
    """Get XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def _xdg_state_home() -> Path:
    """Get XDG_STATE_HOME, defaulting to ~/.local/state."""
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))


@dataclass
class ShellpipePaths:
    """Centralized path management following XDG spec."""

    workspace: Path  # Current working directory

    # XDG directories (computed once at init)
    _config_home: Path = field(default_factory=_xdg_config_home)
    _state_home: Path = field(default_factory=_xdg_state_home)

    # === WORKSPACE PATHS (project-local) ===

    @property
    def workspace_config(self) -> Path:
        """Workspace .shellpipe/ directory."""
        return self.workspace / ".shellpipe"

    @property
    def workspace_settings(self) -> Path:
        """Workspace settings: .shellpipe/settings.json"""
        return self.workspace_config / "settings.json"

    # === GLOBAL PATHS (XDG compliant) ===

    @property
    def global_config_dir(self) -> Path:
        """Global config: ~/.config/shellpipe/"""
        return self._config_home / "shellpipe"

    @property
    def global_settings(self) -> Path:
        """Global settings file: ~/.config/shellpipe/settings.json"""
        return self.global_config_dir / "settings.json"

    @property
    def global_state_dir(self) -> Path:
        """Global state: ~/.local/state/shellpipe/"""
        return self._state_home / "shellpipe"

    @property
    def debug_log(self) -> Path:
        """Debug log: ~/.local/state/shellpipe/debug.log"""
        return self.global_state_dir / "debug.log"

    # === CONFIG RESOLUTION ===

    def settings_file(self) -> Path:
        """Resolve settings file: workspace > global.

        Returns the workspace settings file when it exists, otherwise the
        global one (which may not exist yet).
        """
        if self.workspace_settings.exists():
            return self.workspace_settings
        return self.global_settings

    # === DIRECTORY CREATION ===

    def ensure_global_dirs(self) -> None:
        """Create global XDG directories."""
        self.global_config_dir.mkdir(parents=True, exist_ok=True)
        self.global_state_dir.mkdir(parents=True, exist_ok=True)


# Singleton instance
_paths: ShellpipePaths | None = None


def get_paths(workspace: Path | None = None) -> ShellpipePaths:
    """Get the paths singleton.

    On first call, optionally set the workspace directory.
    Subsequent calls return the same instance.
    """
    global _paths
    if _paths is None:
        _paths = ShellpipePaths(workspace=workspace or Path.cwd())
    return _paths


def reset_paths() -> None:
    """Reset paths singleton (for testing)."""
    global _paths
    _paths = None
