from __future__ import annotations

import copy
from collections.abc import Iterator
from pathlib import Path

import pytest

from shellpipe.config.paths import reset_paths
from shellpipe.config.settings import settings
from shellpipe.runtime.timeout_policy import reset_timeout_policy_registry


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def isolate_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> Iterator[None]:
    """Prevent tests from persisting settings to disk or reading local ones."""
    original_data = copy.deepcopy(settings._data)
    xdg_root: Path = tmp_path_factory.mktemp("xdg")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg_root / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(xdg_root / "state"))

    def _noop_save() -> None:
        return None

    monkeypatch.setattr(settings, "_save", _noop_save)
    settings._data = {}
    reset_paths()
    reset_timeout_policy_registry()
    try:
        yield
    finally:
        settings._data = original_data
        reset_paths()
        reset_timeout_policy_registry()
