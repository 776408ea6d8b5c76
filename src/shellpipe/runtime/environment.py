"""Child-process environment construction."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path


def build_environment(
    local_bin_dirs: Sequence[str | Path],
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return a copy of *base* with *local_bin_dirs* prepended to PATH.

    *base* defaults to ``os.environ``, which is read but never modified.
    """
    env = dict(os.environ if base is None else base)
    entries = [str(directory) for directory in local_bin_dirs]
    current = env.get("PATH")
    if current:
        entries.append(current)
    if entries:
        env["PATH"] = os.pathsep.join(entries)
    return env
