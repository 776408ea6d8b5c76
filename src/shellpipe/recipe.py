"""YAML pipeline recipes.

A recipe names its inputs, the commands to pipe them through, and where to
write the results::

    src:
      - "data/*.txt"
    base: data
    buffer: true
    stages:
      - awk "NR % 2 == 0"
      - command: sort -n
        timeout: 30
        check: false
    dest: build/even
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from shellpipe.command import CommandSpec, parse_command
from shellpipe.errors import ConfigurationError, ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecipeStage:
    """One command stage of a recipe."""

    command: CommandSpec
    timeout_seconds: float | None = None
    check: bool | None = None


@dataclass(frozen=True, slots=True)
class Recipe:
    """A parsed pipeline recipe."""

    sources: tuple[str, ...]
    stages: tuple[RecipeStage, ...]
    dest: Path | None = None
    base: Path | None = None
    buffer: bool = True


def load_recipe(path: Path) -> Recipe:
    """Load and validate a recipe file.

    Relative ``src``, ``base`` and ``dest`` entries resolve against the
    recipe's directory.

    Raises:
        ConfigurationError: When the file is unreadable or malformed.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read recipe {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in recipe {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Recipe {path} must be a mapping")
    return parse_recipe(raw, root=path.parent)


def parse_recipe(data: dict[str, Any], *, root: Path | None = None) -> Recipe:
    """Build a :class:`Recipe` from already-loaded data."""
    root = root or Path.cwd()

    sources = data.get("src")
    if isinstance(sources, str):
        sources = [sources]
    if not isinstance(sources, list) or not sources:
        raise ConfigurationError("Recipe 'src' must be a pattern or a list of patterns")
    if not all(isinstance(item, str) for item in sources):
        raise ConfigurationError("Recipe 'src' entries must be strings")

    raw_stages = data.get("stages")
    if not isinstance(raw_stages, list) or not raw_stages:
        raise ConfigurationError("Recipe 'stages' must be a non-empty list")
    stages = tuple(_parse_stage(index, entry) for index, entry in enumerate(raw_stages))

    buffer = data.get("buffer", True)
    if not isinstance(buffer, bool):
        raise ConfigurationError("Recipe 'buffer' must be true or false")

    dest = _optional_path(data, "dest", root)
    base = _optional_path(data, "base", root)

    recipe = Recipe(
        sources=tuple(str(root / pattern) for pattern in sources),
        stages=stages,
        dest=dest,
        base=base,
        buffer=buffer,
    )
    logger.debug("Loaded recipe with %d stages", len(recipe.stages))
    return recipe


def _parse_stage(index: int, entry: Any) -> RecipeStage:
    if isinstance(entry, str):
        entry = {"command": entry}
    if not isinstance(entry, dict) or not isinstance(entry.get("command"), str):
        raise ConfigurationError(
            f"Recipe stage {index + 1} must be a command string "
            "or a mapping with a 'command' string"
        )

    try:
        command = parse_command(entry["command"])
    except ParseError as e:
        raise ConfigurationError(f"Recipe stage {index + 1}: {e}", hint=e.hint) from e

    timeout = entry.get("timeout")
    if timeout is not None and (
        isinstance(timeout, bool)
        or not isinstance(timeout, int | float)
        or timeout <= 0
    ):
        raise ConfigurationError(
            f"Recipe stage {index + 1}: 'timeout' must be a positive number"
        )

    check = entry.get("check")
    if check is not None and not isinstance(check, bool):
        raise ConfigurationError(
            f"Recipe stage {index + 1}: 'check' must be true or false"
        )

    return RecipeStage(
        command=command,
        timeout_seconds=float(timeout) if timeout is not None else None,
        check=check,
    )


def _optional_path(data: dict[str, Any], key: str, root: Path) -> Path | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"Recipe '{key}' must be a path string")
    return root / value
