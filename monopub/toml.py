"""Workspace configuration file utilities.

The workspace root holds a ``monopub.toml`` with the package globs and
optional defaults for ``monopub publish``. Parsed with tomlkit so it reads
the same files a user edits by hand.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit

from .errors import ConfigurationError

CONFIG_FILENAME = "monopub.toml"


def load_workspace_config(root: Path) -> tomlkit.TOMLDocument:
    """Load and parse ``monopub.toml`` from the workspace root.

    Raises:
        ConfigurationError: If the file is missing or not valid TOML.
    """
    path = root / CONFIG_FILENAME
    if not path.exists():
        raise ConfigurationError(f"No {CONFIG_FILENAME} found in {root}")
    try:
        return tomlkit.parse(path.read_text())
    except tomlkit.exceptions.ParseError as exc:
        raise ConfigurationError(f"Invalid {CONFIG_FILENAME}: {exc}") from exc


def get_workspace_package_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract package glob patterns from [workspace].packages.

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages.

    Raises:
        ConfigurationError: If no package globs are defined.
    """
    packages = doc.get("workspace", {}).get("packages")
    if not packages:
        raise ConfigurationError(
            f"No [workspace] packages defined in {CONFIG_FILENAME}"
        )
    return [str(p) for p in packages]


def get_publish_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [publish] table as plain Python values (empty if absent)."""
    table = doc.get("publish")
    if table is None:
        return {}
    return dict(table.unwrap())
