"""Content directory resolution.

Decides which directory gets packed for each package. Precedence:

1. ``publishConfig.directory`` from the package's own manifest
2. the run-wide ``--contents`` override
3. the package directory itself

Both overrides are relative to the package directory.
"""

from __future__ import annotations

from pathlib import Path

from .errors import MissingContentPathError
from .models import Package


def resolve_content_path(package: Package, contents: str | None = None) -> Path:
    """Return the directory to pack for ``package``.

    Pure: it never touches the filesystem, so the same inputs always give
    the same path. Existence is checked at pack time by
    :func:`ensure_content_path`.
    """
    if package.publish_config.directory:
        return package.location / package.publish_config.directory
    if contents:
        return package.location / contents
    return package.location


def ensure_content_path(path: Path, package: Package) -> Path:
    """Raise MissingContentPathError if ``path`` is not an existing directory."""
    if not path.is_dir():
        raise MissingContentPathError(
            f"Content directory {path} does not exist", package=package.name
        )
    return path
