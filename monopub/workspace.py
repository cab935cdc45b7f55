"""Workspace discovery."""

from __future__ import annotations

import glob
from pathlib import Path

from .errors import ConfigurationError, ManifestError
from .models import MANIFEST_FILENAME, Package
from .shell import info, step
from .toml import get_workspace_package_globs, load_workspace_config


def discover_packages(root: Path) -> dict[str, Package]:
    """Scan the workspace and load every package manifest.

    Reads [workspace].packages from ``monopub.toml`` to find package
    directories, then parses each directory's package.json.

    Returns:
        Map of package name to Package, in workspace order (glob order,
        each glob's matches sorted).

    Raises:
        ConfigurationError: No config, no globs, or no packages found.
        ManifestError: A manifest is invalid or two packages share a name.
    """
    step("Discovering workspace packages")

    doc = load_workspace_config(root)
    package_globs = get_workspace_package_globs(doc)

    # Expand globs to find all package directories
    package_dirs: list[Path] = []
    for pattern in package_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / MANIFEST_FILENAME).exists() and p not in package_dirs:
                package_dirs.append(p)

    if not package_dirs:
        raise ConfigurationError("No packages found matching workspace globs")

    packages: dict[str, Package] = {}
    for d in package_dirs:
        pkg = Package.load(d / MANIFEST_FILENAME)
        if pkg.name in packages:
            raise ManifestError(
                f"Duplicate package name '{pkg.name}'", path=str(pkg.manifest_path)
            )
        packages[pkg.name] = pkg

    for name, pkg in packages.items():
        private = " (private)" if pkg.private else ""
        info(f"{name} {pkg.version} ({pkg.location.relative_to(root.resolve())}){private}")

    return packages
