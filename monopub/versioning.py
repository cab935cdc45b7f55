"""Versioning collaborators: which packages need publishing.

monopub never computes versions; manifest versions are authoritative. What
varies is how the set of packages to publish is chosen:

- default: packages changed since their last ``<name>@<version>`` tag,
  plus everything that depends on them
- ``from-git``: packages whose ``<name>@<version>`` tag points at HEAD
- ``from-package``: packages whose manifest version is not on the registry

Each collaborator returns the next-version map: package name → version,
in workspace order. An empty map means there is nothing to publish.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from pathlib import Path

from .graph import build_graph
from .models import Package
from .npm import RegistryClient
from .shell import git, info, step

CollectUpdates = Callable[[Mapping[str, Package]], dict[str, str]]


def release_tag(package: Package) -> str:
    """Git tag marking a released version: ``<name>@<version>``."""
    return f"{package.name}@{package.version}"


def find_last_tags(packages: Mapping[str, Package], root: Path) -> dict[str, str | None]:
    """Find the most recent release tag for each package.

    Returns:
        Map of package name to its last tag, or None if no tag exists.
    """
    last_tags: dict[str, str | None] = {}
    for name in packages:
        # Get tags matching this package's pattern, sorted by version
        tags = git("tag", "--list", f"{name}@*", "--sort=-v:refname", check=False, cwd=root)
        last_tags[name] = tags.splitlines()[0] if tags else None
    return last_tags


def detect_changes(
    packages: Mapping[str, Package],
    last_tags: Mapping[str, str | None],
    root: Path,
) -> list[str]:
    """Determine which packages changed since their last release.

    A package is changed if:
    1. No previous tag exists for the package (first release)
    2. Any file in the package directory changed since its last tag
    3. Any of its runtime dependencies changed (transitive)

    Returns:
        Changed package names in workspace order.
    """
    dirty: set[str] = set()
    for name, pkg in packages.items():
        last_tag = last_tags.get(name)
        if not last_tag:
            dirty.add(name)
            info(f"{name}: new package")
            continue

        changed_files = git(
            "diff", "--name-only", last_tag, "HEAD", "--", str(pkg.location),
            check=False, cwd=root,
        )
        if changed_files:
            dirty.add(name)
            info(f"{name}: changed since {last_tag}")

    # Propagate dirtiness to dependents using BFS
    graph = build_graph(packages.values(), include_private=True)
    queue = deque(sorted(dirty, key=graph.index))
    while queue:
        node = queue.popleft()
        for dependent in graph.dependents_of(node):
            if dependent not in dirty:
                info(f"{dependent}: dirty (depends on {node})")
                dirty.add(dependent)
                queue.append(dependent)

    return [name for name in packages if name in dirty]


def tagged_at_head(packages: Mapping[str, Package], root: Path) -> list[str]:
    """Packages whose release tag points at the current commit."""
    tags = set(git("tag", "--points-at", "HEAD", check=False, cwd=root).splitlines())
    return [name for name, pkg in packages.items() if release_tag(pkg) in tags]


def unpublished(
    packages: Mapping[str, Package], client: RegistryClient, registry: str
) -> list[str]:
    """Non-private packages whose manifest version is not on the registry."""
    return [
        name
        for name, pkg in packages.items()
        if not pkg.private
        and not client.is_published(pkg, pkg.publish_config.registry or registry)
    ]


def updates_collector(
    bump: str | None, root: Path, client: RegistryClient, registry: str
) -> CollectUpdates:
    """Return the collaborator for a ``publish`` positional argument."""

    def collect(packages: Mapping[str, Package]) -> dict[str, str]:
        if bump == "from-git":
            step("Finding packages tagged at HEAD")
            names = tagged_at_head(packages, root)
        elif bump == "from-package":
            step("Finding unpublished package versions")
            names = unpublished(packages, client, registry)
        else:
            step("Detecting changes")
            names = detect_changes(packages, find_last_tags(packages, root), root)
        return {name: packages[name].version for name in names}

    return collect
