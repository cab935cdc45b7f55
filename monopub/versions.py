"""Version helpers and dist-tag selection.

A package is eligible for the ``latest`` dist-tag only when it is a plain
release. Prereleases and packages pinned to another tag are published
under a temporary tag and then moved to their target tag.
"""

from __future__ import annotations

import semver

from .models import Package

LATEST = "latest"


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object."""
    return semver.Version.parse(version_str)


def is_prerelease(version_str: str) -> bool:
    """True for versions with a prerelease part.

    Examples:
        "1.2.3" → False
        "1.2.3-beta.1" → True
    """
    return parse_version(version_str).prerelease is not None


def resolve_dist_tag(
    package: Package,
    *,
    dist_tag: str = LATEST,
    pre_dist_tag: str = "next",
) -> str:
    """Pick the dist-tag a package should end up under.

    Precedence: the package's ``publishConfig.tag``, then ``pre_dist_tag``
    for prerelease versions, then ``dist_tag``.
    """
    if package.publish_config.tag:
        return package.publish_config.tag
    if is_prerelease(package.version):
        return pre_dist_tag
    return dist_tag
