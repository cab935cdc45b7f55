"""Publish permission checks for scoped packages."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from .errors import AccessError, RegistryQueryError
from .models import Package
from .registry import RegistrySession
from .shell import info, notice, warn

WRITE_PERMISSION = "read-write"


async def verify_access(
    packages: Iterable[Package],
    username: str | None,
    session: RegistrySession,
    *,
    enabled: bool = True,
) -> bool:
    """Check the user may publish every scoped package.

    Skipped (returns False) when disabled with ``--no-verify-access``, on a
    third-party registry, or when nobody is logged in. A registry that
    cannot list permissions is also treated as a skip, with a warning.

    Packages absent from the user's permission listing are first publishes
    and allowed. Every denial is collected before failing.

    Returns:
        True if the check ran and passed.

    Raises:
        AccessError: Naming every package the user cannot write to.
    """
    if not enabled:
        notice("Skipping package access validation (--no-verify-access)")
        return False
    if not session.should_validate():
        return False
    if username is None:
        notice("Unable to determine npm username; skipping access validation")
        return False

    scoped = [pkg for pkg in packages if pkg.scoped]
    if not scoped:
        return True

    try:
        permissions = await asyncio.to_thread(
            session.client.access_list, username, session.registry
        )
    except RegistryQueryError as exc:
        warn(f"Unable to verify access to the registry; continuing without validation ({exc})")
        return False

    denied = [
        pkg.name
        for pkg in scoped
        if pkg.name in permissions and permissions[pkg.name] != WRITE_PERMISSION
    ]
    if denied:
        raise AccessError(denied)

    info(f"Verified {username} can publish {len(scoped)} scoped package(s)")
    return True
