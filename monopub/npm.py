"""Registry operations.

:class:`RegistryClient` is the contract the publish run needs from the
outside world: identity and permission queries plus pack, publish and
dist-tag operations. :class:`NpmClient` fulfils it by driving the ``npm``
CLI, the same way the release pipeline drives ``git``.

All methods are synchronous; the orchestrator runs them in worker threads.
"""

from __future__ import annotations

import json
import subprocess
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict

from .errors import (
    DistTagError,
    OtpError,
    PackError,
    PublishError,
    RegistryQueryError,
)
from .models import MANIFEST_FILENAME, Package
from .shell import npm

# npm error codes that mean "no usable identity" rather than a failure
_UNAUTHENTICATED = ("ENEEDAUTH", "E401")


class PublishOptions(BaseModel):
    """Options passed to publish and dist-tag calls.

    Attributes:
        registry: Registry URL the package goes to.
        otp: One-time password for two-factor accounts, if any.
        access: Access level for scoped packages (None lets npm decide).
        tag: Dist-tag used for the upload itself.
    """

    model_config = ConfigDict(frozen=True)

    registry: str
    otp: str | None = None
    access: Literal["public", "restricted"] | None = None
    tag: str = "latest"


class RegistryClient(Protocol):
    def whoami(self, registry: str) -> str | None: ...

    def two_factor_mode(self, registry: str) -> str | None: ...

    def access_list(self, username: str, registry: str) -> dict[str, str]: ...

    def is_published(self, package: Package, registry: str) -> bool: ...

    def pack(
        self, package: Package, content_path: Path, *, git_head: str | None = None
    ) -> Path: ...

    def publish(
        self, package: Package, archive: Path, options: PublishOptions
    ) -> None: ...

    def dist_tag_add(
        self, package: Package, tag: str, options: PublishOptions
    ) -> None: ...

    def dist_tag_remove(
        self, package: Package, tag: str, options: PublishOptions
    ) -> None: ...


def is_otp_failure(result: subprocess.CompletedProcess[str]) -> bool:
    """True when npm rejected (or asked for) a one-time password."""
    return "EOTP" in result.stderr or "one-time password" in result.stderr.lower()


def _last_line(result: subprocess.CompletedProcess[str]) -> str:
    lines = [line for line in result.stderr.splitlines() if line.strip()]
    return lines[-1] if lines else f"exit code {result.returncode}"


def _auth_args(options: PublishOptions) -> list[str]:
    args = ["--registry", options.registry]
    if options.otp:
        args += ["--otp", options.otp]
    return args


@contextmanager
def annotate_git_head(manifest: Path, git_head: str | None) -> Iterator[None]:
    """Temporarily record ``gitHead`` in a package.json.

    The original file text is restored on exit, so formatting survives.
    """
    if not git_head or not manifest.exists():
        yield
        return

    original = manifest.read_text()
    data = json.loads(original)
    if not isinstance(data, dict):
        raise ValueError("package.json is not a JSON object")
    data["gitHead"] = git_head
    manifest.write_text(json.dumps(data, indent=2) + "\n")
    try:
        yield
    finally:
        manifest.write_text(original)


class NpmClient:
    """RegistryClient backed by the npm CLI.

    Args:
        pack_destination: Directory for packed tarballs. A temporary
                          directory is created on first use if omitted.
    """

    def __init__(self, pack_destination: Path | None = None) -> None:
        self._pack_destination = pack_destination

    @property
    def pack_destination(self) -> Path:
        if self._pack_destination is None:
            self._pack_destination = Path(tempfile.mkdtemp(prefix="monopub-"))
        return self._pack_destination

    def whoami(self, registry: str) -> str | None:
        result = npm("whoami", "--registry", registry)
        if result.returncode == 0:
            return result.stdout.strip() or None
        if any(code in result.stderr for code in _UNAUTHENTICATED):
            return None
        raise RegistryQueryError(
            f"npm whoami failed: {_last_line(result)}", {"registry": registry}
        )

    def two_factor_mode(self, registry: str) -> str | None:
        result = npm("profile", "get", "--json", "--registry", registry)
        if result.returncode != 0:
            # Registries without profile support answer 404
            if any(code in result.stderr for code in (*_UNAUTHENTICATED, "E404")):
                return None
            raise RegistryQueryError(
                f"npm profile get failed: {_last_line(result)}", {"registry": registry}
            )
        try:
            profile = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise RegistryQueryError(f"Unreadable npm profile: {exc}") from exc
        tfa = profile.get("tfa")
        if not isinstance(tfa, dict) or tfa.get("pending"):
            return None
        return tfa.get("mode")

    def access_list(self, username: str, registry: str) -> dict[str, str]:
        result = npm(
            "access", "list", "packages", username, "--json", "--registry", registry
        )
        if result.returncode != 0:
            raise RegistryQueryError(
                f"npm access list failed: {_last_line(result)}", {"registry": registry}
            )
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise RegistryQueryError(f"Unreadable access list: {exc}") from exc
        if not isinstance(data, dict):
            raise RegistryQueryError("Unreadable access list: expected a JSON object")
        return {str(name): str(perm) for name, perm in data.items()}

    def is_published(self, package: Package, registry: str) -> bool:
        result = npm(
            "view",
            f"{package.name}@{package.version}",
            "version",
            "--registry",
            registry,
        )
        if result.returncode == 0:
            return bool(result.stdout.strip())
        if "E404" in result.stderr:
            return False
        raise RegistryQueryError(
            f"npm view failed: {_last_line(result)}", {"package": package.name}
        )

    def pack(
        self, package: Package, content_path: Path, *, git_head: str | None = None
    ) -> Path:
        destination = self.pack_destination
        manifest = content_path / MANIFEST_FILENAME
        try:
            with annotate_git_head(manifest, git_head):
                result = npm(
                    "pack",
                    str(content_path),
                    "--json",
                    "--pack-destination",
                    str(destination),
                    cwd=package.location,
                )
        except (OSError, ValueError) as exc:
            raise PackError(
                f"Could not record gitHead in {manifest}: {exc}", package=package.name
            ) from exc
        if result.returncode != 0:
            raise PackError(
                f"npm pack failed: {_last_line(result)}", package=package.name
            )
        try:
            filename = json.loads(result.stdout)[0]["filename"]
        except (json.JSONDecodeError, LookupError, TypeError) as exc:
            raise PackError(
                f"Unexpected npm pack output: {exc}", package=package.name
            ) from exc
        # Scoped tarballs are reported as "@scope/name-1.0.0.tgz" but written flat
        return destination / filename.lstrip("@").replace("/", "-")

    def publish(self, package: Package, archive: Path, options: PublishOptions) -> None:
        args = ["publish", str(archive), "--tag", options.tag, *_auth_args(options)]
        if options.access:
            args += ["--access", options.access]
        result = npm(*args, cwd=package.location)
        if result.returncode == 0:
            return
        if is_otp_failure(result):
            raise OtpError(f"One-time password rejected while publishing {package.name}")
        raise PublishError(
            f"npm publish failed: {_last_line(result)}", package=package.name
        )

    def dist_tag_add(self, package: Package, tag: str, options: PublishOptions) -> None:
        result = npm(
            "dist-tag",
            "add",
            f"{package.name}@{package.version}",
            tag,
            *_auth_args(options),
            cwd=package.location,
        )
        self._check_dist_tag(result, package, f"add {tag}")

    def dist_tag_remove(
        self, package: Package, tag: str, options: PublishOptions
    ) -> None:
        result = npm(
            "dist-tag", "rm", package.name, tag, *_auth_args(options),
            cwd=package.location,
        )
        self._check_dist_tag(result, package, f"rm {tag}")

    @staticmethod
    def _check_dist_tag(
        result: subprocess.CompletedProcess[str], package: Package, action: str
    ) -> None:
        if result.returncode == 0:
            return
        if is_otp_failure(result):
            raise OtpError(
                f"One-time password rejected while updating dist-tags of {package.name}"
            )
        raise DistTagError(
            f"npm dist-tag {action} failed: {_last_line(result)}", package=package.name
        )
