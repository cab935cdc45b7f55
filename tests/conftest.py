"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from monopub.errors import DistTagError, OtpError, PackError, PublishError
from monopub.models import Package
from monopub.npm import PublishOptions


class FakeClient:
    """In-memory RegistryClient that records every call.

    Attributes are plain knobs tests flip before running:
        username: whoami answer (None means anonymous).
        tfa_mode: two-factor mode ("auth-and-writes" requires an OTP).
        valid_otp: When set, writes with any other OTP raise OtpError.
        permissions: access_list answer, or an exception to raise.
        published: Package names already on the registry.
        fail_pack / fail_publish / fail_dist_tag: Package names whose
            step raises a package-level error.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.username: str | None = "test-user"
        self.tfa_mode: str | None = None
        self.valid_otp: str | None = None
        self.permissions: dict[str, str] | Exception = {}
        self.published: set[str] = set()
        self.fail_pack: set[str] = set()
        self.fail_publish: set[str] = set()
        self.fail_dist_tag: set[str] = set()

    def whoami(self, registry: str) -> str | None:
        self.calls.append(("whoami", registry))
        return self.username

    def two_factor_mode(self, registry: str) -> str | None:
        self.calls.append(("two_factor_mode", registry))
        return self.tfa_mode

    def access_list(self, username: str, registry: str) -> dict[str, str]:
        self.calls.append(("access_list", username, registry))
        if isinstance(self.permissions, Exception):
            raise self.permissions
        return self.permissions

    def is_published(self, package: Package, registry: str) -> bool:
        self.calls.append(("is_published", package.name, registry))
        return package.name in self.published

    def pack(
        self, package: Package, content_path: Path, *, git_head: str | None = None
    ) -> Path:
        self.calls.append(("pack", package.name, content_path, git_head))
        if package.name in self.fail_pack:
            raise PackError("npm pack failed: boom", package=package.name)
        return content_path / f"{package.name}-{package.version}.tgz"

    def _check_otp(self, options: PublishOptions) -> None:
        if self.valid_otp is not None and options.otp != self.valid_otp:
            raise OtpError("One-time password rejected")

    def publish(self, package: Package, archive: Path, options: PublishOptions) -> None:
        self._check_otp(options)
        if package.name in self.fail_publish:
            raise PublishError("npm publish failed: E500", package=package.name)
        self.calls.append(("publish", package.name, options))

    def dist_tag_add(self, package: Package, tag: str, options: PublishOptions) -> None:
        self._check_otp(options)
        if package.name in self.fail_dist_tag:
            raise DistTagError("npm dist-tag add failed", package=package.name)
        self.calls.append(("dist_tag_add", package.name, tag))

    def dist_tag_remove(
        self, package: Package, tag: str, options: PublishOptions
    ) -> None:
        self._check_otp(options)
        self.calls.append(("dist_tag_remove", package.name, tag))

    def names(self, method: str) -> list[str]:
        """Package names passed to ``method``, in call order."""
        return [call[1] for call in self.calls if call[0] == method]

    def options(self, method: str = "publish") -> list[PublishOptions]:
        return [call[2] for call in self.calls if call[0] == method]


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def empty_workspace(tmp_path: Path) -> Path:
    """A workspace root with a monopub.toml and no packages yet."""
    (tmp_path / "monopub.toml").write_text('[workspace]\npackages = ["packages/*"]\n')
    (tmp_path / "packages").mkdir()
    return tmp_path


@pytest.fixture
def add_package(tmp_path: Path) -> Callable[..., Path]:
    """Write packages/<dir>/package.json and return the package directory."""

    def add(name: str, version: str = "1.0.0", **manifest: object) -> Path:
        directory = tmp_path / "packages" / name.lstrip("@").replace("/", "-")
        directory.mkdir(parents=True, exist_ok=True)
        data = {"name": name, "version": version, **manifest}
        (directory / "package.json").write_text(json.dumps(data, indent=2) + "\n")
        return directory

    return add


@pytest.fixture
def workspace(empty_workspace: Path, add_package: Callable[..., Path]) -> Path:
    """Five packages; package-3 only dev-depends on package-2; package-5 is private."""
    add_package("package-1")
    add_package("package-2", dependencies={"package-1": "^1.0.0"})
    add_package("package-3", devDependencies={"package-2": "^1.0.0"})
    add_package("package-4")
    add_package("package-5", private=True, dependencies={"package-1": "^1.0.0"})
    return empty_workspace


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., Package]:
    """Build an in-memory Package without touching the filesystem."""

    def make(name: str, version: str = "1.0.0", **fields: object) -> Package:
        return Package.model_validate(
            {"name": name, "version": version, "location": tmp_path / name, **fields}
        )

    return make
