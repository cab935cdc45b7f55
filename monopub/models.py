"""Data models for monopub.

These Pydantic models represent the core data structures used throughout
the publish run: package manifests, cycles, the publish plan and results.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Literal

import semver
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ManifestError

MANIFEST_FILENAME = "package.json"


class PublishConfig(BaseModel):
    """Per-package ``publishConfig`` overrides from package.json.

    Attributes:
        directory: Subdirectory (relative to the package) to pack instead of
                   the package root.
        registry: Registry to publish this package to.
        access: Access level for scoped packages.
        tag: Dist-tag to publish this package under.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    directory: str | None = None
    registry: str | None = None
    access: Literal["public", "restricted"] | None = None
    tag: str | None = None


class Package(BaseModel):
    """Immutable snapshot of one workspace package's manifest.

    Built once per run by :meth:`load`. Unknown manifest fields are ignored;
    a missing or malformed required field fails at load time.

    Attributes:
        name: Package name, unique within the workspace.
        version: Current version from package.json (valid semver).
        location: Absolute path to the package directory.
        dependencies: Runtime dependencies (name → range).
        dev_dependencies: Development-only dependencies.
        peer_dependencies: Peer dependencies.
        optional_dependencies: Optional runtime dependencies.
        private: Private packages are never published.
        publish_config: Per-package publish overrides.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    version: str
    location: Path
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="devDependencies"
    )
    peer_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="peerDependencies"
    )
    optional_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="optionalDependencies"
    )
    private: bool = False
    publish_config: PublishConfig = Field(
        default_factory=PublishConfig, alias="publishConfig"
    )

    @field_validator("version")
    @classmethod
    def _valid_semver(cls, value: str) -> str:
        if not semver.Version.is_valid(value):
            raise ValueError(f"'{value}' is not a valid semver version")
        return value

    @property
    def scoped(self) -> bool:
        """True for ``@scope/name`` packages."""
        return self.name.startswith("@") and "/" in self.name

    @property
    def manifest_path(self) -> Path:
        return self.location / MANIFEST_FILENAME

    @classmethod
    def load(cls, manifest_path: Path) -> Package:
        """Parse a package.json into a Package.

        Raises:
            ManifestError: If the file is not valid JSON, is not an object,
                or fails validation (missing name/version, bad types).
        """
        try:
            data = json.loads(manifest_path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise ManifestError(
                f"Could not read manifest: {exc}", path=str(manifest_path)
            ) from exc

        if not isinstance(data, dict):
            raise ManifestError(
                "Manifest must be a JSON object", path=str(manifest_path)
            )

        data["location"] = manifest_path.parent.resolve()
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            )
            raise ManifestError(
                f"Invalid manifest: {problems}", path=str(manifest_path)
            ) from exc


class Cycle(BaseModel):
    """A closed walk of dependency edges: p[0] → p[1] → … → p[-1] → p[0].

    Rotated so the first entry is the member earliest in the workspace order.
    A self-dependency is a cycle of length 1.
    """

    model_config = ConfigDict(frozen=True)

    packages: tuple[str, ...] = Field(min_length=1)

    def __str__(self) -> str:
        return " -> ".join((*self.packages, self.packages[0]))


class PublishPlan(BaseModel):
    """Ordered batches of package names.

    Every package in a batch may publish concurrently; all of a package's
    dependencies sit in the same or an earlier batch.
    """

    model_config = ConfigDict(frozen=True)

    batches: tuple[tuple[str, ...], ...] = ()

    @property
    def order(self) -> list[str]:
        """All package names, flattened in batch order."""
        return [name for batch in self.batches for name in batch]

    def batch_index(self, name: str) -> int:
        for index, batch in enumerate(self.batches):
            if name in batch:
                return index
        raise KeyError(name)


class PackageState(str, Enum):
    """Per-package pipeline state."""

    PENDING = "pending"
    PACKED = "packed"
    UPLOADED = "uploaded"
    TAG_APPLIED = "tag-applied"
    DONE = "done"
    FAILED = "failed"


class PublishResult(BaseModel):
    """Outcome of one package's pipeline.

    Attributes:
        name: Package name.
        version: Version that was (or was meant to be) published.
        state: DONE on success, FAILED otherwise.
        tag: The dist-tag the package ends up under.
        failed_at: Last state reached before failing (None on success).
        error: Error message if the pipeline failed.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    state: PackageState
    tag: str
    failed_at: PackageState | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is PackageState.DONE


class PublishReport(BaseModel):
    """Run-level aggregate of publish results.

    Attributes:
        results: One entry per package that ran, in completion order.
        skipped: Packages never started because an earlier batch failed.
        handed_off: True when ``--skip-npm`` handed control to versioning.
        cancelled: True when the user declined the confirmation prompt.
        nothing_to_publish: True when no package changed.
    """

    results: list[PublishResult] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    handed_off: bool = False
    cancelled: bool = False
    nothing_to_publish: bool = False

    @property
    def published(self) -> list[str]:
        return [r.name for r in self.results if r.ok]

    @property
    def failed(self) -> dict[str, str]:
        return {r.name: r.error or "unknown error" for r in self.results if not r.ok}

    @property
    def ok(self) -> bool:
        """Return True if no package failed or was skipped."""
        return not self.failed and not self.skipped

    def summary(self) -> str:
        """Return a human-readable summary."""
        parts = []
        if self.published:
            parts.append(f"{len(self.published)} published")
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        return ", ".join(parts) if parts else "no packages processed"
