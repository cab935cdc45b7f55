"""Exception hierarchy for monopub.

Errors fall into two groups:

- Run-level errors (configuration, manifests, cycles, access, OTP) abort the
  whole publish before or during pre-flight. Nothing is published.
- Package-level errors (:class:`PackageStepError` and subclasses) are raised
  inside one package's pipeline. The orchestrator records them against that
  package and keeps going with its siblings.

Every error carries ``exit_code = 1`` so the CLI can map it directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class MonopubError(Exception):
    """Base class for all monopub errors.

    Args:
        message: Human-readable error message.
        details: Optional structured context, rendered after the message.
    """

    exit_code = 1

    def __init__(self, message: str, details: Mapping[str, Any] | None = None) -> None:
        self.message = message
        self.details: dict[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"


class ConfigurationError(MonopubError):
    """Bad flag, bad flag combination, or bad workspace configuration."""


class InvalidEdgeKindError(ConfigurationError):
    """Unknown ``--graph-type`` value."""

    def __init__(self, value: str) -> None:
        super().__init__(
            f"Invalid --graph-type '{value}': expected 'dependencies' or 'all'"
        )
        self.value = value


class ManifestError(ConfigurationError):
    """A package manifest could not be loaded or is missing required fields."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message, {"file": path} if path else None)
        self.path = path


class DependencyCycleError(MonopubError):
    """The dependency graph contains cycles and the run rejects them."""

    def __init__(self, message: str, cycles: list[str] | None = None) -> None:
        super().__init__(message)
        self.cycles = cycles or []


class AccessError(MonopubError):
    """The authenticated user cannot publish one or more packages."""

    def __init__(self, denied: list[str]) -> None:
        super().__init__(
            "You do not have write permission required to publish: "
            + ", ".join(denied)
        )
        self.denied = denied


class OtpError(MonopubError):
    """A one-time password was rejected and cannot be retried."""


class RegistryQueryError(MonopubError):
    """A read-only registry query (whoami, profile, access, view) failed."""


class PackageStepError(MonopubError):
    """Failure inside a single package's pipeline; isolated to that package."""

    def __init__(self, message: str, *, package: str) -> None:
        super().__init__(message, {"package": package})
        self.package = package


class ContentPathError(PackageStepError):
    """The directory to pack could not be used."""


class MissingContentPathError(ContentPathError):
    """The resolved content directory does not exist."""


class PackError(PackageStepError):
    """Packing a package directory into an archive failed."""


class PublishError(PackageStepError):
    """Uploading an archive to the registry failed."""


class DistTagError(PackageStepError):
    """Adding or removing a dist-tag failed."""
