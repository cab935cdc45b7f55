"""Publish settings.

Settings come from three layers, later ones winning: built-in defaults,
the ``[publish]`` table of ``monopub.toml`` (kebab-case keys), and
command-line flags.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .graph import DEFAULT_EDGE_KIND, validate_edge_kind


class PublishSettings(BaseModel):
    """Everything one ``monopub publish`` run is configured with.

    ``graph_type`` is kept as a plain string: the graph builder validates
    it so the offending value shows up in the error.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    root: Path = Field(default_factory=Path.cwd)
    bump: Literal["from-git", "from-package"] | None = None
    graph_type: str = DEFAULT_EDGE_KIND
    reject_cycles: bool = False
    otp: str | None = None
    registry: str | None = None
    verify_access: bool = True
    contents: str | None = None
    skip_npm: bool = False
    git_head: str | None = None
    dist_tag: str = "latest"
    pre_dist_tag: str = "next"
    temp_tag: str = "monopub-temp"
    access: Literal["public", "restricted"] | None = None
    concurrency: int = Field(default=4, ge=1)
    batch_failure: Literal["abort", "continue"] = "abort"
    yes: bool = False


def build_settings(
    file_values: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> PublishSettings:
    """Merge the ``[publish]`` table with CLI overrides.

    Args:
        file_values: ``[publish]`` table (kebab-case keys).
        overrides: CLI values by field name; None means "not given".

    Raises:
        ConfigurationError: On unknown keys or invalid values.
    """
    merged = {key.replace("-", "_"): value for key, value in file_values.items()}
    merged.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return PublishSettings.model_validate(merged)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid publish configuration: {problems}") from exc


def check_settings(settings: PublishSettings) -> None:
    """Reject bad values and flag combinations before any work starts.

    Raises:
        InvalidEdgeKindError: Unknown ``graph_type``.
        ConfigurationError: ``git_head`` without the from-package positional.
    """
    validate_edge_kind(settings.graph_type)
    if settings.git_head and settings.bump != "from-package":
        raise ConfigurationError(
            "--git-head is only allowed with 'from-package' positional"
        )
