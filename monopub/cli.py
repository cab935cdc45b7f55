"""CLI entry point for monopub."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import click
from click.core import ParameterSource

from monopub.config import build_settings
from monopub.errors import MonopubError
from monopub.pipeline import PublishCommand
from monopub.toml import get_publish_table, load_workspace_config


def _reject_filter(ctx: click.Context, param: click.Parameter, value: Any) -> Any:
    """Package filters belong to the versioning step, not to publish."""
    if value is not None:
        raise click.ClickException(f"Unknown argument: {param.name}")
    return value


def _filter_option(name: str):
    return click.option(
        f"--{name}", hidden=True, expose_value=False, callback=_reject_filter
    )


@click.group()
@click.version_option(package_name="monopub")
def cli() -> None:
    """Publish the changed packages of a workspace in dependency order."""


@cli.command()
@click.argument(
    "bump", required=False, type=click.Choice(["from-git", "from-package"])
)
@click.option(
    "--cwd",
    "root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root (directory holding monopub.toml).",
)
@click.option(
    "--graph-type",
    help="Dependencies that order publishing: 'dependencies' or 'all'.",
)
@click.option("--reject-cycles", is_flag=True, help="Fail if a dependency cycle exists.")
@click.option("--otp", help="One-time password for two-factor accounts.")
@click.option("--registry", help="Registry URL to publish to.")
@click.option(
    "--verify-access/--no-verify-access",
    default=True,
    help="Check publish permissions before uploading.",
)
@click.option("--contents", help="Subdirectory of each package to publish.")
@click.option("--skip-npm", is_flag=True, help="Deprecated: skip publishing entirely.")
@click.option("--git-head", help="Commit recorded as gitHead (from-package only).")
@click.option("--dist-tag", help="Dist-tag for releases. (default: latest)")
@click.option("--pre-dist-tag", help="Dist-tag for prereleases. (default: next)")
@click.option("--temp-tag", help="Tag used while moving packages to a non-latest tag.")
@click.option("--access", type=click.Choice(["public", "restricted"]))
@click.option("--concurrency", type=click.IntRange(min=1), help="Parallel publishes.")
@click.option(
    "--batch-failure",
    type=click.Choice(["abort", "continue"]),
    help="After a failed package: stop before the next batch, or keep going.",
)
@click.option("-y", "--yes", is_flag=True, help="Skip the confirmation prompt.")
@_filter_option("scope")
@_filter_option("ignore")
@_filter_option("since")
@click.pass_context
def publish(ctx: click.Context, root: Path, **options: Any) -> None:
    """Publish changed packages (or BUMP: from-git / from-package)."""
    # Only flags the user actually passed override monopub.toml
    overrides = {
        name: value
        for name, value in options.items()
        if ctx.get_parameter_source(name) is not ParameterSource.DEFAULT
    }

    try:
        file_values = get_publish_table(load_workspace_config(root))
        settings = build_settings(file_values, {**overrides, "root": root})
        report = asyncio.run(PublishCommand(settings).run())
    except MonopubError as exc:
        error = click.ClickException(str(exc))
        error.exit_code = exc.exit_code
        raise error from exc

    # Only failed or skipped packages exit non-zero
    if not report.ok:
        ctx.exit(1)
