"""Shell, git and npm utilities.

Provides simple wrappers around subprocess calls for running git and npm,
plus the output helpers used for all user-facing progress messages.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click


def git(*args: str, check: bool = True, cwd: Path | None = None) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "tag", "--list").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        cwd: Directory to run in; defaults to the current directory.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], capture_output=True, text=True, check=check, cwd=cwd
    )
    return result.stdout.strip()


def npm(*args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    """Run an npm command, capturing output.

    Never raises on a non-zero exit: callers inspect ``returncode`` and
    ``stderr`` to decide which error to raise (e.g. EOTP vs. a plain failure).
    A missing npm executable is reported the way a shell would, as exit 127.
    """
    try:
        return subprocess.run(
            ["npm", *args], capture_output=True, text=True, check=False, cwd=cwd
        )
    except FileNotFoundError as exc:
        return subprocess.CompletedProcess(
            ["npm", *args], 127, stdout="", stderr=f"npm: command not found ({exc})"
        )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the publish run in terminal output.
    """
    click.echo(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def info(msg: str) -> None:
    """Print a progress line."""
    click.echo(f"  {msg}")


def notice(msg: str) -> None:
    """Print a notice: something the user should know, but not a problem."""
    click.echo(click.style("notice ", fg="cyan") + msg)


def warn(msg: str) -> None:
    """Print a warning to stderr."""
    click.echo(click.style("WARN ", fg="yellow") + msg, err=True)


def success(msg: str) -> None:
    """Print a success message."""
    click.echo(click.style("success ", fg="green") + msg)
