"""Shell and git utilities.

Provides a thin wrapper around subprocess for git invocations, plus output
formatting helpers. Output goes through click so the caller's color policy
is honoured without any process-wide state.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click


def git(*args: str, cwd: Path | str | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Directory to run in. Defaults to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., ref lookup).

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def step(msg: str, *, color: bool | None = None) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a gate run in terminal output.
    """
    rule = "─" * 60
    click.secho(f"\n{rule}\n{msg}\n{rule}", fg="magenta", color=color)


def echo(msg: str = "", *, color: bool | None = None) -> None:
    """Print a plain progress line."""
    click.echo(msg, color=color)


def success(msg: str, *, color: bool | None = None) -> None:
    """Print a line reporting a successful outcome."""
    click.secho(msg, fg="green", color=color)


def warn(msg: str, *, color: bool | None = None) -> None:
    """Print a line that deserves the operator's attention."""
    click.secho(msg, fg="yellow", color=color)
