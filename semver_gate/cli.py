"""CLI entry point for semver-gate."""

from __future__ import annotations

import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from semver_gate.config import LAYOUTS, load_config
from semver_gate.errors import GateError
from semver_gate.pipeline import run_gate, run_manual_bump
from semver_gate.versions import BumpKind

manifest_option = click.option(
    "--manifest",
    "manifest_name",
    type=click.Choice(sorted(LAYOUTS)),
    default="Cargo.toml",
    show_default=True,
    help="Manifest file name used by every package in the workspace.",
)


@contextmanager
def _gate_errors() -> Iterator[None]:
    """Turn gate and git failures into a clean non-zero exit."""
    try:
        yield
    except GateError as exc:
        raise click.ClickException(str(exc)) from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise click.ClickException(
            f"{' '.join(map(str, exc.cmd))} failed: {detail}"
        ) from exc


def _repo_root() -> Path:
    root = Path.cwd()
    if not (root / ".git").exists():
        raise click.ClickException("Not a git repository. Run from the repo root.")
    return root


@click.group()
@click.version_option(package_name="semver-gate")
def cli() -> None:
    """Semantic-version gate for multi-package workspaces."""


@cli.command()
@click.option(
    "--reference",
    envvar="SEMVER_GATE_REFERENCE",
    default=None,
    help="Branch to compare against. [default: origin/master]",
)
@manifest_option
@click.option(
    "-p",
    "--package",
    "packages",
    multiple=True,
    help="Only check this package (repeatable). Use 'workspace' for the root.",
)
@click.option("--dry-run", is_flag=True, help="Report bumps without writing them.")
@click.option("--color/--no-color", default=None, help="Force colored output.")
def check(
    reference: str | None,
    manifest_name: str,
    packages: tuple[str, ...],
    dry_run: bool,
    color: bool | None,
) -> None:
    """Validate version bumps and commit any missing patch bumps.

    Meant to run as a pre-push hook: exits non-zero when a version change
    breaks the policy, so the push is blocked.
    """
    root = _repo_root()
    with _gate_errors():
        config = load_config(
            root,
            manifest_name=manifest_name,
            reference=reference,
            only=packages,
            color=color,
            dry_run=dry_run,
        )
        run_gate(config)


@cli.command()
@click.argument("package")
@click.argument("kind", type=click.Choice([BumpKind.MAJOR.value, BumpKind.MINOR.value]))
@manifest_option
@click.option(
    "--commit",
    is_flag=True,
    help="Commit the manifest on its own, as the gate requires.",
)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def bump(package: str, kind: str, manifest_name: str, commit: bool, yes: bool) -> None:
    """Bump PACKAGE by hand to its next KIND version."""
    root = _repo_root()
    bump_kind = BumpKind(kind)
    if bump_kind is BumpKind.MAJOR and not yes:
        click.confirm(
            f"Are you sure you want to release a new major version of {package}?",
            abort=True,
        )
    with _gate_errors():
        config = load_config(root, manifest_name=manifest_name)
        run_manual_bump(config, package, bump_kind, commit=commit)

    if not commit:
        click.echo()
        click.echo("Next steps:")
        click.echo("  1. Commit the manifest on its own (no other files)")
        click.echo("  2. Push; the gate validates the bump")
