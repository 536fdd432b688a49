"""Run configuration.

Builds the immutable RunConfig a gate run works from: the repository root,
the reference branch, the ordered package descriptors and the output policy.
Packages are discovered from the root manifest's workspace members, the same
way for Cargo workspaces and uv workspaces.
"""

from __future__ import annotations

import glob
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .errors import ConfigError
from .models import PackageDescriptor
from .toml import (
    get_member_globs,
    get_package_name,
    get_table,
    has_section,
    load_manifest,
)

DEFAULT_REFERENCE = "origin/master"
DEFAULT_COMMIT_SUBJECT = "chore: bump versions"
WORKSPACE_ALIAS = "workspace"


class ManifestLayout(BaseModel):
    """Where a manifest flavour keeps its package metadata and workspace config."""

    model_config = ConfigDict(frozen=True)

    section: str
    members: tuple[str, ...]
    exclude: tuple[str, ...]
    settings: tuple[str, ...]
    canonical_names: bool = False


LAYOUTS: dict[str, ManifestLayout] = {
    "Cargo.toml": ManifestLayout(
        section="package",
        members=("workspace", "members"),
        exclude=("workspace", "exclude"),
        settings=("workspace", "metadata", "semver-gate"),
    ),
    "pyproject.toml": ManifestLayout(
        section="project",
        members=("tool", "uv", "workspace", "members"),
        exclude=("tool", "uv", "workspace", "exclude"),
        settings=("tool", "semver-gate"),
        canonical_names=True,
    ),
}


class RunConfig(BaseModel):
    """Everything a gate run needs, fixed for the duration of the run.

    Attributes:
        root: Repository root; all descriptor paths are relative to it.
        reference: Branch (or any ref) the push is compared against.
        packages: Package descriptors in declared scan order.
        workspace: The workspace aggregate, scanned last, if the root
                   manifest declares a package of its own.
        section: Manifest table holding the version field.
        color: Force colored output on/off; None auto-detects.
        dry_run: Classify and report without writing or committing.
        commit_subject: Subject line of the governance commit.
        member_paths: Subtrees of every discovered package, selected or not.
                      The workspace aggregate never counts changes there.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    reference: str = DEFAULT_REFERENCE
    packages: tuple[PackageDescriptor, ...] = ()
    workspace: PackageDescriptor | None = None
    section: str = "package"
    color: bool | None = None
    dry_run: bool = False
    commit_subject: str = DEFAULT_COMMIT_SUBJECT
    member_paths: tuple[str, ...] = ()

    @property
    def targets(self) -> tuple[PackageDescriptor, ...]:
        """Packages to scan, finishing with the workspace aggregate."""
        if self.workspace is None:
            return self.packages
        return (*self.packages, self.workspace)

    def excluded_paths(self, package: PackageDescriptor) -> tuple[str, ...]:
        """Subtrees whose changes do not count towards ``package``."""
        if not package.is_workspace:
            return ()
        return self.member_paths or tuple(p.path for p in self.packages)

    def find(self, name: str) -> PackageDescriptor:
        """Look up a target by name; "workspace" always names the aggregate."""
        for target in self.targets:
            if target.name == name or (target.is_workspace and name == WORKSPACE_ALIAS):
                return target
        raise ConfigError(
            f"Unknown package {name!r}. Known: "
            + ", ".join(t.name for t in self.targets)
        )


def _layout_for(manifest_name: str) -> ManifestLayout:
    try:
        return LAYOUTS[manifest_name]
    except KeyError:
        raise ConfigError(
            f"Unsupported manifest {manifest_name!r}; expected one of "
            + ", ".join(sorted(LAYOUTS))
        ) from None


def _member_dirs(
    root: Path, patterns: Iterable[str], excluded: Iterable[str], manifest_name: str
) -> list[Path]:
    """Expand member globs into package directories, in declared order."""
    skip = {(root / e).resolve() for e in excluded}
    dirs: list[Path] = []
    for pattern in patterns:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if p.resolve() in skip or p in dirs:
                continue
            if (p / manifest_name).exists():
                dirs.append(p)
    return dirs


def load_config(
    root: Path,
    *,
    manifest_name: str = "Cargo.toml",
    reference: str | None = None,
    only: Iterable[str] = (),
    color: bool | None = None,
    dry_run: bool = False,
) -> RunConfig:
    """Discover the workspace under ``root`` and build a RunConfig.

    Args:
        root: Repository root holding the root manifest.
        manifest_name: "Cargo.toml" or "pyproject.toml".
        reference: Reference ref; overrides the manifest settings table.
        only: Restrict the run to these package names ("workspace" selects
              the aggregate). Empty means every package.
        color: Output color policy.
        dry_run: Report planned bumps without applying them.

    Raises:
        ConfigError: If the root manifest is missing, no package is found,
            or ``only`` names an unknown package.
    """
    layout = _layout_for(manifest_name)
    root_manifest = root / manifest_name
    if not root_manifest.exists():
        raise ConfigError(f"No {manifest_name} found in {root}")

    root_doc = load_manifest(root_manifest)
    settings = get_table(root_doc, *layout.settings) or {}

    # Explicit member list in the settings table wins over workspace globs
    patterns = [str(m) for m in settings.get("members", [])] or get_member_globs(
        root_doc, *layout.members
    )
    excluded = get_member_globs(root_doc, *layout.exclude)

    packages: list[PackageDescriptor] = []
    for d in _member_dirs(root, patterns, excluded, manifest_name):
        rel = d.relative_to(root).as_posix()
        if rel == ".":
            continue
        doc = load_manifest(d / manifest_name)
        if not has_section(doc, layout.section):
            continue
        packages.append(
            PackageDescriptor(
                name=get_package_name(
                    doc, layout.section, d.name, canonical=layout.canonical_names
                ),
                manifest=f"{rel}/{manifest_name}",
                path=rel,
            )
        )

    workspace = None
    if has_section(root_doc, layout.section):
        workspace = PackageDescriptor(
            name=get_package_name(
                root_doc,
                layout.section,
                WORKSPACE_ALIAS,
                canonical=layout.canonical_names,
            ),
            manifest=manifest_name,
            path="",
            is_workspace=True,
        )

    if not packages and workspace is None:
        raise ConfigError(f"No packages found in {root_manifest}")

    config = RunConfig(
        root=root,
        reference=reference or str(settings.get("reference", DEFAULT_REFERENCE)),
        packages=tuple(packages),
        workspace=workspace,
        section=layout.section,
        color=color,
        dry_run=dry_run,
        commit_subject=str(settings.get("commit-subject", DEFAULT_COMMIT_SUBJECT)),
        member_paths=tuple(p.path for p in packages),
    )

    selected = list(only)
    if not selected:
        return config

    chosen = {config.find(name) for name in selected}
    return config.model_copy(
        update={
            "packages": tuple(p for p in config.packages if p in chosen),
            "workspace": config.workspace if config.workspace in chosen else None,
        }
    )
