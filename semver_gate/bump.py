"""Manifest version rewriting.

The automatic patch bump and the operator-driven major/minor bump both come
down to the same edit: replace one version string in one manifest and stage
the file. tomlkit keeps every other byte of the document as it was.
"""

from __future__ import annotations

from pathlib import Path

from .models import PackageDescriptor, VersionBump
from .scm import GitRepository
from .toml import load_manifest, save_manifest, set_manifest_version
from .versions import BumpKind, VersionValue


def write_version(manifest_path: Path, section: str, version: VersionValue) -> None:
    """Rewrite [<section>].version in a manifest file."""
    doc = load_manifest(manifest_path)
    set_manifest_version(doc, section, version)
    save_manifest(manifest_path, doc)


def apply_bump(
    repo: GitRepository,
    root: Path,
    package: PackageDescriptor,
    section: str,
    current: VersionValue,
    kind: BumpKind,
) -> VersionBump:
    """Bump a package's manifest by ``kind`` and stage it."""
    new = current.bump(kind)
    write_version(root / package.manifest, section, new)
    repo.stage(package.manifest)
    return VersionBump(old=str(current), new=str(new))


def apply_patch_bump(
    repo: GitRepository,
    root: Path,
    package: PackageDescriptor,
    section: str,
    current: VersionValue,
) -> VersionBump:
    """Write the next patch version into a package's manifest and stage it.

    Examples:
        1.2.3 → 1.2.4
    """
    return apply_bump(repo, root, package, section, current, BumpKind.PATCH)
