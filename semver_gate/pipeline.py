"""Version gate pipeline: detect → classify → validate → bump → commit.

This module orchestrates a gate run, typically from a pre-push hook:
1. Resolve the merge-base between the reference branch and HEAD
2. For each package (workspace aggregate last), skip it if nothing changed
3. Classify its version against the reference branch
4. Validate manual major/minor bumps (isolated commit, clean +1)
5. Plan an automatic patch bump where the author did not bump
6. Write every planned bump and record them in a single commit

The run is all-or-nothing: every check happens before the first manifest
is written, so an aborted run leaves the working tree as it found it.
"""

from __future__ import annotations

from .bump import apply_bump, apply_patch_bump
from .changes import find_merge_base, has_changes
from .classify import classify
from .config import RunConfig
from .errors import PolicyViolation, VersionRegression
from .models import (
    BumpClassification,
    ClassificationKind,
    PackageDescriptor,
    RunResult,
    VersionBump,
)
from .scm import GitRepository
from .shell import echo, step, success, warn
from .toml import get_manifest_version, load_manifest, parse_manifest
from .validate import validate
from .versions import BumpKind, VersionValue


def read_current_version(config: RunConfig, package: PackageDescriptor) -> VersionValue:
    """Read the working-tree version of a package."""
    doc = load_manifest(config.root / package.manifest)
    return get_manifest_version(doc, config.section, package.manifest)


def read_reference_version(
    repo: GitRepository, config: RunConfig, package: PackageDescriptor
) -> VersionValue | None:
    """Read a package's version at the tip of the reference branch.

    Returns None when the manifest does not exist there (a new package).
    """
    text = repo.show_file(config.reference, package.manifest)
    if text is None:
        return None
    source = f"{config.reference}:{package.manifest}"
    return get_manifest_version(parse_manifest(text), config.section, source)


def already_bumped(
    repo: GitRepository,
    config: RunConfig,
    package: PackageDescriptor,
    base: str | None,
) -> bool:
    """Check for a governance commit on the manifest in the visible history.

    Without a reference version there is nothing to compare against, so a
    previous gate commit is the only evidence that the bump already happened.
    """
    return config.commit_subject in repo.file_subjects(package.manifest, since=base)


def classify_package(
    repo: GitRepository,
    config: RunConfig,
    package: PackageDescriptor,
    base: str | None,
) -> BumpClassification:
    """Classify and, for manual bumps, validate a changed package.

    Raises:
        InvalidFormat: If either version string is malformed.
        VersionRegression: If the current version is behind the reference.
        PolicyViolation: If a bump skips a step, fails to reset lower
            fields, or is not isolated in its own commit.
    """
    current = read_current_version(config, package)
    reference = None if base is None else read_reference_version(repo, config, package)

    if reference is None:
        # Bootstrap: first push of the branch, or a package new on this branch
        if already_bumped(repo, config, package, base):
            return BumpClassification(
                kind=ClassificationKind.NO_CHANGE,
                current=current,
                reason="already bumped by a previous run",
            )
        return BumpClassification(
            kind=ClassificationKind.PATCH_NEEDED,
            current=current,
            reason="no reference version",
        )

    classification = classify(current, reference)

    if classification.kind is ClassificationKind.INVALID:
        if current < reference:
            raise VersionRegression(package.name, str(current), str(reference))
        raise PolicyViolation(package.name, package.manifest, classification.reason)

    if classification.is_manual_bump:
        validate(repo, package, classification, config.section, base)

    return classification


def _describe(classification: BumpClassification) -> str:
    kind = classification.kind
    ref = classification.reference
    if kind is ClassificationKind.PATCH_NEEDED:
        return f"{classification.current}, patch bump needed"
    if kind is ClassificationKind.NO_CHANGE:
        return f"{classification.current}, {classification.reason}"
    label = "major" if kind is ClassificationKind.MAJOR_DETECTED else "minor"
    return f"{ref} → {classification.current}, {label} bump validated"


def apply_bumps(
    repo: GitRepository,
    config: RunConfig,
    planned: list[tuple[PackageDescriptor, VersionValue]],
) -> tuple[dict[str, VersionBump], str]:
    """Write, stage and commit every planned patch bump.

    If anything fails part-way, including a KeyboardInterrupt, the manifests
    already rewritten are restored and unstaged before the error propagates.

    Returns:
        Tuple of (bumps per package name, governance commit sha).
    """
    originals: dict[str, bytes] = {}
    bumped: dict[str, VersionBump] = {}
    try:
        for package, current in planned:
            originals[package.manifest] = (config.root / package.manifest).read_bytes()
            bumped[package.name] = apply_patch_bump(
                repo, config.root, package, config.section, current
            )
            echo(
                f"  {package.name}: {bumped[package.name].old} → "
                f"{bumped[package.name].new}",
                color=config.color,
            )

        summary = "\n".join(f"{n}: {b.old} → {b.new}" for n, b in bumped.items())
        sha = repo.commit(config.commit_subject, summary, list(originals))
    except BaseException:
        for manifest, content in originals.items():
            (config.root / manifest).write_bytes(content)
        if originals:
            repo.unstage(*originals)
        raise

    return bumped, sha


def run_gate(config: RunConfig, repo: GitRepository | None = None) -> RunResult:
    """Execute a full gate run.

    Args:
        config: Immutable run configuration.
        repo: Git capability; defaults to a GitRepository at ``config.root``.

    Returns:
        RunResult describing classifications, bumps and the commit made.
        A run with nothing to bump returns a result with no bumps and no
        commit.
    """
    repo = repo or GitRepository(config.root)
    color = config.color

    step(f"Resolving reference {config.reference}", color=color)
    base = find_merge_base(repo, config.reference)
    if base is None:
        warn(
            f"  {config.reference} not found: first push, every package gets a "
            "patch bump",
            color=color,
        )
    else:
        branch = repo.current_branch()
        echo(f"  {branch} forks from {config.reference} at {base[:10]}", color=color)

    step("Checking package versions", color=color)
    result = RunResult()
    planned: list[tuple[PackageDescriptor, VersionValue]] = []

    for package in config.targets:
        if not has_changes(repo, package, base, config.excluded_paths(package)):
            echo(f"  {package.name}: no changes", color=color)
            continue

        classification = classify_package(repo, config, package, base)
        result.classifications[package.name] = classification
        echo(f"  {package.name}: {_describe(classification)}", color=color)

        if classification.kind is ClassificationKind.PATCH_NEEDED:
            planned.append((package, classification.current))

    if not planned:
        success("\nNo version bumps needed.", color=color)
        return result

    if config.dry_run:
        step("Planned bumps (dry run)", color=color)
        for package, current in planned:
            bump = VersionBump(old=str(current), new=str(current.bump(BumpKind.PATCH)))
            result.bumps[package.name] = bump
            echo(f"  {package.name}: {bump.old} → {bump.new}", color=color)
        return result

    step("Bumping versions", color=color)
    result.bumps, result.commit = apply_bumps(repo, config, planned)
    success(f"\nCommitted {result.commit[:10]}: {config.commit_subject}", color=color)
    return result


def run_manual_bump(
    config: RunConfig,
    name: str,
    kind: BumpKind,
    *,
    commit: bool = False,
    repo: GitRepository | None = None,
) -> VersionBump:
    """Bump one package by hand, optionally in its own isolated commit.

    This produces exactly the shape of change the gate accepts for major
    and minor bumps: the manifest's version field and nothing else.

    Args:
        config: Run configuration.
        name: Package name, or "workspace" for the aggregate.
        kind: Component to bump.
        commit: Commit the manifest on its own after rewriting it.
        repo: Git capability; defaults to a GitRepository at ``config.root``.
    """
    repo = repo or GitRepository(config.root)
    package = config.find(name)
    current = read_current_version(config, package)

    bump = apply_bump(repo, config.root, package, config.section, current, kind)
    echo(f"  {package.name}: {bump.old} → {bump.new}", color=config.color)

    if commit:
        sha = repo.commit(
            f"chore: bump {package.name} to {bump.new}", "", [package.manifest]
        )
        success(f"  Committed {sha[:10]}", color=config.color)
    return bump
