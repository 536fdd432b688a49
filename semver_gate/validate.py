"""Validation of manual major/minor bumps.

A major or minor bump is a deliberate, auditable act. Besides being a clean
+1 of the right component, it has to live in its own commit: one commit on
the branch touches the manifest, that commit touches nothing but the
manifest, and inside the manifest it changes nothing but the version.
"""

from __future__ import annotations

from .errors import PolicyViolation
from .models import BumpClassification, ClassificationKind, PackageDescriptor
from .scm import GitRepository
from .toml import get_version_text, parse_manifest, strip_version
from .versions import BumpKind

_KINDS = {
    ClassificationKind.MAJOR_DETECTED: BumpKind.MAJOR,
    ClassificationKind.MINOR_DETECTED: BumpKind.MINOR,
}


def check_magnitude(
    package: PackageDescriptor, classification: BumpClassification
) -> None:
    """Re-assert that the bump is exactly one step of the detected kind."""
    kind = _KINDS.get(classification.kind)
    if kind is None or classification.reference is None:
        raise PolicyViolation(
            package.name,
            package.manifest,
            f"cannot validate a {classification.kind.value} classification as a "
            "manual bump",
        )
    expected = classification.reference.bump(kind)
    if classification.current != expected:
        raise PolicyViolation(
            package.name,
            package.manifest,
            f"{kind.value} bump from {classification.reference} must be "
            f"{expected}, found {classification.current}",
        )


def check_isolated_commit(
    repo: GitRepository,
    package: PackageDescriptor,
    classification: BumpClassification,
    section: str,
    base: str | None,
) -> None:
    """Ensure the version change sits alone in a single commit.

    Args:
        repo: Repository to inspect.
        package: Package whose manifest was bumped.
        classification: The major/minor classification being validated.
        section: Manifest table holding the version field.
        base: Merge-base; only commits in ``base..HEAD`` are visible.

    Raises:
        PolicyViolation: If the manifest history on the branch is not a
            single commit touching only the manifest's version field.
    """
    manifest = package.manifest
    kind = _KINDS[classification.kind].value
    history = repo.file_history(manifest, since=base)

    if not history:
        raise PolicyViolation(
            package.name,
            manifest,
            f"version {classification.current} is not committed. Commit the "
            "version change on its own before pushing",
        )
    if len(history) > 1:
        raise PolicyViolation(
            package.name,
            manifest,
            f"manifest changed in {len(history)} commits on this branch; a "
            f"{kind} bump must be the only "
            "change to the manifest, in a single commit",
        )

    record = repo.commit_record(history[0])
    others = sorted(f for f in record.files if f != manifest)
    if others:
        raise PolicyViolation(
            package.name,
            manifest,
            f"bump commit {record.sha[:10]} also changes "
            f"{', '.join(others)}. Move the version change into its own commit",
        )

    after_text = repo.show_file(record.sha, manifest)
    before_text = repo.show_file(f"{record.sha}^", manifest)
    if after_text is None or before_text is None:
        raise PolicyViolation(
            package.name,
            manifest,
            f"bump commit {record.sha[:10]} adds or removes the manifest",
        )

    after = parse_manifest(after_text)
    if strip_version(after, section) != strip_version(
        parse_manifest(before_text), section
    ):
        raise PolicyViolation(
            package.name,
            manifest,
            f"bump commit {record.sha[:10]} changes more than the version field",
        )

    committed = get_version_text(after, section, f"{record.sha[:10]}:{manifest}")
    if committed != str(classification.current):
        raise PolicyViolation(
            package.name,
            manifest,
            f"bump commit {record.sha[:10]} sets version {committed} but the "
            f"working tree has {classification.current}. Commit the final version",
        )


def validate(
    repo: GitRepository,
    package: PackageDescriptor,
    classification: BumpClassification,
    section: str,
    base: str | None,
) -> None:
    """Validate a MAJOR_DETECTED or MINOR_DETECTED classification.

    Returns None when the bump obeys the policy, raises PolicyViolation
    otherwise.
    """
    check_magnitude(package, classification)
    check_isolated_commit(repo, package, classification, section, base)
