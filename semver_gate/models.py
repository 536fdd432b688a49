"""Data models for semver-gate.

These Pydantic models are the run-scoped values passed between the change
detector, the classifier, the validator and the orchestrator. None of them
outlives a single gate run.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field

from .versions import VersionValue

# Repository-relative paths changed under one package subtree.
ChangeSet = frozenset[str]


class PackageDescriptor(BaseModel):
    """One versioned unit of the workspace.

    Attributes:
        name: Package name as declared in its manifest.
        manifest: Path of the manifest, relative to the repository root.
        path: Source subtree, relative to the repository root. Empty for the
              workspace aggregate, whose subtree is the root minus every
              package subtree.
        is_workspace: True for the workspace aggregate.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    manifest: str
    path: str
    is_workspace: bool = False


class ClassificationKind(str, enum.Enum):
    NO_CHANGE = "no_change"
    PATCH_NEEDED = "patch_needed"
    MINOR_DETECTED = "minor_detected"
    MAJOR_DETECTED = "major_detected"
    INVALID = "invalid"


class BumpClassification(BaseModel):
    """How a package's current version relates to its reference version.

    ``reference`` is None when there is nothing to compare against (first
    push of a branch, or a package that does not exist on the reference yet).
    ``reason`` explains INVALID and NO_CHANGE outcomes.
    """

    model_config = ConfigDict(frozen=True)

    kind: ClassificationKind
    current: VersionValue
    reference: VersionValue | None = None
    reason: str = ""

    @property
    def is_manual_bump(self) -> bool:
        return self.kind in (
            ClassificationKind.MAJOR_DETECTED,
            ClassificationKind.MINOR_DETECTED,
        )


class CommitRecord(BaseModel):
    """A single historical commit: its sha, message and touched files."""

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str
    files: tuple[str, ...] = ()


class VersionBump(BaseModel):
    """Records a version change for a package.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str


class RunResult(BaseModel):
    """Outcome of one gate run.

    Attributes:
        classifications: Classification per scanned package, in scan order.
                         Packages without changes are absent.
        bumps: Patch bumps applied (or planned, on a dry run) per package.
        commit: Sha of the governance commit, or None if nothing was committed.
    """

    classifications: dict[str, BumpClassification] = Field(default_factory=dict)
    bumps: dict[str, VersionBump] = Field(default_factory=dict)
    commit: str | None = None

    @property
    def is_noop(self) -> bool:
        return not self.bumps
