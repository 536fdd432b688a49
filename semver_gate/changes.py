"""Change detection against the reference branch.

A package is "changed" when any tracked file under its subtree differs
between the merge-base (reference branch vs. HEAD) and the working tree.
When the reference cannot be resolved, e.g. on the first push of a new
branch with no upstream, there is no merge-base and every package counts
as changed: that is bootstrap mode.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import ChangeSet, PackageDescriptor
from .scm import GitRepository


def find_merge_base(repo: GitRepository, reference: str) -> str | None:
    """Resolve the merge-base of ``reference`` and HEAD.

    Returns:
        The merge-base sha, or None when the reference does not exist or
        shares no history with HEAD (bootstrap mode).
    """
    if repo.resolve(reference) is None:
        return None
    return repo.merge_base(reference, "HEAD")


def _under(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/") + "/"
    return path.startswith(prefix)


def changed_paths(
    repo: GitRepository,
    package: PackageDescriptor,
    base: str,
    exclude: Iterable[str] = (),
) -> ChangeSet:
    """Files changed under a package's subtree since ``base``.

    Args:
        repo: Repository to query.
        package: Package whose subtree is inspected.
        base: Merge-base commit.
        exclude: Subtrees to ignore. The workspace aggregate passes every
                 package subtree here so only root-level files count.
    """
    files = repo.changed_files(base, package.path or None)
    excluded = [p for p in exclude if p]
    return frozenset(f for f in files if not any(_under(f, p) for p in excluded))


def has_changes(
    repo: GitRepository,
    package: PackageDescriptor,
    base: str | None,
    exclude: Iterable[str] = (),
) -> bool:
    """Report whether a package changed since ``base``.

    With no base (bootstrap mode) every package reports a change.
    """
    if base is None:
        return True
    return bool(changed_paths(repo, package, base, exclude))
