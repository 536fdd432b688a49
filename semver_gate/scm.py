"""Git capability used by the gate.

GitRepository wraps the handful of git queries and mutations the gate
needs. Everything runs synchronously in the repository root; a failing
command raises subprocess.CalledProcessError unless the call tolerates a
missing ref.
"""

from __future__ import annotations

from pathlib import Path

from .models import CommitRecord
from .shell import git


class GitRepository:
    """Git operations scoped to one working tree."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, cwd=self.root, check=check)

    def resolve(self, ref: str) -> str | None:
        """Resolve a ref to a commit sha, or None if it does not exist."""
        sha = self._git(
            "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False
        )
        return sha or None

    def merge_base(self, ref: str, other: str = "HEAD") -> str | None:
        """Most recent common ancestor of two refs, or None if unrelated."""
        return self._git("merge-base", ref, other, check=False) or None

    def current_branch(self) -> str:
        return self._git("rev-parse", "--abbrev-ref", "HEAD")

    def changed_files(self, base: str, path: str | None = None) -> list[str]:
        """Tracked files differing between ``base`` and the working tree.

        Paths come back verbatim (NUL-separated, never quoted) and a move
        reports both the old and the new path.

        Args:
            base: Commit to diff against.
            path: Optional subtree to restrict the diff to.
        """
        args = ["diff", "--name-only", "--no-renames", "-z", base]
        if path:
            args += ["--", path.rstrip("/") + "/"]
        return [f for f in self._git(*args).split("\0") if f]

    def show_file(self, ref: str, path: str) -> str | None:
        """Content of ``path`` at ``ref``, or None if it does not exist there."""
        if not self._git("cat-file", "-t", f"{ref}:{path}", check=False):
            return None
        return self._git("show", f"{ref}:{path}")

    def file_history(self, path: str, since: str | None = None) -> list[str]:
        """Shas of commits touching ``path``, newest first.

        Args:
            path: File to inspect.
            since: Only consider commits after this one (``since..HEAD``).
                   When None, the whole history of HEAD is visible.
        """
        args = ["log", "--format=%H"]
        if since:
            args.append(f"{since}..HEAD")
        return self._git(*args, "--", path).splitlines()

    def file_subjects(self, path: str, since: str | None = None) -> list[str]:
        """Subject lines of commits touching ``path``, newest first."""
        args = ["log", "--format=%s"]
        if since:
            args.append(f"{since}..HEAD")
        return self._git(*args, "--", path).splitlines()

    def commit_record(self, sha: str) -> CommitRecord:
        """Message and changed-file list of a single commit."""
        message = self._git("log", "-1", "--format=%B", sha)
        files = self._git(
            "diff-tree", "--no-commit-id", "--name-only", "-r", "-z", "--root", sha
        )
        return CommitRecord(
            sha=sha, message=message, files=tuple(f for f in files.split("\0") if f)
        )

    def stage(self, path: str) -> None:
        self._git("add", "--", path)

    def unstage(self, *paths: str) -> None:
        self._git("reset", "--quiet", "--", *paths, check=False)

    def commit(self, subject: str, body: str, paths: list[str]) -> str:
        """Commit exactly ``paths`` and return the new HEAD sha.

        Anything else the operator has staged stays staged and out of
        the commit.
        """
        args = ["commit", "-m", subject]
        if body:
            args += ["-m", body]
        self._git(*args, "--", *paths)
        return self._git("rev-parse", "HEAD")
