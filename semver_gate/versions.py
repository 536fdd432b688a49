"""Version parsing, comparison and bumping.

Versions are strict major.minor.patch triples. Prerelease and build metadata
are rejected rather than ignored, since the gate must compare exactly what
the manifest declares.
"""

from __future__ import annotations

import enum
import functools
import re

import semver
from pydantic import BaseModel, ConfigDict, NonNegativeInt

from .errors import InvalidFormat

_VERSION_RE = re.compile(r"\d+\.\d+\.\d+")


class BumpKind(str, enum.Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


@functools.total_ordering
class VersionValue(BaseModel):
    """An immutable major.minor.patch triple.

    Ordering is lexicographic over (major, minor, patch). Bumping never
    mutates the receiver; it returns a new value.
    """

    model_config = ConfigDict(frozen=True)

    major: NonNegativeInt
    minor: NonNegativeInt
    patch: NonNegativeInt

    @classmethod
    def parse(cls, text: str, *, source: str | None = None) -> VersionValue:
        """Parse a version string.

        Raises:
            InvalidFormat: If the text is not exactly ``\\d+.\\d+.\\d+`` or a
                component carries a leading zero (e.g. "01.2.3").
        """
        text = text.strip()
        if not _VERSION_RE.fullmatch(text):
            raise InvalidFormat(text, source)
        try:
            parsed = semver.Version.parse(text)
        except ValueError as exc:
            raise InvalidFormat(text, source) from exc
        return cls(major=parsed.major, minor=parsed.minor, patch=parsed.patch)

    def to_semver(self) -> semver.Version:
        return semver.Version(self.major, self.minor, self.patch)

    def compare(self, other: VersionValue) -> int:
        """Return -1, 0 or 1 as this version is lower, equal or higher."""
        return self.to_semver().compare(other.to_semver())

    def bump(self, kind: BumpKind) -> VersionValue:
        """Return the next version for the given bump kind.

        Examples:
            1.2.3 + major → 2.0.0
            1.2.3 + minor → 1.3.0
            1.2.3 + patch → 1.2.4
        """
        current = self.to_semver()
        if kind is BumpKind.MAJOR:
            bumped = current.bump_major()
        elif kind is BumpKind.MINOR:
            bumped = current.bump_minor()
        else:
            bumped = current.bump_patch()
        return VersionValue(major=bumped.major, minor=bumped.minor, patch=bumped.patch)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, VersionValue):
            return NotImplemented
        return self.compare(other) < 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"
