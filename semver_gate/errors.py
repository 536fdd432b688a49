"""Error types raised by the version gate.

Every fatal condition derives from GateError so the CLI can map the whole
family to a non-zero exit in one place. A missing reference branch is not
an error: it switches the run into bootstrap mode instead.
"""

from __future__ import annotations


class GateError(Exception):
    """Base class for failures that abort a gate run."""


class ConfigError(GateError):
    """The workspace layout or package selection cannot be resolved."""


class InvalidFormat(GateError):
    """A version string is not a plain major.minor.patch triple."""

    def __init__(self, text: str, source: str | None = None) -> None:
        self.text = text
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Invalid version {text!r}{where}: "
            "expected major.minor.patch with non-negative integers"
        )


class VersionRegression(GateError):
    """The current version sits behind the reference version."""

    def __init__(self, package: str, current: str, reference: str) -> None:
        self.package = package
        self.current = current
        self.reference = reference
        super().__init__(
            f"{package}: version {current} is behind the reference version "
            f"{reference}. Rebase onto the reference branch or restore the version."
        )


class PolicyViolation(GateError):
    """A manual major/minor bump breaks the versioning policy."""

    def __init__(self, package: str, manifest: str, reason: str) -> None:
        self.package = package
        self.manifest = manifest
        self.reason = reason
        super().__init__(f"{package} ({manifest}): {reason}")
