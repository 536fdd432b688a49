"""Bump classification.

Compares a package's working-tree version with its version on the
reference branch and decides what kind of bump, if any, the author made.
Higher-order components are checked first: a valid major bump resets minor
and patch, so a single classification is ever reported.
"""

from __future__ import annotations

from .models import BumpClassification, ClassificationKind
from .versions import VersionValue


def _invalid(
    current: VersionValue, reference: VersionValue, reason: str
) -> BumpClassification:
    return BumpClassification(
        kind=ClassificationKind.INVALID,
        current=current,
        reference=reference,
        reason=reason,
    )


def classify(current: VersionValue, reference: VersionValue) -> BumpClassification:
    """Classify the delta between ``reference`` and ``current``.

    Only called for packages with source changes, so an unchanged version
    means an automatic patch bump is due.

    Examples:
        1.2.3 → 1.2.3: PATCH_NEEDED
        1.2.3 → 2.0.0: MAJOR_DETECTED
        1.2.3 → 1.3.0: MINOR_DETECTED
        1.2.3 → 1.2.7: NO_CHANGE (patch already bumped by hand)
        1.2.3 → 2.1.0: INVALID (minor not reset)
        1.2.3 → 1.1.9: INVALID (regression)
    """
    if current == reference:
        return BumpClassification(
            kind=ClassificationKind.PATCH_NEEDED, current=current, reference=reference
        )

    d_major = current.major - reference.major
    d_minor = current.minor - reference.minor
    d_patch = current.patch - reference.patch

    if d_major < 0:
        return _invalid(current, reference, "major version decreased")
    if d_major > 1:
        return _invalid(
            current, reference, "major version can only be increased by 1"
        )
    if d_major == 1:
        if current.minor != 0 or current.patch != 0:
            return _invalid(
                current,
                reference,
                f"a major bump must reset minor and patch (expected "
                f"{current.major}.0.0)",
            )
        return BumpClassification(
            kind=ClassificationKind.MAJOR_DETECTED, current=current, reference=reference
        )

    if d_minor < 0:
        return _invalid(current, reference, "minor version decreased")
    if d_minor > 1:
        return _invalid(
            current, reference, "minor version can only be increased by 1"
        )
    if d_minor == 1:
        if current.patch != 0:
            return _invalid(
                current,
                reference,
                f"a minor bump must reset patch (expected "
                f"{current.major}.{current.minor}.0)",
            )
        return BumpClassification(
            kind=ClassificationKind.MINOR_DETECTED, current=current, reference=reference
        )

    if d_patch < 0:
        return _invalid(current, reference, "patch version decreased")
    return BumpClassification(
        kind=ClassificationKind.NO_CHANGE,
        current=current,
        reference=reference,
        reason="patch already bumped",
    )
