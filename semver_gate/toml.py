"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying manifests.
Only the version field of a manifest is ever rewritten; every other byte of
the document must survive a load/save round trip untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

from .errors import ConfigError, InvalidFormat
from .versions import VersionValue


def load_manifest(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a manifest file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    return tomlkit.parse(path.read_text())


def parse_manifest(text: str) -> tomlkit.TOMLDocument:
    """Parse manifest content read from git (e.g. ``git show ref:path``)."""
    return tomlkit.parse(text)


def save_manifest(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_table(doc: tomlkit.TOMLDocument, *keys: str) -> Any:
    """Walk nested tables, returning None when any key along the way is missing."""
    node: Any = doc
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def get_package_name(
    doc: tomlkit.TOMLDocument, section: str, fallback: str, *, canonical: bool = False
) -> str:
    """Extract the package name from [<section>].name.

    Args:
        doc: Parsed manifest.
        section: Table holding the package metadata ("package" or "project").
        fallback: Value to return if name is not specified.
        canonical: Normalize per PEP 503 (lowercase, hyphens instead of
                   underscores), as Python package names compare that way.
    """
    name = get_table(doc, section, "name")
    name = str(name) if name else fallback
    return canonicalize_name(name) if canonical else name


def has_section(doc: tomlkit.TOMLDocument, section: str) -> bool:
    return isinstance(get_table(doc, section), dict)


def get_version_text(doc: tomlkit.TOMLDocument, section: str, source: str) -> str:
    """Extract the raw [<section>].version string.

    Raises:
        InvalidFormat: If the field is missing or not a plain string (e.g.
            ``version.workspace = true``).
    """
    value = get_table(doc, section, "version")
    if not isinstance(value, str):
        raise InvalidFormat(repr(value) if value is not None else "<missing>", source)
    return str(value)


def get_manifest_version(
    doc: tomlkit.TOMLDocument, section: str, source: str
) -> VersionValue:
    """Extract and parse [<section>].version."""
    return VersionValue.parse(get_version_text(doc, section, source), source=source)


def set_manifest_version(
    doc: tomlkit.TOMLDocument, section: str, version: VersionValue
) -> None:
    """Replace [<section>].version in place, leaving the rest of the document alone."""
    table = get_table(doc, section)
    if not isinstance(table, dict):
        raise ConfigError(f"Manifest has no [{section}] table")
    table["version"] = str(version)


def strip_version(doc: tomlkit.TOMLDocument, section: str) -> dict[str, Any]:
    """Return the document as plain data with [<section>].version removed.

    Used to prove that two revisions of a manifest differ in nothing but
    the version field.
    """
    data = doc.unwrap()
    table = data.get(section)
    if isinstance(table, dict):
        table.pop("version", None)
    return data


def get_member_globs(doc: tomlkit.TOMLDocument, *keys: str) -> list[str]:
    """Extract workspace member glob patterns (e.g. "crates/*", "packages/*")."""
    members = get_table(doc, *keys)
    return [str(m) for m in members] if members else []
