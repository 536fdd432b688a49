"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from semver_gate.config import RunConfig, load_config
from semver_gate.scm import GitRepository

ROOT_MANIFEST = """\
[package]
name = "app"
version = "1.0.0"
edition = "2021"

[workspace]
members = ["utils", "common"]

[dependencies]
utils = { path = "utils" }
common = { path = "common" }
"""


def crate_manifest(name: str, version: str) -> str:
    """Render a member crate manifest with some content around the version."""
    return f"""\
# {name} crate
[package]
name = "{name}"
version = "{version}"
edition = "2021"

[dependencies]
serde = {{ version = "1.0", features = ["derive"] }}
"""


def write_workspace(
    root: Path,
    versions: dict[str, str] | None = None,
    root_manifest: str = ROOT_MANIFEST,
) -> None:
    """Write a small Cargo workspace: app (root), utils and common."""
    versions = {"utils": "1.2.3", "common": "0.4.0", **(versions or {})}
    root.mkdir(parents=True, exist_ok=True)
    (root / "Cargo.toml").write_text(root_manifest)
    (root / "src").mkdir(exist_ok=True)
    (root / "src" / "main.rs").write_text("fn main() {}\n")
    for name, version in versions.items():
        crate = root / name
        (crate / "src").mkdir(parents=True, exist_ok=True)
        (crate / "Cargo.toml").write_text(crate_manifest(name, version))
        (crate / "src" / "lib.rs").write_text(f"// {name}\n")


@pytest.fixture
def cargo_workspace(tmp_path: Path) -> Path:
    """A Cargo workspace on disk (no git repository)."""
    write_workspace(tmp_path)
    return tmp_path


@pytest.fixture
def run_config(cargo_workspace: Path) -> RunConfig:
    """RunConfig for the sample workspace, compared against origin/master."""
    return load_config(cargo_workspace)


@pytest.fixture
def repo() -> MagicMock:
    """A GitRepository double with a resolvable reference and no changes."""
    mock = MagicMock(spec=GitRepository)
    mock.resolve.return_value = "ref0000000000"
    mock.merge_base.return_value = "base000000000"
    mock.current_branch.return_value = "feature"
    mock.changed_files.return_value = []
    mock.show_file.return_value = None
    mock.file_history.return_value = []
    mock.file_subjects.return_value = []
    mock.commit.return_value = "c0ffee0000000000"
    return mock
