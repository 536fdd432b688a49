"""Tests for semver_gate.pipeline."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from semver_gate.config import RunConfig
from semver_gate.errors import (
    ConfigError,
    InvalidFormat,
    PolicyViolation,
    VersionRegression,
)
from semver_gate.models import ClassificationKind, CommitRecord, VersionBump
from semver_gate.pipeline import run_gate, run_manual_bump
from semver_gate.versions import BumpKind

from conftest import ROOT_MANIFEST, crate_manifest

REFERENCE = "origin/master"


def set_changed(repo: MagicMock, *files: str) -> None:
    """Make the repo report ``files`` as changed since the merge-base."""

    def changed_files(base: str, path: str | None = None) -> list[str]:
        if path is None:
            return list(files)
        prefix = path.rstrip("/") + "/"
        return [f for f in files if f.startswith(prefix)]

    repo.changed_files.side_effect = changed_files


def set_contents(
    repo: MagicMock,
    extra: dict[tuple[str, str], str] | None = None,
    **versions: str,
) -> None:
    """Serve manifests at the reference tip, plus any extra (ref, path) blobs."""
    contents = {
        (REFERENCE, "Cargo.toml"): ROOT_MANIFEST,
        (REFERENCE, "utils/Cargo.toml"): crate_manifest(
            "utils", versions.get("utils", "1.2.3")
        ),
        (REFERENCE, "common/Cargo.toml"): crate_manifest(
            "common", versions.get("common", "0.4.0")
        ),
        **(extra or {}),
    }
    repo.show_file.side_effect = lambda ref, path: contents.get((ref, path))


def set_bump_commit(
    repo: MagicMock,
    manifest: str,
    name: str,
    old: str,
    new: str,
    files: list[str] | None = None,
) -> None:
    """Record one commit on the branch bumping ``manifest`` from old to new."""
    sha = f"bump-{name}-sha"
    repo.file_history.side_effect = lambda path, since=None: (
        [sha] if path == manifest else []
    )
    repo.commit_record.return_value = CommitRecord(
        sha=sha, message=f"Bump {name}", files=tuple(files or (manifest,))
    )
    set_contents(
        repo,
        {
            (sha, manifest): crate_manifest(name, new),
            (f"{sha}^", manifest): crate_manifest(name, old),
        },
    )


def write_crate(root: Path, name: str, version: str) -> None:
    (root / name / "Cargo.toml").write_text(crate_manifest(name, version))


class TestRunGatePatchBumps:
    def test_patch_bump_when_version_unchanged(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        set_changed(repo, "utils/src/lib.rs")
        set_contents(repo)

        result = run_gate(run_config, repo)

        assert result.bumps == {"utils": VersionBump(old="1.2.3", new="1.2.4")}
        assert result.commit == "c0ffee0000000000"
        assert result.classifications["utils"].kind is ClassificationKind.PATCH_NEEDED
        assert set(result.classifications) == {"utils"}
        assert (cargo_workspace / "utils" / "Cargo.toml").read_text() == (
            crate_manifest("utils", "1.2.4")
        )
        repo.stage.assert_called_once_with("utils/Cargo.toml")
        repo.commit.assert_called_once_with(
            "chore: bump versions", "utils: 1.2.3 → 1.2.4", ["utils/Cargo.toml"]
        )

    def test_single_commit_covers_every_bump(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        set_changed(repo, "utils/src/lib.rs", "common/src/lib.rs", "src/main.rs")
        set_contents(repo)

        result = run_gate(run_config, repo)

        assert list(result.bumps) == ["utils", "common", "app"]
        repo.commit.assert_called_once_with(
            "chore: bump versions",
            "utils: 1.2.3 → 1.2.4\ncommon: 0.4.0 → 0.4.1\napp: 1.0.0 → 1.0.1",
            ["utils/Cargo.toml", "common/Cargo.toml", "Cargo.toml"],
        )

    def test_workspace_ignores_package_changes(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        set_changed(repo, "common/src/lib.rs")
        set_contents(repo)

        result = run_gate(run_config, repo)

        assert list(result.bumps) == ["common"]

    def test_workspace_bumped_for_root_changes(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        set_changed(repo, "src/main.rs")
        set_contents(repo)

        result = run_gate(run_config, repo)

        assert result.bumps == {"app": VersionBump(old="1.0.0", new="1.0.1")}
        root_manifest = (cargo_workspace / "Cargo.toml").read_text()
        assert root_manifest == ROOT_MANIFEST.replace('"1.0.0"', '"1.0.1"')

    def test_no_changes_is_noop(self, run_config: RunConfig, repo: MagicMock) -> None:
        result = run_gate(run_config, repo)

        assert result.is_noop
        assert result.commit is None
        assert result.classifications == {}
        repo.stage.assert_not_called()
        repo.commit.assert_not_called()

    def test_prebumped_patch_needs_no_commit(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        """A second run after the governance commit finds nothing to do."""
        write_crate(cargo_workspace, "utils", "1.2.4")
        set_changed(repo, "utils/src/lib.rs", "utils/Cargo.toml")
        set_contents(repo)

        result = run_gate(run_config, repo)

        assert result.is_noop
        assert result.classifications["utils"].kind is ClassificationKind.NO_CHANGE
        repo.commit.assert_not_called()

    def test_new_package_gets_patch_bump(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        set_changed(repo, "common/src/lib.rs", "common/Cargo.toml")
        set_contents(repo)
        served = repo.show_file.side_effect
        repo.show_file.side_effect = lambda ref, path: (
            None if path == "common/Cargo.toml" else served(ref, path)
        )

        result = run_gate(run_config, repo)

        assert result.bumps == {"common": VersionBump(old="0.4.0", new="0.4.1")}
        repo.file_subjects.assert_called_once_with(
            "common/Cargo.toml", since="base000000000"
        )


class TestRunGateManualBumps:
    def test_valid_major_bump_is_kept(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "utils", "2.0.0")
        set_changed(repo, "utils/src/lib.rs", "utils/Cargo.toml", "common/src/lib.rs")
        set_bump_commit(repo, "utils/Cargo.toml", "utils", "1.2.3", "2.0.0")

        result = run_gate(run_config, repo)

        assert result.classifications["utils"].kind is ClassificationKind.MAJOR_DETECTED
        assert result.bumps == {"common": VersionBump(old="0.4.0", new="0.4.1")}
        assert 'version = "2.0.0"' in (cargo_workspace / "utils/Cargo.toml").read_text()
        repo.commit.assert_called_once_with(
            "chore: bump versions", "common: 0.4.0 → 0.4.1", ["common/Cargo.toml"]
        )

    def test_valid_minor_bump_alone_is_noop(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "common", "0.5.0")
        set_changed(repo, "common/Cargo.toml")
        set_bump_commit(repo, "common/Cargo.toml", "common", "0.4.0", "0.5.0")

        result = run_gate(run_config, repo)

        kind = result.classifications["common"].kind
        assert kind is ClassificationKind.MINOR_DETECTED
        assert result.is_noop
        repo.commit.assert_not_called()

    def test_unisolated_bump_aborts_whole_run(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "common", "1.0.0")
        set_changed(repo, "utils/src/lib.rs", "common/Cargo.toml", "common/src/lib.rs")
        set_bump_commit(
            repo,
            "common/Cargo.toml",
            "common",
            "0.4.0",
            "1.0.0",
            files=["common/Cargo.toml", "common/src/lib.rs"],
        )

        with pytest.raises(PolicyViolation, match="common/src/lib.rs"):
            run_gate(run_config, repo)

        # utils needed a patch bump, but nothing may be written on abort
        assert (cargo_workspace / "utils" / "Cargo.toml").read_text() == (
            crate_manifest("utils", "1.2.3")
        )
        repo.stage.assert_not_called()
        repo.commit.assert_not_called()

    def test_major_without_reset_is_rejected(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "utils", "2.1.0")
        set_changed(repo, "utils/Cargo.toml")
        set_contents(repo)

        with pytest.raises(PolicyViolation, match="reset minor and patch"):
            run_gate(run_config, repo)

    def test_regression_is_rejected(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "utils", "1.1.9")
        set_changed(repo, "utils/Cargo.toml")
        set_contents(repo)

        with pytest.raises(VersionRegression) as excinfo:
            run_gate(run_config, repo)

        assert excinfo.value.current == "1.1.9"
        assert excinfo.value.reference == "1.2.3"

    def test_reference_ahead_is_a_regression(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        """The reference branch moved on: the branch must be rebased."""
        set_changed(repo, "utils/src/lib.rs")
        set_contents(repo, utils="1.2.4")

        with pytest.raises(VersionRegression):
            run_gate(run_config, repo)


class TestRunGateFormats:
    def test_malformed_current_version(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "utils", "1.2")
        set_changed(repo, "utils/Cargo.toml")
        set_contents(repo)

        with pytest.raises(InvalidFormat, match="utils/Cargo.toml"):
            run_gate(run_config, repo)

    def test_malformed_reference_version(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        set_changed(repo, "utils/src/lib.rs")
        set_contents(repo, utils="1.x.3")

        with pytest.raises(InvalidFormat, match="origin/master:utils/Cargo.toml"):
            run_gate(run_config, repo)


class TestRunGateBootstrap:
    def test_every_package_gets_one_patch_bump(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        repo.resolve.return_value = None

        result = run_gate(run_config, repo)

        assert result.bumps == {
            "utils": VersionBump(old="1.2.3", new="1.2.4"),
            "common": VersionBump(old="0.4.0", new="0.4.1"),
            "app": VersionBump(old="1.0.0", new="1.0.1"),
        }
        repo.changed_files.assert_not_called()
        repo.show_file.assert_not_called()
        repo.commit.assert_called_once()

    def test_bootstrap_ignores_prior_versions(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        write_crate(cargo_workspace, "utils", "7.0.0")
        repo.resolve.return_value = None

        result = run_gate(run_config, repo)

        assert result.bumps["utils"] == VersionBump(old="7.0.0", new="7.0.1")

    def test_second_bootstrap_run_is_noop(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        repo.resolve.return_value = None
        repo.file_subjects.return_value = ["chore: bump versions", "initial"]

        result = run_gate(run_config, repo)

        assert result.is_noop
        repo.file_subjects.assert_any_call("utils/Cargo.toml", since=None)
        repo.commit.assert_not_called()


class TestRunGateApply:
    def test_dry_run_writes_nothing(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        set_changed(repo, "utils/src/lib.rs")
        set_contents(repo)
        config = run_config.model_copy(update={"dry_run": True})

        result = run_gate(config, repo)

        assert result.bumps == {"utils": VersionBump(old="1.2.3", new="1.2.4")}
        assert result.commit is None
        assert (cargo_workspace / "utils" / "Cargo.toml").read_text() == (
            crate_manifest("utils", "1.2.3")
        )
        repo.stage.assert_not_called()
        repo.commit.assert_not_called()

    def test_failed_commit_restores_manifests(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        set_changed(repo, "utils/src/lib.rs", "src/main.rs")
        set_contents(repo)
        repo.commit.side_effect = subprocess.CalledProcessError(1, ["git", "commit"])

        with pytest.raises(subprocess.CalledProcessError):
            run_gate(run_config, repo)

        assert (cargo_workspace / "utils" / "Cargo.toml").read_text() == (
            crate_manifest("utils", "1.2.3")
        )
        assert (cargo_workspace / "Cargo.toml").read_text() == ROOT_MANIFEST
        repo.unstage.assert_called_once_with("utils/Cargo.toml", "Cargo.toml")

    def test_interrupt_before_commit_restores_manifests(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        set_changed(repo, "utils/src/lib.rs")
        set_contents(repo)
        repo.commit.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            run_gate(run_config, repo)

        assert (cargo_workspace / "utils" / "Cargo.toml").read_text() == (
            crate_manifest("utils", "1.2.3")
        )
        repo.unstage.assert_called_once_with("utils/Cargo.toml")

    def test_custom_commit_subject(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        set_changed(repo, "utils/src/lib.rs")
        set_contents(repo)
        config = run_config.model_copy(update={"commit_subject": "Bump versions"})

        run_gate(config, repo)

        assert repo.commit.call_args[0][0] == "Bump versions"


class TestRunManualBump:
    def test_minor_bump_without_commit(
        self, run_config: RunConfig, repo: MagicMock, cargo_workspace: Path
    ) -> None:
        bump = run_manual_bump(run_config, "utils", BumpKind.MINOR, repo=repo)

        assert bump == VersionBump(old="1.2.3", new="1.3.0")
        assert (cargo_workspace / "utils" / "Cargo.toml").read_text() == (
            crate_manifest("utils", "1.3.0")
        )
        repo.stage.assert_called_once_with("utils/Cargo.toml")
        repo.commit.assert_not_called()

    def test_major_bump_of_workspace_with_commit(
        self, run_config: RunConfig, repo: MagicMock
    ) -> None:
        bump = run_manual_bump(
            run_config, "workspace", BumpKind.MAJOR, commit=True, repo=repo
        )

        assert bump.new == "2.0.0"
        repo.commit.assert_called_once_with(
            "chore: bump app to 2.0.0", "", ["Cargo.toml"]
        )

    def test_unknown_package(self, run_config: RunConfig, repo: MagicMock) -> None:
        with pytest.raises(ConfigError):
            run_manual_bump(run_config, "nope", BumpKind.MINOR, repo=repo)
