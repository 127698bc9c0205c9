"""Tests for librarian.cli."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from librarian.cli import cli
from librarian.manifest import load_config, save_config
from librarian.models import Config, LibrarianState, Library, LibraryState, VersionBump


@pytest.fixture
def manifest(tmp_path: Path) -> Path:
    path = tmp_path / "librarian.toml"
    save_config(
        path,
        Config(
            language="fake",
            repo="owner/repo",
            libraries=[Library(name="lib-a")],
            state=LibrarianState(libraries=[LibraryState(id="lib-a", version="1.0.0")]),
        ),
    )
    return path


class TestAdd:
    def test_adds_library(self, manifest: Path) -> None:
        result = CliRunner().invoke(cli, ["add", "google/b/v1", "--manifest", str(manifest)])

        assert result.exit_code == 0, result.output
        names = [lib.name for lib in load_config(manifest).libraries]
        assert names == ["google-b-v1", "lib-a"]

    def test_duplicate_is_click_error(self, manifest: Path) -> None:
        runner = CliRunner()
        runner.invoke(cli, ["add", "google/b/v1", "--manifest", str(manifest)])

        result = runner.invoke(cli, ["add", "google/b/v1", "--manifest", str(manifest)])

        assert result.exit_code == 1
        assert "library already exists" in result.output


class TestTidy:
    def test_rewrites_manifest(self, manifest: Path) -> None:
        config = load_config(manifest)
        config.libraries.append(Library(name="a-lib"))
        save_config(manifest, config)

        result = CliRunner().invoke(cli, ["tidy", "--manifest", str(manifest)])

        assert result.exit_code == 0, result.output
        assert [lib.name for lib in load_config(manifest).libraries] == ["a-lib", "lib-a"]

    def test_missing_manifest(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            cli, ["tidy", "--manifest", str(tmp_path / "missing.toml")]
        )

        assert result.exit_code == 1
        assert "not found" in result.output


class TestBump:
    def test_bumps_and_saves(self, manifest: Path) -> None:
        result = CliRunner().invoke(cli, ["bump", "lib-a", "--manifest", str(manifest)])

        assert result.exit_code == 0, result.output
        state = load_config(manifest).state.library("lib-a")
        assert state is not None
        assert state.version == "1.1.0"

    @patch("librarian.cli.bump_library")
    def test_passes_override(self, mock_bump: MagicMock, manifest: Path) -> None:
        mock_bump.return_value = (load_config(manifest), VersionBump(old="1.0.0", new="9.0.0"))

        CliRunner().invoke(
            cli, ["bump", "lib-a", "--version", "9.0.0", "--manifest", str(manifest)]
        )

        assert mock_bump.call_args.args[1:] == ("lib-a", "9.0.0")


class TestRelease:
    @patch("librarian.cli.GitRepository")
    @patch("librarian.cli.prepare_release")
    def test_writes_notes(
        self,
        mock_prepare: MagicMock,
        mock_repo: MagicMock,
        manifest: Path,
        tmp_path: Path,
    ) -> None:
        mock_prepare.return_value = (load_config(manifest), "release notes")
        out = tmp_path / "notes.md"

        result = CliRunner().invoke(
            cli,
            ["release", "--library", "lib-a", "--manifest", str(manifest), "-o", str(out)],
        )

        assert result.exit_code == 0, result.output
        assert out.read_text() == "release notes\n"
        assert mock_prepare.call_args.kwargs["library_id"] == "lib-a"


class TestGenerate:
    @patch("librarian.cli.GitRepository")
    @patch("librarian.cli.generate_libraries")
    def test_prints_body(
        self,
        mock_generate: MagicMock,
        mock_repo: MagicMock,
        manifest: Path,
        tmp_path: Path,
    ) -> None:
        mock_generate.return_value = (load_config(manifest), "BEGIN_COMMIT_OVERRIDE")

        result = CliRunner().invoke(
            cli,
            [
                "generate",
                "--source",
                str(tmp_path),
                "--library",
                "lib-a",
                "--manifest",
                str(manifest),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "BEGIN_COMMIT_OVERRIDE" in result.output
        assert mock_generate.call_args.kwargs["library_ids"] == ("lib-a",)
