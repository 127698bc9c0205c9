"""Tests for librarian.commits."""

from __future__ import annotations

import pytest
from conftest import at

from librarian.commits import BULK_CHANGE_THRESHOLD, library_ids, parse_commits
from librarian.errors import EmptyCommitMessageError
from librarian.models import Commit, ConventionalCommit


def _commit(message: str) -> Commit:
    return Commit(hash="abc123", message=message, when=at(1))


class TestParseCommits:
    """Tests for parse_commits()."""

    def test_simple_header(self) -> None:
        [parsed] = parse_commits(_commit("feat: add a thing"), "lib-a")

        assert parsed.type == "feat"
        assert parsed.subject == "add a thing"
        assert parsed.scope == ""
        assert parsed.library_id == "lib-a"
        assert parsed.commit_hash == "abc123"
        assert parsed.when == at(1)
        assert not parsed.is_breaking

    def test_scope_and_breaking_marker(self) -> None:
        [parsed] = parse_commits(_commit("fix(storage)!: drop old field"), "lib")

        assert parsed.type == "fix"
        assert parsed.scope == "storage"
        assert parsed.is_breaking

    def test_body_and_footers(self) -> None:
        message = (
            "feat: add field\n"
            "\n"
            "First body line.\n"
            "Second body line.\n"
            "\n"
            "PiperOrigin-RevId: 573342\n"
            "Source-Link: https://example.com/x"
        )

        [parsed] = parse_commits(_commit(message), "lib")

        assert parsed.body == "First body line.\nSecond body line."
        assert parsed.footers == {
            "PiperOrigin-RevId": "573342",
            "Source-Link": "https://example.com/x",
        }
        assert parsed.piper_id == "573342"

    def test_footer_directly_after_header(self) -> None:
        [parsed] = parse_commits(_commit("feat: x\nPiperOrigin-RevId: 1"), "lib")

        assert parsed.footers == {"PiperOrigin-RevId": "1"}
        assert parsed.body == ""

    def test_breaking_change_footer(self) -> None:
        message = "feat: x\n\nBREAKING CHANGE: removed the old API\nand more"

        [parsed] = parse_commits(_commit(message), "lib")

        assert parsed.is_breaking
        assert parsed.footers["BREAKING CHANGE"] == "removed the old API\nand more"

    def test_key_value_line_in_body_paragraph(self) -> None:
        message = (
            "fix: x\n\nNote: this is body\n\nMore body text.\n\nPiperOrigin-RevId: 1"
        )

        [parsed] = parse_commits(_commit(message), "lib")

        assert parsed.body == "Note: this is body\n\nMore body text."
        assert parsed.footers == {"PiperOrigin-RevId": "1"}

    def test_conventional_line_in_body_paragraph(self) -> None:
        message = "feat: add X\n\ndocs: update comment for Y\n\nPiperOrigin-RevId: 123"

        [parsed] = parse_commits(_commit(message), "lib")

        assert parsed.body == "docs: update comment for Y"
        assert parsed.footers == {"PiperOrigin-RevId": "123"}

    def test_body_without_footers(self) -> None:
        [parsed] = parse_commits(_commit("feat: x\n\nJust a body.\nTwo lines."), "lib")

        assert parsed.body == "Just a body.\nTwo lines."
        assert parsed.footers == {}

    def test_unconventional_message_yields_nothing(self) -> None:
        assert parse_commits(_commit("Update README"), "lib") == []

    def test_empty_message_raises(self) -> None:
        with pytest.raises(EmptyCommitMessageError):
            parse_commits(_commit("   \n"), "lib")

    def test_nested_commits(self) -> None:
        message = (
            "chore: regenerate\n"
            "\n"
            "BEGIN_COMMIT_OVERRIDE\n"
            "BEGIN_NESTED_COMMIT\n"
            "feat: first change\n"
            "\n"
            "PiperOrigin-RevId: 1\n"
            "END_NESTED_COMMIT\n"
            "BEGIN_NESTED_COMMIT\n"
            "fix: second change\n"
            "END_NESTED_COMMIT\n"
            "END_COMMIT_OVERRIDE"
        )

        parsed = parse_commits(_commit(message), "lib")

        assert [(c.type, c.subject) for c in parsed] == [
            ("feat", "first change"),
            ("fix", "second change"),
        ]
        assert all(c.is_nested for c in parsed)
        assert parsed[0].piper_id == "1"

    def test_empty_nested_block_does_not_swallow_the_next(self) -> None:
        message = (
            "BEGIN_COMMIT_OVERRIDE\n"
            "BEGIN_NESTED_COMMIT\n"
            "END_NESTED_COMMIT\n"
            "BEGIN_NESTED_COMMIT\n"
            "fix: after an empty block\n"
            "END_NESTED_COMMIT\n"
            "END_COMMIT_OVERRIDE"
        )

        parsed = parse_commits(_commit(message), "lib")

        assert [(c.type, c.subject) for c in parsed] == [("fix", "after an empty block")]

    def test_bulk_threshold(self) -> None:
        ids = ",".join(f"lib-{i}" for i in range(BULK_CHANGE_THRESHOLD))
        few = ",".join(f"lib-{i}" for i in range(BULK_CHANGE_THRESHOLD - 1))

        [bulk] = parse_commits(_commit(f"chore: x\n\nLibrary-IDs: {ids}"), "lib-0")
        [normal] = parse_commits(_commit(f"chore: x\n\nLibrary-IDs: {few}"), "lib-0")

        assert bulk.is_bulk
        assert not normal.is_bulk


class TestLibraryIds:
    def test_splits_and_strips(self) -> None:
        commit = ConventionalCommit(
            type="chore", subject="x", footers={"Library-IDs": "a, b,,c"}
        )

        assert library_ids(commit) == ["a", "b", "c"]

    def test_missing_footer(self) -> None:
        assert library_ids(ConventionalCommit(type="chore", subject="x")) == []
