"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from librarian.errors import CommitNotFoundError
from librarian.models import Commit

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """A timestamp `minutes` after T0."""
    return T0 + timedelta(minutes=minutes)


@dataclass
class FakeRepository:
    """In-memory Repository.

    Commits are kept oldest first. A commit "touches" the files listed for it
    in `files`; path queries match files under the given paths.
    """

    commits: list[Commit] = field(default_factory=list)
    files: dict[str, list[str]] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    clean: bool = True
    dirty_files: list[str] = field(default_factory=list)

    def add(self, commit_hash: str, message: str, when: datetime, *files: str) -> Commit:
        commit = Commit(hash=commit_hash, message=message, when=when)
        self.commits.append(commit)
        self.files[commit_hash] = list(files)
        return commit

    def _touches(self, commit: Commit, paths: Sequence[str]) -> bool:
        return any(
            f == p or f.startswith(p.rstrip("/") + "/")
            for f in self.files.get(commit.hash, [])
            for p in paths
        )

    def _after(self, commit_hash: str) -> list[Commit]:
        for i, commit in enumerate(self.commits):
            if commit.hash == commit_hash:
                return self.commits[i + 1 :]
        raise CommitNotFoundError(f"commit {commit_hash} not found")

    def get_commit(self, commit_hash: str) -> Commit:
        for commit in self.commits:
            if commit.hash == commit_hash:
                return commit
        raise CommitNotFoundError(f"commit {commit_hash} not found")

    def get_commits_for_paths_since_commit(
        self, paths: Sequence[str], since: str
    ) -> list[Commit]:
        return [c for c in reversed(self._after(since)) if self._touches(c, paths)]

    def get_commits_for_paths_since_tag(
        self, paths: Sequence[str], tag: str
    ) -> list[Commit]:
        commits = self._after(self.tags[tag]) if tag else self.commits
        return [c for c in reversed(commits) if self._touches(c, paths)]

    def changed_files_in_commit(self, commit_hash: str) -> list[str]:
        return list(self.files.get(commit_hash, []))

    def get_latest_commit(self, path: str) -> Commit:
        for commit in reversed(self.commits):
            if self._touches(commit, [path]):
                return commit
        raise CommitNotFoundError(f"no latest commit for {path}")

    def is_clean(self) -> bool:
        return self.clean

    def head_hash(self) -> str:
        if not self.commits:
            raise CommitNotFoundError("repository has no commits")
        return self.commits[-1].hash

    def changed_files(self) -> list[str]:
        return list(self.dirty_files)


@pytest.fixture
def source_repo() -> FakeRepository:
    """Source repository with a base commit every library was generated at."""
    repo = FakeRepository()
    repo.add("base0000aaaa", "chore: initial import", at(0), "README.md")
    return repo


@pytest.fixture
def language_repo() -> FakeRepository:
    """Language repository whose HEAD touched every generated output."""
    repo = FakeRepository()
    repo.add(
        "gen00000bbbb",
        "chore: regenerate",
        at(100),
        "src/lib-a/client.py",
        "src/lib-b/client.py",
    )
    return repo


@pytest.fixture
def fixed_version(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pin the librarian version stamped into rendered bodies."""
    monkeypatch.setattr("librarian.release_notes.librarian_version", lambda: "1.2.3")
    return "1.2.3"
