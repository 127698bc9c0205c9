"""Read access to git repositories.

The note engine only needs a handful of queries, captured by the Repository
protocol. GitRepository answers them by shelling out to git; tests substitute
an in-memory implementation.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol

from .errors import CommitNotFoundError, RepositoryError
from .models import Commit
from .shell import git

# Unit and record separators keep multi-line messages intact.
_LOG_FORMAT = "--format=%H%x1f%cI%x1f%B%x1e"


class Repository(Protocol):
    def get_commit(self, commit_hash: str) -> Commit: ...

    def get_commits_for_paths_since_commit(
        self, paths: Sequence[str], since: str
    ) -> list[Commit]: ...

    def get_commits_for_paths_since_tag(
        self, paths: Sequence[str], tag: str
    ) -> list[Commit]: ...

    def changed_files_in_commit(self, commit_hash: str) -> list[str]: ...

    def get_latest_commit(self, path: str) -> Commit: ...

    def is_clean(self) -> bool: ...

    def head_hash(self) -> str: ...

    def changed_files(self) -> list[str]: ...


def parse_log(output: str) -> list[Commit]:
    """Parse `git log` output produced with _LOG_FORMAT."""
    commits: list[Commit] = []
    for record in output.split("\x1e"):
        record = record.strip("\n")
        if not record.strip():
            continue
        commit_hash, when, message = record.split("\x1f", 2)
        commits.append(
            Commit(
                hash=commit_hash.strip(),
                when=datetime.fromisoformat(when.strip()),
                message=message.strip(),
            )
        )
    return commits


class GitRepository:
    """Repository backed by a local git checkout."""

    def __init__(self, path: Path | str = ".") -> None:
        self.path = Path(path)

    def _git(self, *args: str) -> str:
        try:
            return git(*args, cwd=self.path)
        except subprocess.CalledProcessError as exc:
            raise RepositoryError(
                f"git {' '.join(args)} failed in {self.path}: {exc.stderr or exc}"
            ) from exc

    def get_commit(self, commit_hash: str) -> Commit:
        try:
            output = self._git("show", "-s", _LOG_FORMAT, commit_hash)
        except RepositoryError as exc:
            raise CommitNotFoundError(f"commit {commit_hash} not found") from exc
        commits = parse_log(output)
        if not commits:
            raise CommitNotFoundError(f"commit {commit_hash} not found")
        return commits[0]

    def get_commits_for_paths_since_commit(
        self, paths: Sequence[str], since: str
    ) -> list[Commit]:
        """Commits after `since` (exclusive) touching any of paths, newest first."""
        if not paths:
            return []
        return parse_log(self._git("log", _LOG_FORMAT, f"{since}..HEAD", "--", *paths))

    def get_commits_for_paths_since_tag(
        self, paths: Sequence[str], tag: str
    ) -> list[Commit]:
        """Commits after `tag` touching any of paths; all history if tag is empty."""
        if not paths:
            return []
        revision = f"{tag}..HEAD" if tag else "HEAD"
        return parse_log(self._git("log", _LOG_FORMAT, revision, "--", *paths))

    def changed_files_in_commit(self, commit_hash: str) -> list[str]:
        output = self._git(
            "diff-tree", "--no-commit-id", "--name-only", "-r", "--root", commit_hash
        )
        return output.splitlines()

    def get_latest_commit(self, path: str) -> Commit:
        commits = parse_log(self._git("log", "-1", _LOG_FORMAT, "--", path))
        if not commits:
            raise CommitNotFoundError(f"no latest commit for {path}")
        return commits[0]

    def is_clean(self) -> bool:
        return not self._git("status", "--porcelain")

    def head_hash(self) -> str:
        return self._git("rev-parse", "HEAD")

    def changed_files(self) -> list[str]:
        """Tracked modifications plus untracked files, relative to the root."""
        modified = self._git("diff", "--name-only", "HEAD").splitlines()
        untracked = self._git("ls-files", "--others", "--exclude-standard").splitlines()
        return sorted(set(modified) | set(untracked))
