"""Find the conventional commits relevant to a library.

Two kinds of history are inspected:

- generation: commits in the source (API specification) repository that
  touch a library's API paths since its last generated commit
- release: commits in the language repository that touch a library's
  source roots since its last release tag
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Iterable, Sequence

from .commits import parse_commits
from .errors import LibrarianError
from .models import Commit, ConventionalCommit, LibraryState
from .repository import Repository
from .versions import ChangeLevel


def is_under_any_path(file: str, paths: Iterable[str]) -> bool:
    """Return True if file lies inside any of paths (a path contains itself)."""
    for path in paths:
        if posixpath.relpath(file, path or ".").startswith(".."):
            continue
        return True
    return False


def should_include_for_release(
    files: Iterable[str], source_roots: Sequence[str], exclude_paths: Sequence[str]
) -> bool:
    """True if any file is under a source root and not under an excluded path."""
    return any(
        is_under_any_path(f, source_roots) and not is_under_any_path(f, exclude_paths)
        for f in files
    )


def should_include_for_generation(files: Iterable[str], api_paths: Sequence[str]) -> bool:
    """True if any file is under one of the library's API paths."""
    return any(is_under_any_path(f, api_paths) for f in files)


def to_conventional_commits(
    repo: Repository,
    library: LibraryState,
    commits: Iterable[Commit],
    files_filter: Callable[[list[str]], bool],
) -> list[ConventionalCommit]:
    """Parse the commits whose changed files pass files_filter."""
    result: list[ConventionalCommit] = []
    for commit in commits:
        try:
            files = repo.changed_files_in_commit(commit.hash)
        except LibrarianError as exc:
            raise LibrarianError(
                f"failed to get changed files for commit {commit.hash}: {exc}"
            ) from exc
        if not files_filter(files):
            continue
        try:
            parsed = parse_commits(commit, library.id)
        except LibrarianError as exc:
            raise LibrarianError(f"failed to parse commit {commit.hash}: {exc}") from exc
        result.extend(parsed)
    return result


def commits_since_last_generation(
    repo: Repository, library: LibraryState, last_generated_commit: str
) -> list[ConventionalCommit]:
    """Source-repository commits touching the library's APIs since generation."""
    if not last_generated_commit:
        print(f"  {library.id}: no last generated commit, skipping")
        return []

    api_paths = [api.path for api in library.apis]
    try:
        commits = repo.get_commits_for_paths_since_commit(api_paths, last_generated_commit)
    except LibrarianError as exc:
        raise LibrarianError(
            f"failed to get commits for library {library.id} "
            f"at commit {last_generated_commit}: {exc}"
        ) from exc

    return to_conventional_commits(
        repo,
        library,
        commits,
        lambda files: should_include_for_generation(files, api_paths),
    )


def commits_since_last_release(
    repo: Repository, library: LibraryState, tag: str
) -> list[ConventionalCommit]:
    """Language-repository commits touching the library's sources since tag."""
    try:
        commits = repo.get_commits_for_paths_since_tag(library.source_roots, tag)
    except LibrarianError as exc:
        raise LibrarianError(
            f"failed to get commits for library {library.id}: {exc}"
        ) from exc

    return to_conventional_commits(
        repo,
        library,
        commits,
        lambda files: should_include_for_release(
            files, library.source_roots, library.release_exclude_paths
        ),
    )


def highest_change(commits: Iterable[ConventionalCommit]) -> ChangeLevel:
    """Highest version impact among commits.

    Nested commits always count as minor so that every generation pull
    request moves the minor version.
    """
    highest = ChangeLevel.NONE
    for commit in commits:
        if commit.is_nested:
            change = ChangeLevel.MINOR
        elif commit.is_breaking:
            change = ChangeLevel.MAJOR
        elif commit.type == "feat":
            change = ChangeLevel.MINOR
        elif commit.type == "fix":
            change = ChangeLevel.PATCH
        else:
            change = ChangeLevel.NONE
        highest = max(highest, change)
    return highest
