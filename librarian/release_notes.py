"""Pull request bodies and release notes.

Renders three artifacts from the templates in librarian/templates/:

- the generation pull request body: every source commit since each
  library's last generation, grouped by (PiperOrigin-RevId, subject)
- the onboarding pull request body for a newly added API
- the release pull request notes: one collapsible section per released
  library plus a trailing section for bulk changes

Hashes are shown shortened to SHORT_SHA_LENGTH characters everywhere.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel, Field

from .changes import commits_since_last_generation, should_include_for_release
from .commits import library_ids, parse_commits
from .errors import (
    EmptyCommitMessageError,
    LibrarianError,
    LibraryNotFoundError,
    PiperIDNotFoundError,
)
from .languages import determine_tag_format, format_tag
from .models import (
    LIBRARY_IDS,
    PIPER_ORIGIN_REV_ID,
    Commit,
    ConventionalCommit,
    GitHubRepository,
    LibrarianState,
    LibraryState,
)
from .repository import Repository
from .version import librarian_version

NO_COMMITS_MESSAGE = "No commit is found since last generation"
SOURCE_REPO = "googleapis/googleapis"
SHORT_SHA_LENGTH = 8
TEMPLATES_DIR = Path(__file__).parent / "templates"
UNIX_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

COMMIT_TYPE_TO_HEADING = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "perf": "Performance Improvements",
    "revert": "Reverts",
    "docs": "Documentation",
    "style": "Styles",
    "chore": "Miscellaneous Chores",
    "refactor": "Code Refactoring",
    "test": "Tests",
    "build": "Build System",
    "ci": "Continuous Integration",
}

# Only these types make it into release notes, in this order.
COMMIT_TYPE_ORDER = ("feat", "fix", "perf", "revert", "docs", "chore")


def short_sha(sha: str) -> str:
    return sha[:SHORT_SHA_LENGTH]


_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)
_env.filters["short_sha"] = short_sha


def _render(template_name: str, **context: object) -> str:
    return _env.get_template(template_name).render(**context).strip()


class CommitSection(BaseModel):
    heading: str
    commits: list[ConventionalCommit]


class ReleaseNoteSection(BaseModel):
    library_id: str
    new_version: str
    previous_tag: str
    new_tag: str
    date: str
    commit_sections: list[CommitSection] = Field(default_factory=list)


class BulkChange(BaseModel):
    commit: ConventionalCommit
    library_ids: str


# Generation


def language_repo_changed_files(language_repo: Repository) -> list[str]:
    """Files changed in the language repository by the current run.

    That is the HEAD commit when the tree is clean (changes were committed),
    otherwise the outstanding local changes.
    """
    if language_repo.is_clean():
        return language_repo.changed_files_in_commit(language_repo.head_hash())
    return language_repo.changed_files()


def find_latest_generation_commit(
    repo: Repository,
    libraries: Iterable[LibraryState],
    id_to_commits: Mapping[str, str],
) -> Commit | None:
    """Return the newest of the libraries' last generated commits.

    Libraries without a recorded commit are skipped. Only commits later than
    the Unix epoch count, and ties keep the first library seen. Returns None
    when no library has such a commit.
    """
    latest: Commit | None = None
    for library in libraries:
        commit_hash = id_to_commits.get(library.id, "")
        if not commit_hash:
            continue
        try:
            commit = repo.get_commit(commit_hash)
        except LibrarianError as exc:
            raise LibrarianError(
                f"can't find last generated commit for {library.id}: {exc}"
            ) from exc
        if commit.when > (latest.when if latest else UNIX_EPOCH):
            latest = commit
    return latest


def group_by_id_and_subject(
    commits: Iterable[ConventionalCommit],
) -> list[ConventionalCommit]:
    """Merge commits sharing a PiperOrigin-RevId footer and subject.

    The first commit of each group is kept, with a Library-IDs footer listing
    every contributing library in encounter order. Commits without the Piper
    footer are never merged; they get their own library as Library-IDs.
    Returns copies; the input commits are left untouched.
    """
    result: list[ConventionalCommit] = []
    groups: dict[tuple[str, str], tuple[int, list[str]]] = {}
    for commit in commits:
        piper_id = commit.footers.get(PIPER_ORIGIN_REV_ID)
        if piper_id is not None:
            key = (piper_id, commit.subject)
            if key in groups:
                index, ids = groups[key]
                if commit.library_id not in ids:
                    ids.append(commit.library_id)
                    result[index].footers[LIBRARY_IDS] = ",".join(ids)
                continue
            groups[key] = (len(result), [commit.library_id])
        footers = {**commit.footers, LIBRARY_IDS: commit.library_id}
        result.append(commit.model_copy(update={"footers": footers}))
    return result


def format_generation_pr_body(
    *,
    source_repo: Repository,
    language_repo: Repository,
    state: LibrarianState,
    id_to_commits: Mapping[str, str],
    failed_libraries: Sequence[str] = (),
) -> str:
    """Build the body of a generation pull request.

    Only libraries whose ID appears in id_to_commits are considered, and
    only if the current run actually changed files under their source roots.

    Returns NO_COMMITS_MESSAGE when there is nothing to describe.

    Raises:
        LibrarianError: If the language repository changes, a library's
                        commits or the start commit cannot be determined.
    """
    try:
        changed_files = language_repo_changed_files(language_repo)
    except LibrarianError as exc:
        raise LibrarianError(f"failed to fetch changes in language repo: {exc}") from exc

    all_commits: list[ConventionalCommit] = []
    for library in state.libraries:
        if library.id not in id_to_commits:
            continue
        # An upstream change the generator did not turn into a diff here is
        # not worth describing for this library.
        if not should_include_for_release(
            changed_files, library.source_roots, library.release_exclude_paths
        ):
            continue
        try:
            commits = commits_since_last_generation(
                source_repo, library, id_to_commits[library.id]
            )
        except LibrarianError as exc:
            raise LibrarianError(
                f"failed to fetch conventional commits for library {library.id}: {exc}"
            ) from exc
        all_commits.extend(commits)

    if not all_commits:
        return NO_COMMITS_MESSAGE

    grouped = sorted(
        group_by_id_and_subject(all_commits), key=lambda c: c.when, reverse=True
    )

    try:
        start_commit = find_latest_generation_commit(
            source_repo, state.libraries, id_to_commits
        )
    except LibrarianError as exc:
        raise LibrarianError(f"failed to find the start commit: {exc}") from exc
    if start_commit is None:
        raise LibrarianError(
            "failed to find the start commit: no library has a last generated commit"
        )

    return _render(
        "generation_pr_body.md.j2",
        commits=grouped,
        source_repo=SOURCE_REPO,
        start_sha=start_commit.hash,
        end_sha=grouped[0].commit_hash,
        librarian_version=librarian_version(),
        image_version=state.image,
        failed_libraries=list(failed_libraries),
    )


# Onboarding


def find_piper_id_from(commit: Commit, library_id: str) -> str:
    """Extract the PiperOrigin-RevId footer from a commit.

    Raises:
        PiperIDNotFoundError: If the commit is empty, not conventional, or
                              has no Piper footer.
    """
    try:
        commits = parse_commits(commit, library_id)
    except EmptyCommitMessageError as exc:
        raise PiperIDNotFoundError(
            f"piper id not found in commit {commit.hash}: {exc}"
        ) from exc
    if not commits or PIPER_ORIGIN_REV_ID not in commits[0].footers:
        raise PiperIDNotFoundError(f"piper id not found in commit {commit.hash}")
    return commits[0].footers[PIPER_ORIGIN_REV_ID]


def get_piper_id(
    state: LibrarianState, source_repo: Repository, api_path: str, library_id: str
) -> str:
    """Piper ID of the latest commit touching an API's service config."""
    library = state.library(library_id)
    if library is None:
        raise LibraryNotFoundError(f"library {library_id} not found in state")
    service_config = next(
        (api.service_config for api in library.apis if api.path == api_path), ""
    )
    commit = source_repo.get_latest_commit(service_config or api_path)
    piper_id = find_piper_id_from(commit, library_id)
    print(f"  found piper id {piper_id} for {library_id}")
    return piper_id


def format_onboard_pr_body(
    *,
    source_repo: Repository,
    state: LibrarianState,
    api_path: str,
    library_id: str,
) -> str:
    """Build the body of a pull request onboarding a new library."""
    piper_id = get_piper_id(state, source_repo, api_path, library_id)
    return _render(
        "onboarding_pr_body.md.j2",
        piper_id=piper_id,
        library_id=library_id,
        librarian_version=librarian_version(),
        image_version=state.image,
    )


# Release


def format_library_release_notes(
    library: LibraryState, language: str, today: date
) -> ReleaseNoteSection:
    """Release notes section for one library, bulk commits excluded.

    library.version must already hold the new version.
    """
    tag_format = determine_tag_format(language, library.tag_format)
    by_type: dict[str, list[ConventionalCommit]] = {}
    for commit in library.changes:
        if commit.is_bulk:
            continue
        by_type.setdefault(commit.type, []).append(commit)

    sections = [
        CommitSection(
            heading=COMMIT_TYPE_TO_HEADING[commit_type], commits=by_type[commit_type]
        )
        for commit_type in COMMIT_TYPE_ORDER
        if commit_type in by_type
    ]
    return ReleaseNoteSection(
        library_id=library.id,
        new_version=library.version,
        previous_tag=format_tag(tag_format, library.id, library.previous_version),
        new_tag=format_tag(tag_format, library.id, library.version),
        date=today.isoformat(),
        commit_sections=sections,
    )


def collect_bulk_changes(libraries: Iterable[LibraryState]) -> list[BulkChange]:
    """Bulk commits of the given libraries, once each, sorted by hash.

    Commits are identified by (hash, subject). The affected libraries come
    from the Library-IDs footer, or from the libraries the commit was found
    in when the footer is missing.
    """
    seen: dict[tuple[str, str], tuple[ConventionalCommit, list[str]]] = {}
    for library in libraries:
        for commit in library.changes:
            if not commit.is_bulk:
                continue
            key = (commit.commit_hash, commit.subject)
            if key not in seen:
                seen[key] = (commit, [])
            found_in = seen[key][1]
            if library.id not in found_in:
                found_in.append(library.id)

    changes = [
        BulkChange(commit=commit, library_ids=",".join(library_ids(commit) or found_in))
        for commit, found_in in seen.values()
    ]
    return sorted(changes, key=lambda change: change.commit.commit_hash)


def format_release_notes(
    state: LibrarianState, repo: GitHubRepository, *, today: date | None = None
) -> str:
    """Build the body of a release pull request.

    Only libraries with release_triggered set get a section. With none, the
    body is just the version header.
    """
    today = today or date.today()
    released = [library for library in state.libraries if library.release_triggered]
    sections = [
        format_library_release_notes(library, state.language, today)
        for library in released
    ]
    return _render(
        "release_notes.md.j2",
        librarian_version=librarian_version(),
        image_version=state.image,
        repo=repo,
        sections=sections,
        bulk_changes=collect_bulk_changes(released),
    )
