"""Librarian pipelines: add → tidy → generate → release → bump.

Each pipeline takes a Config, does its work, and returns an updated copy for
the caller to save:

- add_library: append a library for some API paths, then tidy
- tidy_manifest: validate the manifest and strip derivable values
- generate_libraries: resolve libraries, run the language generator for each
  one concurrently, advance their last generated commit and build the
  generation pull request body
- prepare_release: find release-worthy changes per library, pick the new
  versions and build the release notes
- bump_library: move one library to its next version

Git and the language container are reached through a Repository and a
generator callable so that tests can substitute both.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from pathlib import Path

from .changes import commits_since_last_release, highest_change
from .errors import DuplicateLibraryError, LibrarianError, LibraryNotFoundError
from .languages import derive_library_name, determine_tag_format, format_tag
from .library import resolve_library
from .models import API, Config, GitHubRepository, Library, LibraryState, VersionBump
from .release_notes import (
    format_generation_pr_body,
    format_onboard_pr_body,
    format_release_notes,
)
from .repository import Repository
from .shell import run, step
from .tidy import tidy_config
from .versions import calculate_next_version, derive_next_version, max_version

# Runs code generation for one resolved library and reports its new state.
Generator = Callable[[Library, LibraryState], LibraryState]

# Failures of a single library's generation; anything else aborts the run.
GENERATION_ERRORS = (LibrarianError, subprocess.CalledProcessError, OSError)


def state_for(library: Library) -> LibraryState:
    """Initial state of a newly resolved library."""
    return LibraryState(
        id=library.name,
        version=library.version,
        apis=[api.model_copy() for api in library.apis],
        source_roots=[library.output] if library.output else [],
    )


def _replace_state(config: Config, updated: Iterable[LibraryState]) -> Config:
    by_id = {lib.id: lib for lib in updated}
    new = config.model_copy(deep=True)
    libraries = [by_id.pop(lib.id, lib) for lib in new.state.libraries]
    libraries.extend(by_id.values())
    new.state.libraries = libraries
    return new


# Add / tidy


def add_library(config: Config, *apis: str, year: int | None = None) -> Config:
    """Add a library generated from the given API paths.

    The name is derived from the first API path.

    Raises:
        LibrarianError: If no API path is given.
        DuplicateLibraryError: If a library with the derived name exists.
    """
    if not apis:
        raise LibrarianError("must provide at least one API")
    name = derive_library_name(config.language, apis[0])
    if any(lib.name == name for lib in config.libraries):
        raise DuplicateLibraryError(f"library already exists in config: {name}")

    year = year or datetime.now(timezone.utc).year
    new = config.model_copy(deep=True)
    new.libraries.append(
        Library(name=name, copyright_year=str(year), apis=[API(path=api) for api in apis])
    )
    new.libraries.sort(key=lambda lib: lib.name)
    print(f"  added {name} ({', '.join(apis)})")
    return tidy_config(new)


def tidy_manifest(config: Config, googleapis_dir: Path | None = None) -> Config:
    step("Tidying manifest")
    tidied = tidy_config(config, googleapis_dir)
    print(f"  {len(tidied.libraries)} libraries")
    return tidied


def onboard_library(
    config: Config,
    source_repo: Repository,
    api_path: str,
    *,
    googleapis_dir: Path | None = None,
) -> tuple[Config, str]:
    """Record state for the library owning api_path and build the onboarding body.

    Raises:
        LibraryNotFoundError: If no library is generated from api_path.
        PiperIDNotFoundError: If the service config's latest commit has no
                              Piper ID.
    """
    step(f"Onboarding {api_path}")
    name = derive_library_name(config.language, api_path)
    library = next((lib for lib in config.libraries if lib.name == name), None)
    if library is None:
        raise LibraryNotFoundError(f"no library for api {api_path}")

    resolved = resolve_library(
        config.language, library, config.default, googleapis_dir=googleapis_dir
    )
    new = config
    if config.state.library(name) is None:
        new = _replace_state(config, [state_for(resolved)])
    body = format_onboard_pr_body(
        source_repo=source_repo, state=new.state, api_path=api_path, library_id=name
    )
    return new, body


# Generate


def container_generator(image: str, source_dir: Path, repo_dir: Path) -> Generator:
    """Generator that runs the language container once per library.

    The container reads API specifications from /source and writes the
    library into /output (the library's output directory in repo_dir).
    """

    def generate(library: Library, state: LibraryState) -> LibraryState:
        output = (repo_dir / library.output).resolve()
        output.mkdir(parents=True, exist_ok=True)
        run(
            "docker",
            "run",
            "--rm",
            "-v",
            f"{source_dir.resolve()}:/source:ro",
            "-v",
            f"{output}:/output",
            image,
            "generate",
            f"--library-id={library.name}",
        )
        return state

    return generate


def _select(config: Config, library_ids: Iterable[str] | None) -> list[Library]:
    if library_ids is None:
        return [lib for lib in config.libraries if not lib.skip_generate]
    wanted = list(library_ids)
    by_name = {lib.name: lib for lib in config.libraries}
    missing = [name for name in wanted if name not in by_name]
    if missing:
        raise LibraryNotFoundError(f"libraries not found: {', '.join(missing)}")
    return [by_name[name] for name in wanted]


def generate_libraries(
    config: Config,
    *,
    source_repo: Repository,
    language_repo: Repository,
    generator: Generator,
    library_ids: Iterable[str] | None = None,
    googleapis_dir: Path | None = None,
) -> tuple[Config, str]:
    """Generate libraries and build the generation pull request body.

    A library whose generator fails is reported in the body and keeps its
    old state; its siblings carry on.

    Returns:
        Tuple of (updated config, pull request body).
    """
    step("Resolving libraries")
    resolved: list[Library] = []
    for library in _select(config, library_ids):
        resolved.append(
            resolve_library(
                config.language, library, config.default, googleapis_dir=googleapis_dir
            )
        )
        print(f"  {library.name} → {resolved[-1].output}")

    states = {
        lib.name: config.state.library(lib.name) or state_for(lib) for lib in resolved
    }

    step(f"Generating {len(resolved)} libraries")
    failed: list[str] = []
    generated: list[LibraryState] = []
    if resolved:
        with ThreadPoolExecutor(max_workers=len(resolved)) as pool:
            futures = {
                lib.name: pool.submit(
                    generator, lib, states[lib.name].model_copy(deep=True)
                )
                for lib in resolved
            }
            for name, future in futures.items():
                try:
                    generated.append(future.result())
                except GENERATION_ERRORS as exc:
                    print(f"  {name}: FAILED ({exc})")
                    failed.append(name)
                else:
                    print(f"  {name}: ok")

    head = source_repo.head_hash()
    id_to_commits = {
        state.id: states[state.id].last_generated_commit for state in generated
    }
    updated = _replace_state(
        config,
        [state.model_copy(update={"last_generated_commit": head}) for state in generated],
    )

    step("Building pull request body")
    body = format_generation_pr_body(
        source_repo=source_repo,
        language_repo=language_repo,
        state=updated.state,
        id_to_commits=id_to_commits,
        failed_libraries=failed,
    )
    return updated, body


# Release


def release_tag(language: str, library: LibraryState) -> str:
    """Tag of the library's current release, or "" if it was never released."""
    if not library.version:
        return ""
    tag_format = determine_tag_format(language, library.tag_format)
    return format_tag(tag_format, library.id, library.version)


def prepare_library_release(
    language: str,
    repo: Repository,
    library: LibraryState,
    version_override: str = "",
) -> LibraryState:
    """Decide whether and at which version a library is released.

    The commit-derived version is raised to version_override or to the
    state's next_version when either is higher.
    """
    commits = commits_since_last_release(repo, library, release_tag(language, library))
    if not commits:
        print(f"  {library.id}: no changes")
        return library.model_copy(update={"release_triggered": False, "changes": []})

    current = library.version or "0.0.0"
    new_version = derive_next_version(highest_change(commits), current)
    for candidate in (version_override, library.next_version):
        if candidate and max_version(new_version, candidate) == candidate:
            new_version = candidate

    if new_version == current:
        print(f"  {library.id}: {len(commits)} commits, no version change")
        return library.model_copy(update={"release_triggered": False, "changes": commits})

    print(f"  {library.id}: {current} → {new_version}")
    return library.model_copy(
        update={
            "previous_version": library.version,
            "version": new_version,
            "next_version": "",
            "changes": commits,
            "release_triggered": True,
        }
    )


def prepare_release(
    config: Config,
    language_repo: Repository,
    *,
    library_id: str | None = None,
    version_override: str = "",
    today: date | None = None,
) -> tuple[Config, str]:
    """Prepare a release of every library (or just library_id).

    Returns:
        Tuple of (updated config, release pull request notes).
    """
    step("Preparing release")
    if library_id is not None:
        library = config.state.library(library_id)
        if library is None:
            raise LibraryNotFoundError(f"library {library_id} not found in state")
        candidates = [library]
    else:
        if version_override:
            raise LibrarianError("a version override needs a single library")
        candidates = list(config.state.libraries)

    prepared = [
        prepare_library_release(config.language, language_repo, lib, version_override)
        for lib in candidates
    ]
    updated = _replace_state(config, prepared)

    step("Building release notes")
    notes = format_release_notes(
        updated.state, GitHubRepository.parse(config.repo), today=today
    )
    return updated, notes


def bump_library(
    config: Config, library_id: str, version_override: str = ""
) -> tuple[Config, VersionBump]:
    """Move a library to its next version without looking at commits."""
    library = config.state.library(library_id)
    if library is None:
        raise LibraryNotFoundError(f"library {library_id} not found in state")

    new_version = calculate_next_version(library, version_override)
    bump = VersionBump(old=library.version, new=new_version)
    updated = _replace_state(
        config,
        [
            library.model_copy(
                update={
                    "previous_version": library.version,
                    "version": new_version,
                    "next_version": "",
                }
            )
        ],
    )
    print(f"  {library_id}: {bump.old} → {bump.new}")
    return updated, bump
