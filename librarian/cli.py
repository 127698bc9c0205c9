"""CLI entry point for librarian."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from librarian.errors import LibrarianError
from librarian.manifest import MANIFEST_FILE, load_config, save_config
from librarian.pipeline import (
    add_library,
    bump_library,
    container_generator,
    generate_libraries,
    onboard_library,
    prepare_release,
    tidy_manifest,
)
from librarian.repository import GitRepository


@contextmanager
def _errors_as_click_exceptions() -> Iterator[None]:
    try:
        yield
    except LibrarianError as exc:
        raise click.ClickException(str(exc)) from exc


def _emit(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text + "\n")
        click.echo(f"✓ Wrote {output}")
    else:
        click.echo(text)


manifest_option = click.option(
    "--manifest",
    type=click.Path(dir_okay=False, path_type=Path),
    default=MANIFEST_FILE,
    show_default=True,
    help="Path to the librarian manifest.",
)
output_option = click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the pull request body here instead of stdout.",
)
googleapis_option = click.option(
    "--googleapis",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Local googleapis checkout used to find service configs.",
)


@click.group()
@click.version_option(package_name="librarian")
def cli() -> None:
    """Generate, tidy and release client libraries from a manifest."""


@cli.command()
@click.argument("apis", nargs=-1, required=True)
@manifest_option
@click.option(
    "--onboard",
    "source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Source repository; also print the onboarding pull request body.",
)
@output_option
def add(apis: tuple[str, ...], manifest: Path, source: Path | None, output: str | None) -> None:
    """Add a library generated from APIS to the manifest."""
    with _errors_as_click_exceptions():
        config = add_library(load_config(manifest), *apis)
        if source is not None:
            config, body = onboard_library(
                config, GitRepository(source), apis[0], googleapis_dir=source
            )
            _emit(body, output)
        save_config(manifest, config)


@cli.command()
@manifest_option
@googleapis_option
def tidy(manifest: Path, googleapis: Path | None) -> None:
    """Validate the manifest and remove derivable values."""
    with _errors_as_click_exceptions():
        save_config(manifest, tidy_manifest(load_config(manifest), googleapis))


@cli.command()
@manifest_option
@click.option(
    "--source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=True,
    help="Checkout of the API specification repository.",
)
@click.option("--library", "libraries", multiple=True, help="Only generate these libraries.")
@output_option
def generate(
    manifest: Path, source: Path, libraries: tuple[str, ...], output: str | None
) -> None:
    """Regenerate libraries and print the generation pull request body."""
    repo_dir = manifest.resolve().parent
    with _errors_as_click_exceptions():
        config = load_config(manifest)
        config, body = generate_libraries(
            config,
            source_repo=GitRepository(source),
            language_repo=GitRepository(repo_dir),
            generator=container_generator(config.image, source, repo_dir),
            library_ids=libraries or None,
            googleapis_dir=source,
        )
        save_config(manifest, config)
        _emit(body, output)


@cli.command()
@manifest_option
@click.option("--library", default=None, help="Only release this library.")
@click.option("--version", "version_override", default="", help="Release at this version.")
@output_option
def release(
    manifest: Path, library: str | None, version_override: str, output: str | None
) -> None:
    """Prepare a release and print the release notes."""
    with _errors_as_click_exceptions():
        config, notes = prepare_release(
            load_config(manifest),
            GitRepository(manifest.resolve().parent),
            library_id=library,
            version_override=version_override,
        )
        save_config(manifest, config)
        _emit(notes, output)


@cli.command()
@click.argument("library")
@manifest_option
@click.option("--version", "version_override", default="", help="Bump to this version.")
def bump(library: str, manifest: Path, version_override: str) -> None:
    """Move LIBRARY to its next version."""
    with _errors_as_click_exceptions():
        config, _ = bump_library(load_config(manifest), library, version_override)
        save_config(manifest, config)
