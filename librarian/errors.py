"""Exception types raised by librarian.

Library-level failures are caught by the pipeline and reported in the pull
request body; everything else propagates up to the CLI, which turns a
LibrarianError into a non-zero exit.
"""

from __future__ import annotations


class LibrarianError(Exception):
    """Base class for all librarian failures."""


class ManifestError(LibrarianError):
    """The manifest file is missing or malformed."""


class MissingOutputError(LibrarianError):
    """A veneer library has no explicit output path."""


class DuplicateLibraryError(LibrarianError):
    """Two libraries share a name or an API path."""


class LibraryNotFoundError(LibrarianError):
    """No library with the requested name exists in the manifest."""


class CommitNotFoundError(LibrarianError):
    """The repository has no commit for the given hash or path."""


class EmptyCommitMessageError(LibrarianError):
    """A commit message was empty and cannot be parsed."""


class PiperIDNotFoundError(LibrarianError):
    """A commit carries no PiperOrigin-RevId footer."""


class VersionError(LibrarianError):
    """A version cannot be parsed or bumped."""


class RepositoryError(LibrarianError):
    """A git command against a repository failed."""
