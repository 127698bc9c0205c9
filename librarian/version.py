"""Version of the librarian tool itself, stamped into pull request bodies."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version


def librarian_version() -> str:
    """Installed version of librarian, or "not available" from a source tree."""
    try:
        return pkg_version("librarian")
    except PackageNotFoundError:
        return "not available"
