"""Version parsing and bumping utilities.

Version cores are handled with semver.Version. Prerelease suffixes are kept as
plain strings because release trains such as "beta.09" are not valid SemVer
2.0 identifiers but still need to be bumped ("beta.09" → "beta.10").
"""

from __future__ import annotations

import re
from enum import IntEnum

import semver

from .errors import VersionError
from .models import LibraryState

_PRERELEASE_RE = re.compile(r"^[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*$")
_TRAILING_DIGITS_RE = re.compile(r"([0-9]+)$")


class ChangeLevel(IntEnum):
    """How much a set of commits moves a version."""

    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3


def parse_version(version_str: str) -> tuple[semver.Version, str]:
    """Split a version into its semver core and its prerelease string.

    Build metadata is discarded:
    - "1.2.3" → (1.2.3, "")
    - "1.2.3-beta.09" → (1.2.3, "beta.09")
    - "1.2.3-rc+build.5" → (1.2.3, "rc")

    Raises:
        VersionError: If the core is not MAJOR.MINOR.PATCH or the prerelease
                      contains invalid characters.
    """
    core, _, _build = version_str.partition("+")
    core, sep, prerelease = core.partition("-")
    if sep and not _PRERELEASE_RE.match(prerelease):
        raise VersionError(f"invalid prerelease in version {version_str!r}")
    try:
        return semver.Version.parse(core), prerelease
    except ValueError as exc:
        raise VersionError(f"invalid version {version_str!r}: {exc}") from exc


def _with_prerelease(core: semver.Version, prerelease: str) -> str:
    base = f"{core.major}.{core.minor}.{core.patch}"
    return f"{base}-{prerelease}" if prerelease else base


def calculate_next_prerelease(prerelease: str) -> str:
    """Increment the trailing digits of a prerelease string.

    The result is zero-padded to at least the original digit width:
    "beta.42" → "beta.43", "beta.09" → "beta.10", "alpha9" → "alpha10".

    Raises:
        VersionError: If the prerelease does not end in a digit.
    """
    match = _TRAILING_DIGITS_RE.search(prerelease)
    if not match:
        raise VersionError(f"unable to create next prerelease from {prerelease!r}")
    digits = match.group(1)
    next_number = str(int(digits) + 1).zfill(len(digits))
    return prerelease[: match.start(1)] + next_number


def calculate_next_version(library: LibraryState, version_override: str = "") -> str:
    """Compute the version a library should be released at.

    Precedence: explicit override > state's next_version > bump of the
    current version. A prerelease bumps its trailing number; anything else
    bumps the minor version and resets the patch.

    Examples:
        "1.2.3" → "1.3.0"
        "1.2.3-beta.09" → "1.2.3-beta.10"
        "1.2.3-rc" → VersionError
    """
    if version_override:
        return version_override
    if library.next_version:
        return library.next_version
    if not library.version:
        raise VersionError(
            f"cannot determine new version for {library.id}; no current version"
        )
    current, prerelease = parse_version(library.version)
    if prerelease:
        return _with_prerelease(current, calculate_next_prerelease(prerelease))
    return str(current.bump_minor())


def derive_next_version(change: ChangeLevel, current_version: str) -> str:
    """Derive the next version from the highest change level of some commits.

    - No change keeps the current version.
    - A prerelease only moves its prerelease number ("rc" becomes "rc.1").
    - Before 1.0.0 a breaking change only bumps the minor version.
    """
    if change is ChangeLevel.NONE:
        return current_version
    current, prerelease = parse_version(current_version)
    if prerelease:
        if _TRAILING_DIGITS_RE.search(prerelease):
            return _with_prerelease(current, calculate_next_prerelease(prerelease))
        return _with_prerelease(current, f"{prerelease}.1")

    if change is ChangeLevel.MAJOR and current.major == 0:
        change = ChangeLevel.MINOR
    if change is ChangeLevel.MAJOR:
        return str(current.bump_major())
    if change is ChangeLevel.MINOR:
        return str(current.bump_minor())
    return str(current.bump_patch())


def max_version(*versions: str) -> str:
    """Return the highest valid SemVer string, ignoring invalid ones.

    Returns "" when none of the inputs is a valid version.
    """
    valid = [v for v in versions if v and semver.Version.is_valid(v)]
    if not valid:
        return ""
    return str(max(valid, key=semver.Version.parse))
