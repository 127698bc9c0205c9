"""Conventional commit parsing.

Parses raw commit messages of the form::

    feat(scope)!: subject

    Optional body, any number of lines.

    PiperOrigin-RevId: 573342
    Library-IDs: lib-a,lib-b

Messages produced by a generation pull request wrap several commits in a
BEGIN_COMMIT_OVERRIDE / END_COMMIT_OVERRIDE block, one BEGIN_NESTED_COMMIT /
END_NESTED_COMMIT block per commit; each nested block becomes its own
ConventionalCommit.
"""

from __future__ import annotations

import re

from .errors import EmptyCommitMessageError
from .models import LIBRARY_IDS, Commit, ConventionalCommit

# A commit naming at least this many libraries is a bulk change.
BULK_CHANGE_THRESHOLD = 10

BEGIN_COMMIT_OVERRIDE = "BEGIN_COMMIT_OVERRIDE"
END_COMMIT_OVERRIDE = "END_COMMIT_OVERRIDE"

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^()]*)\))?(?P<breaking>!)?: (?P<subject>\S.*)$"
)
_FOOTER_RE = re.compile(
    r"^(?P<key>BREAKING CHANGE|[A-Za-z][A-Za-z0-9-]*)(?:: | #)(?P<value>.*)$"
)
_NESTED_RE = re.compile(
    r"BEGIN_NESTED_COMMIT[ \t]*\n?(.*?)\n?[ \t]*END_NESTED_COMMIT", re.DOTALL
)
_BREAKING_KEYS = {"BREAKING CHANGE", "BREAKING-CHANGE"}


def library_ids(commit: ConventionalCommit) -> list[str]:
    """Library IDs listed in a commit's Library-IDs footer."""
    raw = commit.footers.get(LIBRARY_IDS, "")
    return [lib_id.strip() for lib_id in raw.split(",") if lib_id.strip()]


def _split_body_and_footers(lines: list[str]) -> tuple[str, dict[str, str]]:
    # Only the last paragraph can hold footers, and only when it opens with one.
    start = 0
    for i, line in enumerate(lines):
        if not line.strip():
            start = i + 1
    trailer = lines[start:]
    if not trailer or not _FOOTER_RE.match(trailer[0]):
        return "\n".join(lines).strip(), {}

    footers: dict[str, str] = {}
    key = ""
    for line in trailer:
        match = _FOOTER_RE.match(line)
        if match:
            key = match.group("key")
            footers[key] = match.group("value").strip()
        else:
            footers[key] = f"{footers[key]}\n{line.strip()}"
    return "\n".join(lines[:start]).strip(), footers


def _parse_message(
    message: str, commit: Commit, library_id: str, *, is_nested: bool = False
) -> ConventionalCommit | None:
    lines = message.strip().splitlines()
    if not lines:
        return None
    header = _HEADER_RE.match(lines[0].strip())
    if not header:
        return None
    body, footers = _split_body_and_footers(lines[1:])
    parsed = ConventionalCommit(
        type=header.group("type").lower(),
        scope=header.group("scope") or "",
        subject=header.group("subject").strip(),
        body=body,
        commit_hash=commit.hash,
        when=commit.when,
        footers=footers,
        library_id=library_id,
        is_breaking=(
            bool(header.group("breaking")) or bool(_BREAKING_KEYS & footers.keys())
        ),
        is_nested=is_nested,
    )
    parsed.is_bulk = len(library_ids(parsed)) >= BULK_CHANGE_THRESHOLD
    return parsed


def _strip_override(message: str) -> str:
    start = message.find(BEGIN_COMMIT_OVERRIDE)
    end = message.find(END_COMMIT_OVERRIDE)
    if start == -1 or end < start:
        return message
    return message[start + len(BEGIN_COMMIT_OVERRIDE) : end].strip()


def parse_commits(commit: Commit, library_id: str) -> list[ConventionalCommit]:
    """Parse a raw commit into conventional commits for a library.

    Returns an empty list when the message is not a conventional commit.

    Raises:
        EmptyCommitMessageError: If the commit message is empty.
    """
    message = commit.message.strip()
    if not message:
        raise EmptyCommitMessageError(f"commit {commit.hash} has an empty message")

    message = _strip_override(message)
    blocks = _NESTED_RE.findall(message)
    if blocks:
        nested = [
            _parse_message(block, commit, library_id, is_nested=True)
            for block in blocks
            if block.strip()
        ]
        return [c for c in nested if c is not None]

    parsed = _parse_message(message, commit, library_id)
    return [parsed] if parsed is not None else []
