"""Unified diff helpers for GitHub PR review comments.

GitHub's review comment API (`line` + `side`) only accepts line numbers that
appear inside the file's diff patch (the `patch` field from `pulls/{pr}/files`).

This module indexes which new-file and old-file lines are commentable and
snaps a requested line onto the nearest commentable one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_HUNK_RE = re.compile(
    r"^@@\s+-(?P<old_start>\d+)(?:,(?P<old_count>\d+))?\s+\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))?\s+@@"
)

ADDED = "added"
REMOVED = "removed"
CONTEXT = "context"

DEFAULT_MAX_DISTANCE = 3


@dataclass(frozen=True)
class DiffLine:
    kind: str
    new_line: int | None
    old_line: int | None


@dataclass(frozen=True)
class DiffHunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[DiffLine, ...]


@dataclass(frozen=True)
class DiffIndex:
    """Commentable line numbers for one file's patch."""

    new_lines: frozenset[int] = frozenset()
    old_lines: frozenset[int] = frozenset()
    hunks: tuple[DiffHunk, ...] = ()

    def is_valid_line(self, line: int, *, side: str = "RIGHT") -> bool:
        if side == "LEFT":
            return line in self.old_lines
        return line in self.new_lines


def _count(raw: str | None) -> int:
    return int(raw) if raw is not None else 1


def build_diff_index(patch: str | None) -> DiffIndex:
    """Parse a patch into a DiffIndex. Never raises; empty input -> empty index.

    Lines before the first hunk header (file headers, `index` lines) and
    `\\ No newline at end of file` markers don't touch the counters.
    """
    if not patch:
        return DiffIndex()

    new_lines: set[int] = set()
    old_lines: set[int] = set()
    hunks: list[DiffHunk] = []

    header: re.Match[str] | None = None
    body: list[DiffLine] = []
    old_line = 0
    new_line = 0

    def close() -> None:
        if header is None:
            return
        hunks.append(
            DiffHunk(
                old_start=int(header.group("old_start")),
                old_count=_count(header.group("old_count")),
                new_start=int(header.group("new_start")),
                new_count=_count(header.group("new_count")),
                lines=tuple(body),
            )
        )

    raw_lines = patch.split("\n")
    if raw_lines[-1] == "":
        # Trailing newline terminates the last line; it is not a blank context line.
        raw_lines.pop()

    for raw in raw_lines:
        m = _HUNK_RE.match(raw)
        if m:
            close()
            header = m
            body = []
            old_line = int(m.group("old_start"))
            new_line = int(m.group("new_start"))
            continue

        if header is None:
            continue

        if raw.startswith("+") and not raw.startswith("+++"):
            new_lines.add(new_line)
            body.append(DiffLine(kind=ADDED, new_line=new_line, old_line=None))
            new_line += 1
        elif raw.startswith("-") and not raw.startswith("---"):
            old_lines.add(old_line)
            body.append(DiffLine(kind=REMOVED, new_line=None, old_line=old_line))
            old_line += 1
        elif raw.startswith(" ") or raw == "":
            new_lines.add(new_line)
            old_lines.add(old_line)
            body.append(DiffLine(kind=CONTEXT, new_line=new_line, old_line=old_line))
            old_line += 1
            new_line += 1

    close()

    return DiffIndex(
        new_lines=frozenset(new_lines),
        old_lines=frozenset(old_lines),
        hunks=tuple(hunks),
    )


def find_nearest_valid_line(
    target_line: int,
    index: DiffIndex,
    max_distance: int = DEFAULT_MAX_DISTANCE,
) -> int | None:
    """Return the closest new-file line in the diff, or None if none is within reach.

    At equal distance the line above wins.
    """
    if target_line in index.new_lines:
        return target_line

    for offset in range(1, max_distance + 1):
        if target_line - offset in index.new_lines:
            return target_line - offset
        if target_line + offset in index.new_lines:
            return target_line + offset

    return None
