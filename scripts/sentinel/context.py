"""Collect the reviewable context for one pull request.

Filters the changed-file list, fetches file contents, adds a bounded set of
sibling files for pattern reference and concatenates per-file patches into
one diff. Per-file failures drop that file; they never abort the run.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from . import log
from .config import Pattern, SentinelConfig
from .globs import matches_ignore_pattern
from .pull_request import ChangedFile, PlatformAdapter, PullRequest

MAX_SIBLINGS_PER_FILE = 2
MAX_RELATED_FILES = 5
MAX_SIBLING_LINES = 100

ROLE_CHANGED = "changed"
ROLE_SIBLING = "sibling"


@dataclass(frozen=True)
class FileContext:
    path: str
    content: str
    role: str


@dataclass(frozen=True)
class ReviewContext:
    conventions: str | None = None
    instructions: tuple[str, ...] = ()
    patterns: tuple[Pattern, ...] = ()


@dataclass(frozen=True)
class CollectedContext:
    changed_files: tuple[FileContext, ...]
    related_files: tuple[FileContext, ...]
    review_context: ReviewContext
    diff: str
    reviewed_files: tuple[ChangedFile, ...] = field(default_factory=tuple)


def truncate_for_context(content: str, max_lines: int = MAX_SIBLING_LINES) -> str:
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content
    omitted = len(lines) - max_lines
    return "\n".join(lines[:max_lines]) + f"\n... (truncated, {omitted} more lines)"


def build_diff(files: Iterable[ChangedFile]) -> str:
    """Concatenate patches in the given order, each under a synthetic git header."""
    parts: list[str] = []
    for file in files:
        if file.patch:
            parts.append(f"diff --git a/{file.filename} b/{file.filename}")
            parts.append(file.patch)
    return "\n".join(parts)


def sibling_pattern(file_path: str) -> tuple[str, str]:
    """(directory, glob) matching files next to `file_path` with the same extension."""
    directory = posixpath.dirname(file_path)
    ext = posixpath.splitext(file_path)[1]
    if not directory:
        return ".", f"*{ext}"
    return directory, f"{directory}/*{ext}"


class ContextAssembler:
    def __init__(
        self,
        platform: PlatformAdapter,
        config: SentinelConfig,
        conventions: str | None = None,
    ) -> None:
        self.platform = platform
        self.config = config
        self.conventions = conventions

    def collect(self, pr: PullRequest) -> CollectedContext:
        log.info("Collecting context for review...")

        if pr.author in self.config.ignore.authors:
            log.debug(f"Ignoring all files: author {pr.author} is in the ignore list")
            relevant: list[ChangedFile] = []
        else:
            relevant = self.filter_files(pr.files)
        log.info(f"{len(relevant)} files to review (after filtering)")

        changed = self.collect_changed_files(relevant)
        fetched = {fc.path for fc in changed}
        reviewed = tuple(f for f in relevant if f.filename in fetched)

        related = self.collect_related_files(relevant, exclude=[f.filename for f in pr.files])

        return CollectedContext(
            changed_files=tuple(changed),
            related_files=tuple(related),
            review_context=ReviewContext(
                conventions=self.conventions,
                instructions=self.config.instructions,
                patterns=self.config.patterns,
            ),
            diff=build_diff(relevant),
            reviewed_files=reviewed,
        )

    def filter_files(self, files: Sequence[ChangedFile]) -> list[ChangedFile]:
        kept: list[ChangedFile] = []
        for file in files:
            # Nothing left to review in a deleted file.
            if file.status == "deleted":
                continue
            pattern = matches_ignore_pattern(file.filename, self.config.ignore.paths)
            if pattern is not None:
                log.debug(f"Ignoring {file.filename} (matches {pattern})")
                continue
            kept.append(file)
        return kept

    def collect_changed_files(self, files: Sequence[ChangedFile]) -> list[FileContext]:
        results: list[FileContext] = []
        for file in files:
            content = self.platform.get_file_content(file.filename)
            if content:
                results.append(FileContext(path=file.filename, content=content, role=ROLE_CHANGED))
            else:
                log.debug(f"Skipping {file.filename}: content unavailable")
        return results

    def collect_related_files(
        self,
        files: Sequence[ChangedFile],
        exclude: Iterable[str] = (),
    ) -> list[FileContext]:
        results: list[FileContext] = []
        seen = {f.filename for f in files} | set(exclude)

        for file in files:
            if len(results) >= MAX_RELATED_FILES:
                break
            for sibling in self.find_sibling_files(file.filename, seen):
                if len(results) >= MAX_RELATED_FILES:
                    break
                results.append(sibling)
                seen.add(sibling.path)

        return results

    def find_sibling_files(self, file_path: str, exclude: set[str]) -> list[FileContext]:
        directory, pattern = sibling_pattern(file_path)
        try:
            candidates = self.platform.list_files_in_directory(directory, pattern)
        except Exception as exc:  # sibling lookup is best-effort
            log.debug(f"Failed to find siblings for {file_path}: {exc}")
            return []

        results: list[FileContext] = []
        for sibling_path in candidates:
            if len(results) >= MAX_SIBLINGS_PER_FILE:
                break
            if sibling_path == file_path or sibling_path in exclude:
                continue
            content = self.platform.get_file_content(sibling_path)
            if content:
                results.append(
                    FileContext(
                        path=sibling_path,
                        content=truncate_for_context(content),
                        role=ROLE_SIBLING,
                    )
                )
        return results
