"""Pull request data as seen by the review pipeline, plus the platform contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

FILE_STATUSES = ("added", "modified", "deleted", "renamed", "copied", "changed")

LEFT = "LEFT"
RIGHT = "RIGHT"


@dataclass(frozen=True)
class ChangedFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: str | None = None
    previous_filename: str | None = None


@dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    body: str
    author: str
    base_branch: str
    head_branch: str
    base_sha: str
    head_sha: str
    files: tuple[ChangedFile, ...] = ()


@dataclass(frozen=True)
class ReviewComment:
    path: str
    line: int
    body: str
    side: str = RIGHT


class PlatformAdapter(Protocol):
    name: str

    def get_pull_request(self) -> PullRequest:
        ...

    def get_file_content(self, path: str, ref: str | None = None) -> str | None:
        ...

    def list_files_in_directory(self, directory: str, pattern: str | None = None) -> list[str]:
        ...

    def post_review_summary(self, summary: str) -> None:
        ...

    def post_inline_comments(self, comments: Sequence[ReviewComment]) -> None:
        ...

    def add_labels(self, labels: Sequence[str]) -> None:
        ...
