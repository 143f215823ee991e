"""PlatformAdapter for GitHub: local checkout first, gh CLI for the rest."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from . import github as gh
from . import github_reviews, log
from .globs import matches_glob
from .pull_request import PullRequest, ReviewComment

SKIP_DIRS = {"node_modules", ".git", "dist", "build", "coverage"}


class GitHubPlatform:
    name = "github"

    def __init__(self, repo: str, pr_number: int, working_dir: Path) -> None:
        self.repo = repo
        self.pr_number = pr_number
        self.working_dir = working_dir
        self._head_sha: str | None = None

    def get_pull_request(self) -> PullRequest:
        pr = gh.fetch_pull_request(self.repo, self.pr_number)
        self._head_sha = pr.head_sha or None
        return pr

    def get_file_content(self, path: str, ref: str | None = None) -> str | None:
        local = self.working_dir / path
        if local.is_file():
            try:
                return local.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                log.debug(f"Failed to read local file {local}: {exc}")
        return gh.fetch_file_content(self.repo, path, ref or self._head_sha)

    def list_files_in_directory(self, directory: str, pattern: str | None = None) -> list[str]:
        root = self.working_dir / directory
        if not root.is_dir():
            return []

        results: list[str] = []
        try:
            for current, dirnames, filenames in os.walk(root):
                dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
                for filename in sorted(filenames):
                    relative = (Path(current) / filename).relative_to(self.working_dir).as_posix()
                    if pattern is None or matches_glob(relative, pattern):
                        results.append(relative)
        except OSError as exc:
            log.debug(f"Failed to scan directory {directory}: {exc}")
        return results

    def post_review_summary(self, summary: str) -> None:
        github_reviews.create_pr_review(repo=self.repo, pr_number=self.pr_number, body=summary)
        log.info("Posted review summary to PR")

    def post_inline_comments(self, comments: Sequence[ReviewComment]) -> None:
        if not comments:
            log.info("No inline comments to post")
            return
        head_sha = self._head_sha or gh.fetch_pull_request(self.repo, self.pr_number).head_sha
        github_reviews.create_pr_review(
            repo=self.repo,
            pr_number=self.pr_number,
            body="",
            comments=comments,
            commit_id=head_sha,
        )
        log.info(f"Posted {len(comments)} inline comments to PR")

    def add_labels(self, labels: Sequence[str]) -> None:
        if not labels:
            return
        github_reviews.add_labels(repo=self.repo, pr_number=self.pr_number, labels=labels)
        log.info(f"Added labels: {', '.join(labels)}")
