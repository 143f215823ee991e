"""Turn gated review issues into publishable output.

The summary groups issues by severity; inline comments are the first N issues
that carry a line, in arrival order; labels are derived from the surviving
issues. `anchor_inline_comments` then snaps each comment onto a line the
review API will accept.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Sequence

from .config import SentinelConfig
from .diff_positions import DEFAULT_MAX_DISTANCE, DiffIndex, build_diff_index, find_nearest_valid_line
from .findings import ReviewIssue, ReviewResponse, group_by_severity
from .markdown import effort_stars, location_link, severity_icon
from .pull_request import RIGHT, ChangedFile, ReviewComment

SUMMARY_HEADER = "## Code Sentinel Review"
PROJECT_URL = "https://github.com/sah1l/code-sentinel"

GROUP_TITLES = {
    "critical": "Critical",
    "warning": "Warnings",
    "suggestion": "Suggestions",
    "nitpick": "Nitpicks",
}

LABEL_SEVERITIES = {"critical", "warning"}


@dataclass(frozen=True)
class FormattedOutput:
    summary: str
    inline_comments: tuple[ReviewComment, ...]
    labels: tuple[str, ...]


@dataclass(frozen=True)
class AnchorResult:
    comments: tuple[ReviewComment, ...]
    moved: int = 0
    dropped: tuple[ReviewComment, ...] = ()


class OutputFormatter:
    def __init__(
        self,
        config: SentinelConfig,
        provider_name: str,
        *,
        server: str = "",
        repo: str = "",
        sha: str = "",
    ) -> None:
        self.config = config
        self.provider_name = provider_name
        self.server = server
        self.repo = repo
        self.sha = sha

    def format(self, response: ReviewResponse, issues: Sequence[ReviewIssue]) -> FormattedOutput:
        return FormattedOutput(
            summary=self.format_summary(response, issues),
            inline_comments=tuple(self.format_inline_comments(issues)),
            labels=tuple(self.generate_labels(response, issues)),
        )

    def format_summary(self, response: ReviewResponse, issues: Sequence[ReviewIssue]) -> str:
        lines = [
            SUMMARY_HEADER,
            "",
            f"**Review Effort:** {effort_stars(response.effort_score)} ({response.effort_score}/5)",
            "",
            "### Summary",
            response.summary,
            "",
        ]

        groups = group_by_severity(issues)
        if groups:
            lines.extend(["### Issues Found", ""])
            for severity, group in groups:
                lines.append(f"#### {GROUP_TITLES[severity]} ({len(group)})")
                lines.extend(self.format_issue_line(issue) for issue in group)
                lines.append("")
        else:
            lines.extend(["No issues found. Great job!", ""])

        lines.append("---")
        lines.append(f"<sub>Reviewed by [Code Sentinel]({PROJECT_URL}) using {self.provider_name}</sub>")
        return "\n".join(lines)

    def format_issue_line(self, issue: ReviewIssue) -> str:
        location = location_link(issue.file, issue.line, server=self.server, repo=self.repo, sha=self.sha)
        return f"- **{issue.title}** in {location} - {issue.description}"

    def format_inline_comments(self, issues: Sequence[ReviewIssue]) -> list[ReviewComment]:
        limit = self.config.output.max_inline_comments
        with_lines = [issue for issue in issues if issue.line is not None]
        return [
            ReviewComment(
                path=issue.file,
                line=issue.line,  # type: ignore[arg-type]
                body=format_inline_comment(issue),
                side=RIGHT,
            )
            for issue in with_lines[:limit]
        ]

    def generate_labels(self, response: ReviewResponse, issues: Sequence[ReviewIssue]) -> list[str]:
        label_config = self.config.output.labels
        if not label_config.enabled:
            return []

        labels: list[str] = []
        if any(i.category == "security" and i.severity in LABEL_SEVERITIES for i in issues):
            labels.append(label_config.security_issue)
        labels.append(f"{label_config.effort_prefix}{response.effort_score}")
        return labels


def format_inline_comment(issue: ReviewIssue) -> str:
    lines = [f"{severity_icon(issue.severity)} **{issue.title}**", "", issue.description]
    if issue.suggestion:
        lines.extend(["", f"**Suggestion:** {issue.suggestion}"])
    if issue.code_block:
        lines.extend(["", "```", issue.code_block, "```"])
    lines.extend(["", f"<sub>Category: {issue.category} | Severity: {issue.severity}</sub>"])
    return "\n".join(lines)


def provenance_note(requested_line: int) -> str:
    return f"> **Note:** This comment was intended for line {requested_line}."


def build_file_indexes(files: Iterable[ChangedFile]) -> dict[str, DiffIndex]:
    """Map filename (and previous filename for renames) -> DiffIndex."""
    indexes: dict[str, DiffIndex] = {}
    for file in files:
        index = build_diff_index(file.patch)
        indexes[file.filename] = index
        if file.previous_filename:
            indexes.setdefault(file.previous_filename, index)
    return indexes


def _canonical_paths(files: Iterable[ChangedFile]) -> dict[str, str]:
    paths: dict[str, str] = {}
    for file in files:
        paths[file.filename] = file.filename
        if file.previous_filename:
            paths.setdefault(file.previous_filename, file.filename)
    return paths


def anchor_inline_comments(
    comments: Sequence[ReviewComment],
    files: Sequence[ChangedFile],
    *,
    max_distance: int = DEFAULT_MAX_DISTANCE,
    indexes: Mapping[str, DiffIndex] | None = None,
) -> AnchorResult:
    """Resolve every comment against its file's diff.

    A comment moved off its requested line gets a provenance note prepended.
    Comments on files outside `files`, or with no commentable line in reach,
    are dropped.
    """
    if indexes is None:
        indexes = build_file_indexes(files)
    canonical = _canonical_paths(files)

    anchored: list[ReviewComment] = []
    dropped: list[ReviewComment] = []
    moved = 0
    for comment in comments:
        index = indexes.get(comment.path)
        path = canonical.get(comment.path)
        if index is None or path is None:
            dropped.append(comment)
            continue
        line = find_nearest_valid_line(comment.line, index, max_distance)
        if line is None:
            dropped.append(comment)
            continue
        body = comment.body
        if line != comment.line:
            body = f"{provenance_note(comment.line)}\n\n{body}"
            moved += 1
        anchored.append(replace(comment, path=path, line=line, body=body))

    return AnchorResult(comments=tuple(anchored), moved=moved, dropped=tuple(dropped))
