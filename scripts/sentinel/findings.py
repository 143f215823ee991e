"""Review issue model, response coercion and severity filtering.

Model output is untrusted: everything here normalizes instead of assuming.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

SEVERITIES = ("critical", "warning", "suggestion", "nitpick")
SEVERITY_ORDER = {name: rank for rank, name in enumerate(SEVERITIES)}

CATEGORIES = ("security", "architecture", "performance", "best-practices", "bugs")

DEFAULT_SUMMARY = "Unable to generate summary."
DEFAULT_EFFORT_SCORE = 3
MIN_EFFORT_SCORE = 1
MAX_EFFORT_SCORE = 5

_REQUIRED_ISSUE_FIELDS = ("severity", "category", "file", "title", "description")


class ResponseShapeError(ValueError):
    """Model output is not a review object at all."""


@dataclass(frozen=True)
class ReviewIssue:
    severity: str
    category: str
    file: str
    title: str
    description: str
    line: int | None = None
    end_line: int | None = None
    suggestion: str | None = None
    code_block: str | None = None


@dataclass(frozen=True)
class ReviewResponse:
    summary: str
    effort_score: int
    issues: tuple[ReviewIssue, ...] = field(default_factory=tuple)


def empty_response() -> ReviewResponse:
    """Placeholder response for runs skipped before the model is called."""
    return ReviewResponse(summary="No issues found.", effort_score=1, issues=())


def norm_key(value: object) -> str:
    """Normalize arbitrary input into a stable lookup key."""
    return " ".join(str(value or "").strip().lower().split())


def severity_rank(severity: str) -> int:
    """Rank of a severity; unknown values sort after nitpick."""
    return SEVERITY_ORDER.get(norm_key(severity), len(SEVERITIES))


def as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _positive_int(value: object) -> int | None:
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = round(value)
    number = as_int(value)
    if number is None or number <= 0:
        return None
    return number


def _optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value if value.strip() else None


def clamp_effort_score(value: object) -> int:
    """Round and clamp into [1, 5]; missing or non-numeric -> 3."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return DEFAULT_EFFORT_SCORE
    if not math.isfinite(value):
        return DEFAULT_EFFORT_SCORE
    return max(MIN_EFFORT_SCORE, min(MAX_EFFORT_SCORE, round(value)))


def coerce_issue(raw: object) -> ReviewIssue | None:
    """Build a ReviewIssue, or None when a required field is missing."""
    if not isinstance(raw, dict):
        return None
    for name in _REQUIRED_ISSUE_FIELDS:
        if not isinstance(raw.get(name), str):
            return None

    severity = norm_key(raw["severity"])
    if severity not in SEVERITY_ORDER:
        return None

    return ReviewIssue(
        severity=severity,
        category=norm_key(raw["category"]),
        file=raw["file"].strip(),
        title=raw["title"].strip(),
        description=raw["description"].strip(),
        line=_positive_int(raw.get("line")),
        end_line=_positive_int(raw.get("endLine", raw.get("end_line"))),
        suggestion=_optional_text(raw.get("suggestion")),
        code_block=_optional_text(raw.get("codeBlock", raw.get("code_block"))),
    )


def coerce_review_response(raw: Any) -> ReviewResponse:
    """Validate a parsed model payload into a ReviewResponse.

    Raises ResponseShapeError only when the payload is not an object.
    """
    if not isinstance(raw, dict):
        raise ResponseShapeError(f"expected JSON object, got {type(raw).__name__}")

    summary = raw.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_SUMMARY

    issues_raw = raw.get("issues")
    if not isinstance(issues_raw, list):
        issues_raw = []

    issues = tuple(issue for issue in (coerce_issue(item) for item in issues_raw) if issue is not None)

    return ReviewResponse(
        summary=summary.strip(),
        effort_score=clamp_effort_score(raw.get("effortScore", raw.get("effort_score"))),
        issues=issues,
    )


def filter_by_severity(issues: Iterable[ReviewIssue], min_severity: str) -> list[ReviewIssue]:
    """Keep issues at least as severe as min_severity, preserving order."""
    floor = severity_rank(min_severity)
    return [issue for issue in issues if severity_rank(issue.severity) <= floor]


def count_by_severity(issues: Iterable[ReviewIssue]) -> dict[str, int]:
    counts = {name: 0 for name in SEVERITIES}
    for issue in issues:
        if issue.severity in counts:
            counts[issue.severity] += 1
    return counts


def group_by_severity(issues: Iterable[ReviewIssue]) -> list[tuple[str, list[ReviewIssue]]]:
    """Group issues in fixed severity order, dropping empty groups."""
    grouped: dict[str, list[ReviewIssue]] = {name: [] for name in SEVERITIES}
    for issue in issues:
        if issue.severity in grouped:
            grouped[issue.severity].append(issue)
    return [(name, grouped[name]) for name in SEVERITIES if grouped[name]]
