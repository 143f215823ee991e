"""Skip/proceed decisions around the model call, plus severity filtering."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from . import log
from .config import SentinelConfig
from .context import CollectedContext, ContextAssembler
from .findings import ReviewIssue, ReviewResponse, empty_response, filter_by_severity
from .providers import LLMProvider
from .pull_request import PlatformAdapter, PullRequest
from .review_prompt import ReviewRequest

NO_REVIEWABLE_FILES = "No reviewable files in PR"


@dataclass(frozen=True)
class AnalysisResult:
    response: ReviewResponse
    filtered_issues: tuple[ReviewIssue, ...] = ()
    skipped: bool = False
    skip_reason: str | None = None
    context: CollectedContext | None = field(default=None, compare=False)


def author_skip_reason(pr: PullRequest, config: SentinelConfig) -> str | None:
    if pr.author in config.ignore.authors:
        return f"PR author {pr.author} is in ignore list"
    return None


def effort_skip_reason(response: ReviewResponse, config: SentinelConfig) -> str | None:
    threshold = config.review.skip_if_effort_below
    if response.effort_score < threshold:
        return f"PR effort score ({response.effort_score}) below threshold ({threshold})"
    return None


def gate_response(response: ReviewResponse, config: SentinelConfig) -> AnalysisResult:
    """Apply the effort threshold, then the minimum-severity floor."""
    reason = effort_skip_reason(response, config)
    if reason is not None:
        return AnalysisResult(response=response, skipped=True, skip_reason=reason)
    issues = filter_by_severity(response.issues, config.review.min_severity)
    return AnalysisResult(response=response, filtered_issues=tuple(issues))


class ReviewAnalyzer:
    def __init__(
        self,
        platform: PlatformAdapter,
        provider: LLMProvider,
        config: SentinelConfig,
        conventions: str | None = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.assembler = ContextAssembler(platform, config, conventions)

    def analyze(self, pr: PullRequest) -> AnalysisResult:
        reason = author_skip_reason(pr, self.config)
        if reason is not None:
            return AnalysisResult(response=empty_response(), skipped=True, skip_reason=reason)

        context = self.assembler.collect(pr)
        if not context.changed_files:
            return AnalysisResult(
                response=empty_response(),
                skipped=True,
                skip_reason=NO_REVIEWABLE_FILES,
                context=context,
            )

        request = ReviewRequest(
            title=pr.title,
            body=pr.body,
            author=pr.author,
            diff=context.diff,
            changed_files=context.changed_files,
            related_files=context.related_files,
            context=context.review_context,
            categories=self.config.review.categories,
        )

        log.info(f"Analyzing PR with {self.provider.name}...")
        response = self.provider.analyze(request)

        result = gate_response(response, self.config)
        if not result.skipped:
            dropped = len(response.issues) - len(result.filtered_issues)
            if dropped:
                log.debug(f"Dropped {dropped} issue(s) below {self.config.review.min_severity}")
        return replace(result, context=context)
